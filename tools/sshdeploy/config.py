"""
Deploy Tool Configuration

Defaults are loaded from environment variables, optionally set via a
.env.deploy file in the working directory. Command line flags override them.

Environment Variables:
    DEPLOY_PORT: SSH port (default: 22)
    DEPLOY_CONNECTION_TIMEOUT: Connection timeout in seconds (default: 10)
    DEPLOY_COMMAND_TIMEOUT: Per-command timeout in seconds (default: no limit)
    DEPLOY_KNOWN_HOSTS_POLICY: Host key policy (strict/auto_add/warn, default: strict)
    DEPLOY_KNOWN_HOSTS_FILE: Extra known_hosts file used by the strict policy
    DEPLOY_MAX_WORKERS: Maximum concurrent uploads (default: 8)
    DEPLOY_REMOTE_DIR: Remote directory uploads are written to (default: login dir)
    DEPLOY_DEBUG: Enable debug logging (default: false)
"""

import base64
import os
import sys
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

HOST_KEY_POLICIES = ('strict', 'auto_add', 'warn')

CHUNK_SIZE = 32 * 1024


def _decode_env_value(value: str) -> str:
    """
    Decode environment variable value.
    Values prefixed with 'base64:' are base64-decoded to support multi-line secrets.
    """
    if value.startswith('base64:'):
        try:
            return base64.b64decode(value[7:]).decode('utf-8')
        except (ValueError, UnicodeDecodeError):
            return value
    return value


def _load_env_file(file_path: Path) -> None:
    """Load environment variables from a .env file."""
    if not file_path.exists():
        return

    with file_path.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue
            key, value = line.split("=", 1)
            os.environ.setdefault(key.strip(), _decode_env_value(value.strip()))


def load_env_file(directory: Optional[Path] = None) -> None:
    """Load .env.deploy from the given directory (default: cwd) into os.environ."""
    _load_env_file((directory or Path.cwd()) / ".env.deploy")


def _env_int(env: Mapping[str, str], name: str, default: Optional[int]) -> Optional[int]:
    raw = env.get(name, '').strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class DeployConfig:
    """Deploy run configuration, built once and passed to every stage"""

    port: int = 22
    connection_timeout: int = 10
    command_timeout: Optional[int] = None
    known_hosts_policy: str = 'strict'
    known_hosts_file: Optional[str] = None
    max_workers: int = 8
    remote_dir: Optional[str] = None
    keep_going: bool = False
    debug: bool = False

    def __post_init__(self):
        if self.known_hosts_policy not in HOST_KEY_POLICIES:
            raise ValueError(
                f"Unknown host key policy {self.known_hosts_policy!r} "
                f"(expected one of: {', '.join(HOST_KEY_POLICIES)})"
            )
        if not 0 < self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")
        if self.connection_timeout <= 0:
            raise ValueError(f"connection_timeout must be positive, got {self.connection_timeout}")
        if self.command_timeout is not None and self.command_timeout <= 0:
            raise ValueError(f"command_timeout must be positive, got {self.command_timeout}")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "DeployConfig":
        """Build a configuration from DEPLOY_* environment variables"""
        if env is None:
            env = os.environ
        return cls(
            port=_env_int(env, 'DEPLOY_PORT', 22),
            connection_timeout=_env_int(env, 'DEPLOY_CONNECTION_TIMEOUT', 10),
            command_timeout=_env_int(env, 'DEPLOY_COMMAND_TIMEOUT', None),
            known_hosts_policy=env.get('DEPLOY_KNOWN_HOSTS_POLICY', '').strip() or 'strict',
            known_hosts_file=env.get('DEPLOY_KNOWN_HOSTS_FILE') or None,
            max_workers=_env_int(env, 'DEPLOY_MAX_WORKERS', 8),
            remote_dir=env.get('DEPLOY_REMOTE_DIR') or None,
            debug=env.get('DEPLOY_DEBUG', '').lower() == 'true',
        )

    def merge(self, overrides: Dict[str, Any]) -> "DeployConfig":
        """Return a copy with every non-None override applied"""
        values = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **values)

    def debug_log(self, message: str, *args: Any) -> None:
        """Debug log helper"""
        if self.debug:
            log(f'debug: {message}', *args)


def log(message: str, *args: Any) -> None:
    """Progress log line on stderr"""
    if args:
        print(f'[deploy] {message}', *args, file=sys.stderr, flush=True)
    else:
        print(f'[deploy] {message}', file=sys.stderr, flush=True)
