"""
Remote command execution.

Commands from a batch manifest run one at a time, in file order, each on a
fresh session channel. Their combined stdout/stderr accumulates in one buffer.
"""

import io
import socket
import time
from dataclasses import dataclass, field
from typing import List, Optional

import paramiko

from .config import CHUNK_SIZE, DeployConfig, log
from .connection import Connection
from .errors import SessionError
from .manifest import read_manifest


@dataclass
class CommandResult:
    command: str
    exit_code: int
    output: str = ''
    duration_ms: int = 0
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.exit_code == 0 and self.error is None


@dataclass
class BatchReport:
    results: List[CommandResult] = field(default_factory=list)
    output: str = ''
    skipped: int = 0

    @property
    def ok(self) -> bool:
        return self.skipped == 0 and all(r.success for r in self.results)

    @property
    def status(self) -> str:
        return 'ok' if self.ok else 'nok'

    @property
    def failed(self) -> List[CommandResult]:
        return [r for r in self.results if not r.success]


def run_command(channel: paramiko.Channel, command: str, timeout: Optional[int] = None) -> CommandResult:
    """
    Run one command on a session channel and capture stdout and stderr together.

    The channel is closed afterwards. Transport errors and timeouts are
    reported on the result with exit_code -1 rather than raised.
    """
    start_time = time.time()
    chunks: List[bytes] = []
    try:
        channel.settimeout(timeout)
        channel.set_combine_stderr(True)
        channel.exec_command(command)
        while True:
            data = channel.recv(CHUNK_SIZE)
            if not data:
                break
            chunks.append(data)
        exit_code = channel.recv_exit_status()
        error = None
    except socket.timeout:
        exit_code = -1
        error = f"Command timed out after {timeout} seconds"
    except (paramiko.SSHException, OSError) as e:
        exit_code = -1
        error = f"Command execution failed: {e}"
    finally:
        channel.close()

    return CommandResult(
        command=command,
        exit_code=exit_code,
        output=b''.join(chunks).decode('utf-8', errors='replace'),
        duration_ms=int((time.time() - start_time) * 1000),
        error=error,
    )


def execute_batch(connection: Connection, manifest_path: str, config: DeployConfig) -> BatchReport:
    """
    Run every command listed in a batch manifest, sequentially.

    Stops at the first failing command unless config.keep_going is set.

    Args:
        connection: open connection; each command gets its own channel
        manifest_path: command manifest, one shell command per line
        config: command timeout and failure policy

    Returns:
        BatchReport with results in execution order and the combined output

    Raises:
        ManifestReadError: the manifest cannot be read
    """
    entries = read_manifest(manifest_path)
    buffer = io.StringIO()
    results: List[CommandResult] = []

    for index, entry in enumerate(entries):
        log(f"Executing: {entry.text}")
        try:
            channel = connection.open_session(timeout=config.connection_timeout)
        except SessionError as e:
            result = CommandResult(command=entry.text, exit_code=-1, error=str(e))
        else:
            result = run_command(channel, entry.text, config.command_timeout)

        buffer.write(result.output)
        results.append(result)
        config.debug_log(f"{entry.text!r} exited with {result.exit_code} in {result.duration_ms}ms")

        if not result.success:
            log(f"Command failed (line {entry.line_number}, exit code {result.exit_code}): "
                f"{result.error or entry.text}")
            remaining = len(entries) - index - 1
            if not config.keep_going and remaining:
                log(f"Stopping batch, {remaining} command(s) not run")
                return BatchReport(results, buffer.getvalue(), skipped=remaining)

    return BatchReport(results, buffer.getvalue())
