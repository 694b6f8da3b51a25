"""
Deploy error types.

Every stage failure is raised as a DeployError subclass. The entry point maps
each one to its exit code:

    1    usage error (missing host, bad flag value)
    2    CredentialError
    3    SSHConnectionError
    4    SessionError
    5    ManifestReadError
    6    TransferError
    7    CommandError
    130  interrupted
"""

from typing import Any, Dict, Optional

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_INTERRUPTED = 130


class DeployError(Exception):
    """Base exception for all deploy errors"""

    exit_code = 1

    def __init__(self, message: str, cause: Optional[BaseException] = None,
                 details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.cause = cause
        self.details = details or {}

        detailed_message = message
        if cause:
            detailed_message += f" - Caused by: {cause}"

        super().__init__(detailed_message)


class CredentialError(DeployError):
    """Certificate missing/unreadable/unparsable, or credentials could not be prompted"""

    exit_code = 2


class SSHConnectionError(DeployError):
    """Dial, handshake, host key or authentication failure"""

    exit_code = 3

    def __init__(self, message: str = "Failed to establish SSH connection",
                 host: Optional[str] = None, port: Optional[int] = None,
                 username: Optional[str] = None, cause: Optional[BaseException] = None):
        details: Dict[str, Any] = {}
        if host:
            details['host'] = host
        if port:
            details['port'] = port
        if username:
            details['username'] = username
        super().__init__(message, cause, details)


class SessionError(DeployError):
    """The command-execution channel could not be opened"""

    exit_code = 4


class ManifestReadError(DeployError):
    """A file or command manifest could not be read"""

    exit_code = 5

    def __init__(self, path: str, cause: Optional[BaseException] = None):
        super().__init__(f"Cannot read manifest {path}", cause, {'path': path})
        self.path = path


class TransferError(DeployError):
    """One or more file uploads failed"""

    exit_code = 6


class CommandError(DeployError):
    """A remote command failed or returned a non-zero exit status"""

    exit_code = 7

    def __init__(self, message: str = "Command execution failed",
                 command: Optional[str] = None, exit_code: Optional[int] = None,
                 cause: Optional[BaseException] = None):
        details: Dict[str, Any] = {}
        if command:
            details['command'] = command
        if exit_code is not None:
            details['exit_code'] = exit_code
        super().__init__(message, cause, details)
