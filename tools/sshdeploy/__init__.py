"""
sshdeploy - Remote Deployment over SSH

Connects to one host, uploads the files listed in a manifest, runs an ad-hoc
command and then a batch of commands read from a file.

Example:
    from sshdeploy import DeployConfig, Target, resolve_credentials, connect
    from sshdeploy import upload_files, execute_batch

    config = DeployConfig.from_env()
    target = Target(host="10.0.0.5", username="deploy", certificate="~/.ssh/id_ed25519")
    credentials = resolve_credentials(target.username, target.certificate)

    with connect(target, credentials, config) as connection:
        uploads = upload_files(connection, "files.txt", config)
        batch = execute_batch(connection, "commands.txt", config)
"""

from .config import DeployConfig, load_env_file

from .errors import (
    DeployError,
    CredentialError,
    SSHConnectionError,
    SessionError,
    ManifestReadError,
    TransferError,
    CommandError,
)

from .manifest import ManifestEntry, parse_manifest, read_manifest
from .credentials import Credentials, Target, load_private_key, resolve_credentials
from .connection import Connection, connect
from .upload import TransferResult, UploadReport, upload_files
from .batch import BatchReport, CommandResult, execute_batch, run_command
from .cli import main

__all__ = [
    # Configuration
    'DeployConfig',
    'load_env_file',

    # Errors
    'DeployError',
    'CredentialError',
    'SSHConnectionError',
    'SessionError',
    'ManifestReadError',
    'TransferError',
    'CommandError',

    # Functions
    'ManifestEntry',
    'parse_manifest',
    'read_manifest',
    'Credentials',
    'Target',
    'load_private_key',
    'resolve_credentials',
    'Connection',
    'connect',
    'TransferResult',
    'UploadReport',
    'upload_files',
    'BatchReport',
    'CommandResult',
    'execute_batch',
    'run_command',
    'main',
]
