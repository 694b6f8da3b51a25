"""
SSH connection establishment.

Opens one authenticated transport to the target and one command-execution
channel over it. Both handles are released by Connection.close(), which the
context manager calls on exit.
"""

import os
from typing import Optional

import paramiko

from .config import DeployConfig
from .credentials import Credentials, Target
from .errors import SSHConnectionError, SessionError


def _get_host_key_policy(config: DeployConfig) -> paramiko.MissingHostKeyPolicy:
    """Get the appropriate host key policy based on configuration"""
    policy = config.known_hosts_policy
    if policy == 'strict':
        return paramiko.RejectPolicy()
    elif policy == 'auto_add':
        return paramiko.AutoAddPolicy()
    else:
        return paramiko.WarningPolicy()


class Connection:
    """One transport handle plus one command-execution channel"""

    def __init__(self, target: Target, client: paramiko.SSHClient, session: paramiko.Channel):
        self.target = target
        self.client = client
        self.session: Optional[paramiko.Channel] = session
        self._closed = False

    def open_session(self, timeout: Optional[float] = None) -> paramiko.Channel:
        """
        Open a fresh session channel on the existing transport.

        Raises:
            SessionError: the transport is gone or refused the channel
        """
        transport = self.client.get_transport()
        if transport is None or not transport.is_active():
            raise SessionError(f"Connection to {self.target.host} is not active")
        try:
            return transport.open_session(timeout=timeout)
        except (paramiko.SSHException, OSError) as e:
            raise SessionError(f"Failed to open session on {self.target.host}", cause=e)

    def take_session(self) -> paramiko.Channel:
        """Hand out the pre-opened channel once, fresh channels afterwards"""
        session, self.session = self.session, None
        if session is not None:
            return session
        return self.open_session()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self.session is not None:
            self.session.close()
            self.session = None
        self.client.close()

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def connect(target: Target, credentials: Credentials, config: DeployConfig) -> Connection:
    """
    Connect and authenticate to the target, then open the command channel.

    Args:
        target: host and port to dial
        credentials: resolved password or private key
        config: timeouts and host key policy

    Returns:
        An open Connection

    Raises:
        SSHConnectionError: dial, handshake, host key or authentication failed
        SessionError: the command channel could not be opened
    """
    client = paramiko.SSHClient()
    if config.known_hosts_policy == 'strict':
        try:
            client.load_system_host_keys()
            if config.known_hosts_file:
                client.load_host_keys(os.path.expanduser(config.known_hosts_file))
        except (OSError, paramiko.SSHException) as e:
            client.close()
            raise SSHConnectionError(
                f"Cannot load known hosts for {target.host}",
                host=target.host, port=target.port, cause=e,
            )
    client.set_missing_host_key_policy(_get_host_key_policy(config))

    try:
        connect_args = dict(
            hostname=target.host,
            port=target.port,
            username=credentials.username,
            timeout=config.connection_timeout,
            banner_timeout=config.connection_timeout,
            auth_timeout=config.connection_timeout,
            allow_agent=False,
            look_for_keys=False,
        )
        if credentials.pkey is not None:
            connect_args['pkey'] = credentials.pkey
        else:
            connect_args['password'] = credentials.password

        config.debug_log(
            f"Connecting to {target.host}:{target.port} as {credentials.username} "
            f"({credentials.method}, host key policy {config.known_hosts_policy})"
        )
        client.connect(**connect_args)
    except paramiko.AuthenticationException as e:
        client.close()
        raise SSHConnectionError(
            f"Authentication failed for {credentials.username}@{target.host}",
            host=target.host, port=target.port, username=credentials.username, cause=e,
        )
    except (paramiko.SSHException, OSError) as e:
        client.close()
        raise SSHConnectionError(
            f"Failed to connect to {target.host}:{target.port}",
            host=target.host, port=target.port, username=credentials.username, cause=e,
        )

    try:
        transport = client.get_transport()
        if transport is None:
            raise SessionError(f"No transport to {target.host} after connect")
        session = transport.open_session(timeout=config.connection_timeout)
    except SessionError:
        client.close()
        raise
    except (paramiko.SSHException, OSError) as e:
        client.close()
        raise SessionError(f"Failed to open session on {target.host}", cause=e)

    config.debug_log(f"Connected to {target.host}:{target.port}")
    return Connection(target, client, session)
