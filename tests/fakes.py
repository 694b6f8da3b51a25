"""In-memory stand-ins for the paramiko client, transport, channels and SFTP."""

import io
import threading

import paramiko


def echo_handler(command):
    """Default command handler: `echo x` prints x, `false` exits 1"""
    if command.startswith('echo '):
        return (command[5:] + '\n').encode(), 0
    if command == 'false':
        return b'', 1
    return b'', 0


class FakeChannel:
    def __init__(self, handler=echo_handler, chunk=4):
        self.handler = handler
        self.chunk = chunk
        self.command = None
        self.combined = False
        self.timeout = None
        self.closed = False
        self._data = b''
        self._exit_code = -1

    def settimeout(self, timeout):
        self.timeout = timeout

    def set_combine_stderr(self, combine):
        self.combined = combine

    def exec_command(self, command):
        self.command = command
        self._data, self._exit_code = self.handler(command)

    def recv(self, nbytes):
        size = min(nbytes, self.chunk)
        data, self._data = self._data[:size], self._data[size:]
        return data

    def recv_exit_status(self):
        return self._exit_code

    def close(self):
        self.closed = True


class FakeTransport:
    def __init__(self, handler=echo_handler, fail_open=False):
        self.handler = handler
        self.fail_open = fail_open
        self.active = True
        self.channels = []

    def is_active(self):
        return self.active

    def open_session(self, timeout=None):
        if self.fail_open:
            raise paramiko.ChannelException(2, 'Connect failed')
        channel = FakeChannel(self.handler)
        self.channels.append(channel)
        return channel


class FakeRemoteFile(io.BytesIO):
    def __init__(self, store, path):
        super().__init__()
        self._store = store
        self._path = path

    def close(self):
        if not self.closed:
            self._store[self._path] = self.getvalue()
        super().close()


class FakeSFTP:
    def __init__(self, store, fail_paths=()):
        self.store = store
        self.fail_paths = set(fail_paths)
        self.closed = False

    def open(self, path, mode='r'):
        if path in self.fail_paths:
            raise IOError(13, 'Permission denied')
        return FakeRemoteFile(self.store, path)

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


class FakeClient:
    """Mimics paramiko.SSHClient"""

    def __init__(self, transport=None, connect_error=None, fail_paths=()):
        self.transport = transport if transport is not None else FakeTransport()
        self.connect_error = connect_error
        self.fail_paths = fail_paths
        self.store = {}
        self.sftp_sessions = []
        self.connect_kwargs = None
        self.policy = None
        self.system_host_keys_loaded = False
        self.host_key_files = []
        self.closed = False
        self._lock = threading.Lock()

    def load_system_host_keys(self):
        self.system_host_keys_loaded = True

    def load_host_keys(self, filename):
        self.host_key_files.append(filename)

    def set_missing_host_key_policy(self, policy):
        self.policy = policy

    def connect(self, **kwargs):
        self.connect_kwargs = kwargs
        if self.connect_error is not None:
            raise self.connect_error

    def get_transport(self):
        return self.transport

    def open_sftp(self):
        sftp = FakeSFTP(self.store, self.fail_paths)
        with self._lock:
            self.sftp_sessions.append(sftp)
        return sftp

    def close(self):
        self.closed = True
        self.transport.active = False
