"""
Credential resolution.

Key-based auth is used when both a user and a certificate are given;
otherwise the user (if missing) and a password are prompted for.
"""

import getpass
import os
from dataclasses import dataclass, field
from typing import Callable, Optional

import paramiko

from .config import log
from .errors import CredentialError

Prompt = Callable[[str], str]


@dataclass(frozen=True)
class Target:
    """Remote host identity, immutable once resolved"""

    host: str
    port: int = 22
    username: Optional[str] = None
    certificate: Optional[str] = None


@dataclass(frozen=True)
class Credentials:
    username: str
    password: Optional[str] = field(default=None, repr=False)
    pkey: Optional[paramiko.PKey] = field(default=None, repr=False)

    @property
    def method(self) -> str:
        return 'publickey' if self.pkey is not None else 'password'


def _key_types():
    # DSSKey was removed in paramiko 4.x
    key_types = [
        paramiko.RSAKey,
        paramiko.Ed25519Key,
        paramiko.ECDSAKey,
    ]
    if hasattr(paramiko, 'DSSKey'):
        key_types.append(paramiko.DSSKey)
    return key_types


def load_private_key(key_path: str, passphrase: Optional[str] = None) -> paramiko.PKey:
    """
    Load a private key from file, trying each supported key type.

    Raises:
        paramiko.PasswordRequiredException: the key is encrypted and no passphrase was given
        CredentialError: the file is unreadable or not a supported private key
    """
    key_path = os.path.expanduser(key_path)
    try:
        with open(key_path, 'rb'):
            pass
    except OSError as e:
        raise CredentialError(f"Cannot read certificate {key_path}", cause=e)

    last_error: Optional[Exception] = None
    for key_class in _key_types():
        try:
            return key_class.from_private_key_file(key_path, password=passphrase)
        except paramiko.PasswordRequiredException:
            raise
        except (paramiko.SSHException, ValueError) as e:
            last_error = e
            continue

    raise CredentialError(f"Unable to load private key {key_path}", cause=last_error)


def resolve_credentials(
    username: Optional[str] = None,
    certificate: Optional[str] = None,
    prompt: Prompt = input,
    secret_prompt: Prompt = getpass.getpass,
) -> Credentials:
    """
    Resolve the user identity and authentication method.

    Args:
        username: user to log in as; prompted for when missing
        certificate: path to a private key, used only together with a username
        prompt: reads a plain line (defaults to input)
        secret_prompt: reads a masked line (defaults to getpass.getpass)

    Returns:
        Credentials carrying either a loaded key or a password

    Raises:
        CredentialError: bad certificate, or the prompts could not be answered
    """
    if certificate and username:
        try:
            key = load_private_key(certificate)
        except paramiko.PasswordRequiredException:
            passphrase = _ask(secret_prompt, f"Passphrase for {certificate}: ")
            try:
                key = load_private_key(certificate, passphrase=passphrase)
            except paramiko.PasswordRequiredException as e:
                raise CredentialError(f"Wrong passphrase for {certificate}", cause=e)
        return Credentials(username=username, pkey=key)

    if certificate:
        log(f"Ignoring certificate {certificate}: no user given, falling back to password login")

    if not username:
        username = _ask(prompt, "User: ").strip()
        if not username:
            raise CredentialError("No user given")

    password = _ask(secret_prompt, "Password: ")
    return Credentials(username=username, password=password)


def _ask(reader: Prompt, label: str) -> str:
    try:
        return reader(label)
    except (EOFError, OSError) as e:
        raise CredentialError(f"Failed reading {label.rstrip(': ').lower()}", cause=e)
