from pathlib import Path

import paramiko
import pytest


@pytest.fixture(scope="module")
def rsa_key():
    return paramiko.RSAKey.generate(2048)


def _no_prompt(label):
    raise AssertionError(f"unexpected prompt: {label}")


def test_user_and_certificate_use_key_auth(tmp_path: Path, rsa_key):
    from sshdeploy.credentials import resolve_credentials

    key_file = tmp_path / "id_rsa"
    rsa_key.write_private_key_file(str(key_file))

    creds = resolve_credentials("deploy", str(key_file), prompt=_no_prompt, secret_prompt=_no_prompt)
    assert creds.username == "deploy"
    assert creds.method == "publickey"
    assert creds.password is None
    assert creds.pkey.get_fingerprint() == rsa_key.get_fingerprint()


def test_encrypted_key_prompts_for_passphrase(tmp_path: Path, rsa_key):
    from sshdeploy.credentials import resolve_credentials

    key_file = tmp_path / "id_rsa_enc"
    rsa_key.write_private_key_file(str(key_file), password="hunter2")
    labels = []

    def secret(label):
        labels.append(label)
        return "hunter2"

    creds = resolve_credentials("deploy", str(key_file), prompt=_no_prompt, secret_prompt=secret)
    assert creds.pkey.get_fingerprint() == rsa_key.get_fingerprint()
    assert labels == [f"Passphrase for {key_file}: "]


def test_wrong_passphrase_is_a_credential_error(tmp_path: Path, rsa_key):
    from sshdeploy.credentials import resolve_credentials
    from sshdeploy.errors import CredentialError

    key_file = tmp_path / "id_rsa_enc"
    rsa_key.write_private_key_file(str(key_file), password="hunter2")

    with pytest.raises(CredentialError):
        resolve_credentials("deploy", str(key_file), prompt=_no_prompt, secret_prompt=lambda _: "wrong")


def test_missing_certificate_is_a_hard_failure(tmp_path: Path):
    from sshdeploy.credentials import resolve_credentials
    from sshdeploy.errors import CredentialError

    with pytest.raises(CredentialError) as exc_info:
        resolve_credentials("deploy", str(tmp_path / "missing.pem"),
                            prompt=_no_prompt, secret_prompt=_no_prompt)
    assert exc_info.value.exit_code == 2


def test_garbage_certificate_is_a_hard_failure(tmp_path: Path):
    from sshdeploy.credentials import resolve_credentials
    from sshdeploy.errors import CredentialError

    key_file = tmp_path / "not_a_key.pem"
    key_file.write_text("this is not a private key\n")

    with pytest.raises(CredentialError, match="Unable to load private key"):
        resolve_credentials("deploy", str(key_file), prompt=_no_prompt, secret_prompt=_no_prompt)


def test_password_prompt_when_no_certificate():
    from sshdeploy.credentials import resolve_credentials

    labels = []

    def secret(label):
        labels.append(label)
        return "s3cret"

    creds = resolve_credentials("deploy", None, prompt=_no_prompt, secret_prompt=secret)
    assert creds.username == "deploy"
    assert creds.password == "s3cret"
    assert creds.method == "password"
    assert labels == ["Password: "]
    assert "s3cret" not in repr(creds)


def test_user_prompted_when_missing():
    from sshdeploy.credentials import resolve_credentials

    creds = resolve_credentials(None, None, prompt=lambda _: "  alice \n", secret_prompt=lambda _: "pw")
    assert creds.username == "alice"
    assert creds.password == "pw"


def test_certificate_without_user_falls_back_to_password(tmp_path: Path, capsys):
    from sshdeploy.credentials import resolve_credentials

    creds = resolve_credentials(None, str(tmp_path / "id_rsa"),
                                prompt=lambda _: "bob", secret_prompt=lambda _: "pw")
    assert creds.method == "password"
    assert "Ignoring certificate" in capsys.readouterr().err


def test_empty_user_is_rejected():
    from sshdeploy.credentials import resolve_credentials
    from sshdeploy.errors import CredentialError

    with pytest.raises(CredentialError, match="No user"):
        resolve_credentials(None, None, prompt=lambda _: "", secret_prompt=_no_prompt)


def test_prompt_eof_is_a_credential_error():
    from sshdeploy.credentials import resolve_credentials
    from sshdeploy.errors import CredentialError

    def eof(_):
        raise EOFError()

    with pytest.raises(CredentialError, match="password"):
        resolve_credentials("deploy", None, prompt=_no_prompt, secret_prompt=eof)
