import os

import pytest


@pytest.fixture(autouse=True)
def clean_deploy_env(tmp_path, monkeypatch):
    """Keep a developer's DEPLOY_* variables and .env.deploy out of the tests"""
    for name in list(os.environ):
        if name.startswith("DEPLOY_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
