"""Fixtures compartilhadas pelos testes."""

import pytest

from secrets_vault import BytesKeySource, SecretVault, VaultConfig


@pytest.fixture
def key_bytes():
    return bytes(range(32))


@pytest.fixture
def other_key_bytes():
    return bytes(range(100, 132))


@pytest.fixture
def config(tmp_path, key_bytes):
    return VaultConfig(
        vault_path=tmp_path / "vault.json",
        key_source=BytesKeySource(key_bytes),
        audit_path=tmp_path / "audit.log",
    )


@pytest.fixture
def vault(config):
    vault = SecretVault.init(config)
    yield vault
    vault.close()
