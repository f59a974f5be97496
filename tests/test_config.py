"""Testes para VaultConfig."""

from pathlib import Path

import pytest

from secrets_vault import BytesKeySource, EnvKeySource, FileKeySource, VaultConfig
from secrets_vault.config import DEFAULT_VAULT_PATH


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for suffix in ("PATH", "KEY_PATH", "KEY_ENV", "AUDIT_PATH", "FSYNC", "STRICT_AUDIT", "READ_RETRIES"):
        monkeypatch.delenv(f"SECRETS_VAULT_{suffix}", raising=False)


def test_vault_config_validation(tmp_path):
    """Testa validação e normalização de VaultConfig."""
    config = VaultConfig(vault_path=str(tmp_path / "vault.json"), audit_path=str(tmp_path / "a.log"))
    assert isinstance(config.vault_path, Path)
    assert isinstance(config.audit_path, Path)
    assert config.fsync is True
    assert config.strict_audit is True

    with pytest.raises(ValueError, match="Caminho do cofre"):
        VaultConfig(vault_path="")

    with pytest.raises(ValueError, match="read_retries"):
        VaultConfig(vault_path="vault.json", read_retries=-1)

    with pytest.raises(ValueError, match="Fonte de chave inválida"):
        VaultConfig(vault_path="vault.json", key_source="raw-key")


def test_vault_config_accepts_all_key_sources():
    """Testa que as três variantes de fonte de chave são aceitas."""
    for source in (BytesKeySource(b"k" * 32), EnvKeySource("KEY"), FileKeySource("master.key")):
        assert VaultConfig(vault_path="vault.json", key_source=source).key_source == source


def test_vault_config_from_environment(monkeypatch, tmp_path):
    """Testa criação de config a partir de variáveis de ambiente."""
    monkeypatch.setenv("SECRETS_VAULT_PATH", str(tmp_path / "vault.json"))
    monkeypatch.setenv("SECRETS_VAULT_KEY_ENV", "APP_MASTER_KEY")
    monkeypatch.setenv("SECRETS_VAULT_AUDIT_PATH", str(tmp_path / "audit.log"))
    monkeypatch.setenv("SECRETS_VAULT_FSYNC", "false")
    monkeypatch.setenv("SECRETS_VAULT_READ_RETRIES", "5")

    config = VaultConfig.from_environment()

    assert config.vault_path == tmp_path / "vault.json"
    assert config.key_source == EnvKeySource("APP_MASTER_KEY")
    assert config.audit_path == tmp_path / "audit.log"
    assert config.fsync is False
    assert config.strict_audit is True
    assert config.read_retries == 5


def test_vault_config_from_environment_defaults():
    """Testa valores padrão quando nada está configurado."""
    config = VaultConfig.from_environment()

    assert config.vault_path == Path(DEFAULT_VAULT_PATH)
    assert config.key_source is None
    assert config.audit_path is None


def test_vault_config_from_environment_kwargs_override(monkeypatch, tmp_path):
    """Testa que kwargs sobrescrevem o ambiente."""
    monkeypatch.setenv("SECRETS_VAULT_PATH", "ignored.json")

    config = VaultConfig.from_environment(vault_path=tmp_path / "v.json", strict_audit=False)

    assert config.vault_path == tmp_path / "v.json"
    assert config.strict_audit is False


def test_vault_config_from_environment_both_key_sources(monkeypatch):
    """Testa erro quando arquivo e variável de chave são configurados juntos."""
    monkeypatch.setenv("SECRETS_VAULT_KEY_PATH", "master.key")
    monkeypatch.setenv("SECRETS_VAULT_KEY_ENV", "APP_MASTER_KEY")

    with pytest.raises(ValueError, match="apenas uma fonte de chave"):
        VaultConfig.from_environment()


def test_vault_config_invalid_bool(monkeypatch):
    """Testa erro para booleano inválido."""
    monkeypatch.setenv("SECRETS_VAULT_FSYNC", "talvez")

    with pytest.raises(ValueError, match="Valor booleano inválido"):
        VaultConfig.from_environment()


def test_vault_config_invalid_retries(monkeypatch):
    """Testa erro para número de tentativas não inteiro."""
    monkeypatch.setenv("SECRETS_VAULT_READ_RETRIES", "muitas")

    with pytest.raises(ValueError, match="deve ser inteiro"):
        VaultConfig.from_environment()


def test_vault_config_custom_prefix(monkeypatch):
    """Testa prefixo personalizado."""
    monkeypatch.setenv("MYAPP_PATH", "myapp.json")
    monkeypatch.setenv("MYAPP_KEY_PATH", "myapp.key")

    config = VaultConfig.from_environment(prefix="MYAPP")

    assert config.vault_path == Path("myapp.json")
    assert config.key_source == FileKeySource(Path("myapp.key"))


def test_vault_config_from_file(tmp_path):
    """Testa criação de config a partir de arquivo .env."""
    env_file = tmp_path / ".env"
    env_file.write_text(
        "# configuração do cofre\n"
        f'SECRETS_VAULT_PATH="{tmp_path / "vault.json"}"\n'
        f"SECRETS_VAULT_KEY_PATH={tmp_path / 'master.key'}\n"
        "SECRETS_VAULT_STRICT_AUDIT=no\n"
    )

    config = VaultConfig.from_file(str(env_file))

    assert config.vault_path == tmp_path / "vault.json"
    assert config.key_source == FileKeySource(tmp_path / "master.key")
    assert config.strict_audit is False


def test_vault_config_from_file_missing(tmp_path):
    """Testa erro quando o arquivo .env não existe."""
    with pytest.raises(FileNotFoundError, match="Arquivo .env não encontrado"):
        VaultConfig.from_file(str(tmp_path / "missing.env"))
