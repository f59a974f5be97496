"""Exemplo de uso de VaultConfig.from_file()."""

import tempfile
from pathlib import Path

from secrets_vault import SecretVault, VaultConfig, generate_master_key, write_key_file


def main() -> None:
    """Demonstra carga de configuracao via arquivo .env."""
    workdir = Path(tempfile.mkdtemp(prefix="secrets-vault-"))
    env_path = workdir / "example_vault.env"
    key_path = workdir / "master.key"

    # 1) Gerar a chave mestra em arquivo (base64, permissao 0600)
    key = generate_master_key()
    write_key_file(key_path, key)
    key.cleanup()

    # 2) Escrever o arquivo .env apontando para o cofre e a chave
    env_path.write_text(
        f"SECRETS_VAULT_PATH={workdir / 'vault.json'}\n"
        f"SECRETS_VAULT_KEY_PATH={key_path}\n"
        f"SECRETS_VAULT_AUDIT_PATH={workdir / 'audit.log'}\n"
    )
    print(f"Configuracao salva em: {env_path}")

    # 3) Carregar a configuracao do arquivo (class method)
    config = VaultConfig.from_file(str(env_path))

    # 4) Abrir (ou criar) o cofre com a configuracao carregada
    with SecretVault.open(config, create=True) as vault:
        with vault.transaction():
            version = vault.set("payload", "texto secreto")
        print(f"Versao gravada: {version}")
        print(f"Texto claro: {vault.get('payload').decode('utf-8')}")

    print("\nConteudo do arquivo .env:")
    for line in env_path.read_text().splitlines():
        print(f"  {line}")


if __name__ == "__main__":
    main()
