"""Exemplo básico de uso do cofre de segredos."""

import logging
import tempfile
from pathlib import Path

from secrets_vault import BytesKeySource, SecretVault, VaultConfig, generate_master_key, read_entries

# Configurar logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def main():
    """Demonstra uso básico do SecretVault."""

    print("\n=== Secrets Vault - Exemplo Básico ===\n")

    workdir = Path(tempfile.mkdtemp(prefix="secrets-vault-"))

    # 1. Criar configuração
    print("1. Criando configuração com uma chave mestra gerada...")
    key = generate_master_key()
    config = VaultConfig(
        vault_path=workdir / "vault.json",
        key_source=BytesKeySource(key.as_bytes()),
        audit_path=workdir / "audit.log",
        logger=logger,
    )
    key.cleanup()
    print(f"   Cofre: {config.vault_path}")

    # 2. Inicializar cofre
    print("\n2. Inicializando SecretVault...")
    with SecretVault.init(config) as vault:
        print("   Cofre inicializado com sucesso!")

        # 3. Gravar segredos
        print("\n3. Gravando segredos...")
        with vault.transaction():
            print(f"   ✓ db_password versão {vault.set('db_password', 'supersecret')}")
            print(f"   ✓ api_key versão {vault.set('api_key', 'v1')}")
            print(f"   ✓ api_key versão {vault.set('api_key', 'v2')}")

        # 4. Ler segredos
        print("\n4. Lendo segredos...")
        print(f"   db_password: {vault.get('db_password')}")
        print(f"   api_key (atual): {vault.get('api_key')}")
        print(f"   api_key (v1): {vault.get_version('api_key', 1)}")
        print(f"   Versões de api_key: {vault.list_versions('api_key')}")

        # 5. Segredo inexistente
        print("\n5. Consultando segredo inexistente...")
        print(f"   missing: {vault.get('missing')}")

        # 6. Remover segredo
        print("\n6. Removendo db_password...")
        with vault.transaction():
            vault.delete("db_password")
        print(f"   Segredos restantes: {vault.names()}")

    # 7. Trilha de auditoria
    print("\n7. Trilha de auditoria:")
    for entry in read_entries(config.audit_path):
        print(f"   {entry.operation.value:7} {entry.secret_name or '-':12} {entry.outcome.value}")

    print("\n=== Fim do exemplo ===\n")


if __name__ == "__main__":
    main()
