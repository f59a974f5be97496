"""Exemplo de rotação da chave mestra do cofre de segredos."""

import logging
import tempfile
from pathlib import Path

from secrets_vault import (
    AuthenticationFailed,
    FileKeySource,
    SecretVault,
    VaultConfig,
    generate_master_key,
    write_key_file,
)

# Configurar logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def main():
    """Demonstra rotação da chave mestra."""

    print("\n=== Secrets Vault - Rotação de Chave ===\n")

    workdir = Path(tempfile.mkdtemp(prefix="secrets-vault-"))
    old_key_path = workdir / "old.key"
    new_key_path = workdir / "new.key"

    # 1. Cofre inicial com a chave antiga
    print("1. Criando cofre com a chave inicial...")
    key = generate_master_key()
    write_key_file(old_key_path, key)
    key.cleanup()
    config = VaultConfig(
        vault_path=workdir / "vault.json",
        key_source=FileKeySource(old_key_path),
        audit_path=workdir / "audit.log",
        logger=logger,
    )

    with SecretVault.init(config) as vault:
        with vault.transaction():
            for i in range(1, 4):
                vault.set("api_key", f"valor-{i}")
            vault.set("db_password", "supersecret")
        print(f"   ✓ Segredos gravados: {vault.names()}")

        # 2. Simular necessidade de rotação
        print("\n2. Necessidade de rotação detectada!")
        print("   Motivos possíveis:")
        print("   - Chave pode ter sido comprometida")
        print("   - Política de rotação periódica (ex: 90 dias)")

        # 3. Gerar nova chave e rotacionar
        print("\n3. Rotacionando para nova chave...")
        new_key = generate_master_key()
        write_key_file(new_key_path, new_key)
        new_key.cleanup()
        report = vault.rotate(FileKeySource(new_key_path))
        print(f"   ✓ {report.secrets} segredos e {report.versions} versões recifrados")
        print(f"   Duração: {report.duration:.3f}s")

        # 4. Histórico preservado
        print("\n4. Verificando histórico de versões...")
        for version in vault.list_versions("api_key"):
            print(f"   ✓ api_key v{version}: {vault.get_version('api_key', version)}")

    # 5. Chave antiga não funciona mais
    print("\n5. Tentando ler com a chave antiga...")
    with SecretVault.open(config) as stale:
        try:
            stale.get("api_key")
        except AuthenticationFailed:
            print("   ✓ Chave antiga rejeitada (AuthenticationFailed)")

    print("\n=== Fim do exemplo ===\n")


if __name__ == "__main__":
    main()
