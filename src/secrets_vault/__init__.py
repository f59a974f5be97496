"""SecretsVault - Cofre local de segredos versionados com rotação de chave.

Este pacote fornece armazenamento de segredos com:
- Criptografia autenticada AES-256-GCM
- Histórico imutável de versões por segredo
- Rotação tudo-ou-nada da chave mestra
- Gravação atômica e lock consultivo entre processos
- Trilha de auditoria append-only
"""

from .audit import AuditEntry, AuditLog, Operation, Outcome, read_entries
from .config import VaultConfig
from .errors import (
    AuditWriteFailed,
    AuthenticationFailed,
    CorruptStore,
    InvalidKeySize,
    InvalidSecretName,
    IoFailure,
    KeySourceUnavailable,
    RotationAborted,
    SecretNotFound,
    VaultClosed,
    VaultError,
    VersionNotFound,
)
from .keys import (
    BytesKeySource,
    EnvKeySource,
    FileKeySource,
    KeySource,
    MasterKey,
    encode_master_key,
    generate_master_key,
    resolve_key,
    write_key_file,
)
from .rotation import RotationReport
from .store import SecretRecord, SecretStore, VersionEntry
from .vault import SecretVault

__version__ = "0.1.0"

__all__ = [
    # Classes principais
    "SecretVault",
    "VaultConfig",
    "SecretStore",
    "SecretRecord",
    "VersionEntry",
    "RotationReport",
    # Chaves
    "MasterKey",
    "KeySource",
    "BytesKeySource",
    "EnvKeySource",
    "FileKeySource",
    "resolve_key",
    "generate_master_key",
    "encode_master_key",
    "write_key_file",
    # Auditoria
    "AuditLog",
    "AuditEntry",
    "Operation",
    "Outcome",
    "read_entries",
    # Erros
    "VaultError",
    "InvalidKeySize",
    "KeySourceUnavailable",
    "AuthenticationFailed",
    "SecretNotFound",
    "VersionNotFound",
    "InvalidSecretName",
    "CorruptStore",
    "RotationAborted",
    "IoFailure",
    "AuditWriteFailed",
    "VaultClosed",
]
