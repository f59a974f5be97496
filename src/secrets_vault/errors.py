"""Hierarquia de erros do cofre de segredos."""

from typing import Optional


class VaultError(Exception):
    """Erro base do cofre de segredos.

    Cada subclasse define ``category``, usada como motivo de falha na
    auditoria e como chave do código de saída da CLI.
    """

    category = "vault_error"


class InvalidKeySize(VaultError):
    """Material de chave com tamanho diferente de 32 bytes."""

    category = "invalid_key"

    def __init__(self, expected: int, found: int):
        self.expected = expected
        self.found = found
        super().__init__(
            f"Tamanho de chave inválido: esperado {expected} bytes, encontrado {found} bytes"
        )


class KeySourceUnavailable(VaultError):
    """Fonte da chave mestra indisponível (variável ausente, arquivo ilegível)."""

    category = "invalid_key"


class AuthenticationFailed(VaultError):
    """Tag de autenticação não confere.

    Chave errada, ciphertext corrompido e adulteração são intencionalmente
    indistinguíveis.
    """

    category = "decryption_failed"

    def __init__(self, message: str = "Falha de autenticação ao descriptografar"):
        super().__init__(message)


class SecretNotFound(VaultError):
    """Segredo inexistente."""

    category = "not_found"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Segredo não encontrado: '{name}'")


class VersionNotFound(VaultError):
    """Versão inexistente para um segredo."""

    category = "not_found"

    def __init__(self, name: str, version: int):
        self.name = name
        self.version = version
        super().__init__(f"Versão {version} não encontrada para o segredo '{name}'")


class InvalidSecretName(VaultError):
    """Nome de segredo vazio, longo demais ou com caracteres proibidos."""

    category = "invalid_name"


class CorruptStore(VaultError):
    """Arquivo do cofre não pôde ser interpretado."""

    category = "corrupt_store"


class RotationAborted(VaultError):
    """Rotação interrompida sem alterar o estado em disco ou em memória."""

    category = "rotation_aborted"

    def __init__(self, message: str, name: Optional[str] = None, version: Optional[int] = None):
        self.name = name
        self.version = version
        super().__init__(message)


class IoFailure(VaultError):
    """Falha de E/S ao ler ou gravar o cofre."""

    category = "io_failure"


class AuditWriteFailed(VaultError):
    """Falha ao gravar a trilha de auditoria.

    A operação que originou o registro já foi aplicada e não é desfeita.
    """

    category = "audit_write_failed"


class VaultClosed(VaultError):
    """Operação em um cofre já encerrado."""

    category = "vault_closed"
