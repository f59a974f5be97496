"""Configuração do cofre de segredos."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Self

from .keys import BytesKeySource, EnvKeySource, FileKeySource, KeySource
from .utils import parse_env_file

DEFAULT_VAULT_PATH = "vault.json"

_TRUE_VALUES = {"1", "true", "yes", "on", "sim"}
_FALSE_VALUES = {"0", "false", "no", "off", "nao", "não"}


def _parse_bool(name: str, value: str) -> bool:
    normalized = value.strip().strip("\"'").lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"Valor booleano inválido para {name}: '{value}'")


@dataclass
class VaultConfig:
    """Configuração do SecretVault.

    Attributes:
        vault_path: Caminho do arquivo do cofre
        key_source: Fonte da chave mestra (resolvida uma única vez ao abrir)
        audit_path: Caminho da trilha de auditoria (opcional)
        fsync: Se deve forçar gravações ao disco (padrão: True)
        strict_audit: Se falhas de auditoria devem ser levantadas (padrão: True)
        read_retries: Novas tentativas de leitura após falha de parse (padrão: 3)
        audit_callback: Callback opcional chamado a cada registro de auditoria
        logger: Logger opcional para mensagens (usa logging padrão se None)
    """

    vault_path: Path
    key_source: Optional[KeySource] = None
    audit_path: Optional[Path] = None
    fsync: bool = True
    strict_audit: bool = True
    read_retries: int = 3
    audit_callback: Optional[Callable] = None
    logger: Optional[Any] = None  # logging.Logger

    def __post_init__(self) -> None:
        """Normaliza caminhos e valida a configuração."""
        if not self.vault_path:
            raise ValueError("Caminho do cofre deve ser configurado")
        self.vault_path = Path(self.vault_path)
        if self.audit_path is not None:
            self.audit_path = Path(self.audit_path)
        if self.read_retries < 0:
            raise ValueError(f"read_retries deve ser >= 0, recebido: {self.read_retries}")
        if self.key_source is not None and not isinstance(
            self.key_source, (BytesKeySource, EnvKeySource, FileKeySource)
        ):
            raise ValueError(f"Fonte de chave inválida: {type(self.key_source)}")

    @classmethod
    def from_environment(cls, prefix: str = "SECRETS_VAULT", **kwargs: Any) -> Self:
        """Cria configuração a partir de variáveis de ambiente.

        Formato esperado:
            SECRETS_VAULT_PATH=/var/lib/app/vault.json
            SECRETS_VAULT_KEY_PATH=/etc/app/master.key  (ou SECRETS_VAULT_KEY_ENV=APP_KEY)
            SECRETS_VAULT_AUDIT_PATH=/var/log/app/audit.log (opcional)
            SECRETS_VAULT_FSYNC=true (opcional)
            SECRETS_VAULT_STRICT_AUDIT=true (opcional)

        Args:
            prefix: Prefixo das variáveis (padrão: SECRETS_VAULT)
            **kwargs: Argumentos adicionais para VaultConfig

        Raises:
            ValueError: Se a configuração for inválida
        """
        return cls._from_mapping(os.environ, prefix=prefix, **kwargs)

    @classmethod
    def from_file(cls, filename: str, prefix: str = "SECRETS_VAULT", **kwargs: Any) -> Self:
        """Cria configuração a partir de um arquivo .env.

        Raises:
            FileNotFoundError: Se o arquivo não existir
            ValueError: Se a configuração for inválida
        """
        env_path = Path(filename)
        if not env_path.exists():
            raise FileNotFoundError(f"Arquivo .env não encontrado: {filename}")

        return cls._from_mapping(parse_env_file(env_path), prefix=prefix, **kwargs)

    @classmethod
    def _from_mapping(
        cls, mapping: Mapping[str, str], prefix: str = "SECRETS_VAULT", **kwargs: Any
    ) -> Self:
        """Cria configuração a partir de um mapeamento de variáveis."""

        def lookup(suffix: str) -> Optional[str]:
            value = mapping.get(f"{prefix}_{suffix}")
            # Remover aspas (problema comum com dotenv)
            return value.strip("\"'") if value else None

        key_path = lookup("KEY_PATH")
        key_env = lookup("KEY_ENV")
        if key_path and key_env:
            raise ValueError(
                f"Configure apenas uma fonte de chave: {prefix}_KEY_PATH ou {prefix}_KEY_ENV"
            )

        key_source: Optional[KeySource] = None
        if key_path:
            key_source = FileKeySource(Path(key_path))
        elif key_env:
            key_source = EnvKeySource(key_env)

        options: dict = {}
        for suffix, field_name in (("FSYNC", "fsync"), ("STRICT_AUDIT", "strict_audit")):
            raw = lookup(suffix)
            if raw is not None:
                options[field_name] = _parse_bool(f"{prefix}_{suffix}", raw)

        retries = lookup("READ_RETRIES")
        if retries is not None:
            try:
                options["read_retries"] = int(retries)
            except ValueError as exc:
                raise ValueError(f"{prefix}_READ_RETRIES deve ser inteiro: '{retries}'") from exc

        audit_path = lookup("AUDIT_PATH")
        options.update(kwargs)
        options.setdefault("key_source", key_source)
        options.setdefault("audit_path", Path(audit_path) if audit_path else None)

        vault_path = options.pop("vault_path", None) or lookup("PATH") or DEFAULT_VAULT_PATH
        return cls(vault_path=Path(vault_path), **options)
