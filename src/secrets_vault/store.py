"""Cadeia de versões por segredo, mantida em memória."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterator, List, Optional

from .crypto import decrypt, encrypt
from .errors import CorruptStore, SecretNotFound, VersionNotFound
from .keys import MasterKey
from .utils import to_bytes, utc_now, validate_secret_name


def associated_data(name: str, version: int) -> bytes:
    """Dados associados que vinculam um ciphertext ao seu segredo e versão."""
    return f"{name}:{version}".encode("utf-8")


@dataclass(frozen=True)
class VersionEntry:
    """Versão imutável de um segredo.

    Attributes:
        version: Número da versão (começa em 1)
        nonce: Nonce de 96 bits usado na cifragem
        ciphertext: Ciphertext seguido da tag de autenticação
        created_at: Instante de criação (UTC)
    """

    version: int
    nonce: bytes
    ciphertext: bytes
    created_at: datetime


@dataclass
class SecretRecord:
    """Um segredo e seu histórico ordenado de versões."""

    name: str
    versions: List[VersionEntry] = field(default_factory=list)

    @property
    def current(self) -> Optional[VersionEntry]:
        """Versão mais recente, ou None se o histórico estiver vazio."""
        return self.versions[-1] if self.versions else None

    @property
    def next_version(self) -> int:
        current = self.current
        return current.version + 1 if current else 1

    def version_numbers(self) -> List[int]:
        return [entry.version for entry in self.versions]

    def find(self, version: int) -> Optional[VersionEntry]:
        # Versões são contíguas a partir de 1
        if 1 <= version <= len(self.versions):
            return self.versions[version - 1]
        return None

    def append(self, entry: VersionEntry) -> None:
        """Anexa uma versão, exigindo numeração sem lacunas.

        Raises:
            CorruptStore: Se a versão não for a sucessora imediata da atual
        """
        if entry.version != self.next_version:
            raise CorruptStore(
                f"Versão {entry.version} fora de sequência para '{self.name}' "
                f"(esperado {self.next_version})"
            )
        self.versions.append(entry)


class SecretStore:
    """Mapa de nome do segredo para sua cadeia de versões.

    Mutações afetam apenas a memória; persistir é responsabilidade de
    persistence.save().
    """

    def __init__(self, records: Optional[Dict[str, SecretRecord]] = None):
        self._records: Dict[str, SecretRecord] = dict(records or {})

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, name: object) -> bool:
        return name in self._records

    def __iter__(self) -> Iterator[SecretRecord]:
        return iter(list(self._records.values()))

    def names(self) -> List[str]:
        """Lista os nomes de todos os segredos."""
        return list(self._records.keys())

    def record(self, name: str) -> SecretRecord:
        """Retorna o registro de um segredo.

        Raises:
            SecretNotFound: Se o nome não existir
        """
        try:
            return self._records[name]
        except KeyError:
            raise SecretNotFound(name) from None

    def entry(self, name: str, version: Optional[int] = None) -> VersionEntry:
        """Retorna uma versão específica, ou a mais recente se version for None.

        Raises:
            SecretNotFound: Se o nome não existir
            VersionNotFound: Se a versão não existir
        """
        record = self.record(name)
        entry = record.current if version is None else record.find(version)
        if entry is None:
            raise VersionNotFound(name, version if version is not None else 0)
        return entry

    def add_record(self, record: SecretRecord) -> None:
        """Insere um registro completo (usado na desserialização e na rotação)."""
        self._records[record.name] = record

    def set(self, name: str, value: bytes | str, key: MasterKey) -> VersionEntry:
        """Criptografa e anexa uma nova versão ao segredo.

        Args:
            name: Nome do segredo (criado se ausente)
            value: Valor em texto plano
            key: Chave mestra atual

        Returns:
            VersionEntry criada
        """
        validate_secret_name(name)
        plaintext = to_bytes(value)
        record = self._records.get(name) or SecretRecord(name=name)
        version = record.next_version
        nonce, ciphertext = encrypt(plaintext, key, associated_data(name, version))
        entry = VersionEntry(
            version=version, nonce=nonce, ciphertext=ciphertext, created_at=utc_now()
        )
        record.append(entry)
        self._records[name] = record
        return entry

    def decrypt_entry(self, name: str, entry: VersionEntry, key: MasterKey) -> bytes:
        return decrypt(entry.nonce, entry.ciphertext, key, associated_data(name, entry.version))

    def get(self, name: str, key: MasterKey) -> Optional[bytes]:
        """Descriptografa a versão mais recente, ou None se o segredo não existir.

        Raises:
            AuthenticationFailed: Se a tag não conferir
        """
        try:
            entry = self.entry(name)
        except (SecretNotFound, VersionNotFound):
            return None
        return self.decrypt_entry(name, entry, key)

    def get_version(self, name: str, version: int, key: MasterKey) -> Optional[bytes]:
        """Descriptografa uma versão específica, ou None se ela não existir."""
        try:
            entry = self.entry(name, version)
        except (SecretNotFound, VersionNotFound):
            return None
        return self.decrypt_entry(name, entry, key)

    def list_versions(self, name: str) -> List[int]:
        """Números de versão em ordem crescente (vazio se o segredo não existir)."""
        record = self._records.get(name)
        return record.version_numbers() if record else []

    def delete(self, name: str) -> bool:
        """Remove o segredo e todas as suas versões.

        Returns:
            bool: True se o segredo existia
        """
        return self._records.pop(name, None) is not None

    def copy(self) -> "SecretStore":
        """Cópia rasa: registros novos, VersionEntry compartilhadas (são imutáveis)."""
        return SecretStore(
            {name: SecretRecord(name, list(rec.versions)) for name, rec in self._records.items()}
        )
