"""Resolução e ciclo de vida da chave mestra."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from .errors import InvalidKeySize, KeySourceUnavailable
from .utils import b64decode, b64encode

KEY_SIZE = 32


@dataclass(frozen=True)
class MasterKey:
    """Chave mestra de 32 bytes mantida apenas em memória.

    NOTA DE SEGURANÇA: o material fica em um bytearray para permitir que
    cleanup() o zere no local. Como em qualquer código Python, cópias
    intermediárias podem sobreviver no heap; a limpeza é de melhor esforço.

    Attributes:
        material: Bytes da chave (aceita bytes e converte para bytearray)
    """

    material: bytearray

    def __post_init__(self) -> None:
        """Valida o tamanho e converte o material para bytearray."""
        if not isinstance(self.material, bytearray):
            object.__setattr__(self, "material", bytearray(self.material))
        if len(self.material) != KEY_SIZE:
            found = len(self.material)
            self.cleanup()
            raise InvalidKeySize(expected=KEY_SIZE, found=found)

    def __repr__(self) -> str:
        return "MasterKey(<redacted>)"

    def as_bytes(self) -> bytes:
        """Retorna uma cópia imutável do material para as primitivas criptográficas."""
        return bytes(self.material)

    @property
    def is_cleared(self) -> bool:
        """True se o material já foi zerado."""
        return not any(self.material)

    def cleanup(self) -> None:
        """Zera o material da chave no local.

        Após cleanup(), esta instância não deve ser usada para criptografar.
        """
        for i in range(len(self.material)):
            self.material[i] = 0


@dataclass(frozen=True)
class BytesKeySource:
    """Chave fornecida diretamente como bytes crus."""

    material: bytes


@dataclass(frozen=True)
class EnvKeySource:
    """Chave em base64 lida de uma variável de ambiente."""

    name: str


@dataclass(frozen=True)
class FileKeySource:
    """Chave em base64 lida de um arquivo."""

    path: Path

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", Path(self.path))


KeySource = Union[BytesKeySource, EnvKeySource, FileKeySource]


def _decode_key_text(text: str, origin: str) -> bytes:
    try:
        return b64decode(text.strip())
    except ValueError as exc:
        raise KeySourceUnavailable(f"Chave em {origin} não é base64 válido") from exc


def resolve_key(source: KeySource) -> MasterKey:
    """Resolve uma fonte de chave para uma MasterKey validada.

    Args:
        source: BytesKeySource, EnvKeySource ou FileKeySource

    Returns:
        MasterKey com exatamente 32 bytes

    Raises:
        KeySourceUnavailable: Se a variável não existir ou o arquivo não puder ser lido
        InvalidKeySize: Se o material resolvido não tiver 32 bytes
    """
    if isinstance(source, BytesKeySource):
        return MasterKey(bytearray(source.material))

    if isinstance(source, EnvKeySource):
        value = os.environ.get(source.name)
        if value is None:
            raise KeySourceUnavailable(f"Variável de ambiente {source.name} não definida")
        return MasterKey(bytearray(_decode_key_text(value, f"${source.name}")))

    if isinstance(source, FileKeySource):
        try:
            content = source.path.read_text(encoding="ascii")
        except (OSError, UnicodeDecodeError) as exc:
            raise KeySourceUnavailable(
                f"Falha ao ler arquivo de chave {source.path}: {exc}"
            ) from exc
        return MasterKey(bytearray(_decode_key_text(content, str(source.path))))

    raise TypeError(f"Fonte de chave não suportada: {type(source)}")


def generate_master_key() -> MasterKey:
    """Gera uma nova chave mestra aleatória."""
    return MasterKey(bytearray(os.urandom(KEY_SIZE)))


def encode_master_key(key: MasterKey) -> str:
    """Retorna a chave em base64, formato aceito por EnvKeySource e FileKeySource."""
    return b64encode(bytes(key.material))


def write_key_file(path: Path, key: MasterKey) -> None:
    """Grava a chave em base64 em um novo arquivo com permissão 0600.

    Raises:
        FileExistsError: Se o arquivo já existir
    """
    fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "w", encoding="ascii") as f:
        f.write(encode_master_key(key))
        f.write("\n")
