"""Funções auxiliares para o cofre de segredos."""

import base64
import binascii
import os
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, TextIO

from dotenv import dotenv_values

from .errors import InvalidSecretName

MAX_SECRET_NAME_LENGTH = 256


def parse_env_stream(stream: TextIO) -> Dict[str, str]:
    """Lê um stream .env via python-dotenv; VaultConfig filtra pelo prefixo.

    Chaves sem valor (`NOME` sozinho na linha) são descartadas.
    """
    data = dotenv_values(stream=stream)
    return {key: value for key, value in data.items() if value is not None}


def parse_env_file(path: Path) -> Dict[str, str]:
    """Lê o arquivo .env usado por VaultConfig.from_file e pela opção --env-file."""
    with path.open("r", encoding="utf-8", errors="strict") as f:
        return parse_env_stream(f)


def _lock_file(file_handle: TextIO) -> None:
    """Bloqueia até obter o lock exclusivo do arquivo sidecar do cofre.

    No Windows o lock cobre o primeiro byte; em POSIX, o arquivo inteiro.
    """
    if os.name == "nt":
        import msvcrt

        file_handle.seek(0)
        msvcrt.locking(file_handle.fileno(), msvcrt.LK_LOCK, 1)
        return

    import fcntl

    fcntl.flock(file_handle.fileno(), fcntl.LOCK_EX)


def _unlock_file(file_handle: TextIO) -> None:
    """Libera o lock obtido por _lock_file."""
    if os.name == "nt":
        import msvcrt

        file_handle.seek(0)
        msvcrt.locking(file_handle.fileno(), msvcrt.LK_UNLCK, 1)
        return

    import fcntl

    fcntl.flock(file_handle.fileno(), fcntl.LOCK_UN)


@contextmanager
def locked_file(path: Path) -> Iterator[TextIO]:
    """Abre (criando se preciso) o arquivo de lock e o mantém travado no bloco.

    Usado por persistence.store_lock sobre `<cofre>.lock`. O lock é
    consultivo: só exclui processos que também o adquirem. Se o lock não
    puder ser obtido, o arquivo é fechado antes de propagar o erro.
    """
    file_handle = path.open("a+", encoding="utf-8", errors="strict")
    try:
        _lock_file(file_handle)
    except BaseException:
        file_handle.close()
        raise
    try:
        yield file_handle
    finally:
        _unlock_file(file_handle)
        file_handle.close()


def b64encode(data: bytes) -> str:
    """Codifica bytes em base64 padrão (texto ASCII)."""
    return base64.b64encode(data).decode("ascii")


def b64decode(text: str) -> bytes:
    """Decodifica base64 padrão, rejeitando caracteres fora do alfabeto.

    Raises:
        ValueError: Se o texto não for base64 válido
    """
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise ValueError(f"Base64 inválido: {exc}") from exc


def utc_now() -> datetime:
    """Retorna o instante atual em UTC."""
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """Formata um datetime como ISO-8601 em UTC."""
    return moment.astimezone(timezone.utc).isoformat()


def parse_timestamp(text: str) -> datetime:
    """Converte texto ISO-8601 em datetime com fuso horário.

    Timestamps sem fuso são interpretados como UTC.
    """
    moment = datetime.fromisoformat(text)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def validate_secret_name(name: str) -> str:
    """Valida o nome de um segredo.

    Args:
        name: Nome a validar

    Returns:
        str: O próprio nome, se válido

    Raises:
        InvalidSecretName: Se o nome for vazio, conter NUL ou exceder 256 caracteres

    Examples:
        >>> validate_secret_name("db_password")
        'db_password'
    """
    if not isinstance(name, str) or not name:
        raise InvalidSecretName("Nome do segredo não pode ser vazio")
    if "\0" in name:
        raise InvalidSecretName("Nome do segredo não pode conter bytes nulos")
    if len(name) > MAX_SECRET_NAME_LENGTH:
        raise InvalidSecretName(
            f"Nome do segredo muito longo (máximo {MAX_SECRET_NAME_LENGTH} caracteres)"
        )
    return name


def to_bytes(value: bytes | str) -> bytes:
    """Converte o valor de um segredo para bytes (str é codificada em UTF-8)."""
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise TypeError(f"Valor deve ser str ou bytes, recebido: {type(value)}")
