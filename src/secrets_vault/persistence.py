"""Serialização do cofre e gravação atômica em disco.

O arquivo é um documento JSON com, por segredo, a lista ordenada de versões
(nonce e ciphertext em base64). Nenhum plaintext ou chave é gravado.

Protocolo de escrita: arquivo temporário no mesmo diretório, fsync, rename
atômico sobre o destino e fsync do diretório. Um crash antes do rename deixa
o arquivo anterior intacto; depois dele, o novo.
"""

import json
import logging
import os
import tempfile
import time
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator

from .errors import CorruptStore, IoFailure
from .store import SecretRecord, SecretStore, VersionEntry
from .utils import (
    b64decode,
    b64encode,
    format_timestamp,
    locked_file,
    parse_timestamp,
    utc_now,
)

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1
LOCK_SUFFIX = ".lock"


def serialize_store(store: SecretStore) -> Dict[str, Any]:
    """Converte o store para o documento persistido."""
    secrets: Dict[str, Any] = {}
    for record in store:
        secrets[record.name] = [
            {
                "version": entry.version,
                "nonce": b64encode(entry.nonce),
                "ciphertext": b64encode(entry.ciphertext),
                "created_at": format_timestamp(entry.created_at),
            }
            for entry in record.versions
        ]
    return {
        "format": FORMAT_VERSION,
        "updated_at": format_timestamp(utc_now()),
        "secrets": secrets,
    }


def deserialize_store(document: Any) -> SecretStore:
    """Reconstrói o store a partir do documento persistido.

    Raises:
        CorruptStore: Se a estrutura ou a cadeia de versões for inválida
    """
    if not isinstance(document, dict):
        raise CorruptStore("Documento do cofre deve ser um objeto JSON")
    if document.get("format") != FORMAT_VERSION:
        raise CorruptStore(f"Formato do cofre não suportado: {document.get('format')!r}")

    secrets = document.get("secrets")
    if not isinstance(secrets, dict):
        raise CorruptStore("Campo 'secrets' ausente ou inválido")

    store = SecretStore()
    for name, entries in secrets.items():
        if not isinstance(entries, list):
            raise CorruptStore(f"Versões do segredo '{name}' devem ser uma lista")
        record = SecretRecord(name=name)
        for raw in entries:
            try:
                entry = VersionEntry(
                    version=raw["version"],
                    nonce=b64decode(raw["nonce"]),
                    ciphertext=b64decode(raw["ciphertext"]),
                    created_at=parse_timestamp(raw["created_at"]),
                )
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                raise CorruptStore(f"Entrada inválida no segredo '{name}': {exc}") from exc
            if not isinstance(entry.version, int) or isinstance(entry.version, bool):
                raise CorruptStore(f"Número de versão inválido no segredo '{name}'")
            record.append(entry)
        if not record.versions:
            raise CorruptStore(f"Segredo '{name}' sem versões")
        store.add_record(record)
    return store


def load(path: Path, read_retries: int = 3, retry_delay: float = 0.05) -> SecretStore:
    """Carrega o cofre do arquivo.

    Falhas de parse são repetidas read_retries vezes para tolerar um rename
    concorrente de outro processo.

    Args:
        path: Caminho do arquivo do cofre
        read_retries: Novas tentativas após falha de parse
        retry_delay: Espera entre tentativas, em segundos

    Raises:
        IoFailure: Se o arquivo não existir ou não puder ser lido
        CorruptStore: Se o conteúdo não puder ser interpretado
    """
    path = Path(path)
    attempt = 0
    while True:
        try:
            raw = path.read_bytes()
        except OSError as exc:
            raise IoFailure(f"Falha ao ler o cofre {path}: {exc}") from exc
        try:
            document = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            if attempt < read_retries:
                attempt += 1
                logger.debug(f"Falha de parse em {path}, tentativa {attempt}/{read_retries}")
                time.sleep(retry_delay)
                continue
            raise CorruptStore(f"Arquivo do cofre ilegível: {path}") from exc
        return deserialize_store(document)


def _fsync_dir(directory: Path) -> None:
    if os.name == "nt":
        return
    fd = os.open(str(directory), os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def save(store: SecretStore, path: Path, fsync: bool = True) -> None:
    """Grava o cofre completo de forma atômica.

    Args:
        store: Store a persistir
        path: Caminho de destino
        fsync: Se deve forçar os dados ao disco antes e depois do rename

    Raises:
        IoFailure: Se qualquer passo até o rename falhar; o arquivo anterior
            fica intacto. Falha no fsync do diretório, posterior ao rename,
            apenas gera um aviso no log.
    """
    path = Path(path)
    payload = json.dumps(serialize_store(store), indent=2).encode("utf-8")
    directory = path.parent

    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=directory)
    except OSError as exc:
        raise IoFailure(f"Falha ao criar arquivo temporário em {directory}: {exc}") from exc

    try:
        with os.fdopen(fd, "wb") as f:
            f.write(payload)
            f.flush()
            if fsync:
                os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except OSError as exc:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise IoFailure(f"Falha ao gravar o cofre {path}: {exc}") from exc

    # Após o rename a gravação está efetivada; falha aqui não a desfaz
    if fsync:
        try:
            _fsync_dir(directory)
        except OSError as exc:
            logger.warning(f"Falha ao sincronizar o diretório {directory}: {exc}")

    logger.debug(f"Cofre persistido em: {path} ({len(store)} segredos)")


def lock_path(path: Path) -> Path:
    """Caminho do arquivo de lock ao lado do cofre."""
    path = Path(path)
    return path.with_name(path.name + LOCK_SUFFIX)


@contextmanager
def store_lock(path: Path) -> Iterator[None]:
    """Lock exclusivo consultivo para sequências de leitura-modificação-gravação.

    O lock fica em um arquivo separado porque o arquivo do cofre é
    substituído por rename a cada gravação.

    Raises:
        IoFailure: Se o arquivo de lock não puder ser aberto ou travado
    """
    with ExitStack() as stack:
        try:
            stack.enter_context(locked_file(lock_path(path)))
        except OSError as exc:
            raise IoFailure(f"Falha ao adquirir lock do cofre {path}: {exc}") from exc
        yield
