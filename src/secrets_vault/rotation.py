"""Rotação da chave mestra: recifragem completa do cofre.

A rotação monta um store substituto inteiro em memória. O store original
não é tocado; se qualquer entrada falhar ao descriptografar, nada é gravado.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional, Tuple

from .crypto import encrypt
from .errors import AuthenticationFailed, RotationAborted
from .keys import MasterKey
from .store import SecretRecord, SecretStore, VersionEntry, associated_data

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RotationReport:
    """Resumo de uma rotação concluída."""

    secrets: int
    versions: int
    duration: float


def build_rotated_store(
    store: SecretStore,
    current_key: MasterKey,
    new_key: MasterKey,
    log: Optional[logging.Logger] = None,
) -> Tuple[SecretStore, RotationReport]:
    """Recifra todas as versões de todos os segredos sob a nova chave.

    Números de versão e timestamps são preservados; cada entrada recebe um
    nonce novo.

    Args:
        store: Store atual (não é modificado)
        current_key: Chave que cifra o store atual
        new_key: Chave de destino

    Returns:
        Tuple[SecretStore, RotationReport]: (store substituto, resumo)

    Raises:
        RotationAborted: Na primeira entrada que não puder ser descriptografada
    """
    log = log or logger
    started = time.monotonic()
    rotated = SecretStore()
    versions = 0

    for record in store:
        replacement = SecretRecord(name=record.name)
        for entry in record.versions:
            try:
                plaintext = store.decrypt_entry(record.name, entry, current_key)
            except AuthenticationFailed as exc:
                log.error(
                    f"Rotação abortada: falha ao descriptografar '{record.name}' "
                    f"versão {entry.version}"
                )
                raise RotationAborted(
                    f"Falha ao descriptografar o segredo '{record.name}' "
                    f"versão {entry.version} durante a rotação",
                    name=record.name,
                    version=entry.version,
                ) from exc
            nonce, ciphertext = encrypt(
                plaintext, new_key, associated_data(record.name, entry.version)
            )
            replacement.append(
                VersionEntry(
                    version=entry.version,
                    nonce=nonce,
                    ciphertext=ciphertext,
                    created_at=entry.created_at,
                )
            )
            versions += 1
        rotated.add_record(replacement)

    report = RotationReport(
        secrets=len(rotated), versions=versions, duration=time.monotonic() - started
    )
    return rotated, report
