"""Trilha de auditoria append-only em JSON lines."""

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TextIO

from .errors import AuditWriteFailed, CorruptStore
from .utils import format_timestamp, parse_timestamp, utc_now


class Operation(str, Enum):
    INIT = "init"
    SET = "set"
    GET = "get"
    DELETE = "delete"
    ROTATE = "rotate"


class Outcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class AuditEntry:
    """Registro imutável de uma operação no cofre.

    Attributes:
        operation: Tipo da operação
        secret_name: Nome do segredo (None para init e rotate)
        outcome: Sucesso ou falha
        reason: Categoria da falha (None em caso de sucesso)
        timestamp: Instante do registro (UTC)
    """

    operation: Operation
    secret_name: Optional[str]
    outcome: Outcome
    reason: Optional[str] = None
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": format_timestamp(self.timestamp),
            "operation": self.operation.value,
            "secret": self.secret_name,
            "outcome": self.outcome.value,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditEntry":
        return cls(
            operation=Operation(data["operation"]),
            secret_name=data.get("secret"),
            outcome=Outcome(data["outcome"]),
            reason=data.get("reason"),
            timestamp=parse_timestamp(data["timestamp"]),
        )


class AuditLog:
    """Handle de auditoria com escopo do cofre.

    O arquivo é aberto em modo append na construção e permanece aberto até
    close(). Cada append é seguido de flush e fsync. Sem path, os registros
    são apenas repassados ao callback (se houver).

    Attributes:
        path: Caminho do arquivo de auditoria (opcional)
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        fsync: bool = True,
        callback: Optional[Callable[[str, dict], None]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.path = Path(path) if path is not None else None
        self._fsync = fsync
        self._callback = callback
        self._logger = logger or logging.getLogger(__name__)
        self._handle: Optional[TextIO] = None

        if self.path is not None:
            try:
                self._handle = self.path.open("a", encoding="utf-8")
            except OSError as exc:
                raise AuditWriteFailed(
                    f"Falha ao abrir trilha de auditoria {self.path}: {exc}"
                ) from exc

    @property
    def closed(self) -> bool:
        return self.path is not None and self._handle is None

    def append(self, entry: AuditEntry) -> None:
        """Grava um registro e força o flush antes de retornar.

        Raises:
            AuditWriteFailed: Se a gravação falhar
        """
        if self.path is not None:
            if self._handle is None:
                raise AuditWriteFailed(f"Trilha de auditoria {self.path} já foi fechada")
            line = json.dumps(entry.to_dict(), ensure_ascii=False)
            try:
                self._handle.write(line + "\n")
                self._handle.flush()
                if self._fsync:
                    os.fsync(self._handle.fileno())
            except (OSError, ValueError) as exc:
                raise AuditWriteFailed(
                    f"Falha ao gravar na trilha de auditoria {self.path}: {exc}"
                ) from exc

        self._notify(entry)

    def record(
        self,
        operation: Operation,
        secret_name: Optional[str],
        outcome: Outcome = Outcome.SUCCESS,
        reason: Optional[str] = None,
    ) -> AuditEntry:
        """Cria e grava um registro."""
        entry = AuditEntry(
            operation=operation, secret_name=secret_name, outcome=outcome, reason=reason
        )
        self.append(entry)
        return entry

    def _notify(self, entry: AuditEntry) -> None:
        """Repassa o registro ao callback de auditoria, se configurado."""
        if self._callback:
            try:
                self._callback(entry.operation.value, entry.to_dict())
            except Exception as e:
                self._logger.warning(f"Erro no callback de auditoria: {e}")

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> "AuditLog":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def read_entries(path: Path) -> List[AuditEntry]:
    """Lê todos os registros de um arquivo de auditoria.

    Raises:
        CorruptStore: Se alguma linha não for um registro válido
    """
    entries = []
    with Path(path).open("r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                entries.append(AuditEntry.from_dict(json.loads(line)))
            except (ValueError, KeyError, TypeError) as exc:
                raise CorruptStore(f"Linha {lineno} inválida em {path}: {exc}") from exc
    return entries
