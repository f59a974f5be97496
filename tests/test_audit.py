"""Testes para a trilha de auditoria."""

import json
import logging

import pytest

from secrets_vault import AuditEntry, AuditLog, AuditWriteFailed, Operation, Outcome, read_entries


def test_append_writes_json_line(tmp_path):
    """Testa que cada registro vira uma linha JSON."""
    path = tmp_path / "audit.log"

    with AuditLog(path) as log:
        log.record(Operation.SET, "db_password")
        log.record(Operation.ROTATE, None, Outcome.FAILURE, "rotation_aborted")

    lines = path.read_text().splitlines()
    assert len(lines) == 2
    first = json.loads(lines[0])
    assert first["operation"] == "set"
    assert first["secret"] == "db_password"
    assert first["outcome"] == "success"
    assert first["reason"] is None
    second = json.loads(lines[1])
    assert second["secret"] is None
    assert second["reason"] == "rotation_aborted"


def test_append_only_across_handles(tmp_path):
    """Testa que registros existentes nunca são reescritos."""
    path = tmp_path / "audit.log"

    with AuditLog(path) as log:
        log.record(Operation.INIT, None)
    before = path.read_text()

    with AuditLog(path) as log:
        log.record(Operation.GET, "api_key")

    after = path.read_text()
    assert after.startswith(before)
    assert [e.operation for e in read_entries(path)] == [Operation.INIT, Operation.GET]


def test_read_entries_round_trip(tmp_path):
    """Testa leitura dos registros gravados."""
    path = tmp_path / "audit.log"
    entry = AuditEntry(Operation.DELETE, "token", Outcome.FAILURE, "not_found")

    with AuditLog(path) as log:
        log.append(entry)

    assert read_entries(path) == [entry]


def test_append_after_close_fails(tmp_path):
    """Testa que gravar após fechar levanta AuditWriteFailed."""
    log = AuditLog(tmp_path / "audit.log")
    log.close()

    assert log.closed
    with pytest.raises(AuditWriteFailed):
        log.record(Operation.SET, "x")


def test_open_failure(tmp_path):
    """Testa erro ao abrir a trilha em diretório inexistente."""
    with pytest.raises(AuditWriteFailed, match="Falha ao abrir trilha de auditoria"):
        AuditLog(tmp_path / "missing" / "audit.log")


def test_write_failure_is_reported(tmp_path, monkeypatch):
    """Testa que falhas de escrita são reportadas ao chamador."""
    log = AuditLog(tmp_path / "audit.log")

    def failing_fsync(fd):
        raise OSError("falha de disco")

    monkeypatch.setattr("secrets_vault.audit.os.fsync", failing_fsync)

    with pytest.raises(AuditWriteFailed, match="falha de disco"):
        log.record(Operation.SET, "x")
    log.close()


def test_without_path_only_notifies_callback():
    """Testa trilha sem arquivo repassando registros ao callback."""
    events = []
    log = AuditLog(callback=lambda event, metadata: events.append((event, metadata)))

    log.record(Operation.GET, "api_key")

    assert events[0][0] == "get"
    assert events[0][1]["secret"] == "api_key"


def test_callback_exception_is_logged(tmp_path, caplog):
    """Testa que exceções no callback de auditoria são tratadas."""

    def callback(event, metadata):
        raise RuntimeError("audit fail")

    caplog.set_level(logging.WARNING)
    with AuditLog(tmp_path / "audit.log", callback=callback) as log:
        log.record(Operation.SET, "x")

    assert "Erro no callback de auditoria" in caplog.text
    assert len(read_entries(tmp_path / "audit.log")) == 1
