"""Testes para a interface de linha de comando."""

import json

import pytest

from secrets_vault import MasterKey
from secrets_vault.cli import (
    EXIT_DECRYPTION_FAILED,
    EXIT_INVALID_KEY,
    EXIT_IO_FAILURE,
    EXIT_NOT_FOUND,
    EXIT_OK,
    EXIT_ROTATION_ABORTED,
    EXIT_USAGE,
    main,
)
from secrets_vault.keys import write_key_file
from secrets_vault.utils import b64decode, b64encode


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for suffix in ("PATH", "KEY_PATH", "KEY_ENV", "AUDIT_PATH", "FSYNC", "STRICT_AUDIT", "READ_RETRIES"):
        monkeypatch.delenv(f"SECRETS_VAULT_{suffix}", raising=False)


@pytest.fixture
def paths(tmp_path):
    return {
        "vault": tmp_path / "vault.json",
        "key": tmp_path / "master.key",
        "audit": tmp_path / "audit.log",
    }


@pytest.fixture
def run(paths):
    def _run(*args, key=None):
        base = ["--vault-path", str(paths["vault"]), "--audit-path", str(paths["audit"])]
        base += ["--key-path", str(key or paths["key"])]
        return main(base + list(args))

    return _run


@pytest.fixture
def initialized(paths, capsys):
    code = main(
        [
            "--vault-path",
            str(paths["vault"]),
            "--audit-path",
            str(paths["audit"]),
            "init",
            "--key-out",
            str(paths["key"]),
        ]
    )
    assert code == EXIT_OK
    capsys.readouterr()
    return paths


def test_init_writes_key_file(initialized):
    """Testa que init grava a chave gerada e um cofre vazio."""
    assert len(b64decode(initialized["key"].read_text().strip())) == 32
    document = json.loads(initialized["vault"].read_text())
    assert document["secrets"] == {}


def test_init_prints_generated_key(tmp_path, capsys):
    """Testa que init sem --key-out imprime a chave gerada."""
    code = main(["--vault-path", str(tmp_path / "vault.json"), "init"])

    out = capsys.readouterr().out.splitlines()
    assert code == EXIT_OK
    assert len(b64decode(out[1])) == 32


def test_init_existing_vault(initialized, tmp_path):
    """Testa que init recusa um cofre existente e não deixa chave órfã."""
    key_out = tmp_path / "second.key"

    code = main(["--vault-path", str(initialized["vault"]), "init", "--key-out", str(key_out)])

    assert code == EXIT_IO_FAILURE
    assert not key_out.exists()


def test_set_get_flow(initialized, run, capsys):
    """Testa gravação e leitura de versões pela CLI."""
    assert run("set", "api_key", "v1") == EXIT_OK
    assert run("set", "api_key", "v2") == EXIT_OK
    assert "versão 2" in capsys.readouterr().out

    assert run("get", "api_key") == EXIT_OK
    assert capsys.readouterr().out == "v2\n"

    assert run("get", "api_key", "--version", "1") == EXIT_OK
    assert capsys.readouterr().out == "v1\n"

    assert run("list-versions", "api_key") == EXIT_OK
    assert "[1, 2]" in capsys.readouterr().out


def test_options_after_subcommand(initialized, capsys):
    """Testa que opções comuns também são aceitas após o subcomando."""
    code = main(
        [
            "set",
            "--vault-path",
            str(initialized["vault"]),
            "--key-path",
            str(initialized["key"]),
            "token",
            "abc",
        ]
    )
    assert code == EXIT_OK

    code = main(
        ["--key-path", str(initialized["key"]), "get", "--vault-path", str(initialized["vault"]), "token"]
    )
    assert code == EXIT_OK
    assert capsys.readouterr().out.endswith("abc\n")


def test_get_missing(initialized, run, capsys):
    """Testa código de saída para segredo inexistente."""
    assert run("get", "missing") == EXIT_NOT_FOUND
    assert "não encontrado" in capsys.readouterr().err

    assert run("set", "api_key", "v1") == EXIT_OK
    assert run("get", "api_key", "--version", "9") == EXIT_NOT_FOUND


def test_delete(initialized, run, capsys):
    """Testa remoção pela CLI."""
    run("set", "token", "abc")

    assert run("delete", "token") == EXIT_OK
    assert run("delete", "token") == EXIT_NOT_FOUND
    capsys.readouterr()

    assert run("list-versions", "token") == EXIT_OK
    assert "Nenhuma versão" in capsys.readouterr().out


def test_list(initialized, run, capsys):
    """Testa listagem ordenada de segredos."""
    run("set", "zeta", "1")
    run("set", "alpha", "2")
    capsys.readouterr()

    assert run("list") == EXIT_OK
    assert capsys.readouterr().out == "alpha\nzeta\n"


def test_wrong_key(initialized, run, tmp_path, other_key_bytes):
    """Testa código de saída para chave incorreta."""
    run("set", "db_password", "supersecret")
    wrong_key = tmp_path / "wrong.key"
    write_key_file(wrong_key, MasterKey(bytearray(other_key_bytes)))

    assert run("get", "db_password", key=wrong_key) == EXIT_DECRYPTION_FAILED


def test_invalid_key(initialized, run, tmp_path):
    """Testa código de saída para chave de tamanho inválido ou ausente."""
    short_key = tmp_path / "short.key"
    short_key.write_text(b64encode(b"x" * 16))

    assert run("get", "x", key=short_key) == EXIT_INVALID_KEY
    assert run("get", "x", key=tmp_path / "missing.key") == EXIT_INVALID_KEY


def test_rotate(initialized, run, tmp_path, capsys):
    """Testa rotação pela CLI com a nova chave gravada em arquivo."""
    run("set", "api_key", "v1")
    run("set", "api_key", "v2")
    new_key = tmp_path / "new.key"

    assert run("rotate", "--new-key-out", str(new_key)) == EXIT_OK
    assert "1 segredos, 2 versões" in capsys.readouterr().out

    assert run("get", "api_key", "--version", "1", key=new_key) == EXIT_OK
    assert capsys.readouterr().out == "v1\n"
    assert run("get", "api_key") == EXIT_DECRYPTION_FAILED


def test_rotate_with_existing_key_file(initialized, run, tmp_path, other_key_bytes, capsys):
    """Testa rotação para uma chave já existente."""
    run("set", "token", "abc")
    new_key = tmp_path / "new.key"
    write_key_file(new_key, MasterKey(bytearray(other_key_bytes)))

    assert run("rotate", "--new-key-path", str(new_key)) == EXIT_OK
    capsys.readouterr()

    assert run("get", "token", key=new_key) == EXIT_OK
    assert capsys.readouterr().out == "abc\n"


def test_rotate_aborted(initialized, run, tmp_path):
    """Testa que uma rotação abortada não deixa a nova chave gravada."""
    run("set", "api_key", "v1")
    document = json.loads(initialized["vault"].read_text())
    entry = document["secrets"]["api_key"][0]
    tampered = bytearray(b64decode(entry["ciphertext"]))
    tampered[0] ^= 0x01
    entry["ciphertext"] = b64encode(bytes(tampered))
    initialized["vault"].write_text(json.dumps(document))
    new_key = tmp_path / "new.key"

    assert run("rotate", "--new-key-out", str(new_key)) == EXIT_ROTATION_ABORTED
    assert not new_key.exists()


def test_config_error(initialized, run, monkeypatch, capsys):
    """Testa código de saída para configuração inválida."""
    monkeypatch.setenv("SECRETS_VAULT_FSYNC", "talvez")

    assert run("list") == EXIT_USAGE
    assert "Erro de configuração" in capsys.readouterr().err


def test_env_file(initialized, tmp_path, capsys):
    """Testa configuração via arquivo .env."""
    env_file = tmp_path / ".env"
    env_file.write_text(
        f"SECRETS_VAULT_PATH={initialized['vault']}\n"
        f"SECRETS_VAULT_KEY_PATH={initialized['key']}\n"
    )

    assert main(["--env-file", str(env_file), "set", "token", "abc"]) == EXIT_OK
    assert main(["--env-file", str(env_file), "get", "token"]) == EXIT_OK
    assert capsys.readouterr().out.endswith("abc\n")


def test_missing_env_file(tmp_path):
    """Testa erro quando o arquivo .env não existe."""
    assert main(["--env-file", str(tmp_path / "missing.env"), "list"]) == EXIT_USAGE


def test_mutually_exclusive_key_options(tmp_path):
    """Testa que --key-path e --key-env não podem ser combinados."""
    with pytest.raises(SystemExit) as exc_info:
        main(["--key-path", "a.key", "--key-env", "KEY", "list"])

    assert exc_info.value.code == EXIT_USAGE
