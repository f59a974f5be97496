"""Interface de linha de comando do cofre de segredos."""

import argparse
import dataclasses
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import VaultConfig
from .errors import IoFailure, VaultError
from .keys import (
    BytesKeySource,
    EnvKeySource,
    FileKeySource,
    KeySource,
    MasterKey,
    encode_master_key,
    generate_master_key,
    write_key_file,
)
from .vault import SecretVault

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2
EXIT_INVALID_KEY = 3
EXIT_NOT_FOUND = 4
EXIT_DECRYPTION_FAILED = 5
EXIT_IO_FAILURE = 6
EXIT_ROTATION_ABORTED = 7

EXIT_CODES = {
    "invalid_key": EXIT_INVALID_KEY,
    "not_found": EXIT_NOT_FOUND,
    "decryption_failed": EXIT_DECRYPTION_FAILED,
    "io_failure": EXIT_IO_FAILURE,
    "corrupt_store": EXIT_IO_FAILURE,
    "audit_write_failed": EXIT_IO_FAILURE,
    "rotation_aborted": EXIT_ROTATION_ABORTED,
}


def exit_code_for(error: VaultError) -> int:
    """Código de saída correspondente à categoria do erro."""
    return EXIT_CODES.get(error.category, EXIT_ERROR)


def _add_common_arguments(parser: argparse.ArgumentParser, suppress: bool) -> None:
    # Nos subcomandos, SUPPRESS evita sobrescrever valores dados antes do comando
    default = argparse.SUPPRESS if suppress else None
    parser.add_argument("--vault-path", type=Path, default=default, help="Arquivo do cofre")
    key_group = parser.add_mutually_exclusive_group()
    key_group.add_argument(
        "--key-path", type=Path, default=default, help="Arquivo com a chave mestra (base64)"
    )
    key_group.add_argument(
        "--key-env", default=default, help="Variável de ambiente com a chave mestra (base64)"
    )
    parser.add_argument("--audit-path", type=Path, default=default, help="Trilha de auditoria")
    parser.add_argument(
        "--env-file", type=Path, default=default, help="Arquivo .env com a configuração"
    )
    parser.add_argument(
        "-v", "--verbose", action="count", default=argparse.SUPPRESS if suppress else 0
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="secrets-vault", description="Cofre local de segredos versionados"
    )
    _add_common_arguments(parser, suppress=False)

    common = argparse.ArgumentParser(add_help=False)
    _add_common_arguments(common, suppress=True)

    subparsers = parser.add_subparsers(dest="command", required=True)

    init = subparsers.add_parser(
        "init", parents=[common], help="Inicializa um cofre e gera a chave mestra"
    )
    init.add_argument("--key-out", type=Path, help="Arquivo de saída da chave gerada")

    set_cmd = subparsers.add_parser("set", parents=[common], help="Grava um segredo")
    set_cmd.add_argument("name")
    set_cmd.add_argument("value")

    get = subparsers.add_parser("get", parents=[common], help="Lê um segredo")
    get.add_argument("name")
    get.add_argument("--version", type=int, help="Versão específica")

    delete = subparsers.add_parser("delete", parents=[common], help="Remove um segredo")
    delete.add_argument("name")

    rotate = subparsers.add_parser("rotate", parents=[common], help="Rotaciona a chave mestra")
    new_key_group = rotate.add_mutually_exclusive_group()
    new_key_group.add_argument("--new-key-path", type=Path, help="Arquivo com a nova chave")
    new_key_group.add_argument("--new-key-env", help="Variável de ambiente com a nova chave")
    rotate.add_argument("--new-key-out", type=Path, help="Arquivo de saída da chave gerada")

    list_versions = subparsers.add_parser(
        "list-versions", parents=[common], help="Lista as versões de um segredo"
    )
    list_versions.add_argument("name")

    subparsers.add_parser("list", parents=[common], help="Lista os segredos")

    return parser


def build_config(args: argparse.Namespace) -> VaultConfig:
    """Monta a configuração: .env ou ambiente, sobrescritos pelas opções da linha de comando.

    Raises:
        ValueError: Se a configuração for inválida
        FileNotFoundError: Se o arquivo .env não existir
    """
    if args.env_file:
        config = VaultConfig.from_file(str(args.env_file))
    else:
        config = VaultConfig.from_environment()

    overrides: dict = {}
    if args.vault_path:
        overrides["vault_path"] = args.vault_path
    if args.audit_path:
        overrides["audit_path"] = args.audit_path
    if args.key_path:
        overrides["key_source"] = FileKeySource(args.key_path)
    elif args.key_env:
        overrides["key_source"] = EnvKeySource(args.key_env)
    return dataclasses.replace(config, **overrides) if overrides else config


def _write_generated_key(path: Path, key: MasterKey) -> None:
    try:
        write_key_file(path, key)
    except OSError as exc:
        raise IoFailure(f"Falha ao gravar a chave em {path}: {exc}") from exc


def _cmd_init(args: argparse.Namespace, config: VaultConfig) -> int:
    if config.key_source is not None:
        SecretVault.init(config).close()
        print(f"✓ Cofre vazio inicializado em {config.vault_path}")
        return EXIT_OK

    key = generate_master_key()
    encoded = encode_master_key(key)
    if args.key_out:
        _write_generated_key(args.key_out, key)
    try:
        SecretVault.init(config, key=key).close()
    except VaultError:
        if args.key_out:
            args.key_out.unlink(missing_ok=True)
        raise

    if args.key_out:
        print(f"✓ Chave mestra gravada em {args.key_out}")
    else:
        print("Chave mestra (GUARDE EM LOCAL SEGURO!):")
        print(encoded)
    print(f"✓ Cofre vazio inicializado em {config.vault_path}")
    return EXIT_OK


def _cmd_set(args: argparse.Namespace, vault: SecretVault) -> int:
    with vault.transaction():
        version = vault.set(args.name, args.value)
    print(f"✓ Segredo '{args.name}' gravado (versão {version})")
    return EXIT_OK


def _cmd_get(args: argparse.Namespace, vault: SecretVault) -> int:
    if args.version is None:
        value = vault.get(args.name)
    else:
        value = vault.get_version(args.name, args.version)
    if value is None:
        print(f"Segredo '{args.name}' não encontrado", file=sys.stderr)
        return EXIT_NOT_FOUND
    print(value.decode("utf-8", errors="replace"))
    return EXIT_OK


def _cmd_delete(args: argparse.Namespace, vault: SecretVault) -> int:
    with vault.transaction():
        vault.delete(args.name)
    print(f"✓ Segredo '{args.name}' removido")
    return EXIT_OK


def _cmd_rotate(args: argparse.Namespace, vault: SecretVault) -> int:
    generated: Optional[MasterKey] = None
    if args.new_key_path:
        source: KeySource = FileKeySource(args.new_key_path)
    elif args.new_key_env:
        source = EnvKeySource(args.new_key_env)
    else:
        generated = generate_master_key()
        source = BytesKeySource(bytes(generated.material))
        if args.new_key_out:
            _write_generated_key(args.new_key_out, generated)

    try:
        report = vault.rotate(source)
    except VaultError:
        if generated is not None:
            generated.cleanup()
            if args.new_key_out:
                args.new_key_out.unlink(missing_ok=True)
        raise

    if generated is not None:
        if args.new_key_out:
            print(f"✓ Nova chave mestra gravada em {args.new_key_out}")
        else:
            print("Nova chave mestra (GUARDE EM LOCAL SEGURO!):")
            print(encode_master_key(generated))
        generated.cleanup()
    print(f"✓ Cofre rotacionado: {report.secrets} segredos, {report.versions} versões")
    return EXIT_OK


def _cmd_list_versions(args: argparse.Namespace, vault: SecretVault) -> int:
    versions = vault.list_versions(args.name)
    if not versions:
        print(f"Nenhuma versão encontrada para '{args.name}'")
    else:
        print(f"Versões de '{args.name}': {versions}")
    return EXIT_OK


def _cmd_list(args: argparse.Namespace, vault: SecretVault) -> int:
    for name in sorted(vault.names()):
        print(name)
    return EXIT_OK


COMMANDS = {
    "set": _cmd_set,
    "get": _cmd_get,
    "delete": _cmd_delete,
    "rotate": _cmd_rotate,
    "list-versions": _cmd_list_versions,
    "list": _cmd_list,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Ponto de entrada da CLI. Retorna o código de saída."""
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose and args.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    try:
        config = build_config(args)
    except (ValueError, FileNotFoundError) as exc:
        print(f"Erro de configuração: {exc}", file=sys.stderr)
        return EXIT_USAGE

    try:
        if args.command == "init":
            return _cmd_init(args, config)
        with SecretVault.open(config) as vault:
            return COMMANDS[args.command](args, vault)
    except VaultError as exc:
        print(f"Erro: {exc}", file=sys.stderr)
        return exit_code_for(exc)


if __name__ == "__main__":
    sys.exit(main())
