"""SecretVault - cofre de segredos versionados com rotação de chave."""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Tuple, TypeVar

from . import persistence
from .audit import AuditLog, Operation, Outcome
from .config import VaultConfig
from .errors import (
    AuditWriteFailed,
    IoFailure,
    KeySourceUnavailable,
    RotationAborted,
    SecretNotFound,
    VaultClosed,
    VaultError,
    VersionNotFound,
)
from .keys import KeySource, MasterKey, resolve_key
from .rotation import RotationReport, build_rotated_store
from .store import SecretStore

T = TypeVar("T")


class SecretVault:
    """Cofre de segredos criptografados com histórico de versões.

    Esta classe fornece:
    - Criptografia AES-256-GCM de cada versão de cada segredo
    - Histórico imutável de versões por segredo
    - Persistência atômica com lock consultivo entre processos
    - Rotação tudo-ou-nada da chave mestra
    - Trilha de auditoria append-only

    Mutações (set, delete) afetam apenas a memória até save(); use
    transaction() para ler, modificar e gravar sob o lock do cofre.

    Use SecretVault.init() ou SecretVault.open() em vez do construtor.

    Examples:
        >>> with SecretVault.open(config, create=True) as vault:
        ...     with vault.transaction():
        ...         vault.set("db_password", "supersecret")
        ...     vault.get("db_password")
        b'supersecret'
    """

    def __init__(
        self,
        config: VaultConfig,
        key: MasterKey,
        store: SecretStore,
        audit_log: AuditLog,
    ):
        self.config = config
        self._logger = config.logger or logging.getLogger(__name__)
        self._key = key
        self._store = store
        self._audit_log = audit_log
        self._dirty = False
        self._closed = False
        self._lock_depth = 0
        # Registros de set/delete adiados até o save da transação em curso
        self._pending_audit: Optional[List[Tuple[Operation, str]]] = None

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------

    @staticmethod
    def _resolve_config_key(config: VaultConfig) -> MasterKey:
        if config.key_source is None:
            raise KeySourceUnavailable(
                "Nenhuma fonte de chave configurada (arquivo ou variável de ambiente)"
            )
        return resolve_key(config.key_source)

    @staticmethod
    def _open_audit(config: VaultConfig) -> AuditLog:
        return AuditLog(
            config.audit_path,
            fsync=config.fsync,
            callback=config.audit_callback,
            logger=config.logger,
        )

    @classmethod
    def init(cls, config: VaultConfig, key: Optional[MasterKey] = None) -> "SecretVault":
        """Cria um cofre vazio e o persiste.

        Args:
            config: Configuração do cofre
            key: Chave mestra (se None, resolve config.key_source)

        Returns:
            SecretVault aberto sobre o novo arquivo

        Raises:
            IoFailure: Se o arquivo do cofre já existir ou não puder ser gravado
            KeySourceUnavailable, InvalidKeySize: Se a chave não puder ser resolvida
        """
        if key is None:
            key = cls._resolve_config_key(config)
        try:
            audit_log = cls._open_audit(config)
        except VaultError:
            key.cleanup()
            raise
        vault = cls(config, key, SecretStore(), audit_log)

        def action() -> None:
            with vault._locked():
                if config.vault_path.exists():
                    raise IoFailure(f"Cofre já existe: {config.vault_path}")
                persistence.save(vault._store, config.vault_path, fsync=config.fsync)

        try:
            vault._audited(Operation.INIT, None, action)
        except VaultError:
            vault.close()
            raise

        vault._logger.info(f"Cofre inicializado em: {config.vault_path}")
        return vault

    @classmethod
    def open(cls, config: VaultConfig, create: bool = False) -> "SecretVault":
        """Abre um cofre existente, resolvendo a chave uma única vez.

        Args:
            config: Configuração do cofre
            create: Se True, inicializa o cofre quando o arquivo não existir

        Raises:
            IoFailure: Se o arquivo não existir (e create=False) ou não puder ser lido
            CorruptStore: Se o arquivo não puder ser interpretado
        """
        if create and not config.vault_path.exists():
            return cls.init(config)

        key = cls._resolve_config_key(config)
        try:
            store = persistence.load(config.vault_path, read_retries=config.read_retries)
            audit_log = cls._open_audit(config)
        except VaultError:
            key.cleanup()
            raise

        vault = cls(config, key, store, audit_log)
        vault._logger.info(f"Cofre carregado de: {config.vault_path} ({len(store)} segredos)")
        return vault

    def close(self) -> None:
        """Zera a chave mestra e fecha a trilha de auditoria.

        Alterações não persistidas são descartadas.
        """
        if self._closed:
            return
        if self._dirty:
            self._logger.warning("Cofre fechado com alterações não persistidas")
        self._key.cleanup()
        self._audit_log.close()
        self._closed = True
        self._logger.debug("Cofre fechado e chave removida da memória")

    def __enter__(self) -> "SecretVault":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def path(self) -> Path:
        return self.config.vault_path

    @property
    def dirty(self) -> bool:
        """True se há alterações em memória ainda não persistidas."""
        return self._dirty

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise VaultClosed("Cofre já foi fechado")

    # ------------------------------------------------------------------
    # Auditoria
    # ------------------------------------------------------------------

    def _audit(
        self,
        operation: Operation,
        secret_name: Optional[str],
        outcome: Outcome,
        reason: Optional[str] = None,
    ) -> None:
        try:
            self._audit_log.record(operation, secret_name, outcome, reason)
        except AuditWriteFailed as e:
            if self.config.strict_audit:
                raise
            self._logger.warning(f"Erro ao gravar auditoria: {e}")

    def _audit_failure(
        self, operation: Operation, secret_name: Optional[str], reason: str
    ) -> None:
        # Chamado com um erro já em curso, que deve prevalecer
        try:
            self._audit(operation, secret_name, Outcome.FAILURE, reason)
        except AuditWriteFailed as audit_exc:
            self._logger.error(f"Erro ao gravar auditoria de falha: {audit_exc}")

    def _audited(
        self,
        operation: Operation,
        secret_name: Optional[str],
        action: Callable[[], T],
        deferred: bool = False,
    ) -> T:
        """Executa action e registra o resultado na trilha de auditoria.

        Se a gravação do registro de falha também falhar, o erro original
        prevalece. Com deferred=True, dentro de uma transação, o sucesso só é
        registrado quando a transação for gravada em disco.
        """
        try:
            result = action()
        except VaultError as exc:
            self._audit_failure(operation, secret_name, exc.category)
            raise
        if deferred and self._pending_audit is not None:
            self._pending_audit.append((operation, secret_name))
        else:
            self._audit(operation, secret_name, Outcome.SUCCESS)
        return result

    def _flush_pending_audit(self, reason: Optional[str] = None) -> None:
        """Registra as operações adiadas: sucesso se reason for None, senão falha."""
        pending, self._pending_audit = self._pending_audit or [], []
        for operation, secret_name in pending:
            if reason is None:
                self._audit(operation, secret_name, Outcome.SUCCESS)
            else:
                self._audit_failure(operation, secret_name, reason)

    # ------------------------------------------------------------------
    # Persistência
    # ------------------------------------------------------------------

    @contextmanager
    def _locked(self) -> Iterator[None]:
        """Lock do cofre, reentrante dentro desta instância."""
        if self._lock_depth:
            self._lock_depth += 1
            try:
                yield
            finally:
                self._lock_depth -= 1
            return

        with persistence.store_lock(self.path):
            self._lock_depth = 1
            try:
                yield
            finally:
                self._lock_depth = 0

    def save(self) -> None:
        """Persiste o estado em memória de forma atômica, sob o lock do cofre.

        Raises:
            IoFailure: Se a gravação falhar; o arquivo anterior fica intacto
        """
        self._ensure_open()
        with self._locked():
            persistence.save(self._store, self.path, fsync=self.config.fsync)
        self._dirty = False
        self._logger.info(f"Cofre salvo em: {self.path}")

    def refresh(self) -> None:
        """Relê o arquivo do cofre, descartando o estado em memória.

        Raises:
            IoFailure, CorruptStore: Se o arquivo não puder ser lido
        """
        self._ensure_open()
        self._store = persistence.load(self.path, read_retries=self.config.read_retries)
        self._dirty = False

    @contextmanager
    def transaction(self) -> Iterator["SecretVault"]:
        """Lê, modifica e grava o cofre sob o lock exclusivo.

        Ao entrar, relê o arquivo (se não houver alterações pendentes) para
        incorporar gravações de outros processos. Ao sair sem exceção, salva.
        Com exceção, o estado em memória volta ao do início, exceto quando a
        exceção for AuditWriteFailed: nesse caso as alterações são gravadas e
        o erro de auditoria é levantado em seguida.

        Os registros de sucesso de set e delete só entram na trilha depois do
        save; se o save falhar, são registrados como falha com a categoria do
        erro. Uma transação aninhada participa da transação externa.

        Examples:
            >>> with vault.transaction():
            ...     vault.set("api_key", "v2")
        """
        self._ensure_open()
        if self._pending_audit is not None:
            yield self
            return

        with self._locked():
            if not self._dirty:
                self.refresh()
            snapshot = self._store.copy()
            was_dirty = self._dirty
            audit_error: Optional[AuditWriteFailed] = None
            self._pending_audit = []
            try:
                try:
                    yield self
                except AuditWriteFailed as exc:
                    audit_error = exc
                except BaseException as exc:
                    self._store = snapshot
                    self._dirty = was_dirty
                    reason = exc.category if isinstance(exc, VaultError) else "aborted"
                    self._flush_pending_audit(reason)
                    raise

                try:
                    self.save()
                except VaultError as exc:
                    self._flush_pending_audit(exc.category)
                    raise
                self._flush_pending_audit()
            finally:
                self._pending_audit = None

            if audit_error is not None:
                raise audit_error

    # ------------------------------------------------------------------
    # Operações sobre segredos
    # ------------------------------------------------------------------

    def set(self, name: str, value: bytes | str) -> int:
        """Criptografa e anexa uma nova versão do segredo.

        Args:
            name: Nome do segredo
            value: Valor em texto plano (str é codificada em UTF-8)

        Returns:
            int: Número da versão criada

        Raises:
            InvalidSecretName: Se o nome for inválido
        """
        self._ensure_open()

        def action() -> int:
            entry = self._store.set(name, value, self._key)
            self._dirty = True
            return entry.version

        version = self._audited(Operation.SET, name, action, deferred=True)
        self._logger.debug(f"Segredo '{name}' atualizado para a versão {version}")
        return version

    def _read(self, name: str, version: Optional[int]) -> Optional[bytes]:
        def action() -> bytes:
            entry = self._store.entry(name, version)
            return self._store.decrypt_entry(name, entry, self._key)

        try:
            return self._audited(Operation.GET, name, action)
        except (SecretNotFound, VersionNotFound):
            return None

    def get(self, name: str) -> Optional[bytes]:
        """Retorna o valor da versão mais recente, ou None se o segredo não existir.

        Raises:
            AuthenticationFailed: Se a chave estiver errada ou o dado adulterado
        """
        self._ensure_open()
        return self._read(name, None)

    def get_version(self, name: str, version: int) -> Optional[bytes]:
        """Retorna o valor de uma versão específica, ou None se ela não existir.

        Raises:
            AuthenticationFailed: Se a chave estiver errada ou o dado adulterado
        """
        self._ensure_open()
        return self._read(name, version)

    def list_versions(self, name: str) -> List[int]:
        """Números de versão do segredo em ordem crescente (vazio se não existir)."""
        self._ensure_open()
        return self._store.list_versions(name)

    def names(self) -> List[str]:
        """Lista os nomes de todos os segredos."""
        self._ensure_open()
        return self._store.names()

    def delete(self, name: str) -> None:
        """Remove o segredo e todas as suas versões.

        Raises:
            SecretNotFound: Se o segredo não existir
        """
        self._ensure_open()

        def action() -> None:
            if not self._store.delete(name):
                raise SecretNotFound(name)
            self._dirty = True

        self._audited(Operation.DELETE, name, action, deferred=True)
        self._logger.debug(f"Segredo '{name}' removido")

    # ------------------------------------------------------------------
    # Rotação
    # ------------------------------------------------------------------

    def rotate(self, new_key_source: KeySource) -> RotationReport:
        """Recifra o cofre inteiro sob uma nova chave mestra.

        Todas as versões são descriptografadas com a chave atual e
        recifradas com a nova em um store substituto. Só depois que o
        substituto é persistido a chave em memória é trocada. Qualquer
        falha deixa arquivo e memória exatamente como estavam.

        Args:
            new_key_source: Fonte da nova chave mestra

        Returns:
            RotationReport com a contagem de segredos e versões

        Raises:
            KeySourceUnavailable, InvalidKeySize: Se a nova chave não puder ser resolvida
            RotationAborted: Se qualquer entrada falhar ou a gravação falhar
        """
        self._ensure_open()
        report = self._audited(Operation.ROTATE, None, lambda: self._rotate(new_key_source))
        self._logger.info(
            f"Rotação completa: {report.secrets} segredos, {report.versions} versões "
            f"em {report.duration:.3f}s"
        )
        return report

    def _rotate(self, new_key_source: KeySource) -> RotationReport:
        new_key = resolve_key(new_key_source)
        try:
            with self._locked():
                current = self._store
                if not self._dirty:
                    current = persistence.load(self.path, read_retries=self.config.read_retries)
                rotated, report = build_rotated_store(current, self._key, new_key, self._logger)
                persistence.save(rotated, self.path, fsync=self.config.fsync)
        except RotationAborted:
            new_key.cleanup()
            raise
        except VaultError as exc:
            new_key.cleanup()
            raise RotationAborted(f"Rotação abortada: {exc}") from exc

        old_key = self._key
        self._key = new_key
        self._store = rotated
        self._dirty = False
        old_key.cleanup()
        return report
