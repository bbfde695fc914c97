"""账号开通编排器。Provisioning saga across every access backend.

Adding an account walks the backends in order. The first failure rolls back
the steps that already ran, newest first, and the account is never recorded.
Removing an account tears down every recorded backend, keeps going past
failures, and always drops the record: an orphaned backend artifact is easier
to live with than an account the operator can never delete.
"""

from __future__ import annotations

import re
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence

from .config.defaults import DEFAULT_BCRYPT_ROUNDS
from .credentials import hash_credential
from .errors import (
    AccountNotFoundError,
    BackendDeprovisionError,
    BackendFailure,
    BackendProvisionError,
    DuplicateIdentityError,
    InvalidAccountError,
    PersistenceError,
    StepTimeoutError,
    VPSAccessError,
)
from .logging_utils import get_logger, log_action
from .protocols.base import BackendAdapter, ProvisionContext
from .registry import Account, AccountRegistry

LOGGER = get_logger(__name__)

# Identities become system accounts, file names and DNS labels.
IDENTITY_PATTERN = re.compile(r"^[a-z_][a-z0-9_-]{0,31}$")
MAX_CREDENTIAL_BYTES = 72


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class BackendOutcome:
    """One backend's result during removal."""

    backend: str
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class AddResult:
    """Provisioning succeeded; ``persistence_error`` is set if the file write did not."""

    account: Account
    persistence_error: Optional[PersistenceError] = None

    @property
    def ok(self) -> bool:
        return self.persistence_error is None


@dataclass
class RemovalResult:
    """Per-backend outcomes of one removal, evaluated eagerly."""

    identity: str
    account: Account
    outcomes: List[BackendOutcome] = field(default_factory=list)
    persistence_error: Optional[PersistenceError] = None

    @property
    def failures(self) -> List[BackendFailure]:
        return [BackendFailure(o.backend, o.error) for o in self.outcomes if o.error is not None]

    @property
    def ok(self) -> bool:
        return not self.failures and self.persistence_error is None

    def raise_for_failures(self) -> None:
        """Raise :class:`BackendDeprovisionError` (or the persistence error) if anything failed."""

        failures = self.failures
        if failures:
            raise BackendDeprovisionError(self.identity, failures)
        if self.persistence_error is not None:
            raise self.persistence_error


class ProvisioningOrchestrator:
    """编排器。Owns its adapters and drives add/remove sagas one at a time.

    Args:
        registry: 账号登记表
        adapters: 按依赖顺序排列的后端适配器
        domain: 用于生成每个账号虚拟主机的域名后缀
        step_timeout: 单个后端调用的超时（秒），``None`` 表示不限
        clock: 返回当前 UTC 时间的函数
        bcrypt_rounds: bcrypt 成本因子
    """

    def __init__(
        self,
        registry: AccountRegistry,
        adapters: Sequence[BackendAdapter],
        *,
        domain: str,
        step_timeout: Optional[float] = None,
        clock: Callable[[], datetime] = utc_now,
        bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS,
    ):
        names = [adapter.name for adapter in adapters]
        if len(set(names)) != len(names):
            raise ValueError(f"backend names must be unique: {names}")
        if not adapters:
            raise ValueError("at least one backend adapter is required")

        self.registry = registry
        self.adapters: tuple[BackendAdapter, ...] = tuple(adapters)
        self.domain = domain.strip(".")
        self.step_timeout = step_timeout
        self.clock = clock
        self.bcrypt_rounds = bcrypt_rounds
        self._by_name = {adapter.name: adapter for adapter in self.adapters}
        self._lock = threading.RLock()

    @property
    def backend_names(self) -> List[str]:
        return [adapter.name for adapter in self.adapters]

    def account_domain(self, identity: str) -> str:
        return f"{identity}.{self.domain}"

    def find_account(self, identity: str) -> Optional[Account]:
        return self.registry.get_account(identity)

    def list_accounts(self) -> List[Account]:
        return self.registry.get_all_accounts()

    @staticmethod
    def validate(identity: str, credential: str, duration_days: int) -> None:
        if not isinstance(identity, str) or not IDENTITY_PATTERN.match(identity):
            raise InvalidAccountError(
                f"invalid username {identity!r}: use lowercase letters, digits, '_' or '-' (max 32)"
            )
        if not isinstance(credential, str) or not credential:
            raise InvalidAccountError("password must not be empty")
        if "\n" in credential or "\r" in credential:
            raise InvalidAccountError("password must not contain line breaks")
        if len(credential.encode("utf-8")) > MAX_CREDENTIAL_BYTES:
            raise InvalidAccountError(f"password must be at most {MAX_CREDENTIAL_BYTES} bytes")
        if isinstance(duration_days, bool) or not isinstance(duration_days, int) or duration_days < 0:
            raise InvalidAccountError(f"expiration days must be a non-negative integer, got {duration_days!r}")

    def _expiry(self, duration_days: int) -> datetime:
        try:
            return self.clock() + timedelta(days=duration_days)
        except OverflowError as exc:
            raise InvalidAccountError(f"expiration days out of range: {duration_days}") from exc

    def _call(self, adapter: BackendAdapter, action: str, *args) -> None:
        method = getattr(adapter, action)
        if self.step_timeout is None:
            method(*args)
            return

        # A stuck command cannot be cancelled; the worker thread is abandoned.
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"vpsaccess-{adapter.name}")
        try:
            future = executor.submit(method, *args)
            try:
                future.result(timeout=self.step_timeout)
            except FutureTimeoutError as exc:
                raise StepTimeoutError(adapter.name, self.step_timeout) from exc
        finally:
            executor.shutdown(wait=False)

    def _compensate(self, identity: str, completed: Sequence[BackendAdapter]) -> List[BackendFailure]:
        failures: List[BackendFailure] = []
        for adapter in reversed(completed):
            try:
                self._call(adapter, "deprovision", identity)
            except Exception as exc:  # noqa: BLE001 - never mask the root cause
                LOGGER.warning(
                    "Rollback failed; artifact may be orphaned",
                    extra={"identity": identity, "backend": adapter.name, "error": str(exc)},
                )
                failures.append(BackendFailure(adapter.name, exc))
            else:
                LOGGER.info("Rolled back backend", extra={"identity": identity, "backend": adapter.name})
        return failures

    def _persist(self) -> Optional[PersistenceError]:
        try:
            self.registry.save()
        except PersistenceError as exc:
            LOGGER.error("Registry save failed; durable state diverged", extra={"error": str(exc)})
            return exc
        return None

    def add_account(self, identity: str, credential: str, duration_days: int) -> AddResult:
        """添加账号。Provision ``identity`` on every backend, then record it.

        Raises:
            InvalidAccountError: 参数不合法
            DuplicateIdentityError: 账号已存在
            BackendProvisionError: 某个后端失败，之前的步骤已回滚
        """

        self.validate(identity, credential, duration_days)
        with self._lock:
            if self.registry.get_account(identity) is not None:
                raise DuplicateIdentityError(identity)

            expire_date = self._expiry(duration_days)
            digest = hash_credential(credential, rounds=self.bcrypt_rounds)
            context = ProvisionContext(domain=self.account_domain(identity))
            completed: List[BackendAdapter] = []

            for adapter in self.adapters:
                try:
                    self._call(adapter, "provision", identity, credential, context)
                except Exception as exc:  # noqa: BLE001 - adapters are opaque collaborators
                    LOGGER.error(
                        "Provisioning failed; rolling back",
                        extra={"identity": identity, "backend": adapter.name, "error": str(exc)},
                    )
                    failures = self._compensate(identity, completed)
                    log_action("AddUser", f"Failed to add user {identity} at {adapter.name}: {exc}")
                    raise BackendProvisionError(adapter.name, exc, failures) from exc
                completed.append(adapter)

            account = Account(
                username=identity,
                password_digest=digest,
                expire_date=expire_date,
                protocols=tuple(adapter.name for adapter in completed),
            )
            self.registry.add_account(account)
            log_action(
                "AddUser", f"Added user {identity} with expiration {account.expire_date.isoformat()}"
            )
            return AddResult(account=account, persistence_error=self._persist())

    def remove_account(self, identity: str) -> RemovalResult:
        """删除账号。Tear down every recorded backend and drop the record regardless.

        Raises:
            AccountNotFoundError: 账号不存在（登记表保持不变）
        """

        with self._lock:
            account = self.registry.get_account(identity)
            if account is None:
                raise AccountNotFoundError(identity)

            outcomes: List[BackendOutcome] = []
            for name in reversed(account.protocols):
                adapter = self._by_name.get(name)
                if adapter is None:
                    outcomes.append(BackendOutcome(name, VPSAccessError(f"no adapter configured for {name}")))
                    continue
                try:
                    self._call(adapter, "deprovision", identity)
                except Exception as exc:  # noqa: BLE001 - collect every failure, keep going
                    LOGGER.warning(
                        "Deprovision failed",
                        extra={"identity": identity, "backend": name, "error": str(exc)},
                    )
                    outcomes.append(BackendOutcome(name, exc))
                else:
                    outcomes.append(BackendOutcome(name))

            self.registry.remove_account(identity)
            result = RemovalResult(identity, account, outcomes, self._persist())
            failed = [f.backend for f in result.failures]
            if failed:
                log_action("RemoveUser", f"Removed user {identity}; leftovers on {', '.join(failed)}")
            else:
                log_action("RemoveUser", f"Removed user {identity}")
            return result
