"""账号登记表。Durable account registry backed by one JSON file."""

from __future__ import annotations

import json
import os
import tempfile
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .errors import AccountNotFoundError, DuplicateIdentityError, PersistenceError
from .logging_utils import get_logger

LOGGER = get_logger(__name__)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class Account:
    """账号记录。Account record.

    ``password_digest`` is a bcrypt digest; the clear-text credential is never
    stored. ``protocols`` lists exactly the backends that were provisioned.
    """

    username: str
    password_digest: str
    expire_date: datetime
    protocols: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "expire_date", _as_utc(self.expire_date))
        object.__setattr__(self, "protocols", tuple(self.protocols))

    def is_expired(self, now: datetime) -> bool:
        return self.expire_date <= _as_utc(now)

    def to_dict(self) -> dict[str, Any]:
        """转换为字典。Convert to dictionary."""
        return {
            "username": self.username,
            "password_digest": self.password_digest,
            "expire_date": self.expire_date.isoformat(),
            "protocols": list(self.protocols),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Account:
        """从字典创建。Create from dictionary."""
        protocols = data.get("protocols") or []
        if not isinstance(protocols, list) or not all(isinstance(name, str) for name in protocols):
            raise TypeError(f"protocols must be a list of backend names, got {protocols!r}")
        return cls(
            username=data["username"],
            password_digest=data["password_digest"],
            expire_date=datetime.fromisoformat(data["expire_date"]),
            protocols=tuple(protocols),
        )


class AccountRegistry:
    """账号登记表。In-memory account collection mirrored to ``path``.

    The registry is a plain keyed collection in insertion order. User-facing
    "not found" semantics for removal belong to the orchestrator; here a
    missing identity is simply ``None``.
    """

    def __init__(self, path: str | os.PathLike[str]):
        self.path = Path(path)
        self._accounts: list[Account] = []
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._accounts)

    def __contains__(self, identity: object) -> bool:
        return isinstance(identity, str) and self.get_account(identity) is not None

    def _index(self, identity: str) -> int | None:
        for idx, account in enumerate(self._accounts):
            if account.username == identity:
                return idx
        return None

    def load(self) -> None:
        """加载登记表。Load the registry; a missing file means no accounts yet."""
        with self._lock:
            try:
                raw = self.path.read_text(encoding="utf-8")
            except FileNotFoundError:
                self._accounts = []
                return
            except OSError as exc:
                raise PersistenceError(f"cannot read registry {self.path}: {exc}", exc) from exc

            try:
                data = json.loads(raw) if raw.strip() else []
                if not isinstance(data, list):
                    raise ValueError("top-level value must be a list")
                accounts = [Account.from_dict(item) for item in data]
            except (ValueError, KeyError, TypeError) as exc:
                raise PersistenceError(f"corrupt registry {self.path}: {exc}", exc) from exc

            seen: set[str] = set()
            for account in accounts:
                if account.username in seen:
                    raise PersistenceError(f"corrupt registry {self.path}: duplicate {account.username}")
                seen.add(account.username)

            self._accounts = accounts
            LOGGER.info("Registry loaded", extra={"path": str(self.path), "accounts": len(accounts)})

    def save(self) -> None:
        """原子保存。Write the snapshot atomically (temp file, fsync, rename)."""
        with self._lock:
            payload = json.dumps([a.to_dict() for a in self._accounts], indent=4, ensure_ascii=False)
            tmp_name: str | None = None
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp"
                )
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                    handle.write("\n")
                    handle.flush()
                    os.fsync(handle.fileno())
                os.chmod(tmp_name, 0o600)
                os.replace(tmp_name, self.path)
                tmp_name = None
            except OSError as exc:
                raise PersistenceError(f"cannot write registry {self.path}: {exc}", exc) from exc
            finally:
                if tmp_name is not None:
                    Path(tmp_name).unlink(missing_ok=True)

    def add_account(self, account: Account) -> None:
        """添加账号。Add account; identities are unique."""
        with self._lock:
            if self._index(account.username) is not None:
                raise DuplicateIdentityError(account.username)
            self._accounts.append(account)

    def replace_account(self, account: Account) -> None:
        """替换账号。Swap in a new version of an existing record, keeping its position."""
        with self._lock:
            idx = self._index(account.username)
            if idx is None:
                raise AccountNotFoundError(account.username)
            self._accounts[idx] = account

    def remove_account(self, identity: str) -> Account | None:
        """删除账号。Remove account; returns ``None`` if it was not there."""
        with self._lock:
            idx = self._index(identity)
            if idx is None:
                return None
            return self._accounts.pop(idx)

    def get_account(self, identity: str) -> Account | None:
        """根据用户名获取账号。Get account by identity."""
        with self._lock:
            idx = self._index(identity)
            return None if idx is None else self._accounts[idx]

    def get_all_accounts(self) -> list[Account]:
        """获取所有账号。Snapshot of every account in insertion order."""
        with self._lock:
            return self._accounts.copy()

    def get_expired_accounts(self, now: datetime) -> list[Account]:
        """获取已过期账号。Accounts whose expiry is at or before ``now``."""
        with self._lock:
            return [a for a in self._accounts if a.is_expired(now)]
