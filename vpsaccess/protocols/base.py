"""后端适配器契约。Contract every access backend exposes to the orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from ..locks import ResourceLocks
from ..runner import CommandRunner


@dataclass(frozen=True)
class ProvisionContext:
    """Per-account facts shared by every saga step."""

    domain: str
    extra: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class BackendAdapter(Protocol):
    """One network-access backend.

    ``provision`` raises on failure and leaves no partial artifact behind where
    it can help it. ``deprovision`` must succeed when the account is already
    absent so compensation and repeated removals stay harmless.
    """

    name: str

    def provision(self, identity: str, credential: str, context: ProvisionContext) -> None: ...

    def deprovision(self, identity: str) -> None: ...


class CommandBackend:
    """Shared plumbing for adapters that drive a :class:`CommandRunner`."""

    name = "base"

    def __init__(self, runner: CommandRunner, locks: ResourceLocks | None = None):
        self.runner = runner
        self.locks = locks if locks is not None else ResourceLocks()

    def _user_exists(self, identity: str) -> bool:
        return self.runner.run(["id", "-u", identity], check=False).ok

    def _remove_lines(self, path: str, predicate) -> bool:
        """Drop lines matching ``predicate`` from a shared file; return whether any went."""

        with self.locks.exclusive(path):
            if not self.runner.exists(path):
                return False
            lines = self.runner.read_text(path).splitlines()
            kept = [line for line in lines if not predicate(line)]
            if len(kept) == len(lines):
                return False
            self.runner.write_text(path, "".join(f"{line}\n" for line in kept), mode=0o640)
            return True

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"
