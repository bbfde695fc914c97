"""Dropbear 轻量 SSH 守护进程。Dropbear lightweight SSH daemon."""

from __future__ import annotations

from ..config.defaults import DEFAULT_DROPBEAR_ALLOWLIST, DEFAULT_DROPBEAR_PORT, DEFAULT_LOGIN_SHELL
from ..locks import ResourceLocks
from ..logging_utils import get_logger
from ..runner import CommandRunner
from .base import CommandBackend, ProvisionContext
from .ssh import ACCOUNT_DB, create_system_user, delete_system_user

LOGGER = get_logger(__name__)


class DropbearBackend(CommandBackend):
    """Dropbear authenticates against system accounts.

    The account normally exists already (the ``ssh`` step created it); it is
    only created here when missing. Access is granted through one shared
    allow-list file, one identity per line.
    """

    name = "dropbear"

    def __init__(
        self,
        runner: CommandRunner,
        locks: ResourceLocks | None = None,
        *,
        port: int = DEFAULT_DROPBEAR_PORT,
        allowlist_path: str = DEFAULT_DROPBEAR_ALLOWLIST,
        shell: str = DEFAULT_LOGIN_SHELL,
    ):
        super().__init__(runner, locks)
        self.port = port
        self.allowlist_path = allowlist_path
        self.shell = shell

    def _allowed(self) -> list[str]:
        if not self.runner.exists(self.allowlist_path):
            return []
        return [line.strip() for line in self.runner.read_text(self.allowlist_path).splitlines() if line.strip()]

    def provision(self, identity: str, credential: str, context: ProvisionContext) -> None:
        with self.locks.exclusive(ACCOUNT_DB):
            if not self._user_exists(identity):
                create_system_user(self.runner, identity, credential, self.shell)

        with self.locks.exclusive(self.allowlist_path):
            allowed = self._allowed()
            if identity not in allowed:
                allowed.append(identity)
                self.runner.write_text(self.allowlist_path, "".join(f"{name}\n" for name in allowed), mode=0o640)
        LOGGER.info("Dropbear access granted", extra={"identity": identity, "port": self.port})

    def deprovision(self, identity: str) -> None:
        self._remove_lines(self.allowlist_path, lambda line: line.strip() == identity)
        with self.locks.exclusive(ACCOUNT_DB):
            delete_system_user(self.runner, identity)
        LOGGER.info("Dropbear access revoked", extra={"identity": identity})
