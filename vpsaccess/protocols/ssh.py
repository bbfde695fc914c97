"""SSH 系统账号。System accounts for OpenSSH tunnelling."""

from __future__ import annotations

from ..config.defaults import DEFAULT_LOGIN_SHELL, DEFAULT_SSH_PORT
from ..errors import CommandError
from ..locks import ResourceLocks
from ..logging_utils import get_logger
from ..runner import CommandRunner
from .base import CommandBackend, ProvisionContext

LOGGER = get_logger(__name__)

# useradd/userdel take /etc/passwd locks of their own; serialising here keeps
# the existence check and the mutation together.
ACCOUNT_DB = "/etc/passwd"


def create_system_user(runner: CommandRunner, identity: str, credential: str, shell: str) -> None:
    """Create a login-less account and set its password through ``chpasswd`` stdin."""

    runner.run(["useradd", "-m", "-s", shell, identity])
    try:
        runner.run(["chpasswd"], input=f"{identity}:{credential}\n")
    except CommandError:
        runner.run(["userdel", "-r", identity], check=False)
        raise


def delete_system_user(runner: CommandRunner, identity: str) -> bool:
    if not runner.run(["id", "-u", identity], check=False).ok:
        return False
    result = runner.run(["userdel", "-r", identity], check=False)
    # 12: home directory could not be removed; the account itself is gone.
    if result.returncode not in (0, 12):
        raise CommandError(["userdel", "-r", identity], result.returncode, result.stderr)
    return True


class SSHBackend(CommandBackend):
    name = "ssh"

    def __init__(
        self,
        runner: CommandRunner,
        locks: ResourceLocks | None = None,
        *,
        port: int = DEFAULT_SSH_PORT,
        shell: str = DEFAULT_LOGIN_SHELL,
    ):
        super().__init__(runner, locks)
        self.port = port
        self.shell = shell

    def provision(self, identity: str, credential: str, context: ProvisionContext) -> None:
        with self.locks.exclusive(ACCOUNT_DB):
            create_system_user(self.runner, identity, credential, self.shell)
        LOGGER.info("System user created", extra={"identity": identity, "port": self.port})

    def deprovision(self, identity: str) -> None:
        with self.locks.exclusive(ACCOUNT_DB):
            removed = delete_system_user(self.runner, identity)
        if removed:
            LOGGER.info("System user removed", extra={"identity": identity})
