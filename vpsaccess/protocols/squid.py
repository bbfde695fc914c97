from __future__ import annotations

from ..config.defaults import DEFAULT_SQUID_PASSWD, DEFAULT_SQUID_PORT
from ..locks import ResourceLocks
from ..logging_utils import get_logger
from ..runner import CommandRunner
from .base import CommandBackend, ProvisionContext
from .htpasswd import add_htpasswd_user, remove_htpasswd_user

LOGGER = get_logger(__name__)


class SquidBackend(CommandBackend):
    """Forward proxy account in squid's ``basic_ncsa_auth`` password file."""

    name = "squid"

    def __init__(
        self,
        runner: CommandRunner,
        locks: ResourceLocks | None = None,
        *,
        port: int = DEFAULT_SQUID_PORT,
        passwd_file: str = DEFAULT_SQUID_PASSWD,
    ):
        super().__init__(runner, locks)
        self.port = port
        self.passwd_file = passwd_file

    def provision(self, identity: str, credential: str, context: ProvisionContext) -> None:
        add_htpasswd_user(self.runner, self.locks, self.passwd_file, identity, credential)
        LOGGER.info("Squid user added", extra={"identity": identity, "port": self.port})

    def deprovision(self, identity: str) -> None:
        remove_htpasswd_user(self.runner, self.locks, self.passwd_file, identity)
