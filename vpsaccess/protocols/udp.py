"""UDP 隧道配置生成器。Per-account UDP tunnel configuration."""

from __future__ import annotations

import json
from pathlib import PurePosixPath
from typing import Any

from ..config.defaults import DEFAULT_UDP_BUFFER_SIZE, DEFAULT_UDP_CONFIG_DIR, DEFAULT_UDP_PORT, DEFAULT_UDP_TIMEOUT
from ..locks import ResourceLocks
from ..logging_utils import get_logger
from ..runner import CommandRunner
from .base import CommandBackend, ProvisionContext

LOGGER = get_logger(__name__)


def generate_udp_config(port: int, identity: str, credential: str) -> dict[str, Any]:
    """生成 UDP 隧道配置。Build the UDP tunnel config for one account."""

    return {
        "listen": f":{port}",
        "users": {identity: credential},
        "timeout": DEFAULT_UDP_TIMEOUT,
        "buffer_size": DEFAULT_UDP_BUFFER_SIZE,
    }


class UDPBackend(CommandBackend):
    name = "udp"

    def __init__(
        self,
        runner: CommandRunner,
        locks: ResourceLocks | None = None,
        *,
        port: int = DEFAULT_UDP_PORT,
        config_dir: str = DEFAULT_UDP_CONFIG_DIR,
    ):
        super().__init__(runner, locks)
        self.port = port
        self.config_dir = PurePosixPath(config_dir)

    def config_path(self, identity: str) -> str:
        return str(self.config_dir / f"{identity}.json")

    def provision(self, identity: str, credential: str, context: ProvisionContext) -> None:
        config = generate_udp_config(self.port, identity, credential)
        # The tunnel daemon needs the clear-text secret, so the file stays root-only.
        self.runner.write_text(self.config_path(identity), json.dumps(config, indent=4), mode=0o600)
        LOGGER.info("UDP config written", extra={"identity": identity, "port": self.port})

    def deprovision(self, identity: str) -> None:
        self.runner.remove(self.config_path(identity))
