"""Xray 多路复用入站代理。Multiplexed inbound proxy (vmess/vless) clients."""

from __future__ import annotations

import json
import uuid
from typing import Any

from ..config.defaults import DEFAULT_XRAY_CONFIG_PATH, DEFAULT_XRAY_PORT, DEFAULT_XRAY_SERVICE, XRAY_CLIENT_PROTOCOLS
from ..errors import VPSAccessError
from ..locks import ResourceLocks
from ..logging_utils import get_logger
from ..runner import CommandRunner
from .base import CommandBackend, ProvisionContext

LOGGER = get_logger(__name__)


def generate_client_id() -> str:
    """生成客户端 UUID。Generate an Xray client UUID."""

    return str(uuid.uuid4())


def _client_inbounds(config: dict[str, Any]) -> list[dict[str, Any]]:
    return [
        inbound
        for inbound in config.get("inbounds", [])
        if isinstance(inbound, dict) and inbound.get("protocol") in XRAY_CLIENT_PROTOCOLS
    ]


def add_client(config: dict[str, Any], identity: str, client_id: str) -> int:
    """Register ``identity`` on every vmess/vless inbound; return how many were touched."""

    touched = 0
    for inbound in _client_inbounds(config):
        settings = inbound.setdefault("settings", {})
        clients = [c for c in settings.get("clients", []) if c.get("email") != identity]
        clients.append({"id": client_id, "email": identity})
        settings["clients"] = clients
        touched += 1
    return touched


def remove_client(config: dict[str, Any], identity: str) -> int:
    """Drop every client whose email is ``identity``; return how many went."""

    removed = 0
    for inbound in _client_inbounds(config):
        settings = inbound.get("settings") or {}
        clients = settings.get("clients", [])
        kept = [c for c in clients if c.get("email") != identity]
        removed += len(clients) - len(kept)
        settings["clients"] = kept
    return removed


class XrayBackend(CommandBackend):
    name = "xray"

    def __init__(
        self,
        runner: CommandRunner,
        locks: ResourceLocks | None = None,
        *,
        port: int = DEFAULT_XRAY_PORT,
        config_path: str = DEFAULT_XRAY_CONFIG_PATH,
        service: str = DEFAULT_XRAY_SERVICE,
    ):
        super().__init__(runner, locks)
        self.port = port
        self.config_path = config_path
        self.service = service

    def _load(self) -> dict[str, Any]:
        try:
            return json.loads(self.runner.read_text(self.config_path))
        except json.JSONDecodeError as exc:
            raise VPSAccessError(f"invalid Xray config {self.config_path}: {exc}") from exc

    def _save(self, config: dict[str, Any]) -> None:
        self.runner.write_text(self.config_path, json.dumps(config, indent=4, ensure_ascii=False), mode=0o600)

    def restart_service(self) -> None:
        LOGGER.info("Restarting Xray", extra={"service": self.service})
        self.runner.run(["systemctl", "restart", self.service])

    def provision(self, identity: str, credential: str, context: ProvisionContext) -> None:
        client_id = generate_client_id()
        with self.locks.exclusive(self.config_path):
            config = self._load()
            if not add_client(config, identity, client_id):
                raise VPSAccessError(f"no vmess/vless inbound in {self.config_path}")
            self._save(config)
            try:
                self.restart_service()
            except Exception:
                remove_client(config, identity)
                try:
                    self._save(config)
                except Exception as cleanup_exc:  # noqa: BLE001 - keep the original failure
                    LOGGER.warning("Xray config rollback failed", extra={"identity": identity, "error": str(cleanup_exc)})
                raise
        LOGGER.info("Xray client added", extra={"identity": identity, "port": self.port})

    def deprovision(self, identity: str) -> None:
        with self.locks.exclusive(self.config_path):
            if not self.runner.exists(self.config_path):
                return
            config = self._load()
            if not remove_client(config, identity):
                return
            self._save(config)
            self.restart_service()
        LOGGER.info("Xray client removed", extra={"identity": identity})
