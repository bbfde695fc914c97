from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath

from ..config.defaults import DEFAULT_TLS_CERT_DIR, DEFAULT_TLS_KEY_DIR, DEFAULT_TLS_VALID_DAYS
from ..locks import ResourceLocks
from ..logging_utils import get_logger
from ..runner import CommandRunner
from .base import CommandBackend, ProvisionContext

LOGGER = get_logger(__name__)


@dataclass
class TLSCertInfo:
    cert_path: PurePosixPath
    key_path: PurePosixPath


class SSLBackend(CommandBackend):
    """Per-account self-signed certificate for the account's virtual host.

    Later steps (the WebSocket server block) reference the files produced
    here, so this backend must run before them.
    """

    name = "ssl"

    def __init__(
        self,
        runner: CommandRunner,
        locks: ResourceLocks | None = None,
        *,
        cert_dir: str = DEFAULT_TLS_CERT_DIR,
        key_dir: str = DEFAULT_TLS_KEY_DIR,
        valid_days: int = DEFAULT_TLS_VALID_DAYS,
    ):
        super().__init__(runner, locks)
        self.cert_dir = PurePosixPath(cert_dir)
        self.key_dir = PurePosixPath(key_dir)
        self.valid_days = valid_days

    def paths_for(self, identity: str) -> TLSCertInfo:
        return TLSCertInfo(
            cert_path=self.cert_dir / f"{identity}.crt",
            key_path=self.key_dir / f"{identity}.key",
        )

    def provision(self, identity: str, credential: str, context: ProvisionContext) -> None:
        info = self.paths_for(identity)
        commands = [
            ["mkdir", "-p", str(self.cert_dir), str(self.key_dir)],
            [
                "openssl", "req", "-x509", "-nodes",
                "-days", str(self.valid_days),
                "-newkey", "rsa:2048",
                "-keyout", str(info.key_path),
                "-out", str(info.cert_path),
                "-subj", f"/CN={context.domain}/O=VPS Manager",
            ],
            ["chmod", "600", str(info.key_path)],
            ["chmod", "644", str(info.cert_path)],
        ]
        try:
            for command in commands:
                self.runner.run(command)
        except Exception:
            try:
                self.deprovision(identity)
            except Exception as cleanup_exc:  # noqa: BLE001 - keep the original failure
                LOGGER.warning("Certificate cleanup failed", extra={"identity": identity, "error": str(cleanup_exc)})
            raise
        LOGGER.info("Self-signed certificate generated", extra={"identity": identity, "domain": context.domain})

    def deprovision(self, identity: str) -> None:
        info = self.paths_for(identity)
        self.runner.remove(str(info.cert_path))
        self.runner.remove(str(info.key_path))
