"""访问协议后端。Access-protocol backends driven by the provisioning saga.

``build_adapters`` returns the backends in saga order: the system account
first, the certificate before the TLS server block that references it, and
dropbear last since it reuses the system account.
"""

from __future__ import annotations

from typing import List

from ..config.settings import Settings
from ..locks import ResourceLocks
from ..runner import CommandRunner
from .base import BackendAdapter, CommandBackend, ProvisionContext
from .dropbear import DropbearBackend
from .http import HTTPBackend
from .squid import SquidBackend
from .ssh import SSHBackend
from .ssl import SSLBackend, TLSCertInfo
from .udp import UDPBackend
from .websocket import WebSocketBackend
from .xray import XrayBackend

BACKEND_ORDER = ("ssh", "xray", "ssl", "websocket", "http", "squid", "udp", "dropbear")


def build_adapters(
    settings: Settings, runner: CommandRunner, locks: ResourceLocks | None = None
) -> List[BackendAdapter]:
    """Construct every backend from ``settings`` sharing one runner and lock table."""

    if locks is None:
        locks = ResourceLocks()
    protocols = settings.protocols
    tls = SSLBackend(
        runner,
        locks,
        cert_dir=protocols.ssl.cert_dir,
        key_dir=protocols.ssl.key_dir,
        valid_days=protocols.ssl.valid_days,
    )
    return [
        SSHBackend(runner, locks, port=protocols.ssh),
        XrayBackend(runner, locks, port=protocols.xray.port, config_path=protocols.xray.config_path),
        tls,
        WebSocketBackend(
            runner,
            locks,
            tls=tls,
            port=protocols.websocket.port,
            conf_dir=protocols.websocket.config_path,
            upstream=protocols.http.upstream,
        ),
        HTTPBackend(
            runner,
            locks,
            port=protocols.http.port,
            conf_dir=protocols.http.config_path,
            passwd_file=protocols.http.passwd_file,
            upstream=protocols.http.upstream,
        ),
        SquidBackend(runner, locks, port=protocols.squid.port, passwd_file=protocols.squid.passwd_file),
        UDPBackend(runner, locks, port=protocols.udp.port, config_dir=protocols.udp.config_path),
        DropbearBackend(runner, locks, port=protocols.dropbear.port, allowlist_path=protocols.dropbear.config_path),
    ]


__all__ = [
    "BACKEND_ORDER",
    "BackendAdapter",
    "CommandBackend",
    "DropbearBackend",
    "HTTPBackend",
    "ProvisionContext",
    "SSHBackend",
    "SSLBackend",
    "SquidBackend",
    "TLSCertInfo",
    "UDPBackend",
    "WebSocketBackend",
    "XrayBackend",
    "build_adapters",
]
