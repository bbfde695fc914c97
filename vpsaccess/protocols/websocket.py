"""WebSocket 隧道（nginx TLS 终结）。WebSocket tunnel behind an nginx TLS server block."""

from __future__ import annotations

import textwrap
from pathlib import PurePosixPath

from ..config.defaults import DEFAULT_NGINX_CONF_DIR, DEFAULT_UPSTREAM, DEFAULT_WEBSOCKET_PORT
from ..locks import ResourceLocks
from ..logging_utils import get_logger
from ..runner import CommandRunner
from .base import CommandBackend, ProvisionContext
from .ssl import SSLBackend

LOGGER = get_logger(__name__)

TLS_CIPHERS = (
    "ECDHE-ECDSA-AES128-GCM-SHA256:ECDHE-RSA-AES128-GCM-SHA256:"
    "ECDHE-ECDSA-AES256-GCM-SHA384:ECDHE-RSA-AES256-GCM-SHA384:"
    "ECDHE-ECDSA-CHACHA20-POLY1305:ECDHE-RSA-CHACHA20-POLY1305:"
    "DHE-RSA-AES128-GCM-SHA256:DHE-RSA-AES256-GCM-SHA384"
)


def render_websocket_server(
    port: int, domain: str, cert_path: str, key_path: str, upstream: str = DEFAULT_UPSTREAM
) -> str:
    """生成 nginx WebSocket server 块。Render the nginx server block for one account."""

    return textwrap.dedent(
        f"""\
        server {{
            listen {port} ssl;
            server_name {domain};

            ssl_certificate {cert_path};
            ssl_certificate_key {key_path};
            ssl_protocols TLSv1.2 TLSv1.3;
            ssl_ciphers {TLS_CIPHERS};

            location /ws {{
                proxy_pass {upstream};
                proxy_http_version 1.1;
                proxy_set_header Upgrade $http_upgrade;
                proxy_set_header Connection "upgrade";
                proxy_set_header Host $http_host;
                proxy_set_header X-Real-IP $remote_addr;
                proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
                proxy_set_header X-Forwarded-Proto $scheme;
            }}
        }}
        """
    )


class WebSocketBackend(CommandBackend):
    name = "websocket"

    def __init__(
        self,
        runner: CommandRunner,
        locks: ResourceLocks | None = None,
        *,
        tls: SSLBackend,
        port: int = DEFAULT_WEBSOCKET_PORT,
        conf_dir: str = DEFAULT_NGINX_CONF_DIR,
        upstream: str = DEFAULT_UPSTREAM,
    ):
        super().__init__(runner, locks)
        self.tls = tls
        self.port = port
        self.conf_dir = PurePosixPath(conf_dir)
        self.upstream = upstream

    def config_path(self, identity: str) -> str:
        return str(self.conf_dir / f"{identity}_websocket.conf")

    def provision(self, identity: str, credential: str, context: ProvisionContext) -> None:
        certs = self.tls.paths_for(identity)
        content = render_websocket_server(
            self.port, context.domain, str(certs.cert_path), str(certs.key_path), self.upstream
        )
        self.runner.write_text(self.config_path(identity), content)
        LOGGER.info("WebSocket server block written", extra={"identity": identity, "domain": context.domain})

    def deprovision(self, identity: str) -> None:
        self.runner.remove(self.config_path(identity))
