"""HTTP 基础认证代理。nginx reverse proxy guarded by HTTP basic auth."""

from __future__ import annotations

import textwrap
from pathlib import PurePosixPath

from ..config.defaults import DEFAULT_HTTP_PORT, DEFAULT_NGINX_CONF_DIR, DEFAULT_NGINX_HTPASSWD, DEFAULT_UPSTREAM
from ..locks import ResourceLocks
from ..logging_utils import get_logger
from ..runner import CommandRunner
from .base import CommandBackend, ProvisionContext
from .htpasswd import add_htpasswd_user, remove_htpasswd_user

LOGGER = get_logger(__name__)


def render_http_server(port: int, domain: str, passwd_file: str, upstream: str = DEFAULT_UPSTREAM) -> str:
    return textwrap.dedent(
        f"""\
        server {{
            listen {port};
            server_name {domain};

            location / {{
                proxy_pass {upstream};
                proxy_set_header Host $http_host;
                proxy_set_header X-Real-IP $remote_addr;
                auth_basic "Restricted Access";
                auth_basic_user_file {passwd_file};
            }}
        }}
        """
    )


class HTTPBackend(CommandBackend):
    name = "http"

    def __init__(
        self,
        runner: CommandRunner,
        locks: ResourceLocks | None = None,
        *,
        port: int = DEFAULT_HTTP_PORT,
        conf_dir: str = DEFAULT_NGINX_CONF_DIR,
        passwd_file: str = DEFAULT_NGINX_HTPASSWD,
        upstream: str = DEFAULT_UPSTREAM,
    ):
        super().__init__(runner, locks)
        self.port = port
        self.conf_dir = PurePosixPath(conf_dir)
        self.passwd_file = passwd_file
        self.upstream = upstream

    def config_path(self, identity: str) -> str:
        return str(self.conf_dir / f"{identity}_http.conf")

    def provision(self, identity: str, credential: str, context: ProvisionContext) -> None:
        path = self.config_path(identity)
        self.runner.write_text(path, render_http_server(self.port, context.domain, self.passwd_file, self.upstream))
        try:
            add_htpasswd_user(self.runner, self.locks, self.passwd_file, identity, credential)
        except Exception:
            self.runner.remove(path)
            raise
        LOGGER.info("HTTP proxy enabled", extra={"identity": identity, "domain": context.domain})

    def deprovision(self, identity: str) -> None:
        self.runner.remove(self.config_path(identity))
        remove_htpasswd_user(self.runner, self.locks, self.passwd_file, identity)
