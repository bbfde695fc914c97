"""配置文件加载与校验。Configuration document loading and validation."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from ..errors import ConfigError
from . import defaults

ENV_KEYS = (
    "VPSACCESS_CONFIG",
    "VPS_MANAGER_CONFIG",
)

# bcrypt.gensalt accepts cost factors 4-31.
BCRYPT_MIN_ROUNDS = 4
BCRYPT_MAX_ROUNDS = 31


@dataclass(frozen=True)
class PortSettings:
    """Backend bound to a listen port with one configuration artifact."""

    port: int
    config_path: str


@dataclass(frozen=True)
class SSLSettings:
    cert_dir: str = defaults.DEFAULT_TLS_CERT_DIR
    key_dir: str = defaults.DEFAULT_TLS_KEY_DIR
    valid_days: int = defaults.DEFAULT_TLS_VALID_DAYS


@dataclass(frozen=True)
class HTTPSettings:
    port: int = defaults.DEFAULT_HTTP_PORT
    config_path: str = defaults.DEFAULT_NGINX_CONF_DIR
    passwd_file: str = defaults.DEFAULT_NGINX_HTPASSWD
    upstream: str = defaults.DEFAULT_UPSTREAM


@dataclass(frozen=True)
class SquidSettings:
    port: int = defaults.DEFAULT_SQUID_PORT
    passwd_file: str = defaults.DEFAULT_SQUID_PASSWD


@dataclass(frozen=True)
class RemoteSettings:
    """SSH target used when backends live on another host."""

    host: str
    username: str = "root"
    key_path: Optional[str] = None
    port: int = 22


@dataclass(frozen=True)
class ProtocolSettings:
    ssh: int = defaults.DEFAULT_SSH_PORT
    xray: PortSettings = field(
        default_factory=lambda: PortSettings(defaults.DEFAULT_XRAY_PORT, defaults.DEFAULT_XRAY_CONFIG_PATH)
    )
    websocket: PortSettings = field(
        default_factory=lambda: PortSettings(defaults.DEFAULT_WEBSOCKET_PORT, defaults.DEFAULT_NGINX_CONF_DIR)
    )
    ssl: SSLSettings = field(default_factory=SSLSettings)
    http: HTTPSettings = field(default_factory=HTTPSettings)
    squid: SquidSettings = field(default_factory=SquidSettings)
    udp: PortSettings = field(
        default_factory=lambda: PortSettings(defaults.DEFAULT_UDP_PORT, defaults.DEFAULT_UDP_CONFIG_DIR)
    )
    dropbear: PortSettings = field(
        default_factory=lambda: PortSettings(defaults.DEFAULT_DROPBEAR_PORT, defaults.DEFAULT_DROPBEAR_ALLOWLIST)
    )


@dataclass(frozen=True)
class Settings:
    """Everything the orchestrator and its adapters need at start-up."""

    domain: str
    log_path: str = defaults.DEFAULT_LOG_PATH
    db_path: str = defaults.DEFAULT_DB_PATH
    protocols: ProtocolSettings = field(default_factory=ProtocolSettings)
    remote: Optional[RemoteSettings] = None
    command_timeout: int = defaults.DEFAULT_COMMAND_TIMEOUT
    step_timeout: Optional[float] = None
    bcrypt_rounds: int = defaults.DEFAULT_BCRYPT_ROUNDS


def _parse_port(value: Any, *, source: str) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{source} must be an integer port, got {value!r}") from exc

    if not 1 <= port <= 65535:
        raise ConfigError(f"{source} = {port} is outside the valid range (1-65535)")
    return port


def _parse_int(value: Any, *, source: str, minimum: int, maximum: int | None = None) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{source} must be an integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{source} must be an integer, got {value!r}") from exc

    if number < minimum or (maximum is not None and number > maximum):
        bound = f">= {minimum}" if maximum is None else f"{minimum}-{maximum}"
        raise ConfigError(f"{source} = {number} is outside the valid range ({bound})")
    return number


def _section(data: Mapping[str, Any], key: str, *, source: str) -> Mapping[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"{source}.{key} must be an object")
    return value


def _port_section(
    protocols: Mapping[str, Any], name: str, default_port: int, default_path: str, path_key: str = "config_path"
) -> PortSettings:
    section = _section(protocols, name, source="protocols")
    return PortSettings(
        port=_parse_port(section.get("port", default_port), source=f"protocols.{name}.port"),
        config_path=str(section.get(path_key) or default_path),
    )


def _parse_protocols(protocols: Mapping[str, Any]) -> ProtocolSettings:
    ssh = _section(protocols, "ssh", source="protocols")
    ssl = _section(protocols, "ssl", source="protocols")
    http = _section(protocols, "http", source="protocols")
    squid = _section(protocols, "squid", source="protocols")

    return ProtocolSettings(
        ssh=_parse_port(ssh.get("port", defaults.DEFAULT_SSH_PORT), source="protocols.ssh.port"),
        xray=_port_section(protocols, "xray", defaults.DEFAULT_XRAY_PORT, defaults.DEFAULT_XRAY_CONFIG_PATH),
        websocket=_port_section(
            protocols, "websocket", defaults.DEFAULT_WEBSOCKET_PORT, defaults.DEFAULT_NGINX_CONF_DIR
        ),
        ssl=SSLSettings(
            cert_dir=str(ssl.get("cert_dir") or defaults.DEFAULT_TLS_CERT_DIR),
            key_dir=str(ssl.get("key_dir") or defaults.DEFAULT_TLS_KEY_DIR),
            valid_days=_parse_int(
                ssl.get("valid_days", defaults.DEFAULT_TLS_VALID_DAYS), source="protocols.ssl.valid_days", minimum=1
            ),
        ),
        http=HTTPSettings(
            port=_parse_port(http.get("port", defaults.DEFAULT_HTTP_PORT), source="protocols.http.port"),
            config_path=str(http.get("config_path") or defaults.DEFAULT_NGINX_CONF_DIR),
            passwd_file=str(http.get("passwd_file") or defaults.DEFAULT_NGINX_HTPASSWD),
            upstream=str(http.get("upstream") or defaults.DEFAULT_UPSTREAM),
        ),
        squid=SquidSettings(
            port=_parse_port(squid.get("port", defaults.DEFAULT_SQUID_PORT), source="protocols.squid.port"),
            passwd_file=str(squid.get("passwd_file") or defaults.DEFAULT_SQUID_PASSWD),
        ),
        udp=_port_section(protocols, "udp", defaults.DEFAULT_UDP_PORT, defaults.DEFAULT_UDP_CONFIG_DIR),
        dropbear=_port_section(
            protocols, "dropbear", defaults.DEFAULT_DROPBEAR_PORT, defaults.DEFAULT_DROPBEAR_ALLOWLIST
        ),
    )


def _parse_remote(data: Mapping[str, Any]) -> Optional[RemoteSettings]:
    remote = _section(data, "remote", source="config")
    if not remote:
        return None
    host = str(remote.get("host") or "").strip()
    if not host:
        raise ConfigError("remote.host is required when a remote block is present")
    return RemoteSettings(
        host=host,
        username=str(remote.get("username") or "root"),
        key_path=remote.get("key_path"),
        port=_parse_port(remote.get("port", 22), source="remote.port"),
    )


def settings_from_dict(data: Mapping[str, Any]) -> Settings:
    """从字典构建配置。Build :class:`Settings` from a decoded JSON document."""

    if not isinstance(data, Mapping):
        raise ConfigError("configuration document must be a JSON object")

    domain = str(data.get("domain") or "").strip().strip(".")
    if not domain:
        raise ConfigError("domain is required")

    step_timeout = data.get("step_timeout")
    if step_timeout is not None:
        try:
            step_timeout = float(step_timeout)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"step_timeout must be a number, got {step_timeout!r}") from exc
        if step_timeout <= 0:
            raise ConfigError("step_timeout must be positive")

    return Settings(
        domain=domain,
        log_path=str(data.get("log_path") or defaults.DEFAULT_LOG_PATH),
        db_path=str(data.get("db_path") or defaults.DEFAULT_DB_PATH),
        protocols=_parse_protocols(_section(data, "protocols", source="config")),
        remote=_parse_remote(data),
        command_timeout=_parse_int(
            data.get("command_timeout", defaults.DEFAULT_COMMAND_TIMEOUT), source="command_timeout", minimum=0
        ),
        step_timeout=step_timeout,
        bcrypt_rounds=_parse_int(
            data.get("bcrypt_rounds", defaults.DEFAULT_BCRYPT_ROUNDS),
            source="bcrypt_rounds",
            minimum=BCRYPT_MIN_ROUNDS,
            maximum=BCRYPT_MAX_ROUNDS,
        ),
    )


def resolve_config_path(explicit: str | os.PathLike[str] | None = None) -> Path:
    """Return the configuration path from the argument, the environment, or the default."""

    if explicit:
        return Path(explicit).expanduser()
    for key in ENV_KEYS:
        value = os.environ.get(key)
        if value:
            return Path(value).expanduser()
    return Path(defaults.DEFAULT_CONFIG_PATH)


def load_settings(path: str | os.PathLike[str] | None = None) -> Settings:
    """读取并校验配置文件。Load and validate the configuration document."""

    config_path = resolve_config_path(path)
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigError(f"configuration file not found: {config_path}") from exc
    except OSError as exc:
        raise ConfigError(f"cannot read configuration file {config_path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"invalid JSON in {config_path}: {exc}") from exc
    return settings_from_dict(data)
