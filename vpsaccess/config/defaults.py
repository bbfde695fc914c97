"""Project-wide default values for vps-access-manager.

These constants mirror the paths and ports a stock VPS image uses for each
access backend. Keeping them centralized makes it easier to audit and adjust
defaults without touching the adapters.
"""

DEFAULT_CONFIG_PATH = "config.json"
DEFAULT_LOG_PATH = "/var/log/vpsaccess/vpsaccess.log"
DEFAULT_DB_PATH = "/var/lib/vpsaccess/users.json"

# SSH / dropbear
DEFAULT_SSH_PORT = 22
DEFAULT_DROPBEAR_PORT = 109
DEFAULT_DROPBEAR_ALLOWLIST = "/etc/dropbear/allowed_users"
DEFAULT_LOGIN_SHELL = "/bin/false"

# Xray 相关默认配置
DEFAULT_XRAY_PORT = 443
DEFAULT_XRAY_CONFIG_PATH = "/etc/xray/config.json"
DEFAULT_XRAY_SERVICE = "xray"
XRAY_CLIENT_PROTOCOLS = ("vmess", "vless")

# TLS 相关默认配置
DEFAULT_TLS_CERT_DIR = "/etc/ssl/certs"
DEFAULT_TLS_KEY_DIR = "/etc/ssl/private"
DEFAULT_TLS_VALID_DAYS = 365

# nginx fronted backends
DEFAULT_WEBSOCKET_PORT = 8443
DEFAULT_HTTP_PORT = 8080
DEFAULT_NGINX_CONF_DIR = "/etc/nginx/conf.d"
DEFAULT_NGINX_HTPASSWD = "/etc/nginx/.htpasswd"
DEFAULT_UPSTREAM = "http://127.0.0.1:10000"

DEFAULT_SQUID_PORT = 3128
DEFAULT_SQUID_PASSWD = "/etc/squid/passwd"

DEFAULT_UDP_PORT = 7300
DEFAULT_UDP_CONFIG_DIR = "/etc/udp"
DEFAULT_UDP_TIMEOUT = 300
DEFAULT_UDP_BUFFER_SIZE = 65535

DEFAULT_COMMAND_TIMEOUT = 120
DEFAULT_BCRYPT_ROUNDS = 12
DEFAULT_SWEEP_INTERVAL = 3600
