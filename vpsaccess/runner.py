"""Run backend commands and edit backend files, locally or over SSH."""

from __future__ import annotations

import os
import shlex
import socket
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional, Protocol, Sequence

import paramiko

from .config.defaults import DEFAULT_COMMAND_TIMEOUT
from .errors import CommandError, VPSAccessError
from .logging_utils import get_logger

LOGGER = get_logger(__name__)

TIMEOUT_RETURNCODE = 124


class SSHKeyLoadError(VPSAccessError):
    """Raised when a private key cannot be parsed."""


@dataclass
class CommandResult:
    """Outcome of one backend command."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner(Protocol):
    """Capability the backend adapters use to touch the target host."""

    def run(
        self, args: Sequence[str], *, input: Optional[str] = None, check: bool = True
    ) -> CommandResult: ...

    def read_text(self, path: str) -> str: ...

    def write_text(self, path: str, content: str, mode: int = 0o644) -> None: ...

    def remove(self, path: str) -> bool: ...

    def exists(self, path: str) -> bool: ...


class LocalRunner:
    """Execute commands with :mod:`subprocess` on the managing host itself."""

    def __init__(self, timeout: int = DEFAULT_COMMAND_TIMEOUT):
        self.timeout = timeout

    def run(
        self, args: Sequence[str], *, input: Optional[str] = None, check: bool = True
    ) -> CommandResult:
        argv = [str(arg) for arg in args]
        LOGGER.debug("Running command", extra={"command": argv[0]})
        try:
            proc = subprocess.run(
                argv,
                input=input,
                check=False,
                capture_output=True,
                text=True,
                timeout=self.timeout if self.timeout and self.timeout > 0 else None,
            )
        except subprocess.TimeoutExpired as exc:
            raise CommandError(argv, TIMEOUT_RETURNCODE, f"timed out after {exc.timeout}s") from exc
        except FileNotFoundError as exc:
            raise CommandError(argv, None, f"executable not found: {argv[0]}") from exc

        result = CommandResult(proc.returncode, proc.stdout or "", proc.stderr or "")
        if check and not result.ok:
            raise CommandError(argv, result.returncode, result.stderr or result.stdout)
        return result

    def read_text(self, path: str) -> str:
        return Path(path).read_text(encoding="utf-8")

    def write_text(self, path: str, content: str, mode: int = 0o644) -> None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(tmp_name, mode)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def remove(self, path: str) -> bool:
        try:
            Path(path).unlink()
        except FileNotFoundError:
            return False
        return True

    def exists(self, path: str) -> bool:
        return Path(path).exists()


def _candidate_keys() -> Iterable[type[paramiko.PKey]]:
    """Yield supported Paramiko key classes in preferred order."""

    return (paramiko.Ed25519Key, paramiko.ECDSAKey, paramiko.RSAKey)


def load_private_key(path: str | os.PathLike[str]) -> paramiko.PKey:
    """Load a private key from ``path``.

    Keys are attempted in the order Ed25519 → ECDSA → RSA. DSA keys are not
    supported; Paramiko 3.x removed ``DSSKey``.
    """

    key_path = Path(path).expanduser()
    if key_path.is_dir():
        raise SSHKeyLoadError(f"private key path is a directory: {key_path}")
    if not key_path.exists():
        raise SSHKeyLoadError(f"private key not found: {key_path}")

    errors: list[str] = []
    for key_cls in _candidate_keys():
        try:
            return key_cls.from_private_key_file(str(key_path))
        except paramiko.PasswordRequiredException as exc:
            raise SSHKeyLoadError("private key is passphrase protected; unlock it first") from exc
        except paramiko.SSHException as exc:
            errors.append(str(exc))

    joined = "; ".join(filter(None, errors)) or "unknown error"
    raise SSHKeyLoadError(f"cannot parse private key {key_path}: {joined}")


class SSHRunner:
    """Execute commands on a remote VPS through Paramiko.

    The client connects lazily on first use and stays open until
    :meth:`close`. File operations go through SFTP; writes land in a temporary
    sibling first and are renamed into place.
    """

    def __init__(
        self,
        host: str,
        username: str = "root",
        key_path: Optional[str] = None,
        *,
        port: int = 22,
        timeout: int = DEFAULT_COMMAND_TIMEOUT,
        client_factory=paramiko.SSHClient,
    ):
        self.host = host
        self.username = username
        self.key_path = key_path
        self.port = port
        self.timeout = timeout
        self._client_factory = client_factory
        self._client: Optional[paramiko.SSHClient] = None

    def _connect(self) -> paramiko.SSHClient:
        if self._client is not None:
            return self._client

        pkey = load_private_key(self.key_path) if self.key_path else None
        client = self._client_factory()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                self.host,
                port=self.port,
                username=self.username,
                pkey=pkey,
                allow_agent=pkey is None,
                look_for_keys=pkey is None,
                timeout=30,
                banner_timeout=30,
                auth_timeout=30,
            )
        except paramiko.AuthenticationException as exc:
            client.close()
            raise VPSAccessError(f"SSH authentication to {self.host} failed") from exc
        except (paramiko.SSHException, socket.error) as exc:
            client.close()
            raise VPSAccessError(f"cannot open SSH connection to {self.host}: {exc}") from exc

        LOGGER.info("SSH connection established", extra={"host": self.host, "port": self.port})
        self._client = client
        return client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def run(
        self, args: Sequence[str], *, input: Optional[str] = None, check: bool = True
    ) -> CommandResult:
        argv = [str(arg) for arg in args]
        client = self._connect()
        command = shlex.join(argv)
        try:
            stdin, stdout, stderr = client.exec_command(command, timeout=self.timeout)
            if input is not None:
                stdin.write(input)
            stdin.channel.shutdown_write()
            out = stdout.read().decode("utf-8", errors="replace")
            err = stderr.read().decode("utf-8", errors="replace")
            returncode = stdout.channel.recv_exit_status()
        except socket.timeout as exc:
            raise CommandError(argv, TIMEOUT_RETURNCODE, f"timed out after {self.timeout}s") from exc

        result = CommandResult(returncode, out, err)
        if check and not result.ok:
            raise CommandError(argv, result.returncode, result.stderr or result.stdout)
        return result

    def read_text(self, path: str) -> str:
        sftp = self._connect().open_sftp()
        try:
            with sftp.open(path, "r") as handle:
                return handle.read().decode("utf-8")
        except IOError as exc:
            if getattr(exc, "errno", None) == 2:
                raise FileNotFoundError(path) from exc
            raise
        finally:
            sftp.close()

    def write_text(self, path: str, content: str, mode: int = 0o644) -> None:
        target = PurePosixPath(path)
        tmp_path = str(target.with_name(f".{target.name}.tmp"))
        self.run(["mkdir", "-p", str(target.parent)])
        sftp = self._connect().open_sftp()
        try:
            with sftp.open(tmp_path, "w") as handle:
                handle.write(content.encode("utf-8"))
            sftp.chmod(tmp_path, mode)
            sftp.posix_rename(tmp_path, str(target))
        finally:
            sftp.close()

    def remove(self, path: str) -> bool:
        sftp = self._connect().open_sftp()
        try:
            sftp.remove(path)
        except IOError as exc:
            if getattr(exc, "errno", None) == 2:
                return False
            raise
        finally:
            sftp.close()
        return True

    def exists(self, path: str) -> bool:
        sftp = self._connect().open_sftp()
        try:
            sftp.stat(path)
        except IOError:
            return False
        finally:
            sftp.close()
        return True


__all__ = [
    "CommandResult",
    "CommandRunner",
    "LocalRunner",
    "SSHKeyLoadError",
    "SSHRunner",
    "TIMEOUT_RETURNCODE",
    "load_private_key",
]
