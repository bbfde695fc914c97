"""Exception taxonomy for account provisioning."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence


class VPSAccessError(RuntimeError):
    """Base class for every error raised by :mod:`vpsaccess`."""


class ConfigError(VPSAccessError, ValueError):
    """Raised when the configuration document is missing or invalid."""


class InvalidAccountError(VPSAccessError, ValueError):
    """Raised when an identity or duration is not acceptable."""


class DuplicateIdentityError(VPSAccessError):
    """Raised when an identity is already present in the registry."""

    def __init__(self, identity: str):
        super().__init__(f"account already exists: {identity}")
        self.identity = identity


class AccountNotFoundError(VPSAccessError):
    """Raised when an identity is absent from the registry."""

    def __init__(self, identity: str):
        super().__init__(f"account not found: {identity}")
        self.identity = identity


class PersistenceError(VPSAccessError):
    """Raised when the registry could not be read or written.

    A persistence failure after a successful saga means the in-memory registry
    and the durable file have diverged.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class CommandError(VPSAccessError):
    """Raised when an external command exits non-zero or times out."""

    def __init__(self, command: Sequence[str], returncode: Optional[int], stderr: str = ""):
        joined = " ".join(command)
        tail = stderr.strip()[-600:]
        message = f"command failed ({returncode}): {joined}"
        if tail:
            message = f"{message}\n{tail}"
        super().__init__(message)
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr


class StepTimeoutError(VPSAccessError):
    """Raised when a backend call exceeds the orchestrator's step timeout."""

    def __init__(self, backend: str, timeout: float):
        super().__init__(f"{backend}: no response after {timeout:g}s")
        self.backend = backend
        self.timeout = timeout


@dataclass
class BackendFailure:
    """One backend that raised while provisioning or deprovisioning."""

    backend: str
    error: BaseException

    def __str__(self) -> str:
        return f"{self.backend}: {self.error}"


class BackendProvisionError(VPSAccessError):
    """A saga step failed; earlier steps were compensated.

    ``cause`` is the original failure of ``backend``. ``compensation_failures``
    lists the rollbacks that themselves failed; they never replace ``cause``.
    """

    def __init__(
        self,
        backend: str,
        cause: BaseException,
        compensation_failures: Optional[List[BackendFailure]] = None,
    ):
        self.backend = backend
        self.cause = cause
        self.compensation_failures = list(compensation_failures or [])
        message = f"provisioning failed at {backend}: {cause}"
        if self.compensation_failures:
            leftovers = ", ".join(f.backend for f in self.compensation_failures)
            message = f"{message} (rollback incomplete: {leftovers})"
        super().__init__(message)


class BackendDeprovisionError(VPSAccessError):
    """One or more backends kept artifacts after an account was removed."""

    def __init__(self, identity: str, failures: List[BackendFailure]):
        self.identity = identity
        self.failures = list(failures)
        details = "; ".join(str(failure) for failure in self.failures)
        super().__init__(f"errors removing {identity}: {details}")


__all__ = [
    "AccountNotFoundError",
    "BackendDeprovisionError",
    "BackendFailure",
    "BackendProvisionError",
    "CommandError",
    "ConfigError",
    "DuplicateIdentityError",
    "InvalidAccountError",
    "PersistenceError",
    "StepTimeoutError",
    "VPSAccessError",
]
