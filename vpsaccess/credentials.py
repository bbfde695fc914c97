"""凭据摘要。bcrypt digests for account credentials.

Only the digest is ever written to the registry; the clear-text credential is
handed to the backends during provisioning and then dropped.
"""

from __future__ import annotations

import bcrypt

from .config.defaults import DEFAULT_BCRYPT_ROUNDS


def hash_credential(credential: str, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> str:
    """Return the bcrypt digest of ``credential`` as text."""

    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(credential.encode("utf-8"), salt).decode("ascii")


def verify_credential(credential: str, digest: str) -> bool:
    """Check ``credential`` against a stored digest; malformed digests never match."""

    try:
        return bcrypt.checkpw(credential.encode("utf-8"), digest.encode("ascii"))
    except ValueError:
        return False
