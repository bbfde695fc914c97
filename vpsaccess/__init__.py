"""VPS 访问账号管理。Provision and expire end-user accounts across access backends.

One administrative action creates (or removes) an account on every backend:
system SSH, Xray, a per-account TLS certificate, the nginx WebSocket and
basic-auth proxies, squid, the UDP tunnel and dropbear. The moving parts are:

1. :mod:`vpsaccess.orchestrator` drives the provisioning saga and rollback.
2. :mod:`vpsaccess.registry` keeps the durable JSON account list.
3. :mod:`vpsaccess.sweeper` removes accounts past their expiry.
4. :mod:`vpsaccess.main` exposes the interactive operator console.
"""

from __future__ import annotations

from .orchestrator import AddResult, ProvisioningOrchestrator, RemovalResult
from .registry import Account, AccountRegistry
from .sweeper import ExpirySweeper, SweepReport

__all__ = [
    "Account",
    "AccountRegistry",
    "AddResult",
    "ExpirySweeper",
    "ProvisioningOrchestrator",
    "RemovalResult",
    "SweepReport",
]
