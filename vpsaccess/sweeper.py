"""过期账号清理器。Expiry sweeper."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from threading import Event, Thread
from typing import Callable, Dict, List, Optional

from .config.defaults import DEFAULT_SWEEP_INTERVAL
from .errors import VPSAccessError
from .logging_utils import get_logger, log_action
from .orchestrator import ProvisioningOrchestrator, RemovalResult

LOGGER = get_logger(__name__)


@dataclass
class SweepReport:
    """清理结果。Outcome of one sweep."""

    now: datetime
    attempted: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    results: Dict[str, RemovalResult] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class ExpirySweeper:
    """Remove every account whose expiry is at or before ``now``.

    Removal goes through :meth:`ProvisioningOrchestrator.remove_account`, the
    same path an operator uses, so an expired account is torn down exactly
    like a manual deletion.
    """

    def __init__(self, orchestrator: ProvisioningOrchestrator, clock: Optional[Callable[[], datetime]] = None):
        self.orchestrator = orchestrator
        self.clock = clock or orchestrator.clock

        self.is_running = False
        self.sweep_thread: Thread | None = None
        self.stop_event = Event()
        self.on_sweep: Callable[[SweepReport], None] | None = None

    def sweep(self, now: Optional[datetime] = None) -> SweepReport:
        """清理过期账号。Sweep once; one stuck account never blocks the rest."""

        now = now or self.clock()
        report = SweepReport(now=now)
        expired = [a.username for a in self.orchestrator.registry.get_expired_accounts(now)]

        for identity in expired:
            report.attempted.append(identity)
            try:
                result = self.orchestrator.remove_account(identity)
            except VPSAccessError as exc:
                report.failed[identity] = str(exc)
                LOGGER.warning("Expired account removal failed", extra={"identity": identity, "error": str(exc)})
                continue

            report.results[identity] = result
            report.removed.append(identity)
            if not result.ok:
                details = [str(f) for f in result.failures]
                if result.persistence_error is not None:
                    details.append(str(result.persistence_error))
                report.failed[identity] = "; ".join(details)

        if report.attempted:
            log_action(
                "CheckExpiredUsers",
                f"Swept {len(report.attempted)} expired account(s), {len(report.failed)} with errors",
            )
        return report

    def start(self, interval: float = DEFAULT_SWEEP_INTERVAL) -> None:
        """开始定期清理。Start sweeping in a background thread every ``interval`` seconds."""
        if self.is_running:
            return

        LOGGER.info("Starting expiry sweeper", extra={"interval": interval})
        self.is_running = True
        self.stop_event.clear()
        self.sweep_thread = Thread(target=self._sweep_loop, args=(interval,), daemon=True)
        self.sweep_thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """停止定期清理。Stop the background thread."""
        if not self.is_running:
            return

        self.stop_event.set()
        if self.sweep_thread is not None:
            self.sweep_thread.join(timeout=timeout)
        self.is_running = False
        LOGGER.info("Expiry sweeper stopped")

    def _sweep_loop(self, interval: float) -> None:
        while not self.stop_event.is_set():
            try:
                report = self.sweep()
            except Exception as exc:  # noqa: BLE001 - the loop must survive one bad pass
                LOGGER.error("Sweep pass crashed", extra={"error": str(exc)})
            else:
                if self.on_sweep is not None:
                    self.on_sweep(report)
            self.stop_event.wait(interval)
