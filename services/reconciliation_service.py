"""
Reconciliation Service - Expired Grant Janitor.

Retires current-access mirror rows whose backing temporary grant has been
revoked or has expired. Access decisions never depend on this running:
the resolver evaluates validity from timestamps on every read. The loop
only keeps the denormalised mirror tidy.

    ReconciliationService.run_purge(): One single-flight purge
    ReconciliationWorker: Fixed-schedule background thread

Store failures are logged with the grant ids that were due and retried
on the next tick; they are never raised out of run_purge().

Exports:
    ReconciliationService: Purge coordinator
    ReconciliationWorker: Background scheduler
    ReconciliationRunResult: Result of one run
"""

import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from config import ReconciliationConfig
from core.clock import Clock, SystemClock
from infrastructure.interface_repository import IGrantRepository
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "ReconciliationService")
worker_logger = LoggerFactory.create_logger(ComponentType.WORKER, "ReconciliationWorker")


# ============================================================================
# RESULT MODELS
# ============================================================================

@dataclass
class ReconciliationRunResult:
    """Result of a reconciliation run."""

    success: bool
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    items_scanned: int = 0
    items_purged: int = 0
    due_grant_ids: List[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    as_of: Optional[datetime] = None
    error: Optional[str] = None
    skipped: bool = False
    skip_reason: Optional[str] = None

    def complete(self, success: bool = True, error: Optional[str] = None):
        """Mark the run as complete."""
        self.completed_at = datetime.now(timezone.utc)
        self.success = success
        self.error = error

    @property
    def duration_ms(self) -> int:
        """Get run duration in milliseconds."""
        if self.completed_at:
            return int((self.completed_at - self.started_at).total_seconds() * 1000)
        return 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "run_id": self.run_id,
            "success": self.success,
            "skipped": self.skipped,
            "skip_reason": self.skip_reason,
            "items_scanned": self.items_scanned,
            "items_purged": self.items_purged,
            "due_grant_ids": self.due_grant_ids,
            "as_of": self.as_of.isoformat() if self.as_of else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
            "error": self.error,
        }


# ============================================================================
# RECONCILIATION SERVICE
# ============================================================================

class ReconciliationService:
    """
    Single-flight purge of expired and revoked grants from the mirror.

    Usage:
        service = ReconciliationService(grant_repo, clock, config)
        result = service.run_purge()
        print(f"Purged {result.items_purged} rows")
    """

    def __init__(self, grant_repo: IGrantRepository, clock: Optional[Clock] = None,
                 config: Optional[ReconciliationConfig] = None):
        self.repo = grant_repo
        self.clock = clock or SystemClock()
        self.config = config or ReconciliationConfig.from_environment()

        self._run_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._last_result: Optional[ReconciliationRunResult] = None
        self._run_count = 0
        self._failure_count = 0
        self._skip_count = 0

        logger.info(
            f"ReconciliationService initialized: enabled={self.config.enabled}, "
            f"interval={self.config.interval_seconds}s"
        )

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def run_purge(self) -> ReconciliationRunResult:
        """
        Purge mirror rows for grants no longer valid as of now.

        A call made while another run is in flight returns immediately with
        skipped=True. Failures are returned with success=False.
        """
        if not self._run_lock.acquire(blocking=False):
            result = ReconciliationRunResult(success=True, skipped=True,
                                             skip_reason="run already in progress")
            result.complete(success=True)
            logger.info("[RECONCILE] Run already in progress - skipping")
            self._record(result)
            return result

        try:
            return self._run_locked()
        finally:
            self._run_lock.release()

    def _run_locked(self) -> ReconciliationRunResult:
        result = ReconciliationRunResult(success=False)

        if not self.config.enabled:
            logger.info("[RECONCILE] Reconciliation disabled via configuration - skipping")
            result.skipped = True
            result.skip_reason = "disabled"
            result.complete(success=True)
            self._record(result)
            return result

        operation = "list purgeable grants"
        try:
            as_of = self.clock.now()
            result.as_of = as_of
            logger.info(f"[RECONCILE] Starting purge as of {as_of.isoformat()}")

            result.due_grant_ids = self.repo.list_purgeable_grant_ids(as_of)
            result.items_scanned = len(result.due_grant_ids)

            if not result.due_grant_ids:
                logger.info("[RECONCILE] No expired or revoked grants in current access")
                result.complete(success=True)
                self._record(result)
                return result

            operation = "purge expired grants"
            result.items_purged = self.repo.purge_expired(as_of)
            logger.info(
                f"[RECONCILE] Purged {result.items_purged} current-access rows "
                f"for {result.items_scanned} grants"
            )
            result.complete(success=True)

        except Exception as e:
            logger.error(
                f"[RECONCILE] ❌ {operation} failed: {e} "
                f"(due grant ids: {result.due_grant_ids or 'unknown'}); retrying next tick",
                exc_info=True,
            )
            result.complete(success=False, error=f"{operation}: {e}")

        self._record(result)
        return result

    def _record(self, result: ReconciliationRunResult) -> None:
        with self._stats_lock:
            if result.skipped and result.skip_reason != "disabled":
                self._skip_count += 1
                return
            self._run_count += 1
            if not result.success:
                self._failure_count += 1
            self._last_result = result

    def get_status(self) -> Dict[str, Any]:
        with self._stats_lock:
            return {
                "enabled": self.config.enabled,
                "running": self.is_running,
                "run_count": self._run_count,
                "failure_count": self._failure_count,
                "skipped_overlaps": self._skip_count,
                "last_result": self._last_result.to_dict() if self._last_result else None,
            }


# ============================================================================
# BACKGROUND WORKER
# ============================================================================

class ReconciliationWorker:
    """
    Background thread running ReconciliationService.run_purge() on a fixed
    schedule.

    Ticks are anchored to the start time. When a run overruns one or more
    ticks, the missed ticks are skipped (counted, not queued) and the next
    run happens on the following scheduled tick.
    """

    def __init__(self, service: ReconciliationService, interval_seconds: int = 300,
                 shutdown_timeout_seconds: float = 30,
                 shutdown_event: Optional[threading.Event] = None):
        self.service = service
        self._interval = interval_seconds
        self._shutdown_timeout = shutdown_timeout_seconds
        self._thread: Optional[threading.Thread] = None
        # Use shared shutdown event if provided, otherwise create own
        self._stop_event = shutdown_event if shutdown_event else threading.Event()
        self._uses_shared_event = shutdown_event is not None
        self._tick_count = 0
        self._missed_ticks = 0
        self._last_tick: Optional[datetime] = None

    def _run_loop(self):
        """Fixed-rate loop. wait() is interruptible by stop()."""
        worker_logger.info(f"[RECONCILE] Worker starting (interval: {self._interval}s)")
        next_tick = time.monotonic() + self._interval

        while not self._stop_event.is_set():
            if self._stop_event.wait(timeout=max(0.0, next_tick - time.monotonic())):
                break

            self._tick_count += 1
            self._last_tick = datetime.now(timezone.utc)
            self.service.run_purge()

            next_tick += self._interval
            now = time.monotonic()
            if now >= next_tick:
                missed = int((now - next_tick) // self._interval) + 1
                self._missed_ticks += missed
                next_tick += missed * self._interval
                worker_logger.warning(
                    f"[RECONCILE] Run overran {missed} scheduled tick(s); skipped"
                )

        worker_logger.info("[RECONCILE] Worker stopped")

    def start(self):
        """Start the background thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        if not self._uses_shared_event:
            self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, daemon=True,
                                        name="reconciliation-worker")
        self._thread.start()
        worker_logger.info("[RECONCILE] Background thread started")

    def stop(self):
        """Signal stop and wait for an in-flight purge to finish."""
        if not self._uses_shared_event:
            self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=self._shutdown_timeout)
            if self._thread.is_alive():
                worker_logger.warning(
                    f"[RECONCILE] Worker did not stop within {self._shutdown_timeout}s"
                )
            self._thread = None

    def get_status(self) -> dict:
        return {
            "running": self._thread is not None and self._thread.is_alive(),
            "interval_seconds": self._interval,
            "tick_count": self._tick_count,
            "missed_ticks": self._missed_ticks,
            "last_tick": self._last_tick.isoformat() if self._last_tick else None,
            "uses_shared_shutdown": self._uses_shared_event,
            "service": self.service.get_status(),
        }
