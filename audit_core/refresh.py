from __future__ import annotations

import logging
import threading
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from audit_core.classify import DEFAULT_EXCLUSIONS, ExclusionRules
from audit_core.errors import AuditDashboardError
from audit_core.pipeline import PipelineContext, build_context
from audit_core.schema import DEFAULT_SCHEMA, RawMatrix, SchemaDefaults

logger = logging.getLogger(__name__)


class RefreshStatus(str, Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


class RefreshController:
    """Holds the latest pipeline context and rebuilds it from the loader on demand.

    Only one refresh runs at a time. A trigger that arrives while another
    refresh is outstanding is dropped rather than queued. A failed refresh
    keeps the previous context.
    """

    def __init__(
        self,
        loader: Callable[[], RawMatrix],
        *,
        defaults: SchemaDefaults = DEFAULT_SCHEMA,
        rules: ExclusionRules = DEFAULT_EXCLUSIONS,
    ):
        self._loader = loader
        self._defaults = defaults
        self._rules = rules
        self._lock = threading.Lock()
        self._context: Optional[PipelineContext] = None
        self.last_error: Optional[AuditDashboardError] = None
        self.last_attempt: Optional[datetime] = None

    @property
    def context(self) -> Optional[PipelineContext]:
        return self._context

    @property
    def is_loading(self) -> bool:
        return self._lock.locked()

    @property
    def sync_status(self) -> str:
        if self.is_loading:
            return "syncing"
        if self.last_error is not None:
            return "error"
        if self._context is not None:
            return "success"
        return "idle"

    def refresh(self) -> RefreshStatus:
        if not self._lock.acquire(blocking=False):
            logger.warning("Refresh already in progress; trigger dropped")
            return RefreshStatus.SKIPPED
        try:
            self.last_attempt = datetime.now()
            try:
                matrix = self._loader()
                context = build_context(matrix, defaults=self._defaults, rules=self._rules, loaded_at=self.last_attempt)
            except AuditDashboardError as exc:
                self.last_error = exc
                logger.error("Refresh failed (%s): %s; keeping previous data", type(exc).__name__, exc)
                return RefreshStatus.FAILED
            self._context = context
            self.last_error = None
            logger.info("Data synced: %d records", len(context.rows))
            return RefreshStatus.COMPLETED
        finally:
            self._lock.release()


class AutoRefresher:
    """Calls `controller.refresh()` on a fixed interval until stopped."""

    def __init__(self, controller: RefreshController, interval: float):
        self.controller = controller
        self.interval = float(interval)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> Optional[RefreshStatus]:
        try:
            return self.controller.refresh()
        except Exception:
            logger.exception("Auto-refresh failed")
            return None

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            logger.debug("Auto-refresh triggered")
            self.tick()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="audit-auto-refresh", daemon=True)
        self._thread.start()
        logger.info("Auto-refresh enabled (every %.0f seconds)", self.interval)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
        self._thread = None
