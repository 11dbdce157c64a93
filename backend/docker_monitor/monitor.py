"""
Status Monitoring Core for compose-status
Runs the periodic reconciliation pass and publishes the dashboard view
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Optional

from config.settings import StatusSettings
from docker_monitor.errors import MalformedObservation, PersistenceFailure, SourceUnavailable
from docker_monitor.grouping import project_units
from docker_monitor.host_metrics import HostMetricsSampler
from docker_monitor.reconciler import ReconcileReport, ReconciliationEngine
from docker_monitor.state_store import StateStore
from health_check.http_checker import HttpHealthChecker
from models.status_models import StatusView

logger = logging.getLogger(__name__)


def _handle_task_exception(task: asyncio.Task) -> None:
    """Handle exceptions from the background monitoring task"""
    try:
        task.result()
    except asyncio.CancelledError:
        pass  # Task was cancelled, this is normal
    except Exception as e:
        logger.error(f"Unhandled exception in monitoring task: {e}", exc_info=True)


class StatusMonitor:
    """
    Single writer of the tracked state.

    One background task runs a pass, then waits out the rest of the scan
    interval, so two passes never run at the same time. Request handlers only
    read `view`, which is replaced wholesale at the end of a successful pass.
    """

    def __init__(self, settings: StatusSettings, source, engine: ReconciliationEngine,
                 checker: HttpHealthChecker, sampler: HostMetricsSampler,
                 store: Optional[StateStore] = None):
        self.settings = settings
        self.source = source
        self.engine = engine
        self.checker = checker
        self.sampler = sampler
        self.store = store

        self._view = StatusView()
        self._stopping = asyncio.Event()
        self.monitoring_task: Optional[asyncio.Task] = None
        self.last_error: Optional[str] = None

    @property
    def view(self) -> StatusView:
        """Last published view"""
        return self._view

    def load_state(self):
        """Seed the engine from the resume file, if one is configured"""
        if self.store is None:
            return
        units = self.store.load()
        if units:
            self.engine.restore(units)

    def flush(self) -> bool:
        """
        Save the tracked state to the resume file.

        Returns:
            True on success or when persistence is disabled, False if the write failed
        """
        if self.store is None:
            return True
        try:
            self.store.save(self.engine.units)
        except PersistenceFailure as e:
            logger.error(f"Failed to save state, tracked units will be lost on restart: {e}")
            return False
        return True

    async def run_pass(self, now: Optional[datetime] = None) -> bool:
        """
        Run one reconciliation pass and publish the result.

        Returns:
            True if a new view was published. On a failed snapshot the
            previous view and tracked state are left untouched.
        """
        try:
            snapshot = await asyncio.wait_for(
                self.source.list_units(),
                timeout=self.settings.source_timeout,
            )
        except asyncio.TimeoutError:
            return self._pass_failed(SourceUnavailable(
                f"Listing containers timed out after {self.settings.source_timeout}s"
            ))
        except SourceUnavailable as e:
            return self._pass_failed(e)

        if now is None:
            now = datetime.now(timezone.utc)

        try:
            report = self.engine.reconcile(snapshot, now)
        except MalformedObservation as e:
            return self._pass_failed(e)
        self._log_report(report)

        health = await self.checker.check_all(snapshot)
        sample = self.sampler.sample()

        self._view = StatusView(
            groups=project_units(self.engine.units.values(), health),
            stats=self.sampler.stats(sample),
            updated_at=now,
        )
        self.last_error = None
        return True

    def _pass_failed(self, error: Exception) -> bool:
        self.last_error = str(error)
        logger.error(f"Reconciliation pass aborted ({type(error).__name__}): {error}")
        return False

    def _log_report(self, report: ReconcileReport):
        for key in report.appeared:
            logger.info(f"Unit {key} appeared")
        for key in report.recovered:
            logger.info(f"Unit {key} is back up")
        for key in report.went_down:
            logger.warning(f"Unit {key} is down")
        for key in report.evicted:
            logger.info(f"Unit {key} forgotten after {self.engine.clean_cutoff}")

    async def monitor_loop(self):
        """Main monitoring loop"""
        logger.info(f"Starting reconciliation loop every {self.settings.scan_interval}s")
        while not self._stopping.is_set():
            started = time.monotonic()
            try:
                await self.run_pass()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # Unexpected errors end this pass only, the next tick retries
                self.last_error = str(e) or type(e).__name__
                logger.error(f"Unexpected error in reconciliation pass: {e}", exc_info=True)

            # A pass that overruns the interval delays the next one instead of overlapping it
            remaining = self.settings.scan_interval - (time.monotonic() - started)
            if remaining <= 0:
                continue
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=remaining)
            except asyncio.TimeoutError:
                pass
        logger.info("Reconciliation loop stopped")

    def start(self) -> asyncio.Task:
        self._stopping.clear()
        self.monitoring_task = asyncio.create_task(self.monitor_loop())
        self.monitoring_task.add_done_callback(_handle_task_exception)
        return self.monitoring_task

    async def stop(self, timeout: Optional[float] = None):
        """
        Stop the loop after the in-flight pass finishes.

        If the pass does not finish within timeout seconds it is cancelled.
        """
        self._stopping.set()
        if self.monitoring_task is None:
            return
        try:
            await asyncio.wait_for(asyncio.shield(self.monitoring_task), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("In-flight pass did not finish in time, cancelling it")
            self.monitoring_task.cancel()
            try:
                await self.monitoring_task
            except asyncio.CancelledError:
                logger.info("Monitoring task cancelled successfully")
        except Exception as e:
            logger.error(f"Error during monitoring task shutdown: {e}")
        finally:
            self.monitoring_task = None
