import logging
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from orchestrator.core.logging_config import structured_log
from orchestrator.core.timestamps import utcnow
from orchestrator.repositories.state_store import StateRepository
from orchestrator.schemas.connections import ConnectionConfig
from orchestrator.schemas.cycle import ConnectionAction, ConnectionOutcome, CycleReport
from orchestrator.services.change_detector import ChangeDetector
from orchestrator.services.job_tracker import JobLifecycleTracker
from orchestrator.services.sync_client import SyncTriggerClient

logger = logging.getLogger(__name__)


@dataclass
class OrchestratorContext:
    state_repository: StateRepository
    change_detector: ChangeDetector
    sync_client: SyncTriggerClient
    clock: Callable[[], datetime] = field(default=utcnow)


class CycleDriver:
    def __init__(self, context: OrchestratorContext):
        self.context = context
        self.tracker = JobLifecycleTracker(
            state_repository=context.state_repository,
            change_detector=context.change_detector,
            sync_client=context.sync_client,
            clock=context.clock,
        )
        self._cycle_lock = threading.Lock()

    def run_cycle(
        self,
        connections: Sequence[ConnectionConfig],
        should_stop: Callable[[], bool] | None = None,
    ) -> CycleReport:
        """
        Una pasada por todas las conexiones, en el orden configurado.
        Nunca corre en paralelo con otro ciclo: si ya hay uno en curso el tick se descarta.
        """
        if not self._cycle_lock.acquire(blocking=False):
            logger.warning('orchestration cycle already running, skipping this tick')
            return CycleReport(started_at=self.context.clock(), finished_at=self.context.clock(), skipped=True)
        try:
            return self._run_locked(connections, should_stop)
        finally:
            self._cycle_lock.release()

    def _run_locked(
        self,
        connections: Sequence[ConnectionConfig],
        should_stop: Callable[[], bool] | None,
    ) -> CycleReport:
        report = CycleReport(started_at=self.context.clock())
        started = time.perf_counter()
        structured_log('info', 'cycle_started', connections=len(connections))

        if not connections:
            logger.warning('no connections configured, orchestration cycle will do nothing')

        for connection in connections:
            if should_stop is not None and should_stop():
                logger.info('stop requested, ending cycle before connection %s', connection.connection_id)
                report.interrupted = True
                break
            report.outcomes.append(self._process_isolated(connection))

        report.finished_at = self.context.clock()
        structured_log(
            'info', 'cycle_finished',
            duration_ms=(time.perf_counter() - started) * 1000,
            processed=report.processed,
            failed=report.failed,
            triggered=report.triggered,
            interrupted=report.interrupted or None,
        )
        return report

    def _process_isolated(self, connection: ConnectionConfig) -> ConnectionOutcome:
        cid = connection.connection_id
        started = time.perf_counter()
        try:
            outcome = self.tracker.process(connection)
        except Exception as exc:
            logger.exception('[connection:%s] unhandled error processing connection', cid)
            outcome = ConnectionOutcome(
                connection_id=cid,
                action=ConnectionAction.FAILED,
                error=f'{exc.__class__.__name__}: {exc}',
            )
        structured_log(
            'debug', 'connection_processed',
            connection_id=cid,
            duration_ms=(time.perf_counter() - started) * 1000,
            action=outcome.action.value,
        )
        return outcome
