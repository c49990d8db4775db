import logging
from collections.abc import Callable
from datetime import datetime

from orchestrator.core.errors import StatusQueryError, TriggerError
from orchestrator.core.timestamps import format_timestamp, utcnow
from orchestrator.repositories.state_store import StateRepository
from orchestrator.schemas.connections import ConnectionConfig
from orchestrator.schemas.cycle import ConnectionAction, ConnectionOutcome
from orchestrator.schemas.jobs import JobState
from orchestrator.schemas.state import OrchestratorState
from orchestrator.services.change_detector import ChangeDetector
from orchestrator.services.sync_client import SyncTriggerClient

logger = logging.getLogger(__name__)


class JobLifecycleTracker:
    """
    Per-connection state machine, re-derived every cycle from the persisted maps:

    Idle      -> no handle: detect changes, trigger when needed.
    Checking  -> handle present: query status first.
      succeeded              -> watermark = completion time (or now), handle cleared, back to Idle.
      failed/cancelled/404   -> handle cleared, watermark untouched, back to Idle.
      anything else / error  -> nothing changes, connection done for this cycle.

    Both maps are loaded at the start and saved at the end of every call.
    """

    def __init__(
        self,
        state_repository: StateRepository,
        change_detector: ChangeDetector,
        sync_client: SyncTriggerClient,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.state_repository = state_repository
        self.change_detector = change_detector
        self.sync_client = sync_client
        self.clock = clock

    def process(self, connection: ConnectionConfig) -> ConnectionOutcome:
        cid = connection.connection_id
        logger.info('[connection:%s] processing %s', cid, connection.description)
        state = self.state_repository.load()
        outcome = ConnectionOutcome(connection_id=cid, action=ConnectionAction.NO_CHANGES)

        if self._resolve_active_job(cid, state, outcome):
            self._detect_and_trigger(connection, state, outcome)

        self.state_repository.save(state)
        logger.info('[connection:%s] finished processing (%s)', cid, outcome.action.value)
        return outcome

    def _resolve_active_job(self, cid: str, state: OrchestratorState, outcome: ConnectionOutcome) -> bool:
        """True when the connection is Idle afterwards and may run change detection."""
        job_id = state.active_job_for(cid)
        if job_id is None:
            return True

        outcome.resolved_job_id = job_id
        logger.info('[connection:%s] found active job %s, checking status', cid, job_id)
        try:
            # Fresh read: the timestamp used for the watermark comes from this call only.
            job = self.sync_client.status(job_id)
        except StatusQueryError as exc:
            logger.error('[connection:%s] error checking status of job %s, will retry next cycle: %s', cid, job_id, exc)
            outcome.action = ConnectionAction.STATUS_UNAVAILABLE
            outcome.error = str(exc)
            return False

        outcome.job_state = job.state
        if not job.is_terminal:
            logger.info('[connection:%s] job %s is still %s, will check again next cycle', cid, job_id, job.raw_status or job.state.value)
            outcome.action = ConnectionAction.JOB_RUNNING
            return False

        state.clear_active_job(cid)
        if job.state != JobState.SUCCEEDED:
            logger.error('[connection:%s] job %s reported status %s, watermark unchanged', cid, job_id, job.state.value)
            return True

        completed_at = job.completed_at or self.clock()
        outcome.watermark_advanced = state.advance_watermark(cid, completed_at)
        logger.info(
            '[connection:%s] job %s succeeded (rows synced: %s, duration: %s)',
            cid, job_id, job.rows_synced if job.rows_synced is not None else '?', job.duration or '?',
        )
        if outcome.watermark_advanced:
            logger.info('[connection:%s] watermark advanced to %s', cid, format_timestamp(completed_at))
        else:
            logger.warning(
                '[connection:%s] job %s finished at %s, not after current watermark %s; watermark kept',
                cid, job_id, format_timestamp(completed_at), format_timestamp(state.watermark_for(cid)),
            )
        return True

    def _detect_and_trigger(self, connection: ConnectionConfig, state: OrchestratorState, outcome: ConnectionOutcome) -> None:
        cid = connection.connection_id
        detection = self.change_detector.detect(connection, state.watermark_for(cid))
        if not connection.monitored_tables:
            outcome.action = ConnectionAction.NO_TABLES
            return

        outcome.tables_checked = detection.tables_checked
        outcome.tables_failed = len(detection.failed_tables)
        if not detection.needs_sync:
            logger.info('[connection:%s] no new data detected, no sync triggered', cid)
            outcome.action = ConnectionAction.NO_CHANGES
            return

        logger.info('[connection:%s] new data detected, attempting to trigger sync', cid)
        try:
            job_id = self.sync_client.start(cid)
        except TriggerError as exc:
            logger.error('[connection:%s] failed to trigger sync, will re-evaluate next cycle: %s', cid, exc)
            outcome.action = ConnectionAction.TRIGGER_FAILED
            outcome.error = str(exc)
            return

        state.set_active_job(cid, job_id)
        logger.info('[connection:%s] sync triggered, job id %s', cid, job_id)
        outcome.action = ConnectionAction.TRIGGERED
        outcome.triggered_job_id = job_id
