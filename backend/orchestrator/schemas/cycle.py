from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from orchestrator.schemas.jobs import JobState


class ConnectionAction(str, Enum):
    JOB_RUNNING = 'job_running'
    STATUS_UNAVAILABLE = 'status_unavailable'
    TRIGGERED = 'triggered'
    TRIGGER_FAILED = 'trigger_failed'
    NO_CHANGES = 'no_changes'
    NO_TABLES = 'no_tables'
    FAILED = 'failed'


class ConnectionOutcome(BaseModel):
    connection_id: str
    action: ConnectionAction
    job_state: JobState | None = None
    resolved_job_id: str | None = None
    triggered_job_id: str | None = None
    watermark_advanced: bool = False
    tables_checked: int = 0
    tables_failed: int = 0
    error: str | None = None


class CycleReport(BaseModel):
    started_at: datetime
    finished_at: datetime | None = None
    outcomes: list[ConnectionOutcome] = Field(default_factory=list)
    skipped: bool = False
    interrupted: bool = False

    @property
    def processed(self) -> int:
        return len(self.outcomes)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.action == ConnectionAction.FAILED)

    @property
    def triggered(self) -> int:
        return sum(1 for o in self.outcomes if o.action == ConnectionAction.TRIGGERED)
