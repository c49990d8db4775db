from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class JobState(str, Enum):
    PENDING = 'pending'
    RUNNING = 'running'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'
    CANCELLED = 'cancelled'
    NOT_FOUND = 'not_found'


TERMINAL_FAILURE_STATES = frozenset({JobState.FAILED, JobState.CANCELLED, JobState.NOT_FOUND})

# Raw vocabulary of the job API; 'incomplete' is a failed attempt that the API retries.
_RAW_STATUS_MAP = {
    'pending': JobState.PENDING,
    'running': JobState.RUNNING,
    'incomplete': JobState.RUNNING,
    'succeeded': JobState.SUCCEEDED,
    'failed': JobState.FAILED,
    'cancelled': JobState.CANCELLED,
    'not_found': JobState.NOT_FOUND,
}


def classify_job_status(raw: object) -> JobState:
    """
    Map a raw job status to the closed JobState set.
    Unrecognized or missing values are classified as RUNNING: an unknown status
    never finalizes a job (no watermark advance, no handle cleared).
    """
    key = str(raw or '').strip().lower()
    return _RAW_STATUS_MAP.get(key, JobState.RUNNING)


class JobStatus(BaseModel):
    job_id: str
    state: JobState
    raw_status: str | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None
    duration: str | float | None = None
    rows_synced: int | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state == JobState.SUCCEEDED or self.state in TERMINAL_FAILURE_STATES
