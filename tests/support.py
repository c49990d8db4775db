"""Fakes compartidos por los tests del orquestador."""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT / 'backend') not in sys.path:
    sys.path.insert(0, str(ROOT / 'backend'))

from orchestrator.core.errors import StatusQueryError, TriggerError  # noqa: E402
from orchestrator.repositories.state_store import JsonStateStore, StateRepository  # noqa: E402
from orchestrator.schemas.connections import ConnectionConfig  # noqa: E402
from orchestrator.schemas.jobs import JobStatus  # noqa: E402
from orchestrator.services.change_detector import ChangeDetector  # noqa: E402

FIXED_NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def make_connection(connection_id: str, *tables: str, description: str = '') -> ConnectionConfig:
    return ConnectionConfig.model_validate(
        {
            'connectionId': connection_id,
            'description': description,
            'monitoredTables': [
                {'schemaName': 'public', 'tableName': name, 'updatedAtColumn': 'updated_at'} for name in tables
            ],
        }
    )


def make_repository(state_dir: Path) -> StateRepository:
    return StateRepository(
        watermarks=JsonStateStore(state_dir / 'last_sync_timestamps.json'),
        active_jobs=JsonStateStore(state_dir / 'active_jobs.json'),
    )


class FakeChangeDetector(ChangeDetector):
    """Real detection rules over canned per-table max values (or exceptions)."""

    def __init__(self, values: dict | None = None):
        self.values = values or {}
        self.queried: list[str] = []

    def max_change_value(self, table):
        self.queried.append(table.qualified_name)
        value = self.values.get(table.qualified_name)
        if isinstance(value, Exception):
            raise value
        return value


class FakeSyncClient:
    def __init__(self, statuses: dict | None = None, job_ids: list[str] | None = None):
        self.statuses = statuses or {}
        self.job_ids = list(job_ids or [])
        self.start_calls: list[str] = []
        self.status_calls: list[str] = []
        self.trigger_error: TriggerError | None = None

    def start(self, connection_id: str) -> str:
        self.start_calls.append(connection_id)
        if self.trigger_error is not None:
            raise self.trigger_error
        if self.job_ids:
            return self.job_ids.pop(0)
        return f'job-{len(self.start_calls)}'

    def status(self, job_id: str) -> JobStatus:
        self.status_calls.append(job_id)
        value = self.statuses.get(job_id)
        if isinstance(value, Exception):
            raise value
        if value is None:
            raise StatusQueryError(f'no canned status for {job_id}')
        return value


class FakeClock:
    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)
