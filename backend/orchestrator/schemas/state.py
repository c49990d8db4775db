from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from orchestrator.core.timestamps import format_timestamp, parse_timestamp


@dataclass
class OrchestratorState:
    """
    Snapshot of the two persisted maps for every connection.

    watermarks: connection_id -> last successful sync time (absent = never synced).
    active_jobs: connection_id -> job handle; presence means a job may be in flight.
    """

    watermarks: dict[str, datetime] = field(default_factory=dict)
    active_jobs: dict[str, str] = field(default_factory=dict)
    _raw_watermarks: dict[str, str] = field(default_factory=dict, repr=False, compare=False)

    def watermark_for(self, connection_id: str) -> datetime | None:
        return self.watermarks.get(connection_id)

    def active_job_for(self, connection_id: str) -> str | None:
        return self.active_jobs.get(connection_id)

    def advance_watermark(self, connection_id: str, synced_at: datetime) -> bool:
        """Move the watermark forward; an older or equal value leaves it untouched."""
        current = self.watermarks.get(connection_id)
        if current is not None and synced_at <= current:
            return False
        self.watermarks[connection_id] = synced_at
        return True

    def set_active_job(self, connection_id: str, job_id: str) -> None:
        if connection_id in self.active_jobs:
            raise ValueError(f'connection {connection_id} already has active job {self.active_jobs[connection_id]}')
        self.active_jobs[connection_id] = job_id

    def clear_active_job(self, connection_id: str) -> str | None:
        return self.active_jobs.pop(connection_id, None)

    @classmethod
    def from_documents(cls, watermarks: dict[str, str], active_jobs: dict[str, str]) -> OrchestratorState:
        """Raises ValueError on an unparsable watermark."""
        parsed: dict[str, datetime] = {}
        raw: dict[str, str] = {}
        for connection_id, value in watermarks.items():
            ts = parse_timestamp(value)
            if ts is not None:
                parsed[connection_id] = ts
                raw[connection_id] = value
        return cls(watermarks=parsed, active_jobs=dict(active_jobs), _raw_watermarks=raw)

    def watermark_document(self) -> dict[str, str]:
        # Untouched entries keep their persisted text so a no-op rewrite is byte-identical.
        out: dict[str, str] = {}
        for connection_id, ts in self.watermarks.items():
            raw = self._raw_watermarks.get(connection_id)
            if raw is not None and parse_timestamp(raw) == ts:
                out[connection_id] = raw
            else:
                out[connection_id] = format_timestamp(ts)
        return out

    def active_jobs_document(self) -> dict[str, str]:
        return dict(self.active_jobs)
