import logging
from typing import Protocol

import httpx

from orchestrator.core.errors import StatusQueryError, TriggerError
from orchestrator.core.timestamps import from_epoch_seconds
from orchestrator.schemas.jobs import JobState, JobStatus, classify_job_status

logger = logging.getLogger(__name__)


class SyncTriggerClient(Protocol):
    def start(self, connection_id: str) -> str:
        """Start a sync job and return its handle. Raises TriggerError."""
        ...

    def status(self, job_id: str) -> JobStatus:
        """Current status of a job. Raises StatusQueryError."""
        ...


def _error_detail(exc: httpx.HTTPError) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        return f'HTTP {exc.response.status_code}: {exc.response.text[:500]}'
    return str(exc) or exc.__class__.__name__


def _optional_int(value: object) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _optional_duration(value: object) -> str | float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, str)):
        return value
    return None


class AirbyteJobClient:
    """Sync trigger client for an Airbyte-style jobs API (POST /jobs, GET /jobs/{id})."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ):
        self.base_url = base_url.rstrip('/')
        self._client = client or httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers={'Accept': 'application/json', 'Content-Type': 'application/json'},
        )

    @classmethod
    def from_settings(cls, cfg) -> 'AirbyteJobClient':
        return cls(cfg.airbyte_api_url, timeout=float(cfg.job_api_timeout_seconds or 30.0))

    def close(self) -> None:
        self._client.close()

    def start(self, connection_id: str) -> str:
        logger.info('triggering sync for connection %s', connection_id)
        try:
            res = self._client.post('/jobs', json={'connectionId': connection_id, 'jobType': 'sync'})
            res.raise_for_status()
            data = res.json()
        except httpx.HTTPError as exc:
            status_code = exc.response.status_code if isinstance(exc, httpx.HTTPStatusError) else None
            raise TriggerError(
                f'Error disparando sync para {connection_id}: {_error_detail(exc)}', status_code=status_code
            ) from exc
        except ValueError as exc:
            raise TriggerError(f'Respuesta no JSON al disparar sync para {connection_id}') from exc
        job = data.get('job') if isinstance(data, dict) else None
        job_id = (job or {}).get('jobId') if isinstance(job, dict) else None
        if job_id is None and isinstance(data, dict):
            job_id = data.get('jobId')
        if job_id is None or str(job_id).strip() == '':
            raise TriggerError(f'La respuesta de la API no incluye jobId (connection {connection_id})')
        logger.info('sync triggered for connection %s, job id %s', connection_id, job_id)
        return str(job_id)

    def status(self, job_id: str) -> JobStatus:
        logger.debug('fetching job details for job %s', job_id)
        try:
            res = self._client.get(f'/jobs/{job_id}')
            if res.status_code == 404:
                logger.warning('job %s not found', job_id)
                return JobStatus(job_id=job_id, state=JobState.NOT_FOUND, raw_status='not_found')
            res.raise_for_status()
            data = res.json()
        except httpx.HTTPError as exc:
            status_code = exc.response.status_code if isinstance(exc, httpx.HTTPStatusError) else None
            raise StatusQueryError(
                f'Error consultando job {job_id}: {_error_detail(exc)}', status_code=status_code
            ) from exc
        except ValueError as exc:
            raise StatusQueryError(f'Respuesta no JSON consultando job {job_id}') from exc

        job = (data.get('job') or data) if isinstance(data, dict) else None
        if not job or not isinstance(job, dict):
            logger.warning('no job details in response for job %s, treating as running', job_id)
            return JobStatus(job_id=job_id, state=JobState.RUNNING)
        raw_status = job.get('status')
        try:
            created_at = from_epoch_seconds(job.get('createdAt'))
            updated_at = from_epoch_seconds(job.get('updatedAt'))
        except (ValueError, OverflowError, OSError) as exc:
            raise StatusQueryError(f'Timestamps invalidos en job {job_id}: {exc}') from exc
        status = JobStatus(
            job_id=job_id,
            state=classify_job_status(raw_status),
            raw_status=str(raw_status).lower() if raw_status is not None else None,
            created_at=created_at,
            completed_at=updated_at,
            duration=_optional_duration(job.get('duration')),
            rows_synced=_optional_int(job.get('rowsSynced')),
        )
        logger.debug(
            'job %s: status=%s raw=%s updated_at=%s rows_synced=%s duration=%s',
            job_id, status.state.value, status.raw_status, updated_at, status.rows_synced, status.duration,
        )
        return status
