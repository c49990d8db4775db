import json
import logging
import os
import tempfile
from pathlib import Path

from orchestrator.core.errors import StateCorruptedError, StatePersistenceError
from orchestrator.schemas.state import OrchestratorState

logger = logging.getLogger(__name__)


class JsonStateStore:
    """One flat JSON object (connection_id -> string) persisted in a single file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> dict[str, str]:
        try:
            raw = self.path.read_text(encoding='utf-8')
        except FileNotFoundError:
            logger.debug('state file not found: %s, returning empty map', self.path)
            return {}
        except OSError as exc:
            raise StateCorruptedError(f'No se pudo leer el estado {self.path}: {exc}', str(self.path)) from exc
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StateCorruptedError(f'Estado con JSON invalido {self.path}: {exc}', str(self.path)) from exc
        if not isinstance(data, dict):
            raise StateCorruptedError(f'Estado invalido {self.path}: se esperaba un objeto', str(self.path))
        out: dict[str, str] = {}
        for key, value in data.items():
            if value is None:
                continue
            # Numeric job ids (e.g. Airbyte jobId) are stored as their decimal text.
            if isinstance(value, int) and not isinstance(value, bool):
                value = str(value)
            if not isinstance(value, str):
                raise StateCorruptedError(
                    f'Estado invalido {self.path}: valor no textual para {key!r}', str(self.path)
                )
            out[key] = value
        return out

    def save(self, data: dict[str, str]) -> None:
        payload = json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True) + '\n'
        tmp_path: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # Temp file in the same directory so os.replace stays an atomic rename.
            fd, tmp_path = tempfile.mkstemp(prefix=f'.{self.path.name}.', suffix='.tmp', dir=str(self.path.parent))
            with os.fdopen(fd, 'w', encoding='utf-8') as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as exc:
            raise StatePersistenceError(f'No se pudo escribir el estado {self.path}: {exc}', str(self.path)) from exc
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
        logger.debug('state file updated: %s', self.path)


class StateRepository:
    """Watermarks and active jobs, read and written together per connection."""

    def __init__(self, watermarks: JsonStateStore, active_jobs: JsonStateStore):
        self.watermarks = watermarks
        self.active_jobs = active_jobs

    @classmethod
    def from_settings(cls, cfg) -> 'StateRepository':
        return cls(
            watermarks=JsonStateStore(cfg.last_sync_timestamps_file),
            active_jobs=JsonStateStore(cfg.active_jobs_file),
        )

    def load(self) -> OrchestratorState:
        active_jobs = self.active_jobs.load()
        watermarks = self.watermarks.load()
        try:
            return OrchestratorState.from_documents(watermarks, active_jobs)
        except ValueError as exc:
            raise StateCorruptedError(
                f'Watermark invalido en {self.watermarks.path}: {exc}', str(self.watermarks.path)
            ) from exc

    def save(self, state: OrchestratorState) -> None:
        # Watermarks first: a crash before the second write keeps the job handle,
        # so the next cycle re-reads the terminal status and converges.
        self.watermarks.save(state.watermark_document())
        self.active_jobs.save(state.active_jobs_document())
