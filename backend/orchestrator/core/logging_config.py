"""
Logging estructurado del orquestador.
Fuera de dev se emite un objeto JSON por linea (level, logger, message, y los campos extra
que llegan via structured_log: connection_id, duration_ms, ...).
"""
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

_HANDLER_MARK = '_orchestrator_handler'


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            'ts': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname.lower(),
            'logger': record.name,
            'message': record.getMessage(),
        }
        extra = getattr(record, 'payload', None)
        if isinstance(extra, dict):
            for key, value in extra.items():
                if key not in ('level', 'message'):
                    payload[key] = value
        if record.exc_info:
            payload['error'] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _level_from_name(level: str | int | None) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, str(level or 'info').strip().upper(), logging.INFO)


def configure_logging(level: str | int | None = 'info', app_env: str = 'dev') -> None:
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            root.removeHandler(handler)
    handler = logging.StreamHandler(sys.stdout)
    setattr(handler, _HANDLER_MARK, True)
    if (app_env or 'dev').strip().lower() == 'dev':
        handler.setFormatter(
            logging.Formatter(
                '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S',
            )
        )
    else:
        handler.setFormatter(JsonLineFormatter())
    root.addHandler(handler)
    root.setLevel(_level_from_name(level))


def _extra(duration_ms: float | None = None, connection_id: str | None = None, **kwargs: Any) -> dict[str, Any]:
    out: dict[str, Any] = {k: v for k, v in kwargs.items() if v is not None}
    if duration_ms is not None:
        out['duration_ms'] = round(duration_ms, 2)
    if connection_id is not None:
        out['connection_id'] = connection_id
    return out


def structured_log(
    level: str,
    message: str,
    *,
    duration_ms: float | None = None,
    connection_id: str | None = None,
    **kwargs: Any,
) -> None:
    payload = {'level': level, 'message': message, **_extra(duration_ms=duration_ms, connection_id=connection_id, **kwargs)}
    fields = ' '.join(f'{k}={v}' for k, v in payload.items() if k not in ('level', 'message'))
    logging.getLogger('orchestrator').log(
        _level_from_name(level),
        '%s %s', message, fields, extra={'payload': payload},
    )
