import json
import logging
from pathlib import Path

from pydantic import ValidationError

from orchestrator.core.errors import ConfigurationError
from orchestrator.schemas.connections import ConnectionConfig

logger = logging.getLogger(__name__)


def _apply_table_defaults(table: object, default_schema: str, default_column: str) -> object:
    if not isinstance(table, dict):
        return table
    out = dict(table)
    if not str(out.get('schemaName') or '').strip():
        out['schemaName'] = default_schema
    if not str(out.get('updatedAtColumn') or '').strip():
        out['updatedAtColumn'] = default_column
    return out


def parse_connections(
    entries: object,
    *,
    default_schema: str = 'public',
    default_column: str = 'updated_at',
) -> list[ConnectionConfig]:
    if not isinstance(entries, list):
        raise ConfigurationError('La configuracion de conexiones debe ser una lista JSON.')
    connections: list[ConnectionConfig] = []
    seen: set[str] = set()
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict) or not entry.get('connectionId') or entry.get('monitoredTables') is None:
            logger.warning('invalid connection configuration at index %s (missing connectionId or monitoredTables), skipping', index)
            continue
        tables = entry.get('monitoredTables')
        if isinstance(tables, list):
            tables = [_apply_table_defaults(t, default_schema, default_column) for t in tables]
        try:
            connection = ConnectionConfig.model_validate({**entry, 'monitoredTables': tables})
        except ValidationError as exc:
            logger.warning('invalid connection configuration %r, skipping: %s', entry.get('connectionId'), exc)
            continue
        if connection.connection_id in seen:
            logger.warning('duplicate connectionId %s in configuration, keeping the first entry', connection.connection_id)
            continue
        seen.add(connection.connection_id)
        connections.append(connection)
    return connections


def load_connections(
    path: str | Path,
    *,
    default_schema: str = 'public',
    default_column: str = 'updated_at',
) -> list[ConnectionConfig]:
    """
    Lee monitored_tables_config.json.
    Archivo ausente: lista vacia (el orquestador no hace nada). JSON invalido: ConfigurationError.
    """
    config_path = Path(path)
    if not config_path.exists():
        logger.warning('monitored tables config not found at %s, no connections will be monitored', config_path)
        return []
    try:
        entries = json.loads(config_path.read_text(encoding='utf-8'))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f'Error leyendo {config_path}: {exc}') from exc
    connections = parse_connections(entries, default_schema=default_schema, default_column=default_column)
    if not connections:
        logger.warning('no connections configured in %s', config_path)
    return connections


def load_connections_from_settings(cfg) -> list[ConnectionConfig]:
    return load_connections(
        cfg.monitored_tables_config_path,
        default_schema=cfg.default_schema_name,
        default_column=cfg.default_updated_at_column,
    )
