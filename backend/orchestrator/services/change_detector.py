import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import text as sa_text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from orchestrator.core.errors import TableQueryError
from orchestrator.core.timestamps import format_timestamp, parse_timestamp
from orchestrator.schemas.connections import ConnectionConfig, MonitoredTable

logger = logging.getLogger(__name__)


@dataclass
class ChangeDetection:
    needs_sync: bool = False
    latest_change: datetime | None = None
    tables_checked: int = 0
    failed_tables: list[str] = field(default_factory=list)
    changed_tables: list[str] = field(default_factory=list)


class ChangeDetector:
    def __init__(self, engine: Engine):
        self.engine = engine

    def _max_change_query(self, table: MonitoredTable):
        preparer = self.engine.dialect.identifier_preparer
        qualified = f'{preparer.quote_identifier(table.schema_name)}.{preparer.quote_identifier(table.table_name)}'
        column = preparer.quote_identifier(table.updated_at_column)
        return sa_text(f'SELECT MAX({column}) AS max_updated_at FROM {qualified}')

    def max_change_value(self, table: MonitoredTable) -> datetime | None:
        """One aggregate query per table. Raises TableQueryError on any per-table failure."""
        logger.debug('querying max %s from %s', table.updated_at_column, table.qualified_name)
        try:
            with self.engine.connect() as conn:
                value = conn.execute(self._max_change_query(table)).scalar()
            return parse_timestamp(value)
        except (SQLAlchemyError, ValueError) as exc:
            raise TableQueryError(
                f'Error consultando max {table.updated_at_column} en {table.qualified_name}: {exc}',
                table.qualified_name,
            ) from exc

    def detect(self, connection: ConnectionConfig, last_synced_at: datetime | None) -> ChangeDetection:
        result = ChangeDetection()
        cid = connection.connection_id
        if not connection.monitored_tables:
            logger.warning('[connection:%s] no tables configured for monitoring, skipping data check', cid)
            return result
        logger.debug(
            '[connection:%s] last sync time: %s',
            cid, format_timestamp(last_synced_at) if last_synced_at else 'never',
        )
        for table in connection.monitored_tables:
            try:
                max_ts = self.max_change_value(table)
            except TableQueryError as exc:
                logger.error('[connection:%s] could not check %s, skipping table this cycle: %s', cid, exc.qualified_name, exc)
                result.failed_tables.append(table.qualified_name)
                continue
            result.tables_checked += 1
            if max_ts is None:
                logger.debug('[connection:%s] %s has no %s values', cid, table.qualified_name, table.updated_at_column)
                continue
            logger.debug('[connection:%s] max %s for %s: %s', cid, table.updated_at_column, table.qualified_name, format_timestamp(max_ts))
            if last_synced_at is None or max_ts > last_synced_at:
                logger.info(
                    '[connection:%s] new data detected in %s (max %s: %s)',
                    cid, table.qualified_name, table.updated_at_column, format_timestamp(max_ts),
                )
                result.needs_sync = True
                result.changed_tables.append(table.qualified_name)
                if result.latest_change is None or max_ts > result.latest_change:
                    result.latest_change = max_ts
        return result
