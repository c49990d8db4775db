import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError

from orchestrator.core.errors import ConfigurationError

logger = logging.getLogger(__name__)


def build_source_engine(cfg) -> Engine:
    """Pool de conexiones a la base origen, compartido por todos los ciclos."""
    try:
        url = make_url(cfg.source_database_url())
    except ArgumentError as exc:
        raise ConfigurationError(f'SOURCE_DB_URL invalida: {exc}') from exc
    is_sqlite = url.get_backend_name() == 'sqlite'
    connect_args = {'check_same_thread': False, 'timeout': 30} if is_sqlite else {'connect_timeout': 10}
    engine_kwargs = {
        'pool_pre_ping': True,
        'connect_args': connect_args,
    }
    if not is_sqlite:
        engine_kwargs.update(
            {
                'pool_size': max(1, int(cfg.source_db_pool_size or 5)),
                'max_overflow': 0,
                'pool_timeout': max(1, int(cfg.source_db_pool_timeout or 30)),
                'pool_recycle': 1800,
            }
        )
    engine = create_engine(url, **engine_kwargs)

    @event.listens_for(engine, 'handle_error')
    def _log_pool_error(context):  # type: ignore[no-untyped-def]
        if context.is_disconnect:
            logger.error('source DB connection lost: %s', context.original_exception)

    logger.info('source DB pool created (%s)', url.render_as_string(hide_password=True))
    return engine
