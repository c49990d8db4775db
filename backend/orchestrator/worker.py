import argparse
import logging
import signal
import sys
import threading

from orchestrator.core.config import Settings, settings
from orchestrator.core.errors import ConfigurationError, StateCorruptedError
from orchestrator.core.logging_config import configure_logging
from orchestrator.core.startup_check import validate_startup_config
from orchestrator.db.session import build_source_engine
from orchestrator.repositories.connections_config import load_connections
from orchestrator.repositories.state_store import StateRepository
from orchestrator.services.change_detector import ChangeDetector
from orchestrator.services.cycle_driver import CycleDriver, OrchestratorContext
from orchestrator.services.scheduler import is_valid_schedule, run_scheduled
from orchestrator.services.sync_client import AirbyteJobClient

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Orquestador de syncs por cambios en tablas origen')
    parser.add_argument('--once', action='store_true', help='Ejecuta un unico ciclo y termina')
    parser.add_argument('--config', default=None, help='Ruta a monitored_tables_config.json')
    return parser.parse_args(argv)


def main(argv: list[str] | None = None, cfg: Settings | None = None) -> int:
    args = _parse_args(argv)
    cfg = cfg or settings
    configure_logging(cfg.log_level, cfg.app_env)
    logger.info('orchestrator starting (APP_ENV=%s, LOG_LEVEL=%s)', cfg.app_env, cfg.log_level)

    try:
        validate_startup_config(cfg)
        connections = load_connections(
            args.config or cfg.monitored_tables_config_path,
            default_schema=cfg.default_schema_name,
            default_column=cfg.default_updated_at_column,
        )
        state_repository = StateRepository.from_settings(cfg)
        # Fail fast on corrupted state instead of silently resetting history.
        state_repository.load()
        engine = build_source_engine(cfg)
    except (ConfigurationError, StateCorruptedError) as exc:
        logger.error('fatal startup error: %s', exc)
        return 1

    sync_client = AirbyteJobClient.from_settings(cfg)
    driver = CycleDriver(
        OrchestratorContext(
            state_repository=state_repository,
            change_detector=ChangeDetector(engine),
            sync_client=sync_client,
        )
    )
    stop = threading.Event()

    def _shutdown_handler(signum, _frame):  # type: ignore[no-untyped-def]
        logger.info('orchestrator received signal %s, shutting down gracefully...', signum)
        stop.set()

    signal.signal(signal.SIGTERM, _shutdown_handler)
    signal.signal(signal.SIGINT, _shutdown_handler)

    def _run_cycle():  # type: ignore[no-untyped-def]
        return driver.run_cycle(connections, should_stop=stop.is_set)

    try:
        if args.once:
            logger.info('running a single orchestration cycle (--once)')
            _run_cycle()
        elif not is_valid_schedule(cfg.cron_schedule):
            logger.error('invalid cron schedule %r, orchestrator will not run on schedule', cfg.cron_schedule)
            logger.info('running orchestration once on startup')
            _run_cycle()
        else:
            run_scheduled(cfg.cron_schedule, _run_cycle, stop)
    finally:
        sync_client.close()
        engine.dispose()
        logger.info('source DB pool closed, shutdown complete')
    return 0


if __name__ == '__main__':
    sys.exit(main())
