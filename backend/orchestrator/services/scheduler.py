import logging
from collections.abc import Callable
from datetime import datetime
from typing import Protocol

from croniter import croniter

from orchestrator.core.timestamps import localnow

logger = logging.getLogger(__name__)


class StopSignal(Protocol):
    def is_set(self) -> bool: ...

    def wait(self, timeout: float | None = None) -> bool: ...


def is_valid_schedule(expression: str) -> bool:
    return bool(expression) and croniter.is_valid(expression)


def run_scheduled(
    expression: str,
    job: Callable[[], object],
    stop: StopSignal,
    clock: Callable[[], datetime] = localnow,
) -> int:
    """
    Run `job` on every cron fire time until `stop` is set. Returns how many times it ran.
    Fire times are computed in the timezone of `clock` (host local time by default).

    The job runs synchronously in this loop, so two runs never overlap. Fire times that
    pass while a run is still in progress are dropped (and logged), not queued.
    """
    schedule = croniter(expression, clock())
    next_at: datetime = schedule.get_next(datetime)
    logger.info('scheduler started with schedule %r, next run at %s', expression, next_at.isoformat())
    runs = 0
    while not stop.is_set():
        delay = (next_at - clock()).total_seconds()
        if delay > 0:
            if stop.wait(delay):
                break
            continue
        logger.info('scheduled tick fired (%s)', next_at.isoformat())
        try:
            job()
        except Exception:
            logger.exception('unhandled error during scheduled orchestration run')
        runs += 1
        finished = clock()
        skipped = 0
        next_at = schedule.get_next(datetime)
        while next_at <= finished:
            skipped += 1
            next_at = schedule.get_next(datetime)
        if skipped:
            logger.warning('orchestration run overran its schedule, skipped %s tick(s)', skipped)
        logger.debug('next run at %s', next_at.isoformat())
    logger.info('scheduler stopped after %s run(s)', runs)
    return runs
