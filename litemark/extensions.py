from flask import Flask, current_app

from litemark.jobs.scheduler import SchedulerRefreshTimers, scheduler
from litemark.services.repository import CachedDocumentRepository
from litemark.storage import create_store


EXTENSION_KEY = "litemark"


def init_repository(app: Flask, timers=None) -> CachedDocumentRepository:
    store = create_store(app.config, logger=app.logger)
    if timers is None and app.config.get("SCHEDULER_ENABLED", True):
        timers = SchedulerRefreshTimers(scheduler)
    repository = CachedDocumentRepository(
        store,
        refresh_interval_ms=int(app.config.get("CACHE_REFRESH_INTERVAL_MS", 0)),
        timers=timers,
        logger=app.logger,
    )
    app.extensions[EXTENSION_KEY] = repository
    return repository


def get_repository(app: Flask | None = None) -> CachedDocumentRepository:
    return (app or current_app).extensions[EXTENSION_KEY]
