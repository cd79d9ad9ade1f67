import os
from datetime import timedelta

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from dateutil import tz

from litemark.models import utcnow


scheduler = BackgroundScheduler()


class SchedulerRefreshTimers:
    """One-shot cache refresh timers backed by APScheduler ``date`` jobs."""

    def __init__(self, scheduler: BackgroundScheduler, prefix: str = "cache_refresh"):
        self.scheduler = scheduler
        self.prefix = prefix

    def _job_id(self, name: str) -> str:
        return f"{self.prefix}:{name}"

    def schedule(self, name, delay_seconds, func):
        self.scheduler.add_job(
            func,
            "date",
            run_date=utcnow() + timedelta(seconds=delay_seconds),
            id=self._job_id(name),
            replace_existing=True,
        )

    def cancel(self, name):
        try:
            self.scheduler.remove_job(self._job_id(name))
        except JobLookupError:
            pass


def run_webdav_backup(app):
    # litemark.extensions imports this module.
    from litemark.extensions import get_repository
    from litemark.services.backup import WebDAVBackupConfig, backup_to_webdav

    with app.app_context():
        config = WebDAVBackupConfig.from_app_config(app.config)
        if not config.enabled:
            app.logger.info("WebDAV backup is disabled, skipping")
            return None
        if not config.is_complete:
            app.logger.warning("WebDAV backup is enabled but not fully configured")
            return None

        try:
            result = backup_to_webdav(
                get_repository(app),
                config,
                timezone_name=app.config.get("BACKUP_TIMEZONE", "Asia/Shanghai"),
                log=app.logger,
            )
        except Exception as exc:
            app.logger.error("Scheduled WebDAV backup failed: %s", exc)
            return None

        app.logger.info(
            "Scheduled WebDAV backup stored %s (%s bookmarks, %s old backups removed)",
            result["path"],
            result["bookmarksCount"],
            result["deletedBackups"],
        )
        return result


def start_scheduler(app):
    if not app.config.get("SCHEDULER_ENABLED", True):
        return
    if os.environ.get("WERKZEUG_RUN_MAIN") == "false":
        return

    if app.config.get("WEBDAV_BACKUP_ENABLED"):
        zone = tz.gettz(app.config.get("BACKUP_TIMEZONE", "Asia/Shanghai"))
        scheduler.add_job(
            run_webdav_backup,
            CronTrigger.from_crontab(app.config["WEBDAV_BACKUP_CRON"], timezone=zone),
            kwargs={"app": app},
            id="webdav_backup",
            replace_existing=True,
        )
    if not scheduler.running:
        scheduler.start()
