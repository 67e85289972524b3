"""APScheduler wrapper for periodic maintenance jobs owned by the app lifecycle."""
import atexit
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from flask import Flask
from sqlalchemy.exc import SQLAlchemyError

from utils.sessions import purge_stale_sessions
from utils.verification import purge_expired_verification_codes


class MaintenanceScheduler:
    """Minimal wrapper around BackgroundScheduler that runs jobs inside an app context."""

    def __init__(self, app: Flask) -> None:
        self._app = app
        self._scheduler = BackgroundScheduler(timezone="UTC")
        self._started = False

    @property
    def running(self) -> bool:
        return self._started

    def job_ids(self) -> list[str]:
        return [job.id for job in self._scheduler.get_jobs()]

    def start(self) -> None:
        if not self._started:
            self._scheduler.start()
            self._started = True
            self._app.logger.info("Maintenance scheduler started", extra={"jobs": self.job_ids()})

    def shutdown(self) -> None:
        if self._started:
            self._scheduler.shutdown(wait=False)
            self._started = False

    def schedule(self, job_id: str, func: Callable[[], int], **interval) -> None:
        trigger = IntervalTrigger(**interval)
        self._scheduler.add_job(
            self._wrap(job_id, func),
            trigger=trigger,
            id=job_id,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )

    def _wrap(self, job_id: str, func: Callable[[], int]) -> Callable[[], None]:
        app = self._app

        def run() -> None:
            with app.app_context():
                try:
                    removed = func()
                except SQLAlchemyError:
                    app.logger.exception("Maintenance job failed", extra={"job_id": job_id})
                    return
                app.logger.info("Maintenance job finished", extra={"job_id": job_id, "removed": removed})

        return run


def init_scheduler(app: Flask) -> MaintenanceScheduler:
    scheduler = MaintenanceScheduler(app)
    stale_days = int(app.config.get("SESSION_STALE_DAYS", 30))
    scheduler.schedule(
        "purge_expired_verification_codes",
        purge_expired_verification_codes,
        minutes=int(app.config.get("CODE_SWEEP_INTERVAL_MINUTES", 15)),
    )
    scheduler.schedule(
        "purge_stale_sessions",
        lambda: purge_stale_sessions(stale_days),
        hours=int(app.config.get("SESSION_SWEEP_INTERVAL_HOURS", 24)),
    )
    app.extensions["maintenance_scheduler"] = scheduler
    if app.config.get("SCHEDULER_ENABLED"):
        scheduler.start()
        atexit.register(scheduler.shutdown)
    return scheduler
