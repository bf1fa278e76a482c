"""APScheduler setup for the board's periodic tasks."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ferryboard.config import settings

logger = logging.getLogger(__name__)

JOB_IDS = ("display_refresh", "data_refresh", "midnight_check", "version_check")


class TimerGroup:
    """The four interval jobs, always cancelled and restarted together."""

    def __init__(self, board, coordinator, scheduler: AsyncIOScheduler | None = None) -> None:
        self.board = board
        self.coordinator = coordinator
        self.scheduler = scheduler or AsyncIOScheduler()

    def _add_jobs(self) -> None:
        self.scheduler.add_job(
            self.board.refresh_display,
            "interval",
            seconds=settings.display_interval_seconds,
            id="display_refresh",
            name="Recompute the departure board",
            max_instances=1,
        )
        self.scheduler.add_job(
            self.board.load_all_timetables,
            "interval",
            seconds=settings.data_refresh_seconds,
            id="data_refresh",
            name="Reload configs and timetables",
            max_instances=1,
        )
        self.scheduler.add_job(
            self.board.check_midnight,
            "interval",
            seconds=settings.midnight_check_seconds,
            id="midnight_check",
            name="Reload on day rollover",
            max_instances=1,
        )
        self.scheduler.add_job(
            self.coordinator.check_version,
            "interval",
            seconds=settings.version_check_seconds,
            id="version_check",
            name="Compare deployed manifest version",
            max_instances=1,
        )

    def _remove_jobs(self) -> None:
        for job_id in JOB_IDS:
            if self.scheduler.get_job(job_id) is not None:
                self.scheduler.remove_job(job_id)

    def start(self) -> None:
        self._remove_jobs()
        self._add_jobs()
        if not self.scheduler.running:
            self.scheduler.start()

    def restart(self) -> None:
        self._remove_jobs()
        self._add_jobs()
        logger.info("Restarted timers: %s", ", ".join(JOB_IDS))

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
