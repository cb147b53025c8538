"""Cron-driven periodic refresh of every catalog."""

from typing import Iterable, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from scancar.models.errors import TotalRefreshFailure
from scancar.pipeline.catalog import Catalog

JOB_ID = "scheduled_refresh"


class RefreshScheduler:
    """Runs ``trigger_refresh`` on each catalog on a crontab schedule."""

    def __init__(
        self,
        catalogs: Iterable[Catalog],
        schedule: str = "*/30 * * * *",
        timezone: str = "Asia/Ho_Chi_Minh",
        logger=None,
    ):
        """
        Initialize scheduler.

        Args:
            catalogs: Catalogs to refresh
            schedule: Five-field crontab expression
            timezone: IANA timezone the schedule is evaluated in

        Raises:
            ValueError: If the crontab expression is invalid
        """
        self.catalogs: List[Catalog] = list(catalogs)
        self.schedule = schedule
        self.timezone = timezone
        self.logger = logger
        self.trigger = CronTrigger.from_crontab(schedule, timezone=timezone)
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """Start the job on the running event loop."""
        if self.running:
            return
        self._scheduler = AsyncIOScheduler(timezone=self.timezone)
        self._scheduler.add_job(
            self.run_once,
            self.trigger,
            id=JOB_ID,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        if self.logger:
            self.logger.log("scheduler_started", schedule=self.schedule, timezone=self.timezone)

    def shutdown(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None

    async def run_once(self) -> None:
        """Refresh every catalog in turn; a failure is logged, never raised."""
        for catalog in self.catalogs:
            try:
                snapshot = await catalog.coordinator.trigger_refresh()
            except TotalRefreshFailure as e:
                if self.logger:
                    self.logger.warning("scheduled_refresh", catalog=catalog.name, status="failed", error=str(e))
            except Exception as e:
                if self.logger:
                    self.logger.error(
                        "scheduled_refresh", catalog=catalog.name, status="error", error=str(e) or type(e).__name__
                    )
            else:
                if self.logger:
                    self.logger.log(
                        "scheduled_refresh",
                        catalog=catalog.name,
                        status="ok",
                        count=len(snapshot.listings),
                        failed=len(snapshot.errors),
                    )
