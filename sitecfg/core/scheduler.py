import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from sitecfg.core.config import settings
from sitecfg.core.mq import TranslationQueue

logger = logging.getLogger("sitecfg.scheduler")

DLQ_JOB_ID = "translation_dlq_requeue"


class TranslationScheduler:
    """Periodically moves dead-lettered translation jobs back onto the queue."""

    def __init__(self, queue: TranslationQueue, interval_minutes: Optional[int] = None):
        self.queue = queue
        self.interval_minutes = settings.TRANSLATION_DLQ_RETRY_MINUTES if interval_minutes is None else interval_minutes
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def running(self) -> bool:
        return bool(self._scheduler and self._scheduler.running)

    async def start(self):
        if self.running:
            return
        if self.interval_minutes <= 0:
            logger.info("DLQ requeue disabled (TRANSLATION_DLQ_RETRY_MINUTES=0).")
            return

        logger.info(f"Starting Translation Scheduler (DLQ requeue every {self.interval_minutes} min)...")
        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.requeue_dead_letters,
            IntervalTrigger(minutes=self.interval_minutes),
            id=DLQ_JOB_ID,
            replace_existing=True,
        )
        self._scheduler.start()

    async def stop(self):
        if self.running:
            self._scheduler.shutdown()
            logger.info("Translation Scheduler stopped.")

    async def requeue_dead_letters(self) -> int:
        try:
            count = await self.queue.requeue_dead_letters()
        except Exception as e:
            logger.error(f"DLQ requeue failed: {e}")
            return 0
        if count:
            logger.info(f"Requeued {count} dead-lettered translation jobs.")
        return count
