import asyncio
import logging
from typing import List, Optional

from sitecfg.core.config import settings
from sitecfg.core.fanout import FanoutReport, TranslationFanout
from sitecfg.core.mq import TranslationJob, TranslationQueue

logger = logging.getLogger("sitecfg.worker")


class TranslationWorkerPool:
    """
    Background consumers of the translation queue.

    Each failed language is re-enqueued as its own job with exponential
    backoff; after `max_attempts` it goes to the dead-letter queue.
    """

    def __init__(
        self,
        queue: TranslationQueue,
        fanout: TranslationFanout,
        workers: Optional[int] = None,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        poll_interval: float = 0.1,
    ):
        self.queue = queue
        self.fanout = fanout
        self.workers = workers or settings.TRANSLATION_WORKERS
        self.max_attempts = max_attempts or settings.TRANSLATION_MAX_ATTEMPTS
        self.base_delay = settings.TRANSLATION_RETRY_BASE_DELAY if base_delay is None else base_delay
        self.poll_interval = poll_interval

        self._running = False
        self._tasks: List[asyncio.Task] = []
        self._in_flight = 0

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        if self._running:
            return
        self._running = True
        self._tasks = [asyncio.create_task(self._loop(i)) for i in range(self.workers)]
        logger.info(f"Translation Worker Pool Started ({self.workers} workers).")

    async def stop(self):
        self._running = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        logger.info("Translation Worker Pool Stopped.")

    async def wait_idle(self, timeout: float = 10.0) -> bool:
        """Wait until the queue is drained and no job is in flight."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while loop.time() < deadline:
            if self._in_flight == 0 and await self.queue.pending() == 0:
                return True
            await asyncio.sleep(0.05)
        return False

    async def _loop(self, worker_id: int):
        logger.debug(f"Translation worker {worker_id} running...")
        while self._running:
            try:
                job = await self.queue.pop()
                if job is None:
                    await asyncio.sleep(self.poll_interval)
                    continue

                self._in_flight += 1
                try:
                    if job.is_due:
                        await self.process(job)
                    else:
                        # Backoff not elapsed yet; put it back behind newer work
                        await self.queue.push(job)
                finally:
                    self._in_flight -= 1
                if not job.is_due:
                    await asyncio.sleep(self.poll_interval)

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Translation Worker Error: {e}")
                await asyncio.sleep(1.0)

    async def process(self, job: TranslationJob) -> Optional[FanoutReport]:
        logger.info(
            f"Processing translation job {job.id}: {job.schema_key}/{job.tenant_id} "
            f"(lang={job.target_language or 'all'}, attempt {job.attempts + 1}/{self.max_attempts})"
        )
        try:
            report = await self.fanout.run(job)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Nothing was translated; retry the job as a whole
            await self._retry(job, job.target_language, str(e))
            return None

        for language, error_msg in report.failed.items():
            await self._retry(job, language, error_msg)
        return report

    async def _retry(self, job: TranslationJob, language: Optional[str], error_msg: str):
        attempt = job.attempts + 1
        delay = self.base_delay * (2 ** (attempt - 1))

        retry = job.retry_for(language, error_msg, delay)

        if attempt >= self.max_attempts:
            logger.error(
                f"Translation of {job.schema_key}/{job.tenant_id} to {language or 'all'} failed "
                f"after {attempt} attempts: {error_msg}"
            )
            await self.queue.push_dlq(retry, error_msg=error_msg)
            return

        logger.warning(
            f"Translation of {job.schema_key}/{job.tenant_id} to {language or 'all'} failed "
            f"(Attempt {attempt}/{self.max_attempts}). Retrying in {delay}s: {error_msg}"
        )
        try:
            await self.queue.push(retry)
        except Exception as e:
            logger.error(f"Failed to requeue translation job {job.id}: {e}")
            await self.queue.push_dlq(retry, error_msg=error_msg)
