import asyncio
import logging
import time
import uuid
from collections import deque
from typing import Any, Deque, Dict, Optional

import redis.asyncio as redis
from pydantic import BaseModel, Field

from sitecfg.core.config import settings

logger = logging.getLogger("sitecfg.mq")

# ==========================================
# Schema Definitions
# ==========================================


class TranslationJob(BaseModel):
    """
    Envelope handed from a default-language schema write to the worker pool.
    `target_language` narrows a retry to the one language that failed.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    schema_key: str
    tenant_id: str
    target_language: Optional[str] = None
    attempts: int = 0
    meta: Dict[str, Any] = Field(default_factory=dict)
    created_at: float = Field(default_factory=time.time)

    def retry_for(self, language: Optional[str], error_msg: str, delay: float = 0.0) -> "TranslationJob":
        """Next attempt for one language (None retries every language)."""
        meta = dict(self.meta)
        meta["last_error"] = error_msg
        meta["not_before"] = time.time() + delay
        return TranslationJob(
            schema_key=self.schema_key,
            tenant_id=self.tenant_id,
            target_language=language,
            attempts=self.attempts + 1,
            meta=meta,
        )

    @property
    def is_due(self) -> bool:
        return self.meta.get("not_before", 0) <= time.time()


# ==========================================
# Queue Backends
# ==========================================


class TranslationQueue:
    """Work queue plus dead-letter channel for translation jobs."""

    async def push(self, job: TranslationJob):
        raise NotImplementedError

    async def pop(self) -> Optional[TranslationJob]:
        """Non-blocking; None when the queue is empty."""
        raise NotImplementedError

    async def push_dlq(self, job: TranslationJob, error_msg: str = ""):
        raise NotImplementedError

    async def pop_dlq(self) -> Optional[TranslationJob]:
        raise NotImplementedError

    async def pending(self) -> int:
        raise NotImplementedError

    async def dlq_size(self) -> int:
        raise NotImplementedError

    async def close(self):
        pass

    async def requeue_dead_letters(self) -> int:
        """Move every dead letter back to the work queue with its attempt count reset."""
        count = 0
        while True:
            job = await self.pop_dlq()
            if job is None:
                break
            job.meta.pop("dlq_error", None)
            job.meta.pop("dlq_timestamp", None)
            job.meta.pop("not_before", None)
            job.attempts = 0
            await self.push(job)
            count += 1
            logger.info(f"Requeued translation job {job.id} ({job.schema_key}/{job.tenant_id} -> {job.target_language})")
        return count

    @staticmethod
    def from_url(url: Optional[str] = None, maxsize: Optional[int] = None) -> "TranslationQueue":
        url = url or settings.TRANSLATION_QUEUE_URL
        if url.startswith("memory://"):
            return MemoryTranslationQueue(maxsize or settings.TRANSLATION_QUEUE_MAXSIZE)
        if url.startswith(("redis://", "rediss://", "unix://")):
            return RedisTranslationQueue(url)
        raise ValueError(f"Unsupported translation queue URL: {url}")


class MemoryTranslationQueue(TranslationQueue):
    """Bounded in-process queue. A full queue rejects the handoff."""

    def __init__(self, maxsize: int = 1000):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._dlq: Deque[TranslationJob] = deque()

    async def push(self, job: TranslationJob):
        self._queue.put_nowait(job)
        logger.debug(f"Translation job queued: {job.id} ({job.schema_key}/{job.tenant_id})")

    async def pop(self) -> Optional[TranslationJob]:
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    async def push_dlq(self, job: TranslationJob, error_msg: str = ""):
        job.meta["dlq_error"] = error_msg
        job.meta["dlq_timestamp"] = time.time()
        self._dlq.appendleft(job)
        logger.warning(f"Translation job {job.id} sent to DLQ ({job.target_language}). Error: {error_msg}")

    async def pop_dlq(self) -> Optional[TranslationJob]:
        return self._dlq.pop() if self._dlq else None

    async def pending(self) -> int:
        return self._queue.qsize()

    async def dlq_size(self) -> int:
        return len(self._dlq)


class RedisTranslationQueue(TranslationQueue):
    """
    Redis Lists backend, LPUSH at the head and RPOP from the tail (FIFO).
    One client per event loop.
    """

    QUEUE_KEY = "translation:queue"
    DLQ_KEY = "translation:dlq"

    def __init__(self, url: str):
        self.url = url
        self._redis_instances: Dict[int, redis.Redis] = {}

    async def get_redis(self) -> redis.Redis:
        try:
            loop_id = id(asyncio.get_running_loop())
        except RuntimeError:
            loop_id = 0

        if loop_id not in self._redis_instances:
            self._redis_instances[loop_id] = redis.from_url(self.url, decode_responses=True)
            logger.debug(f"Created new Redis client for loop {loop_id}")
        return self._redis_instances[loop_id]

    async def close(self):
        for loop_id, client in list(self._redis_instances.items()):
            try:
                await client.close()
            except Exception as e:
                logger.debug(f"Ignoring Redis close error: {e}")
            del self._redis_instances[loop_id]

    async def push(self, job: TranslationJob):
        r = await self.get_redis()
        try:
            await r.lpush(self.QUEUE_KEY, job.model_dump_json())
            logger.debug(f"Translation job queued: {job.id} ({job.schema_key}/{job.tenant_id})")
        except Exception as e:
            logger.error(f"Failed to push translation job: {e}")
            raise

    async def pop(self) -> Optional[TranslationJob]:
        r = await self.get_redis()
        try:
            data = await r.rpop(self.QUEUE_KEY)
            if data:
                return TranslationJob.model_validate_json(data)
        except Exception as e:
            logger.error(f"Failed to pop translation job: {e}")
        return None

    async def push_dlq(self, job: TranslationJob, error_msg: str = ""):
        r = await self.get_redis()
        try:
            job.meta["dlq_error"] = error_msg
            job.meta["dlq_timestamp"] = time.time()
            await r.lpush(self.DLQ_KEY, job.model_dump_json())
            logger.warning(f"Translation job {job.id} sent to DLQ ({job.target_language}). Error: {error_msg}")
        except Exception as e:
            logger.error(f"Failed to push to DLQ: {e}")

    async def pop_dlq(self) -> Optional[TranslationJob]:
        r = await self.get_redis()
        while True:
            data = await r.rpop(self.DLQ_KEY)
            if not data:
                return None
            try:
                return TranslationJob.model_validate_json(data)
            except ValueError as e:
                logger.error(f"Dropping unreadable DLQ entry: {e}")

    async def pending(self) -> int:
        r = await self.get_redis()
        return int(await r.llen(self.QUEUE_KEY))

    async def dlq_size(self) -> int:
        r = await self.get_redis()
        return int(await r.llen(self.DLQ_KEY))
