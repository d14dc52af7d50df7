import asyncio
import logging
import os
import sys

# Ensure the sitecfg package can be imported
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../..")))

from sitecfg.core.config import settings  # noqa: E402
from sitecfg.core.mq import TranslationQueue  # noqa: E402

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
logger = logging.getLogger("retry_dlq")


async def main():
    logger.info("Starting DLQ Retry Script...")
    if settings.TRANSLATION_QUEUE_URL.startswith("memory://"):
        logger.error("TRANSLATION_QUEUE_URL is memory://; the DLQ only lives inside the running service.")
        return

    queue = TranslationQueue.from_url(settings.TRANSLATION_QUEUE_URL)
    try:
        dlq_len = await queue.dlq_size()
        if dlq_len == 0:
            logger.info("DLQ is empty. Nothing to retry.")
            return

        logger.info(f"Found {dlq_len} translation jobs in DLQ. Moving them back to the queue...")
        count = await queue.requeue_dead_letters()
        logger.info(f"Successfully requeued {count} jobs.")
    finally:
        await queue.close()


if __name__ == "__main__":
    asyncio.run(main())
