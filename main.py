import asyncio
import logging
import sys

from ficqueue.browser.pool import BrowserPool
from ficqueue.dispatch.dispatcher import Dispatcher
from ficqueue.dispatch.notifications import LoggingNotifier
from ficqueue.dispatch.processor import JobProcessor
from ficqueue.store.config_store import ConfigStore
from ficqueue.store.database import build_engine, build_sessionmaker, init_db
from ficqueue.store.jobs import JobStore
from ficqueue.store.results import ResultStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger("ficqueue")


async def main():
    """
    Main entry point: run the queue worker until interrupted.
    """
    engine = build_engine()
    await init_db(engine)
    sessions = build_sessionmaker(engine)

    pool = BrowserPool()
    results = ResultStore(sessions)
    dispatcher = Dispatcher(
        jobs=JobStore(sessions),
        config=ConfigStore(sessions),
        results=results,
        processor=JobProcessor(pool, results),
        notifier=LoggingNotifier(),
    )

    pool.start()
    try:
        await dispatcher.run_forever()
    finally:
        logger.info("Shutting down queue worker")
        await pool.shutdown()
        await engine.dispose()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
