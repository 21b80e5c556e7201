"""
Pooled browser session.

The pool owns one long-lived Playwright browser. It hands the same session
out until it has been used ``max_uses`` times, has disconnected, or has
failed a health probe, and then replaces it with a new browser under a
freshly chosen user agent. Callers never close the browser themselves.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from playwright.async_api import Browser, Page, Playwright, async_playwright

from ficqueue.browser.context import create_context
from ficqueue.browser.launch import create_browser
from ficqueue.browser.user_agent import UserAgentProvider
from ficqueue.config.settings import settings
from ficqueue.core.errors import ResourceError

logger = logging.getLogger(__name__)

BrowserFactory = Callable[[], Awaitable[Browser]]


@dataclass
class BrowserSession:
    browser: Any
    user_agent: str
    generation: int
    uses: int = 0
    launched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    disconnected: bool = False

    @property
    def session_id(self) -> str:
        return f"session-{self.generation}"

    def is_alive(self) -> bool:
        if self.disconnected:
            return False
        try:
            return bool(self.browser.is_connected())
        except Exception:
            return False


class BrowserPool:
    def __init__(
        self,
        max_uses: int = settings.POOL_MAX_USES,
        health_check_interval: float = settings.POOL_HEALTH_CHECK_INTERVAL,
        browser_factory: Optional[BrowserFactory] = None,
    ):
        self.max_uses = max_uses
        self.health_check_interval = health_check_interval
        self._browser_factory = browser_factory or self._launch_playwright_browser
        self._playwright: Optional[Playwright] = None
        self._session: Optional[BrowserSession] = None
        self._lock = asyncio.Lock()
        self._generation = 0
        self._in_use = 0
        self._health_task: Optional[asyncio.Task] = None

    @property
    def session(self) -> Optional[BrowserSession]:
        return self._session

    async def _launch_playwright_browser(self) -> Browser:
        if self._playwright is None:
            self._playwright = await async_playwright().start()
            logger.info("Playwright started")
        return await create_browser(self._playwright)

    async def acquire(self, reserve: bool = False) -> BrowserSession:
        """
        Return the current session, recycling it first when it is exhausted
        or dead. Launch failures propagate as ResourceError.

        With ``reserve`` the session also counts as in use until ``release()``
        is called. The health probe never closes a session that is in use.
        """
        async with self._lock:
            session = self._session
            if session is not None and session.uses < self.max_uses and session.is_alive():
                session.uses += 1
            else:
                if session is not None:
                    if session.uses >= self.max_uses:
                        reason = f"reached {self.max_uses} uses"
                    else:
                        reason = "disconnected"
                    logger.info(f"Recycling browser {session.session_id}: {reason}")
                    self._session = None
                    await self._close_session(session)

                self._session = await self._launch(previous=session)
                self._session.uses = 1

            if reserve:
                self._in_use += 1
            return self._session

    def release(self):
        self._in_use = max(0, self._in_use - 1)

    async def _launch(self, previous: Optional[BrowserSession] = None) -> BrowserSession:
        user_agent = UserAgentProvider.get_random(
            exclude=previous.user_agent if previous else None
        )
        try:
            browser = await self._browser_factory()
        except Exception as e:
            logger.error(f"Browser launch failed: {e}")
            raise ResourceError(f"Browser launch failed: {e}") from e

        self._generation += 1
        session = BrowserSession(
            browser=browser, user_agent=user_agent, generation=self._generation
        )
        self._watch_disconnect(session)
        logger.info(
            f"Launched browser {session.session_id} at "
            f"{session.launched_at.isoformat()} (UA: {user_agent})"
        )
        return session

    def _watch_disconnect(self, session: BrowserSession):
        def _mark_disconnected(*_):
            session.disconnected = True
            logger.warning(f"Browser {session.session_id} disconnected")

        on = getattr(session.browser, "on", None)
        if on is not None:
            on("disconnected", _mark_disconnected)

    async def _close_session(self, session: BrowserSession):
        try:
            await session.browser.close()
            logger.info(f"Closed browser {session.session_id}")
        except Exception as e:
            logger.warning(f"Error closing browser {session.session_id}: {e}")

    @asynccontextmanager
    async def page(self) -> AsyncIterator[Page]:
        """
        Yield a page in a fresh context on the pooled browser and close both
        afterwards. Each call counts as one use of the session.
        """
        session = await self.acquire(reserve=True)
        context = None
        try:
            try:
                context = await create_context(session.browser, session.user_agent)
                page = await context.new_page()
            except Exception as e:
                raise ResourceError(f"Could not open page: {e}") from e
            yield page
        finally:
            if context is not None:
                try:
                    await context.close()
                except Exception as e:
                    logger.warning(f"Error closing browser context: {e}")
            self.release()

    async def check_health(self) -> bool:
        """
        Open and close a throwaway page on the current session. A failed probe
        drops the session and launches a replacement straight away.

        The probe holds the pool lock, so no caller can acquire the session
        while it runs. Sessions with pages open are skipped.
        """
        async with self._lock:
            session = self._session
            if session is None:
                return True
            if self._in_use:
                logger.debug("Skipping health check, session in use")
                return True

            try:
                probe = await session.browser.new_page()
                await probe.close()
                logger.info(f"Health check passed for {session.session_id}")
                return True
            except Exception as e:
                logger.warning(f"Health check failed for {session.session_id}: {e}")

            self._session = None
            await self._close_session(session)
            try:
                self._session = await self._launch(previous=session)
            except ResourceError:
                # acquire() will retry the launch
                pass
            return False

    async def _health_loop(self):
        while True:
            await asyncio.sleep(self.health_check_interval)
            try:
                await self.check_health()
            except Exception as e:
                logger.error(f"Health check loop error: {e}")

    def start(self):
        """Start the background health probe."""
        if self._health_task is None or self._health_task.done():
            self._health_task = asyncio.create_task(self._health_loop())
            logger.info(
                f"Browser health checks every {self.health_check_interval:.0f}s"
            )

    async def shutdown(self):
        if self._health_task is not None:
            self._health_task.cancel()
            try:
                await self._health_task
            except asyncio.CancelledError:
                pass
            self._health_task = None

        async with self._lock:
            if self._session is not None:
                await self._close_session(self._session)
                self._session = None

        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
            logger.info("Playwright stopped")
