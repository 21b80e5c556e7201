import logging

from ficqueue.browser.pool import BrowserPool
from ficqueue.config.settings import settings
from ficqueue.core.errors import FetchError
from ficqueue.core.rate_limit import request_throttle, with_retry

logger = logging.getLogger(__name__)


@with_retry()
async def fetch_html(pool: BrowserPool, url: str) -> str:
    """
    Render ``url`` on the pooled browser and return the page markup.
    """
    await request_throttle.wait()
    async with pool.page() as page:
        logger.info(f"Fetching {url}")
        response = await page.goto(
            url, wait_until="domcontentloaded", timeout=settings.NAVIGATION_TIMEOUT
        )
        if response is not None and response.status >= 400:
            if response.status == 404:
                raise FetchError(f"Page not found (404): {url}", status=404)
            if response.status == 403:
                raise FetchError(f"Access forbidden (403): {url}", status=403)
            raise FetchError(
                f"HTTP {response.status} while fetching {url}", status=response.status
            )
        return await page.content()
