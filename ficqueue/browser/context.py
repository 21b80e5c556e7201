import logging
from typing import Optional
from playwright.async_api import Browser, BrowserContext

from ficqueue.config.settings import settings
from ficqueue.browser.proxy import get_proxy_config

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Upgrade-Insecure-Requests": "1",
}


async def create_context(
    browser: Browser,
    user_agent: Optional[str] = None,
) -> BrowserContext:
    """
    Open a fresh context on the pooled browser carrying the session's identity.
    """
    context_config = {
        "locale": "en-US",
        "proxy": get_proxy_config(),
        "ignore_https_errors": settings.IGNORE_HTTPS_ERRORS,
        "extra_http_headers": DEFAULT_HEADERS,
    }
    if user_agent:
        context_config["user_agent"] = user_agent

    context = await browser.new_context(**context_config)
    context.set_default_navigation_timeout(settings.NAVIGATION_TIMEOUT)
    logger.debug("Browser context created")
    return context
