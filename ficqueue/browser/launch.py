import logging
from playwright.async_api import Browser, Playwright

from ficqueue.config.settings import settings

logger = logging.getLogger(__name__)

LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--no-first-run",
    "--disable-gpu",
    "--mute-audio",
]


async def create_browser(playwright: Playwright) -> Browser:
    """
    Launch a Chromium browser for the pool.

    BROWSER_CHANNEL selects a system browser build (e.g. "chrome");
    unset means the bundled Chromium.
    """
    launch_options = {
        "headless": settings.HEADLESS,
        "args": LAUNCH_ARGS,
    }
    if settings.BROWSER_CHANNEL:
        launch_options["channel"] = settings.BROWSER_CHANNEL

    browser = await playwright.chromium.launch(**launch_options)
    logger.info(
        f"Browser launched (channel: {settings.BROWSER_CHANNEL or 'chromium'}, "
        f"headless: {settings.HEADLESS})"
    )
    return browser
