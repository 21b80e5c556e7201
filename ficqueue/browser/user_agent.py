import logging
import random
from typing import Optional

from fake_useragent import UserAgent

logger = logging.getLogger(__name__)

# Used when fake_useragent cannot load its data
FALLBACK_USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.4 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
)


class UserAgentProvider:
    """
    Hands out client identity strings for new browser sessions.
    """

    _ua: Optional[UserAgent] = None

    @classmethod
    def initialize(cls):
        if cls._ua is None:
            try:
                cls._ua = UserAgent(
                    browsers=["Chrome", "Firefox", "Safari"],
                    os=["Windows", "Mac OS X"],
                    fallback=FALLBACK_USER_AGENTS[0],
                )
            except Exception as e:
                logger.warning(
                    f"Failed to initialize fake_useragent, using fallback pool: {e}"
                )

    @classmethod
    def get_random(cls, exclude: Optional[str] = None) -> str:
        """
        Return a random user-agent string, preferring one different from ``exclude``.
        """
        cls.initialize()
        for _ in range(5):
            if cls._ua:
                candidate = cls._ua.random
            else:
                candidate = random.choice(FALLBACK_USER_AGENTS)
            if candidate != exclude:
                return candidate
        choices = [ua for ua in FALLBACK_USER_AGENTS if ua != exclude]
        return random.choice(choices or list(FALLBACK_USER_AGENTS))
