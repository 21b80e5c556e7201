import logging
from abc import ABC, abstractmethod
from typing import Optional, Dict

from ficqueue.config.settings import settings

logger = logging.getLogger(__name__)


class ProxyProvider(ABC):
    """
    Base class for outbound proxy providers.
    """

    @abstractmethod
    def get_config(self) -> Optional[Dict[str, str]]:
        """
        Returns a Playwright proxy dict ('server', optional 'username'/'password'),
        or None if no proxy should be used.
        """
        pass

    @abstractmethod
    def get_name(self) -> str:
        pass


class NoProxyProvider(ProxyProvider):
    def get_config(self) -> Optional[Dict[str, str]]:
        return None

    def get_name(self) -> str:
        return "No Proxy"


class GenericProxyProvider(ProxyProvider):
    """
    Any HTTP/SOCKS proxy. Requires PROXY_SERVER; PROXY_USERNAME and
    PROXY_PASSWORD are optional.
    """

    def get_config(self) -> Optional[Dict[str, str]]:
        if not settings.PROXY_SERVER:
            logger.warning("PROXY_SERVER not set. Cannot use generic proxy.")
            return None

        config = {"server": settings.PROXY_SERVER}
        if settings.PROXY_USERNAME:
            config["username"] = settings.PROXY_USERNAME
        if settings.PROXY_PASSWORD:
            config["password"] = settings.PROXY_PASSWORD
        return config

    def get_name(self) -> str:
        return "Generic Proxy"


PROXY_PROVIDERS: Dict[str, type[ProxyProvider]] = {
    "none": NoProxyProvider,
    "generic": GenericProxyProvider,
}


def get_proxy_config(provider_name: Optional[str] = None) -> Optional[Dict[str, str]]:
    """
    Resolve the proxy for new browser contexts from PROXY_PROVIDER.
    Unknown provider names fall back to no proxy.
    """
    provider_name = (provider_name or settings.PROXY_PROVIDER).lower()
    provider_class = PROXY_PROVIDERS.get(provider_name)

    if not provider_class:
        logger.error(
            f"Unknown proxy provider: '{provider_name}'. "
            f"Available providers: {', '.join(PROXY_PROVIDERS.keys())}"
        )
        return None

    return provider_class().get_config()
