"""Transmission adapters."""

import httpx

from ...config import AuthorityConfig
from ...domain.models import Environment
from ...ports.transmission import TransmissionPort
from .http import HttpTransmissionAdapter
from .token_cache import TokenCache

__all__ = ["HttpTransmissionAdapter", "TokenCache", "create_transmission_adapter"]


def create_transmission_adapter(config: AuthorityConfig) -> TransmissionPort:
    """Create transmission adapter with one token cache per environment."""
    client = httpx.Client()
    urls = {env: config.url_for(env) for env in Environment}
    caches = {
        env: TokenCache(
            base_url=url,
            user=config.user,
            password=config.password.get_secret_value(),
            ttl=config.token_ttl,
            timeout=config.timeout,
            client=client,
        )
        for env, url in urls.items()
    }
    return HttpTransmissionAdapter(
        token_caches=caches, urls=urls, timeout=config.timeout, client=client
    )
