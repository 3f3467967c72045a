"""Signing adapters."""

from ...config import SigningConfig
from ...ports.signing import SigningPort
from .http import HttpSigningAdapter

__all__ = ["HttpSigningAdapter", "create_signing_adapter"]


def create_signing_adapter(config: SigningConfig) -> SigningPort:
    """Create signing adapter based on configuration."""
    return HttpSigningAdapter(
        base_url=config.url,
        timeout=config.timeout,
        wake_timeout=config.wake_timeout,
        max_retries=config.max_retries,
        wake_retries=config.wake_retries,
        backoff_base=config.backoff_base,
    )
