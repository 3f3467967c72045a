"""Bearer token cache for the authority's security endpoint."""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from ...errors import AuthenticationError, CommunicationError

logger = logging.getLogger(__name__)

EXPIRY_MARGIN = 30
MIN_LIFETIME = 30


@dataclass(frozen=True)
class CachedToken:
    value: str
    expires_at: float


class TokenCache:
    """Holds one token for one environment and refreshes it on expiry.

    Thread-safe: concurrent callers share a single refresh.
    """

    def __init__(
        self,
        base_url: str,
        user: str,
        password: str,
        ttl: int = 3600,
        timeout: float = 8.0,
        client: httpx.Client | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.user = user
        self.password = password
        self.ttl = ttl
        self.timeout = timeout
        self.client = client or httpx.Client()
        self.clock = clock
        self._token: CachedToken | None = None
        self._lock = threading.Lock()

    def get(self) -> str:
        """Return a valid token, authenticating if needed."""
        with self._lock:
            if self._token is not None and self.clock() < self._token.expires_at:
                return self._token.value
            self._token = self._authenticate()
            return self._token.value

    def invalidate(self) -> None:
        with self._lock:
            self._token = None

    def _authenticate(self) -> CachedToken:
        if not self.user or not self.password:
            raise AuthenticationError("Missing authority user/password")

        logger.info(f"Authenticating against {self.base_url}")
        try:
            response = self.client.post(
                f"{self.base_url}/seguridad/auth",
                data={"user": self.user, "pwd": self.password},
                headers={"User-Agent": "dteflow"},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise CommunicationError(f"Authentication timed out: {e}") from e
        except httpx.TransportError as e:
            raise CommunicationError(f"Authentication failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        body = data.get("body")
        token = body.get("token") if isinstance(body, dict) else None
        if response.status_code >= 500:
            raise CommunicationError(
                f"Authentication service error: {response.text[:200]}",
                status_code=response.status_code,
            )
        if not response.is_success or data.get("status") != "OK" or not isinstance(token, str) or not token:
            raise AuthenticationError(
                f"Authentication rejected: {response.status_code} {response.text[:200]}",
                status_code=response.status_code,
            )

        if token.lower().startswith("bearer "):
            token = token[7:].strip()
        lifetime = max(MIN_LIFETIME, self.ttl - EXPIRY_MARGIN)
        return CachedToken(value=token, expires_at=self.clock() + lifetime)
