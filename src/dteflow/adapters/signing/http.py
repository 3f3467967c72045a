"""Signing adapter for the HTTP document signer."""

import json
import logging
import time
from collections.abc import Callable
from urllib.parse import urlparse

import httpx

from ...domain.models import SigningRequest
from ...domain.payload import jsonable, to_payload
from ...errors import SigningError
from ...ports.signing import SigningPort
from ...retry import backoff_delay

logger = logging.getLogger(__name__)

RETRIABLE_STATUS = frozenset({502, 503, 504})


def _error_detail(body: object) -> tuple[str, str]:
    """Pull (code, message) out of a signer ERROR body."""
    if not isinstance(body, dict):
        return "UNKNOWN", "Unknown signer error"
    message = body.get("mensaje")
    if isinstance(message, list):
        message = "; ".join(str(m) for m in message)
    if not isinstance(message, str) or not message:
        message = "Unknown signer error"
    code = body.get("codigo")
    return (code if isinstance(code, str) and code else "UNKNOWN"), message


class HttpSigningAdapter(SigningPort):
    """Signing implementation using the signer's REST endpoint.

    The hosted signer sleeps when idle, so the first call is preceded by a
    status check. 502/503/504 responses and timeouts are retried with backoff.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        wake_timeout: float = 60.0,
        max_retries: int = 2,
        wake_retries: int = 3,
        backoff_base: float = 2.0,
        client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        parsed = urlparse(base_url)
        if parsed.scheme not in ("http", "https"):
            raise ValueError(f"Invalid signer url scheme: {parsed.scheme}")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.wake_timeout = wake_timeout
        self.max_retries = max_retries
        self.wake_retries = wake_retries
        self.backoff_base = backoff_base
        self.client = client or httpx.Client()
        self.sleep = sleep
        self._awake = False

    def wake(self) -> None:
        if self._awake:
            return

        url = f"{self.base_url}/firmardocumento/status"
        for attempt in range(self.wake_retries + 1):
            try:
                response = self.client.get(
                    url, headers={"Accept": "application/json"}, timeout=self.wake_timeout
                )
            except httpx.TimeoutException as e:
                if attempt < self.wake_retries:
                    self._backoff(attempt, "wake timed out")
                    continue
                raise SigningError("TIMEOUT", f"Signer did not wake up: {e}") from e
            except httpx.TransportError as e:
                if attempt < self.wake_retries:
                    self._backoff(attempt, f"wake failed: {e}")
                    continue
                raise SigningError("UNREACHABLE", f"Signer unreachable: {e}") from e

            if response.is_success:
                self._awake = True
                logger.info("Signer is awake")
                return
            if response.status_code in RETRIABLE_STATUS and attempt < self.wake_retries:
                self._backoff(attempt, f"wake got HTTP {response.status_code}")
                continue
            raise SigningError(
                f"HTTP-{response.status_code}", f"Signer health check failed: {response.text}"
            )

    def sign(self, request: SigningRequest) -> str:
        self.wake()
        logger.info(f"Signing document {request.document.generation_code}")

        body = {
            "nit": request.tax_id,
            "passwordPri": request.credential,
            "dteJson": jsonable(to_payload(request.document)),
        }
        url = f"{self.base_url}/firmardocumento/"

        for attempt in range(self.max_retries + 1):
            try:
                response = self.client.post(
                    url,
                    json=body,
                    headers={"Accept": "application/json"},
                    timeout=self.timeout,
                )
            except httpx.TimeoutException as e:
                if attempt < self.max_retries:
                    self._backoff(attempt, "signing timed out")
                    continue
                raise SigningError("TIMEOUT", f"Timed out signing after {self.timeout}s") from e
            except httpx.TransportError as e:
                if attempt < self.max_retries:
                    self._backoff(attempt, f"signing failed: {e}")
                    continue
                raise SigningError("UNREACHABLE", f"Signer unreachable: {e}") from e

            if response.status_code == 400:
                raise SigningError("HTTP-400", response.text)
            if not response.is_success:
                if response.status_code in RETRIABLE_STATUS and attempt < self.max_retries:
                    self._backoff(attempt, f"signer returned HTTP {response.status_code}")
                    continue
                raise SigningError(f"HTTP-{response.status_code}", response.text)

            return self._parse_response(response)

        raise SigningError("UNKNOWN", "Could not sign the document")

    def _parse_response(self, response: httpx.Response) -> str:
        try:
            payload = response.json()
        except json.JSONDecodeError as e:
            raise SigningError("BAD_RESPONSE", f"Unexpected signer response: {response.text[:200]}") from e

        if not isinstance(payload, dict):
            raise SigningError("BAD_RESPONSE", f"Unexpected signer response: {payload!r}")

        status = payload.get("status")
        if status == "ERROR":
            code, message = _error_detail(payload.get("body"))
            raise SigningError(code, message)
        if status != "OK":
            raise SigningError("BAD_RESPONSE", f"Unexpected signer status: {status}")

        envelope = payload.get("body")
        if not isinstance(envelope, str) or not envelope:
            raise SigningError("BAD_RESPONSE", "Signer response has no envelope")
        return envelope

    def _backoff(self, attempt: int, reason: str) -> None:
        delay = backoff_delay(attempt, self.backoff_base)
        logger.warning(f"Signer {reason}, retrying in {delay:.1f}s")
        self.sleep(delay)
