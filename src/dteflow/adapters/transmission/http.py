"""Transmission adapter for the tax authority reception service."""

import base64
import binascii
import json
import logging
import re
import time
import uuid
from typing import Any

import httpx

from ...domain.models import (
    AuthorityMessage,
    Environment,
    TransmissionResult,
    TransmissionStatus,
)
from ...errors import CommunicationError
from ...ports.transmission import TransmissionPort
from .token_cache import TokenCache

logger = logging.getLogger(__name__)

STATUS_MAP = {
    "PROCESADO": TransmissionStatus.ACCEPTED,
    "ACEPTADO": TransmissionStatus.ACCEPTED,
    "ACEPTADO_CON_ADVERTENCIAS": TransmissionStatus.ACCEPTED_WITH_WARNINGS,
    "PROCESANDO": TransmissionStatus.PROCESSING,
    "RECHAZADO": TransmissionStatus.REJECTED,
}

# Signed payloads are not always strict JSON; these recover the few
# identification fields the reception request needs.
_VERSION_RE = re.compile(r'"version"\s*:\s*(\d+)')
_TYPE_RE = re.compile(r'"tipoDte"\s*:\s*"([^"]+)"')
_CODE_RE = re.compile(r'"codigoGeneracion"\s*:\s*"([^"]+)"')


def _b64url_decode(segment: str) -> str | None:
    padded = segment.replace("-", "+").replace("_", "/")
    padded += "=" * (-len(padded) % 4)
    try:
        return base64.b64decode(padded).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None


def envelope_identification(envelope: str) -> dict[str, Any] | None:
    """Extract version, type and generation code from a signed envelope."""
    parts = envelope.split(".")
    if len(parts) < 2:
        return None
    text = _b64url_decode(parts[1])
    if not text:
        return None

    try:
        payload = json.loads(text)
        ident = payload.get("identificacion") if isinstance(payload, dict) else None
        if isinstance(ident, dict):
            version = ident.get("version")
            doc_type = ident.get("tipoDte")
            code = ident.get("codigoGeneracion")
        else:
            version = doc_type = code = None
    except json.JSONDecodeError:
        version_match = _VERSION_RE.search(text)
        type_match = _TYPE_RE.search(text)
        code_match = _CODE_RE.search(text)
        version = int(version_match.group(1)) if version_match else None
        doc_type = type_match.group(1) if type_match else None
        code = code_match.group(1) if code_match else None

    if not isinstance(version, int) or not isinstance(doc_type, str) or not isinstance(code, str):
        return None
    return {"version": version, "tipoDte": doc_type, "codigoGeneracion": code}


def _messages(values: Any, default_severity: str | None = None) -> tuple[AuthorityMessage, ...]:
    if not isinstance(values, list):
        return ()
    messages = []
    for value in values:
        if isinstance(value, str):
            messages.append(AuthorityMessage(code="MH", description=value, severity=default_severity))
        elif isinstance(value, dict):
            messages.append(
                AuthorityMessage(
                    code=str(value.get("codigo") or value.get("codigoMsg") or "MH"),
                    description=str(value.get("descripcion") or value.get("descripcionMsg") or ""),
                    field=value.get("campo"),
                    severity=value.get("severidad") or default_severity,
                )
            )
    return tuple(messages)


def parse_response(data: dict[str, Any], generation_code: str | None = None) -> TransmissionResult:
    """Map an authority reception response to a TransmissionResult."""
    raw_status = str(data.get("estado") or "").upper()
    status = STATUS_MAP.get(raw_status, TransmissionStatus.REJECTED)

    errors = list(_messages(data.get("errores"), "ERROR"))
    observations = data.get("observaciones")
    code_msg = data.get("codigoMsg")
    if isinstance(observations, list):
        errors.extend(
            AuthorityMessage(code=str(code_msg or "MH"), description=str(obs), severity="ERROR")
            for obs in observations
            if obs
        )

    return TransmissionResult(
        status=status,
        generation_code=data.get("codigoGeneracion") or generation_code,
        receipt_seal=data.get("selloRecibido") or data.get("selloRecepcion"),
        control_number=data.get("numeroControl"),
        received_at=data.get("fhRecepcion"),
        processed_at=data.get("fhProcesamiento"),
        message=data.get("descripcionMsg"),
        warnings=_messages(data.get("advertencias"), "WARNING"),
        errors=tuple(errors),
    )


class HttpTransmissionAdapter(TransmissionPort):
    """Transmission implementation using the authority's REST API."""

    def __init__(
        self,
        token_caches: dict[Environment, TokenCache],
        urls: dict[Environment, str],
        timeout: float = 8.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.token_caches = token_caches
        self.urls = {env: url.rstrip("/") for env, url in urls.items()}
        self.timeout = timeout
        self.client = client or httpx.Client()

    def transmit(self, envelope: str, environment: Environment) -> TransmissionResult:
        ident = envelope_identification(envelope)
        if ident is None:
            logger.error("Could not read identification from signed envelope")
            return TransmissionResult(
                status=TransmissionStatus.REJECTED,
                message="Signed envelope is not a readable JWS",
                errors=(
                    AuthorityMessage(
                        code="ENVELOPE",
                        description="Missing identificacion.version, tipoDte or codigoGeneracion",
                    ),
                ),
            )

        base_url = self.urls[environment]
        token_cache = self.token_caches[environment]
        token = token_cache.get()

        body = {
            "ambiente": environment.value,
            "idEnvio": int(time.time() * 1000),
            "version": ident["version"],
            "tipoDte": ident["tipoDte"],
            "documento": envelope,
            "codigoGeneracion": ident["codigoGeneracion"],
        }
        logger.info(f"Transmitting {ident['codigoGeneracion']} to {base_url}")

        try:
            response = self.client.post(
                f"{base_url}/fesv/recepciondte",
                json=body,
                headers={
                    "Authorization": f"Bearer {token}",
                    "User-Agent": "dteflow",
                    "X-Request-ID": str(uuid.uuid4()),
                },
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise CommunicationError(f"Authority timed out after {self.timeout}s") from e
        except httpx.TransportError as e:
            raise CommunicationError(f"Authority unreachable: {e}") from e

        if response.status_code in (401, 403):
            token_cache.invalidate()
            raise CommunicationError("Authority token expired", status_code=response.status_code)
        if response.status_code >= 500:
            raise CommunicationError(
                f"Authority error: {response.text[:200]}", status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        result = parse_response(data, ident["codigoGeneracion"])
        logger.info(f"Authority answered {result.status.value} for {result.generation_code}")
        return result
