"""Rewrite a document into its deferred (contingency) variant."""

from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from .catalog import (
    CONTINGENCY_ELIGIBLE_TYPES,
    CONTINGENCY_OPERATION,
    CONTINGENCY_TYPES,
    DEFERRED_MODEL,
    INTERNET_FAILURE,
    OTHER_CONTINGENCY,
)
from .models import Document

# El Salvador does not observe daylight saving time
LOCAL_TZ = timezone(timedelta(hours=-6), "America/El_Salvador")

DEFAULT_REASON = CONTINGENCY_TYPES[INTERNET_FAILURE]


def local_now() -> datetime:
    return datetime.now(LOCAL_TZ)


def supports_contingency(document_type: str | None) -> bool:
    return document_type in CONTINGENCY_ELIGIBLE_TYPES


def to_contingency(
    document: Document,
    reason: str | None = None,
    contingency_type: int = INTERNET_FAILURE,
    clock: Callable[[], datetime] = local_now,
) -> Document:
    """Switch to the deferred model and stamp the local emission time.

    The free-text reason is only carried for contingency type 5 ("other");
    for the catalogued types the code itself is the reason.
    """
    if contingency_type not in CONTINGENCY_TYPES:
        raise ValueError(f"Unknown contingency type: {contingency_type}")

    stamp = clock()
    identification = replace(
        document.identification,
        model_type=DEFERRED_MODEL,
        operation_type=CONTINGENCY_OPERATION,
        contingency_type=contingency_type,
        contingency_reason=(reason or DEFAULT_REASON)
        if contingency_type == OTHER_CONTINGENCY
        else None,
        emission_date=stamp.date(),
        emission_time=stamp.time().replace(microsecond=0, tzinfo=None),
    )
    return replace(document, identification=identification)
