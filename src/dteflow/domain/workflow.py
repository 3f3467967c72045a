"""Workflow state machine.

The state is an immutable record; :func:`transition` is a pure function from
(state, event) to the next state. Side effects (gateway calls, ledger writes)
live in :class:`dteflow.domain.services.WorkflowEngine`, which feeds the
results back in as events.

Emission:  draft -> validating -> signing -> transmitting
           -> completed | failed | contingency -> completed
Reception: draft -> receiving -> completed | failed
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum

from .catalog import DEFAULT_MAX_RETRIES
from .contingency import DEFAULT_REASON, supports_contingency
from .models import (
    Document,
    Environment,
    FailureKind,
    FlowDirection,
    MonthlyLedger,
    Status,
    TransmissionResult,
    TransmissionStatus,
    ValidationViolation,
    WorkflowFailure,
    WorkflowOutcome,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkflowState:
    """Everything one run knows. Replaced, never mutated, per transition."""

    document: Document
    direction: FlowDirection
    environment: Environment = Environment.TEST
    credential: str | None = field(default=None, repr=False)
    tax_id: str | None = None
    status: Status = Status.DRAFT
    envelope: str | None = None
    retry_count: int = 0
    max_retries: int = DEFAULT_MAX_RETRIES
    contingency_reason: str | None = None
    deferred: bool = False
    transmission: TransmissionResult | None = None
    violations: tuple[ValidationViolation, ...] = ()
    failure: WorkflowFailure | None = None
    ledger: MonthlyLedger | None = None
    ledger_delta: MonthlyLedger | None = None
    ledger_recorded: bool = False
    ledger_error: str | None = None


# Events


@dataclass(frozen=True)
class Submitted:
    pass


@dataclass(frozen=True)
class ValidationFinished:
    document: Document
    violations: tuple[ValidationViolation, ...]


@dataclass(frozen=True)
class Signed:
    envelope: str


@dataclass(frozen=True)
class SigningFailed:
    code: str
    message: str


@dataclass(frozen=True)
class Transmitted:
    result: TransmissionResult


@dataclass(frozen=True)
class TransmissionFailed:
    """Transport-level fault: timeout, 5xx, connectivity, expired auth."""

    message: str


@dataclass(frozen=True)
class ContingencyIssued:
    document: Document
    envelope: str


@dataclass(frozen=True)
class Received:
    document: Document


@dataclass(frozen=True)
class Failed:
    kind: FailureKind
    message: str
    details: tuple[str, ...] = ()


@dataclass(frozen=True)
class LedgerRecorded:
    ledger: MonthlyLedger
    delta: MonthlyLedger | None


@dataclass(frozen=True)
class LedgerFailed:
    """The document completed but its ledger period could not be written."""

    message: str


Event = (
    Submitted
    | ValidationFinished
    | Signed
    | SigningFailed
    | Transmitted
    | TransmissionFailed
    | ContingencyIssued
    | Received
    | Failed
    | LedgerRecorded
    | LedgerFailed
)


class TransmissionClass(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMMUNICATION = "communication"


def classify_transmission(result: TransmissionResult) -> TransmissionClass:
    """Sort an authority response into accepted, rejected or retryable.

    A "processing" response has no seal yet, so it is treated like a
    transport fault and retried.
    """
    if result.accepted:
        return TransmissionClass.ACCEPTED
    if result.status is TransmissionStatus.PROCESSING:
        return TransmissionClass.COMMUNICATION
    return TransmissionClass.REJECTED


def _fail(state: WorkflowState, kind: FailureKind, message: str, details=()) -> WorkflowState:
    return replace(
        state,
        status=Status.FAILED,
        failure=WorkflowFailure(kind=kind, message=message, details=tuple(details)),
    )


def _violation_failure(state: WorkflowState, blocking: list[ValidationViolation]) -> WorkflowState:
    structural = any(v.code.startswith("SCHEMA") for v in blocking)
    kind = FailureKind.STRUCTURAL if structural else FailureKind.BUSINESS_RULE
    details = [f"{v.code}: {v.description}" for v in blocking]
    return _fail(state, kind, f"{len(blocking)} blocking violation(s)", details)


def _communication_failure(state: WorkflowState, message: str) -> WorkflowState:
    if state.retry_count < state.max_retries:
        return replace(state, retry_count=state.retry_count + 1)
    if supports_contingency(state.document.document_type):
        return replace(
            state,
            status=Status.CONTINGENCY,
            contingency_reason=DEFAULT_REASON,
        )
    return _fail(
        state,
        FailureKind.COMMUNICATION,
        f"Transmission failed after {state.retry_count} retries: {message}",
    )


def _on_transmitted(state: WorkflowState, result: TransmissionResult) -> WorkflowState:
    state = replace(state, transmission=result)
    outcome = classify_transmission(result)
    if outcome is TransmissionClass.ACCEPTED:
        return replace(state, status=Status.COMPLETED)
    if outcome is TransmissionClass.COMMUNICATION:
        return _communication_failure(state, result.message or "Still processing")
    details = [f"{e.code}: {e.description}" for e in result.errors]
    return _fail(
        state,
        FailureKind.AUTHORITY_REJECTION,
        result.message or "Rejected by the tax authority",
        details,
    )


def transition(state: WorkflowState, event: Event) -> WorkflowState:
    """Compute the next state. Unexpected events leave the state unchanged."""
    status = state.status

    if status.terminal:
        if status is not Status.COMPLETED or state.ledger_recorded or state.ledger_error:
            return state
        if isinstance(event, LedgerRecorded):
            return replace(
                state, ledger=event.ledger, ledger_delta=event.delta, ledger_recorded=True
            )
        if isinstance(event, LedgerFailed):
            return replace(state, ledger_error=event.message)
        return state

    if isinstance(event, Failed):
        return _fail(state, event.kind, event.message, event.details)

    match status, event:
        case Status.DRAFT, Submitted():
            if state.direction is FlowDirection.RECEPTION:
                return replace(state, status=Status.RECEIVING)
            return replace(state, status=Status.VALIDATING)

        case Status.VALIDATING, ValidationFinished(document=document, violations=violations):
            state = replace(state, document=document, violations=tuple(violations))
            blocking = [v for v in violations if v.blocking]
            if blocking:
                return _violation_failure(state, blocking)
            if not state.credential:
                return _fail(state, FailureKind.SIGNING, "Missing signing credential")
            return replace(state, status=Status.SIGNING)

        case Status.SIGNING, Signed(envelope=envelope):
            return replace(state, status=Status.TRANSMITTING, envelope=envelope)

        case (Status.SIGNING | Status.CONTINGENCY), SigningFailed(code=code, message=message):
            return _fail(state, FailureKind.SIGNING, message, [code])

        case Status.TRANSMITTING, Transmitted(result=result):
            return _on_transmitted(state, result)

        case Status.TRANSMITTING, TransmissionFailed(message=message):
            return _communication_failure(state, message)

        case Status.CONTINGENCY, ContingencyIssued(document=document, envelope=envelope):
            return replace(
                state,
                status=Status.COMPLETED,
                document=document,
                envelope=envelope,
                deferred=True,
            )

        case Status.RECEIVING, Received(document=document):
            return replace(state, status=Status.COMPLETED, document=document)

    logger.debug(f"Ignoring {type(event).__name__} in state {status.value}")
    return state


def to_outcome(state: WorkflowState) -> WorkflowOutcome:
    """Reported view of a state. The credential is left behind."""
    return WorkflowOutcome(
        status=state.status,
        direction=state.direction,
        document=state.document,
        envelope=state.envelope,
        transmission=state.transmission,
        deferred=state.deferred,
        contingency_reason=state.contingency_reason,
        violations=list(state.violations),
        failure=state.failure,
        ledger=state.ledger,
        ledger_delta=state.ledger_delta,
        ledger_error=state.ledger_error,
        retry_count=state.retry_count,
    )
