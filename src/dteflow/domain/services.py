"""Domain services - orchestrate business logic."""

import logging
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..errors import (
    CommunicationError,
    GatewayError,
    LedgerError,
    SigningError,
    WorkflowCancelled,
)
from ..ports.archive import ArchivePort
from ..ports.ledger import LedgerStorePort
from ..ports.signing import SigningPort
from ..ports.transmission import TransmissionPort
from ..retry import backoff_delay
from .catalog import DEFAULT_MAX_RETRIES
from .contingency import local_now, to_contingency
from .ledger import contribution, document_period, empty_ledger, update
from .models import (
    Document,
    Environment,
    FailureKind,
    FlowDirection,
    MonthlyLedger,
    SigningRequest,
    Status,
    WorkflowOutcome,
)
from .normalize import normalize
from .validation import validate
from .workflow import (
    ContingencyIssued,
    Event,
    Failed,
    LedgerFailed,
    LedgerRecorded,
    Received,
    Signed,
    SigningFailed,
    Submitted,
    TransmissionFailed,
    Transmitted,
    ValidationFinished,
    WorkflowState,
    to_outcome,
    transition,
)

logger = logging.getLogger(__name__)

RawDocument = Mapping[str, Any] | Document


@dataclass(frozen=True)
class LedgerPosting:
    """Result of recording one document in its period's ledger."""

    ledger: MonthlyLedger
    delta: MonthlyLedger | None
    applied: bool


class LedgerService:
    """Single writer per ledger period.

    Wraps the pure accumulator with fetch-before / persist-after against the
    store, serialized per period, and skips documents whose generation code
    is already reflected in the period.
    """

    def __init__(
        self,
        store: LedgerStorePort,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self.store = store
        self.clock = clock
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, period: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(period, threading.Lock())

    def record(self, document: Document, direction: FlowDirection) -> LedgerPosting:
        code = document.generation_code
        if not code:
            raise LedgerError("Cannot record a document without a generation code")
        period = document_period(document)

        with self._lock_for(period):
            if self.store.contains(period, code):
                logger.info(f"Ledger {period} already reflects {code}, skipping")
                current = self.store.get(period) or empty_ledger(period)
                return LedgerPosting(ledger=current, delta=None, applied=False)

            now = self.clock()
            current = self.store.get(period) or empty_ledger(period)
            updated = update(current, document, direction, now)
            self.store.put(updated, code)

        logger.info(f"Ledger {period} updated with {code} ({direction.value})")
        return LedgerPosting(
            ledger=updated,
            delta=contribution(document, direction, now),
            applied=True,
        )

    def get(self, period: str) -> MonthlyLedger:
        return self.store.get(period) or empty_ledger(period)


class WorkflowEngine:
    """Drives one document from draft to a terminal state.

    Emission: validate, sign, transmit (retrying transport faults with
    exponential backoff), fall back to contingency for eligible types.
    Reception: normalize and record. Every completed run updates the ledger
    before the outcome is returned.
    """

    def __init__(
        self,
        signer: SigningPort,
        transmitter: TransmissionPort,
        ledger: LedgerService,
        archive: ArchivePort | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_base: float = 1.0,
        backoff_cap: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self.signer = signer
        self.transmitter = transmitter
        self.ledger = ledger
        self.archive = archive
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.backoff_cap = backoff_cap
        self.sleep = sleep
        self.clock = clock

    def run(
        self,
        document: RawDocument,
        direction: FlowDirection = FlowDirection.EMISSION,
        credential: str | None = None,
        tax_id: str | None = None,
        environment: Environment | None = None,
        cancel: threading.Event | None = None,
    ) -> WorkflowOutcome:
        """Run the workflow to completion.

        Raises WorkflowCancelled if ``cancel`` is set before a terminal
        state is reached; the ledger is never touched in that case.
        """
        normalized = normalize(document)
        state = WorkflowState(
            document=normalized,
            direction=direction,
            environment=environment or normalized.identification.environment,
            credential=credential,
            max_retries=self.max_retries,
            tax_id=tax_id,
        )
        logger.info(
            f"Starting {direction.value} workflow for {normalized.generation_code or 'S/N'}"
        )

        state = self._advance(state, Submitted())
        while not state.status.terminal:
            if cancel is not None and cancel.is_set():
                logger.warning(f"Workflow cancelled in state {state.status.value}")
                raise WorkflowCancelled(state.status.value)
            state = self._advance(state, self._step(state, cancel))

        if state.status is Status.COMPLETED:
            try:
                posting = self.ledger.record(state.document, state.direction)
            except LedgerError as e:
                logger.exception(f"Ledger not recorded for {state.document.generation_code}: {e}")
                state = self._advance(state, LedgerFailed(str(e)))
            else:
                state = self._advance(state, LedgerRecorded(posting.ledger, posting.delta))

        outcome = to_outcome(state)
        if outcome.status is Status.COMPLETED and self.archive is not None:
            try:
                self.archive.store(outcome)
            except Exception as e:
                logger.exception(f"Archiving failed: {e}")
        return outcome

    def _advance(self, state: WorkflowState, event: Event) -> WorkflowState:
        new = transition(state, event)
        if new.status is not state.status:
            logger.info(f"{state.status.value} -> {new.status.value}")
        return new

    def _step(self, state: WorkflowState, cancel: threading.Event | None) -> Event:
        match state.status:
            case Status.VALIDATING:
                document, violations = validate(state.document)
                for v in violations:
                    log = logger.warning if v.blocking else logger.info
                    log(f"{v.code} {v.field}: {v.description}")
                return ValidationFinished(document, tuple(violations))
            case Status.SIGNING:
                return self._sign(state, state.document)
            case Status.TRANSMITTING:
                return self._transmit(state, cancel)
            case Status.CONTINGENCY:
                return self._issue_contingency(state)
            case Status.RECEIVING:
                return self._receive(state)
        raise RuntimeError(f"No step for state {state.status.value}")

    def _sign(self, state: WorkflowState, document: Document) -> Signed | SigningFailed:
        request = SigningRequest(
            tax_id=state.tax_id or document.issuer.tax_id or "",
            credential=state.credential or "",
            document=document,
        )
        try:
            return Signed(self.signer.sign(request))
        except SigningError as e:
            logger.error(f"Signing rejected: {e}")
            return SigningFailed(e.code, e.message)
        except Exception as e:
            logger.exception(f"Signing failed: {e}")
            return SigningFailed("UNEXPECTED", str(e))

    def _transmit(
        self, state: WorkflowState, cancel: threading.Event | None
    ) -> Transmitted | TransmissionFailed | Failed:
        if state.retry_count > 0:
            delay = backoff_delay(state.retry_count - 1, self.backoff_base, self.backoff_cap)
            logger.warning(
                f"Retrying transmission ({state.retry_count}/{state.max_retries}) in {delay:.1f}s"
            )
            self.sleep(delay)
            if cancel is not None and cancel.is_set():
                raise WorkflowCancelled(state.status.value)

        try:
            return Transmitted(self.transmitter.transmit(state.envelope or "", state.environment))
        except CommunicationError as e:
            logger.error(f"Transmission failed: {e}")
            return TransmissionFailed(str(e))
        except GatewayError as e:
            logger.error(f"Authority refused the session: {e}")
            return Failed(FailureKind.AUTHORITY_REJECTION, str(e), (e.code,))
        except Exception as e:
            logger.exception(f"Unexpected transmission error: {e}")
            return Failed(FailureKind.COMMUNICATION, f"Unexpected transmission error: {e}")

    def _issue_contingency(self, state: WorkflowState) -> ContingencyIssued | SigningFailed:
        logger.warning(
            f"Issuing {state.document.generation_code} under contingency: "
            f"{state.contingency_reason}"
        )
        document = to_contingency(state.document, clock=self.clock)
        signed = self._sign(state, document)
        if isinstance(signed, SigningFailed):
            return signed
        return ContingencyIssued(document, signed.envelope)

    def _receive(self, state: WorkflowState) -> Received | Failed:
        document = normalize(state.document)
        missing = [
            name
            for name, value in (
                ("identificacion.fecEmi", document.emission_date),
                ("identificacion.codigoGeneracion", document.generation_code),
            )
            if value is None
        ]
        if missing:
            return Failed(
                FailureKind.STRUCTURAL,
                "Received document cannot be recorded",
                tuple(f"Missing required field: {name}" for name in missing),
            )
        return Received(document)


@dataclass
class IngestionResult:
    success_count: int = 0
    failure_count: int = 0
    errors: list[str] = field(default_factory=list)


class BatchIngestionService:
    """Runs the workflow over many documents, one after another."""

    def __init__(self, engine: WorkflowEngine) -> None:
        self.engine = engine

    def ingest(
        self,
        documents: Iterable[RawDocument | tuple[RawDocument, FlowDirection]],
        direction: FlowDirection = FlowDirection.RECEPTION,
        credential: str | None = None,
        cancel: threading.Event | None = None,
    ) -> IngestionResult:
        """Process each document, continuing past failures.

        An item may be a bare document, processed in ``direction``, or a
        ``(document, direction)`` pair so one batch can mix sales and
        purchases. No rollback: documents completed before a failure stay
        recorded.
        """
        result = IngestionResult()

        for item in documents:
            raw, item_direction = item if isinstance(item, tuple) else (item, direction)
            label = normalize(raw).control_number or "S/N"
            try:
                outcome = self.engine.run(
                    raw, direction=item_direction, credential=credential, cancel=cancel
                )
            except WorkflowCancelled:
                raise
            except Exception as e:
                logger.exception(f"Ingestion failed for {label}: {e}")
                result.failure_count += 1
                result.errors.append(f"Doc {label}: {e}")
                continue

            if outcome.success:
                result.success_count += 1
                if outcome.ledger_error:
                    result.errors.append(f"Doc {label}: ledger not recorded: {outcome.ledger_error}")
                continue

            result.failure_count += 1
            failure = outcome.failure
            if failure is None:
                result.errors.append(f"Doc {label}: {outcome.status.value}")
            elif failure.details:
                result.errors.append(f"Doc {label}: {failure.message}: {'; '.join(failure.details)}")
            else:
                result.errors.append(f"Doc {label}: {failure.message}")

        logger.info(
            f"Ingested: {result.success_count} success, {result.failure_count} errors"
        )
        return result
