"""Domain models."""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum

from .catalog import CONTINGENCY_OPERATION, VAT_CODE

ZERO = Decimal("0")


class Environment(str, Enum):
    """Authority environment a document is issued against."""

    TEST = "00"
    PRODUCTION = "01"


class FlowDirection(str, Enum):
    """Whether the caller issued the document or received it."""

    EMISSION = "emission"
    RECEPTION = "reception"


class Severity(str, Enum):
    BLOCKING = "blocking"
    ADVISORY = "advisory"


@dataclass(frozen=True)
class ValidationViolation:
    """A single schema or business-rule finding."""

    code: str
    field: str | None
    description: str
    severity: Severity = Severity.BLOCKING

    @property
    def blocking(self) -> bool:
        return self.severity is Severity.BLOCKING


@dataclass(frozen=True)
class Address:
    department: str | None = None
    municipality: str | None = None
    complement: str | None = None


@dataclass(frozen=True)
class Identification:
    version: int | None
    environment: Environment
    document_type: str | None
    control_number: str | None
    generation_code: str | None
    model_type: int | None
    operation_type: int | None
    contingency_type: int | None = None
    contingency_reason: str | None = None
    emission_date: date | None = None
    emission_time: time | None = None
    currency: str = "USD"

    @property
    def deferred(self) -> bool:
        return self.operation_type == CONTINGENCY_OPERATION


@dataclass(frozen=True)
class Issuer:
    tax_id: str | None
    registration_number: str | None
    name: str | None
    activity_code: str | None
    activity_description: str | None
    trade_name: str | None = None
    establishment_type: str | None = None
    address: Address | None = None
    phone: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class Recipient:
    """Counterparty of the document.

    Identification may be entirely absent for small consumer sales.
    """

    id_type: str | None = None
    id_number: str | None = None
    registration_number: str | None = None
    name: str | None = None
    activity_code: str | None = None
    activity_description: str | None = None
    address: Address | None = None
    phone: str | None = None
    email: str | None = None

    @property
    def identified(self) -> bool:
        return self.id_type is not None and self.id_number is not None

    @property
    def anonymous(self) -> bool:
        return self.id_type is None and self.id_number is None


@dataclass(frozen=True)
class LineItem:
    number: int | None
    item_type: int | None
    quantity: Decimal | None
    code: str | None
    unit_of_measure: int | None
    description: str | None
    unit_price: Decimal | None
    discount: Decimal | None
    not_subject: Decimal | None
    exempt: Decimal | None
    taxed: Decimal | None
    tax_codes: tuple[str, ...] | None = None
    tax_amount: Decimal = ZERO
    psv: Decimal = ZERO
    not_taxed: Decimal = ZERO

    @property
    def net_amount(self) -> Decimal:
        """unit price x quantity - discount."""
        return (self.unit_price or ZERO) * (self.quantity or ZERO) - (
            self.discount or ZERO
        )

    @property
    def category_total(self) -> Decimal:
        return (self.taxed or ZERO) + (self.exempt or ZERO) + (self.not_subject or ZERO)


@dataclass(frozen=True)
class TaxEntry:
    code: str
    description: str | None
    value: Decimal | None


@dataclass(frozen=True)
class Summary:
    total_not_subject: Decimal | None
    total_exempt: Decimal | None
    total_taxed: Decimal | None
    subtotal_sales: Decimal | None = None
    discount_not_subject: Decimal = ZERO
    discount_exempt: Decimal = ZERO
    discount_taxed: Decimal = ZERO
    discount_percent: Decimal = ZERO
    total_discount: Decimal = ZERO
    total_tax: Decimal = ZERO
    taxes: tuple[TaxEntry, ...] | None = None
    subtotal: Decimal | None = None
    vat_withheld: Decimal = ZERO
    income_tax_withheld: Decimal = ZERO
    total_operation: Decimal | None = None
    total_not_taxed: Decimal = ZERO
    total_to_pay: Decimal | None = None
    amount_in_words: str | None = None
    balance_in_favor: Decimal = ZERO
    operation_condition: int | None = None
    total_withheld: Decimal = ZERO

    def tax_for(self, code: str) -> TaxEntry | None:
        for entry in self.taxes or ():
            if entry.code == code:
                return entry
        return None


@dataclass(frozen=True)
class Document:
    """A normalized electronic tax document."""

    identification: Identification
    issuer: Issuer
    recipient: Recipient
    items: tuple[LineItem, ...]
    summary: Summary

    @property
    def document_type(self) -> str | None:
        return self.identification.document_type

    @property
    def generation_code(self) -> str | None:
        return self.identification.generation_code

    @property
    def control_number(self) -> str | None:
        return self.identification.control_number

    @property
    def emission_date(self) -> date | None:
        return self.identification.emission_date

    @property
    def tax_amount(self) -> Decimal:
        """VAT carried by the document.

        Uses the VAT tax entry when present, otherwise the summary total tax
        (consumer invoices carry VAT inside prices and report it there).
        """
        entry = self.summary.tax_for(VAT_CODE)
        if entry is not None and entry.value is not None:
            return entry.value
        return self.summary.total_tax or ZERO


@dataclass(frozen=True)
class SigningRequest:
    tax_id: str
    credential: str = field(repr=False)
    document: Document


class TransmissionStatus(str, Enum):
    ACCEPTED = "accepted"
    ACCEPTED_WITH_WARNINGS = "accepted_with_warnings"
    REJECTED = "rejected"
    PROCESSING = "processing"


@dataclass(frozen=True)
class AuthorityMessage:
    code: str
    description: str
    field: str | None = None
    severity: str | None = None


@dataclass(frozen=True)
class TransmissionResult:
    """Authority response to a transmission."""

    status: TransmissionStatus
    generation_code: str | None = None
    receipt_seal: str | None = None
    control_number: str | None = None
    received_at: str | None = None
    processed_at: str | None = None
    message: str | None = None
    warnings: tuple[AuthorityMessage, ...] = ()
    errors: tuple[AuthorityMessage, ...] = ()

    @property
    def accepted(self) -> bool:
        return self.status in (
            TransmissionStatus.ACCEPTED,
            TransmissionStatus.ACCEPTED_WITH_WARNINGS,
        )


@dataclass(frozen=True)
class MonthlyLedger:
    """Running tax ledger for one calendar month."""

    period: str  # "YYYY-MM"
    gross_income: Decimal = ZERO
    total_taxed: Decimal = ZERO
    total_exempt: Decimal = ZERO
    total_not_subject: Decimal = ZERO
    output_tax: Decimal = ZERO
    purchases_taxed: Decimal = ZERO
    purchases_exempt: Decimal = ZERO
    input_tax: Decimal = ZERO
    income_tax_withheld: Decimal = ZERO
    vat_withheld: Decimal = ZERO
    vat_perceived: Decimal = ZERO
    last_updated: datetime | None = None


class Status(str, Enum):
    DRAFT = "draft"
    VALIDATING = "validating"
    SIGNING = "signing"
    TRANSMITTING = "transmitting"
    CONTINGENCY = "contingency"
    RECEIVING = "receiving"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (Status.COMPLETED, Status.FAILED)


class FailureKind(str, Enum):
    STRUCTURAL = "structural"
    BUSINESS_RULE = "business_rule"
    SIGNING = "signing"
    AUTHORITY_REJECTION = "authority_rejection"
    COMMUNICATION = "communication"


@dataclass(frozen=True)
class WorkflowFailure:
    kind: FailureKind
    message: str
    details: tuple[str, ...] = ()

    @property
    def retryable(self) -> bool:
        return self.kind is FailureKind.COMMUNICATION


@dataclass
class WorkflowOutcome:
    """Reported result of a workflow run. Never carries the credential."""

    status: Status
    direction: FlowDirection
    document: Document | None = None
    envelope: str | None = None
    transmission: TransmissionResult | None = None
    deferred: bool = False
    contingency_reason: str | None = None
    violations: list[ValidationViolation] = field(default_factory=list)
    failure: WorkflowFailure | None = None
    ledger: MonthlyLedger | None = None
    ledger_delta: MonthlyLedger | None = None
    ledger_error: str | None = None
    retry_count: int = 0

    @property
    def success(self) -> bool:
        return self.status is Status.COMPLETED and self.failure is None
