"""Monthly tax accumulator.

:func:`update` is pure: it returns a new ledger and never touches storage.
It is not idempotent; applying the same document twice counts it twice.
:class:`dteflow.domain.services.LedgerService` deduplicates by generation
code before calling it.
"""

from dataclasses import replace
from datetime import date, datetime, timezone

from .catalog import DEDUCTIBLE_CREDIT_TYPES, WITHHOLDING_VOUCHER
from .models import ZERO, Document, FlowDirection, MonthlyLedger


def period_key(emission_date: date) -> str:
    """Calendar month of a date, as "YYYY-MM"."""
    return f"{emission_date.year:04d}-{emission_date.month:02d}"


def document_period(document: Document) -> str:
    if document.emission_date is None:
        raise ValueError(
            f"Document {document.generation_code} has no emission date"
        )
    return period_key(document.emission_date)


def empty_ledger(period: str, now: datetime | None = None) -> MonthlyLedger:
    return MonthlyLedger(period=period, last_updated=now)


def update(
    ledger: MonthlyLedger,
    document: Document,
    direction: FlowDirection,
    now: datetime | None = None,
) -> MonthlyLedger:
    """Add one document's contribution to the ledger of its period."""
    period = document_period(document)
    if period != ledger.period:
        raise ValueError(
            f"Document period {period} does not match ledger period {ledger.period}"
        )

    summary = document.summary
    taxed = summary.total_taxed or ZERO
    exempt = summary.total_exempt or ZERO
    not_subject = summary.total_not_subject or ZERO
    tax = document.tax_amount
    stamp = now or datetime.now(timezone.utc)

    if direction is FlowDirection.EMISSION:
        return replace(
            ledger,
            total_taxed=ledger.total_taxed + taxed,
            total_exempt=ledger.total_exempt + exempt,
            total_not_subject=ledger.total_not_subject + not_subject,
            gross_income=ledger.gross_income + taxed + exempt + not_subject,
            output_tax=ledger.output_tax + tax,
            last_updated=stamp,
        )

    if document.document_type == WITHHOLDING_VOUCHER:
        return replace(
            ledger,
            vat_withheld=ledger.vat_withheld + summary.total_withheld,
            last_updated=stamp,
        )

    input_tax = ledger.input_tax
    if document.document_type in DEDUCTIBLE_CREDIT_TYPES or tax > 0:
        input_tax += tax

    return replace(
        ledger,
        purchases_taxed=ledger.purchases_taxed + taxed,
        purchases_exempt=ledger.purchases_exempt + exempt,
        input_tax=input_tax,
        last_updated=stamp,
    )


def contribution(
    document: Document, direction: FlowDirection, now: datetime | None = None
) -> MonthlyLedger:
    """The ledger delta a single document produces on an empty period."""
    period = document_period(document)
    return update(empty_ledger(period), document, direction, now)
