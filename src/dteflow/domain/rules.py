"""Cross-field business rules.

Each rule is an independent function over a normalized document returning
zero or more violations. :func:`validate_rules` runs all of them in a fixed
order and never stops at the first failure.
"""

from collections.abc import Callable

from .catalog import (
    CONSUMER_INVOICE,
    CURRENCY,
    DUI,
    IDENTIFICATION_THRESHOLD,
    ITEM_TOLERANCE,
    NIT,
    TAX_TOLERANCE,
    VAT_CODE,
    VAT_RATE,
)
from .models import ZERO, Document, Severity, ValidationViolation

Rule = Callable[[Document], list[ValidationViolation]]


def _near(a, b, tolerance) -> bool:
    return abs(a - b) <= tolerance


def identification_threshold(document: Document) -> list[ValidationViolation]:
    """Consumer invoices below the threshold must not identify the recipient;
    at or above it they must."""
    violations: list[ValidationViolation] = []
    recipient = document.recipient

    if document.document_type == CONSUMER_INVOICE:
        total = document.summary.total_operation or ZERO
        if total < IDENTIFICATION_THRESHOLD and not recipient.anonymous:
            violations.append(
                ValidationViolation(
                    code="RULE-0001",
                    field="receptor.tipoDocumento",
                    description=(
                        f"Consumer invoice below {IDENTIFICATION_THRESHOLD}: recipient "
                        "identification type and number must be null"
                    ),
                )
            )
        if total >= IDENTIFICATION_THRESHOLD and not recipient.identified:
            violations.append(
                ValidationViolation(
                    code="RULE-0001C",
                    field="receptor.numDocumento",
                    description=(
                        f"Consumer invoice at or above {IDENTIFICATION_THRESHOLD}: "
                        "recipient identification type and number are required"
                    ),
                )
            )

    if recipient.id_type is None and recipient.id_number is not None:
        violations.append(
            ValidationViolation(
                code="RULE-0001B",
                field="receptor.numDocumento",
                description="Recipient identification number requires an identification type",
            )
        )

    return violations


def identifier_lengths(document: Document) -> list[ValidationViolation]:
    violations: list[ValidationViolation] = []
    recipient = document.recipient
    number = recipient.id_number

    if recipient.id_type == DUI and number and len(number) != 9:
        violations.append(
            ValidationViolation(
                code="RULE-0002",
                field="receptor.numDocumento",
                description="Identification type 13 (DUI) requires 9 digits",
            )
        )
    if recipient.id_type == NIT and number and len(number) != 14:
        violations.append(
            ValidationViolation(
                code="RULE-0003",
                field="receptor.numDocumento",
                description="Identification type 36 (NIT) requires 14 digits",
            )
        )

    tax_id = document.issuer.tax_id
    if tax_id and len(tax_id) not in (9, 14):
        violations.append(
            ValidationViolation(
                code="RULE-0004",
                field="emisor.nit",
                description="Issuer NIT/DUI must have 9 or 14 digits",
            )
        )
    return violations


def item_arithmetic(document: Document) -> list[ValidationViolation]:
    """unit price x quantity - discount == taxed + exempt + not subject."""
    violations = []
    for idx, item in enumerate(document.items, start=1):
        expected = item.net_amount
        actual = item.category_total
        if not _near(expected, actual, ITEM_TOLERANCE):
            violations.append(
                ValidationViolation(
                    code="RULE-0100",
                    field=f"cuerpoDocumento[{idx}]",
                    description=f"Item {idx}: {expected} != {actual}",
                )
            )
    return violations


def totals_reconciliation(document: Document) -> list[ValidationViolation]:
    summary = document.summary
    checks = [
        ("RULE-0200", "totalGravada", summary.total_taxed, "taxed"),
        ("RULE-0201", "totalExenta", summary.total_exempt, "exempt"),
        ("RULE-0202", "totalNoSuj", summary.total_not_subject, "not_subject"),
    ]

    violations = []
    for code, key, reported, attr in checks:
        items_sum = sum((getattr(item, attr) or ZERO for item in document.items), ZERO)
        reported = reported or ZERO
        if not _near(items_sum, reported, ITEM_TOLERANCE):
            violations.append(
                ValidationViolation(
                    code=code,
                    field=f"resumen.{key}",
                    description=f"resumen.{key}: {reported} != item sum {items_sum}",
                )
            )
    return violations


def tax_rate(document: Document) -> list[ValidationViolation]:
    """The VAT entry must be the statutory rate applied to the taxed total."""
    entry = document.summary.tax_for(VAT_CODE)
    if entry is None:
        return []

    taxed = document.summary.total_taxed or ZERO
    expected = taxed * VAT_RATE
    value = entry.value or ZERO
    if _near(value, expected, TAX_TOLERANCE):
        return []
    return [
        ValidationViolation(
            code="RULE-0300",
            field=f"resumen.tributos[codigo={VAT_CODE}].valor",
            description=f"VAT {value} != {expected} ({VAT_RATE * 100}% of {taxed})",
        )
    ]


def amount_in_words(document: Document) -> list[ValidationViolation]:
    words = document.summary.amount_in_words
    if words and words.endswith(CURRENCY):
        return []
    return [
        ValidationViolation(
            code="RULE-0400",
            field="resumen.totalLetras",
            description=f'totalLetras must end in "{CURRENCY}"',
        )
    ]


def amount_to_pay(document: Document) -> list[ValidationViolation]:
    summary = document.summary
    if summary.total_operation is None or summary.total_to_pay is None:
        return []

    expected = summary.total_operation - summary.vat_withheld - summary.income_tax_withheld
    if _near(expected, summary.total_to_pay, ITEM_TOLERANCE):
        return []
    return [
        ValidationViolation(
            code="RULE-0500",
            field="resumen.totalPagar",
            description=(
                f"totalPagar {summary.total_to_pay} differs from operation total "
                f"minus withholdings {expected}"
            ),
            severity=Severity.ADVISORY,
        )
    ]


RULES: tuple[Rule, ...] = (
    identification_threshold,
    identifier_lengths,
    item_arithmetic,
    totals_reconciliation,
    tax_rate,
    amount_in_words,
    amount_to_pay,
)


def validate_rules(document: Document) -> list[ValidationViolation]:
    violations: list[ValidationViolation] = []
    for rule in RULES:
        violations.extend(rule(document))
    return violations
