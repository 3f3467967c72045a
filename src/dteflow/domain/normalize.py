"""Canonicalize raw DTE JSON into a typed Document.

Normalization is total: malformed values become ``None`` (or zero for
amounts the authority treats as optional) and are reported later by schema
validation. It is also a fixed point: normalizing an already normalized
document returns an equal document.
"""

import re
from collections.abc import Mapping
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from .catalog import (
    CONTINGENCY_OPERATION,
    CURRENCY,
    LINE_PLACES,
    OTHER_CONTINGENCY,
    SUMMARY_PLACES,
)
from .models import (
    ZERO,
    Address,
    Document,
    Environment,
    Identification,
    Issuer,
    LineItem,
    Recipient,
    Summary,
    TaxEntry,
)
from .payload import to_payload

_NON_DIGITS = re.compile(r"\D")


def only_digits(value: Any) -> str | None:
    """Strip formatting characters from an identifier (NIT, NRC, DUI)."""
    if value is None:
        return None
    cleaned = _NON_DIGITS.sub("", str(value))
    return cleaned or None


def trim_or_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def round_money(value: Any, places: int) -> Decimal | None:
    """Round half-up to a fixed number of decimal places.

    Floats go through ``str`` so 0.1 stays 0.1 instead of its binary expansion.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
        if not amount.is_finite():
            return None
        return amount.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        return None


def _money_or_zero(value: Any, places: int) -> Decimal:
    amount = round_money(value, places)
    if amount is None:
        return round_money(ZERO, places)
    return amount


def _int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            return None
    return None


def _time(value: Any) -> time | None:
    if isinstance(value, time):
        return value.replace(microsecond=0, tzinfo=None)
    if isinstance(value, str):
        try:
            return time.fromisoformat(value.strip()).replace(microsecond=0, tzinfo=None)
        except ValueError:
            return None
    return None


def _section(raw: Any, key: str) -> Mapping[str, Any]:
    value = raw.get(key) if isinstance(raw, Mapping) else None
    return value if isinstance(value, Mapping) else {}


def _address(raw: Any) -> Address | None:
    if not isinstance(raw, Mapping):
        return None
    return Address(
        department=trim_or_none(raw.get("departamento")),
        municipality=trim_or_none(raw.get("municipio")),
        complement=trim_or_none(raw.get("complemento")),
    )


def _environment(value: Any) -> Environment:
    if isinstance(value, Environment):
        return value
    return Environment.PRODUCTION if trim_or_none(value) == "01" else Environment.TEST


def _identification(raw: Mapping[str, Any]) -> Identification:
    operation_type = _int(raw.get("tipoOperacion"))
    contingency_type = (
        _int(raw.get("tipoContingencia"))
        if operation_type == CONTINGENCY_OPERATION
        else None
    )
    contingency_reason = (
        trim_or_none(raw.get("motivoContin"))
        if contingency_type == OTHER_CONTINGENCY
        else None
    )
    generation_code = trim_or_none(raw.get("codigoGeneracion"))

    return Identification(
        version=_int(raw.get("version")),
        environment=_environment(raw.get("ambiente")),
        document_type=trim_or_none(raw.get("tipoDte")),
        control_number=trim_or_none(raw.get("numeroControl")),
        generation_code=generation_code.upper() if generation_code else None,
        model_type=_int(raw.get("tipoModelo")),
        operation_type=operation_type,
        contingency_type=contingency_type,
        contingency_reason=contingency_reason,
        emission_date=_date(raw.get("fecEmi")),
        emission_time=_time(raw.get("horEmi")),
        currency=CURRENCY,
    )


def _issuer(raw: Mapping[str, Any]) -> Issuer:
    activity = raw.get("codActividad")
    return Issuer(
        tax_id=only_digits(raw.get("nit")),
        registration_number=only_digits(raw.get("nrc")),
        name=trim_or_none(raw.get("nombre")),
        activity_code=only_digits(activity) or trim_or_none(activity),
        activity_description=trim_or_none(raw.get("descActividad")),
        trade_name=trim_or_none(raw.get("nombreComercial")),
        establishment_type=trim_or_none(raw.get("tipoEstablecimiento")),
        address=_address(raw.get("direccion")),
        phone=trim_or_none(raw.get("telefono")),
        email=trim_or_none(raw.get("correo")),
    )


def _recipient(raw: Mapping[str, Any]) -> Recipient:
    return Recipient(
        id_type=trim_or_none(raw.get("tipoDocumento")),
        id_number=only_digits(raw.get("numDocumento")),
        registration_number=only_digits(raw.get("nrc")),
        name=trim_or_none(raw.get("nombre")),
        activity_code=trim_or_none(raw.get("codActividad")),
        activity_description=trim_or_none(raw.get("descActividad")),
        address=_address(raw.get("direccion")),
        phone=trim_or_none(raw.get("telefono")),
        email=trim_or_none(raw.get("correo")),
    )


def _tax_codes(value: Any) -> tuple[str, ...] | None:
    if not isinstance(value, (list, tuple)):
        return None
    return tuple(code for code in (trim_or_none(v) for v in value) if code)


def _item(raw: Any) -> LineItem:
    if not isinstance(raw, Mapping):
        raw = {}
    return LineItem(
        number=_int(raw.get("numItem")),
        item_type=_int(raw.get("tipoItem")),
        quantity=round_money(raw.get("cantidad"), LINE_PLACES),
        code=trim_or_none(raw.get("codigo")),
        unit_of_measure=_int(raw.get("uniMedida")),
        description=trim_or_none(raw.get("descripcion")),
        unit_price=round_money(raw.get("precioUni"), LINE_PLACES),
        discount=round_money(raw.get("montoDescu"), LINE_PLACES),
        not_subject=round_money(raw.get("ventaNoSuj"), LINE_PLACES),
        exempt=round_money(raw.get("ventaExenta"), LINE_PLACES),
        taxed=round_money(raw.get("ventaGravada"), LINE_PLACES),
        tax_codes=_tax_codes(raw.get("tributos")),
        tax_amount=_money_or_zero(raw.get("ivaItem"), SUMMARY_PLACES),
        psv=_money_or_zero(raw.get("psv"), SUMMARY_PLACES),
        not_taxed=_money_or_zero(raw.get("noGravado"), SUMMARY_PLACES),
    )


def _taxes(value: Any) -> tuple[TaxEntry, ...] | None:
    if not isinstance(value, (list, tuple)):
        return None
    return tuple(
        TaxEntry(
            code=trim_or_none(entry.get("codigo")) or "",
            description=trim_or_none(entry.get("descripcion")),
            value=round_money(entry.get("valor"), SUMMARY_PLACES),
        )
        for entry in value
        if isinstance(entry, Mapping)
    )


def _summary(raw: Mapping[str, Any]) -> Summary:
    def money(key: str) -> Decimal | None:
        return round_money(raw.get(key), SUMMARY_PLACES)

    def money0(key: str) -> Decimal:
        return _money_or_zero(raw.get(key), SUMMARY_PLACES)

    return Summary(
        total_not_subject=money("totalNoSuj"),
        total_exempt=money("totalExenta"),
        total_taxed=money("totalGravada"),
        subtotal_sales=money("subTotalVentas"),
        discount_not_subject=money0("descuNoSuj"),
        discount_exempt=money0("descuExenta"),
        discount_taxed=money0("descuGravada"),
        discount_percent=money0("porcentajeDescuento"),
        total_discount=money0("totalDescu"),
        total_tax=money0("totalIva"),
        taxes=_taxes(raw.get("tributos")),
        subtotal=money("subTotal"),
        vat_withheld=money0("ivaRete1"),
        income_tax_withheld=money0("reteRenta"),
        total_operation=money("montoTotalOperacion"),
        total_not_taxed=money0("totalNoGravado"),
        total_to_pay=money("totalPagar"),
        amount_in_words=trim_or_none(raw.get("totalLetras")),
        balance_in_favor=money0("saldoFavor"),
        operation_condition=_int(raw.get("condicionOperacion")),
        total_withheld=money0("totalRetencion"),
    )


def normalize(raw: Mapping[str, Any] | Document) -> Document:
    """Canonicalize a raw DTE mapping (or re-normalize a Document)."""
    if isinstance(raw, Document):
        raw = to_payload(raw)

    items = raw.get("cuerpoDocumento") if isinstance(raw, Mapping) else None
    if not isinstance(items, (list, tuple)):
        items = []

    return Document(
        identification=_identification(_section(raw, "identificacion")),
        issuer=_issuer(_section(raw, "emisor")),
        recipient=_recipient(_section(raw, "receptor")),
        items=tuple(_item(item) for item in items),
        summary=_summary(_section(raw, "resumen")),
    )
