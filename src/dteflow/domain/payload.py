"""Translation between typed documents and the authority's JSON shape.

The authority (and the signer) speak the loosely-typed DTE JSON with Spanish
keys. Everything inside the core works on :class:`Document`; this module is
the only place that knows the wire keys on the way out. The way in is
:func:`dteflow.domain.normalize.normalize`.
"""

from decimal import Decimal
from typing import Any

from .models import Address, Document, LineItem, TaxEntry

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M:%S"


def _address(address: Address | None) -> dict[str, Any] | None:
    if address is None:
        return None
    return {
        "departamento": address.department,
        "municipio": address.municipality,
        "complemento": address.complement,
    }


def _item(item: LineItem) -> dict[str, Any]:
    return {
        "numItem": item.number,
        "tipoItem": item.item_type,
        "cantidad": item.quantity,
        "codigo": item.code,
        "uniMedida": item.unit_of_measure,
        "descripcion": item.description,
        "precioUni": item.unit_price,
        "montoDescu": item.discount,
        "ventaNoSuj": item.not_subject,
        "ventaExenta": item.exempt,
        "ventaGravada": item.taxed,
        "tributos": list(item.tax_codes) if item.tax_codes is not None else None,
        "psv": item.psv,
        "noGravado": item.not_taxed,
        "ivaItem": item.tax_amount,
    }


def _tax(entry: TaxEntry) -> dict[str, Any]:
    return {"codigo": entry.code, "descripcion": entry.description, "valor": entry.value}


def to_payload(document: Document) -> dict[str, Any]:
    """Render a document as the DTE JSON mapping (monetary values stay Decimal)."""
    ident = document.identification
    issuer = document.issuer
    recipient = document.recipient
    summary = document.summary

    return {
        "identificacion": {
            "version": ident.version,
            "ambiente": ident.environment.value,
            "tipoDte": ident.document_type,
            "numeroControl": ident.control_number,
            "codigoGeneracion": ident.generation_code,
            "tipoModelo": ident.model_type,
            "tipoOperacion": ident.operation_type,
            "tipoContingencia": ident.contingency_type,
            "motivoContin": ident.contingency_reason,
            "fecEmi": ident.emission_date.strftime(DATE_FORMAT)
            if ident.emission_date
            else None,
            "horEmi": ident.emission_time.strftime(TIME_FORMAT)
            if ident.emission_time
            else None,
            "tipoMoneda": ident.currency,
        },
        "emisor": {
            "nit": issuer.tax_id,
            "nrc": issuer.registration_number,
            "nombre": issuer.name,
            "codActividad": issuer.activity_code,
            "descActividad": issuer.activity_description,
            "nombreComercial": issuer.trade_name,
            "tipoEstablecimiento": issuer.establishment_type,
            "direccion": _address(issuer.address),
            "telefono": issuer.phone,
            "correo": issuer.email,
        },
        "receptor": {
            "tipoDocumento": recipient.id_type,
            "numDocumento": recipient.id_number,
            "nrc": recipient.registration_number,
            "nombre": recipient.name,
            "codActividad": recipient.activity_code,
            "descActividad": recipient.activity_description,
            "direccion": _address(recipient.address),
            "telefono": recipient.phone,
            "correo": recipient.email,
        },
        "cuerpoDocumento": [_item(item) for item in document.items],
        "resumen": {
            "totalNoSuj": summary.total_not_subject,
            "totalExenta": summary.total_exempt,
            "totalGravada": summary.total_taxed,
            "subTotalVentas": summary.subtotal_sales,
            "descuNoSuj": summary.discount_not_subject,
            "descuExenta": summary.discount_exempt,
            "descuGravada": summary.discount_taxed,
            "porcentajeDescuento": summary.discount_percent,
            "totalDescu": summary.total_discount,
            "totalIva": summary.total_tax,
            "tributos": [_tax(t) for t in summary.taxes]
            if summary.taxes is not None
            else None,
            "subTotal": summary.subtotal,
            "ivaRete1": summary.vat_withheld,
            "reteRenta": summary.income_tax_withheld,
            "montoTotalOperacion": summary.total_operation,
            "totalNoGravado": summary.total_not_taxed,
            "totalPagar": summary.total_to_pay,
            "totalLetras": summary.amount_in_words,
            "saldoFavor": summary.balance_in_favor,
            "condicionOperacion": summary.operation_condition,
            "totalRetencion": summary.total_withheld,
        },
    }


def jsonable(value: Any) -> Any:
    """Convert Decimal values to JSON numbers, recursively."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {k: jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [jsonable(v) for v in value]
    return value
