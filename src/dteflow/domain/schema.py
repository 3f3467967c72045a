"""Structural validation of the DTE JSON shape, per document type.

Schemas are pydantic models over the wire mapping produced by
:func:`dteflow.domain.payload.to_payload`. Each pydantic error becomes one
blocking violation. Monetary fields are Decimal, so numeric granularity is
checked exactly with ``decimal_places`` instead of a floating-point
multiple-of test.
"""

import logging
from decimal import Decimal
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .catalog import (
    CONSUMER_INVOICE,
    CONTINGENCY_OPERATION,
    EXPORT_INVOICE,
    OTHER_CONTINGENCY,
    TAX_CREDIT_VOUCHER,
)
from .models import Document, Severity, ValidationViolation
from .payload import to_payload

logger = logging.getLogger(__name__)

UUID_PATTERN = r"^[A-F0-9]{8}-[A-F0-9]{4}-[A-F0-9]{4}-[A-F0-9]{4}-[A-F0-9]{12}$"
DATE_PATTERN = r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$"
TIME_PATTERN = r"^(0[0-9]|1[0-9]|2[0-3]):[0-5][0-9]:[0-5][0-9]$"
NIT_PATTERN = r"^([0-9]{14}|[0-9]{9})$"

Money = Annotated[Decimal, Field(ge=0, decimal_places=2)]
LineMoney = Annotated[Decimal, Field(ge=0, decimal_places=8)]
Text = Annotated[str, Field(min_length=1, max_length=250)]
OptionalText = Annotated[str, Field(min_length=1, max_length=250)] | None


class _Schema(BaseModel):
    model_config = ConfigDict(extra="ignore")


class AddressSchema(_Schema):
    departamento: Annotated[str, Field(pattern=r"^(0[1-9]|1[0-4])$")]
    municipio: Annotated[str, Field(pattern=r"^[0-9]{2}$")]
    complemento: Annotated[str, Field(min_length=1, max_length=200)]


class IdentificationSchema(_Schema):
    version: Annotated[int, Field(ge=1)]
    ambiente: Literal["00", "01"]
    tipoDte: Annotated[str, Field(pattern=r"^[0-9]{2}$")]
    numeroControl: Annotated[str, Field(pattern=r"^DTE-[0-9]{2}-[A-Z0-9]{8}-[0-9]{15}$")]
    codigoGeneracion: Annotated[str, Field(pattern=UUID_PATTERN)]
    tipoModelo: Literal[1, 2]
    tipoOperacion: Literal[1, 2]
    tipoContingencia: Annotated[int, Field(ge=1, le=5)] | None
    motivoContin: Annotated[str, Field(min_length=1, max_length=150)] | None
    fecEmi: Annotated[str, Field(pattern=DATE_PATTERN)]
    horEmi: Annotated[str, Field(pattern=TIME_PATTERN)]
    tipoMoneda: Literal["USD"]

    @model_validator(mode="after")
    def _contingency_fields(self) -> "IdentificationSchema":
        if self.tipoOperacion == CONTINGENCY_OPERATION and self.tipoContingencia is None:
            raise ValueError("tipoContingencia is required for a contingency operation")
        if self.tipoContingencia == OTHER_CONTINGENCY and self.motivoContin is None:
            raise ValueError("motivoContin is required for contingency type 5")
        return self


class ConsumerInvoiceIdentification(IdentificationSchema):
    version: Literal[1]
    tipoDte: Literal["01"]
    numeroControl: Annotated[str, Field(pattern=r"^DTE-01-[A-Z0-9]{8}-[0-9]{15}$")]


class TaxCreditIdentification(IdentificationSchema):
    version: Literal[3]
    tipoDte: Literal["03"]
    numeroControl: Annotated[str, Field(pattern=r"^DTE-03-[A-Z0-9]{8}-[0-9]{15}$")]


class ExportIdentification(IdentificationSchema):
    version: Literal[1]
    tipoDte: Literal["11"]
    numeroControl: Annotated[str, Field(pattern=r"^DTE-11-[A-Z0-9]{8}-[0-9]{15}$")]


class IssuerSchema(_Schema):
    nit: Annotated[str, Field(pattern=NIT_PATTERN)]
    nrc: Annotated[str, Field(pattern=r"^[0-9]{2,8}$")]
    nombre: Text
    codActividad: Annotated[str, Field(pattern=r"^[0-9]{2,6}$")]
    descActividad: Annotated[str, Field(min_length=1, max_length=150)]
    nombreComercial: OptionalText
    tipoEstablecimiento: Annotated[str, Field(pattern=r"^(0[1-4]|10|20|99)$")]
    direccion: AddressSchema
    telefono: Annotated[str, Field(min_length=8, max_length=30)]
    correo: Annotated[str, Field(min_length=3, max_length=100)]


class RecipientSchema(_Schema):
    """Recipient of a consumer sale: identification may be null."""

    tipoDocumento: Annotated[str, Field(pattern=r"^(36|13|02|03|37)$")] | None
    numDocumento: Annotated[str, Field(min_length=3, max_length=20)] | None
    nrc: Annotated[str, Field(pattern=r"^[0-9]{1,8}$")] | None
    nombre: OptionalText
    codActividad: Annotated[str, Field(pattern=r"^[0-9]{2,6}$")] | None
    descActividad: Annotated[str, Field(min_length=1, max_length=150)] | None
    direccion: AddressSchema | None
    telefono: Annotated[str, Field(min_length=8, max_length=30)] | None
    correo: Annotated[str, Field(min_length=3, max_length=100)] | None


class TaxCreditRecipient(RecipientSchema):
    """A tax credit voucher is issued to a registered taxpayer, by NIT."""

    tipoDocumento: Literal["36"]
    numDocumento: Annotated[str, Field(pattern=NIT_PATTERN)]
    nrc: Annotated[str, Field(pattern=r"^[0-9]{1,8}$")]
    nombre: Text
    codActividad: Annotated[str, Field(pattern=r"^[0-9]{2,6}$")]
    descActividad: Annotated[str, Field(min_length=1, max_length=150)]
    direccion: AddressSchema
    correo: Annotated[str, Field(min_length=3, max_length=100)]


class ExportRecipient(RecipientSchema):
    tipoDocumento: Annotated[str, Field(pattern=r"^(36|13|02|03|37)$")]
    numDocumento: Annotated[str, Field(min_length=1, max_length=20)]
    nombre: Text


class ItemSchema(_Schema):
    numItem: Annotated[int, Field(ge=1, le=2000)]
    tipoItem: Annotated[int, Field(ge=1, le=4)]
    cantidad: Annotated[Decimal, Field(gt=0, decimal_places=8)]
    codigo: Annotated[str, Field(min_length=1, max_length=25)] | None
    uniMedida: Annotated[int, Field(ge=1, le=99)]
    descripcion: Annotated[str, Field(min_length=1, max_length=1000)]
    precioUni: LineMoney
    montoDescu: LineMoney
    ventaNoSuj: LineMoney
    ventaExenta: LineMoney
    ventaGravada: LineMoney
    tributos: list[Annotated[str, Field(pattern=r"^[0-9A-Z]{2}$")]] | None
    psv: Money
    noGravado: Annotated[Decimal, Field(decimal_places=2)]
    ivaItem: Money


class TaxSchema(_Schema):
    codigo: Annotated[str, Field(pattern=r"^[0-9A-Z]{2}$")]
    descripcion: Annotated[str, Field(min_length=1, max_length=150)]
    valor: Money


class SummarySchema(_Schema):
    totalNoSuj: Money
    totalExenta: Money
    totalGravada: Money
    subTotalVentas: Money
    descuNoSuj: Money
    descuExenta: Money
    descuGravada: Money
    porcentajeDescuento: Annotated[Decimal, Field(ge=0, le=100, decimal_places=2)]
    totalDescu: Money
    totalIva: Money
    tributos: list[TaxSchema] | None
    subTotal: Money
    ivaRete1: Money
    reteRenta: Money
    montoTotalOperacion: Money
    totalNoGravado: Annotated[Decimal, Field(decimal_places=2)]
    totalPagar: Money
    totalLetras: Annotated[str, Field(min_length=1, max_length=200)]
    saldoFavor: Annotated[Decimal, Field(decimal_places=2)]
    condicionOperacion: Literal[1, 2, 3]


class DocumentSchema(_Schema):
    """Generic superset schema, used for types without a dedicated schema."""

    identificacion: IdentificationSchema
    emisor: IssuerSchema
    receptor: RecipientSchema
    cuerpoDocumento: Annotated[list[ItemSchema], Field(min_length=1, max_length=2000)]
    resumen: SummarySchema


class ConsumerInvoiceSchema(DocumentSchema):
    identificacion: ConsumerInvoiceIdentification


class TaxCreditSchema(DocumentSchema):
    identificacion: TaxCreditIdentification
    receptor: TaxCreditRecipient


class ExportInvoiceSchema(DocumentSchema):
    identificacion: ExportIdentification
    receptor: ExportRecipient


SCHEMAS: dict[str, type[DocumentSchema]] = {
    CONSUMER_INVOICE: ConsumerInvoiceSchema,
    TAX_CREDIT_VOUCHER: TaxCreditSchema,
    EXPORT_INVOICE: ExportInvoiceSchema,
}


def schema_for(document_type: str | None) -> type[DocumentSchema]:
    """Select the schema for a type code, falling back to the generic one."""
    schema = SCHEMAS.get(document_type or "")
    if schema is None:
        logger.warning(f"No dedicated schema for type {document_type!r}, using generic")
        return DocumentSchema
    return schema


def _describe(error: dict[str, Any], field: str) -> str:
    kind = error["type"]
    ctx = error.get("ctx") or {}
    if kind == "missing" or error.get("input") is None:
        return f"Missing required field: {field}"
    if kind == "string_pattern_mismatch":
        return f"Invalid format, expected pattern {ctx.get('pattern')}"
    if kind == "literal_error":
        return f"Invalid value, expected {ctx.get('expected')}"
    if kind == "value_error" and "error" in ctx:
        return str(ctx["error"])
    return error["msg"]


def validate_schema(
    document: Document, document_type: str | None = None
) -> list[ValidationViolation]:
    """Check a normalized document against the schema for its type."""
    schema = schema_for(document_type or document.document_type)

    try:
        schema.model_validate(to_payload(document))
    except ValidationError as e:
        violations = []
        for idx, error in enumerate(e.errors(), start=1):
            field = ".".join(str(part) for part in error["loc"])
            violations.append(
                ValidationViolation(
                    code=f"SCHEMA-{idx:04d}",
                    field=field or None,
                    description=_describe(error, field),
                    severity=Severity.BLOCKING,
                )
            )
        return violations

    return []
