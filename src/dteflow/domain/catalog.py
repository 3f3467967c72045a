"""Ministry of Finance catalogues and statutory constants used by the core."""

from decimal import Decimal

# CAT-002: document types
CONSUMER_INVOICE = "01"
TAX_CREDIT_VOUCHER = "03"
CREDIT_NOTE = "05"
DEBIT_NOTE = "06"
WITHHOLDING_VOUCHER = "07"
EXPORT_INVOICE = "11"
EXCLUDED_SUBJECT_INVOICE = "14"

DOCUMENT_TYPES = {
    "01": "Factura Electrónica",
    "02": "Factura de Venta Simplificada",
    "03": "Comprobante de Crédito Fiscal Electrónico",
    "04": "Nota de Remisión Electrónica",
    "05": "Nota de Crédito Electrónica",
    "06": "Nota de Débito Electrónica",
    "07": "Comprobante de Retención Electrónico",
    "08": "Comprobante de Liquidación Electrónico",
    "09": "Documento Contable de Liquidación Electrónica",
    "11": "Factura de Exportación Electrónica",
    "14": "Factura de Sujeto Excluido Electrónica",
    "15": "Comprobante de Donación Electrónico",
}

# Types that may be issued under the deferred (contingency) model
CONTINGENCY_ELIGIBLE_TYPES = frozenset(
    {CONSUMER_INVOICE, TAX_CREDIT_VOUCHER, CREDIT_NOTE, DEBIT_NOTE, EXPORT_INVOICE}
)

# Received documents of these types confer a deductible VAT credit
DEDUCTIBLE_CREDIT_TYPES = frozenset({TAX_CREDIT_VOUCHER, CREDIT_NOTE})

# CAT-003 / CAT-004: transmission and billing model
NORMAL_OPERATION = 1
CONTINGENCY_OPERATION = 2
PRIOR_MODEL = 1
DEFERRED_MODEL = 2

# CAT-005: contingency types
CONTINGENCY_TYPES = {
    1: "Corte de energía eléctrica",
    2: "Falla en el servicio de Internet",
    3: "Falla en el equipo informático",
    4: "Falla en el software",
    5: "Otro motivo",
}
INTERNET_FAILURE = 2
OTHER_CONTINGENCY = 5

# CAT-022: recipient identification types
NIT = "36"
DUI = "13"

# CAT-015: taxes
VAT_CODE = "20"
VAT_RATE = Decimal("0.13")

CURRENCY = "USD"

# Consumer invoices at or above this total must identify the recipient
IDENTIFICATION_THRESHOLD = Decimal("1095.00")

LINE_PLACES = 8
SUMMARY_PLACES = 2
ITEM_TOLERANCE = Decimal("0.01")
TAX_TOLERANCE = Decimal("0.02")

# Transmission retries before escalating to contingency or failure
DEFAULT_MAX_RETRIES = 2
