"""Shared test fixtures."""

import base64
import copy
import json
from collections.abc import Callable
from datetime import datetime
from typing import Any
from unittest.mock import MagicMock

import pytest

from dteflow.adapters.ledger import MemoryLedgerStore
from dteflow.domain.contingency import LOCAL_TZ
from dteflow.domain.models import TransmissionResult, TransmissionStatus
from dteflow.domain.services import LedgerService, WorkflowEngine
from dteflow.ports.archive import ArchivePort
from dteflow.ports.signing import SigningPort
from dteflow.ports.transmission import TransmissionPort

GENERATION_CODE = "5E1B3F7A-2C4D-4E8F-9A0B-1C2D3E4F5A6B"
FIXED_NOW = datetime(2024, 4, 2, 9, 15, 30, tzinfo=LOCAL_TZ)

CONSUMER_INVOICE: dict[str, Any] = {
    "identificacion": {
        "version": 1,
        "ambiente": "00",
        "tipoDte": "01",
        "numeroControl": "DTE-01-M001P001-000000000000001",
        "codigoGeneracion": GENERATION_CODE,
        "tipoModelo": 1,
        "tipoOperacion": 1,
        "tipoContingencia": None,
        "motivoContin": None,
        "fecEmi": "2024-03-15",
        "horEmi": "10:30:00",
        "tipoMoneda": "USD",
    },
    "emisor": {
        "nit": "0614-120389-101-2",
        "nrc": "123456-7",
        "nombre": "Comercial La Esperanza S.A. de C.V.",
        "codActividad": "47190",
        "descActividad": "Venta al por menor de otros productos",
        "nombreComercial": "La Esperanza",
        "tipoEstablecimiento": "01",
        "direccion": {
            "departamento": "06",
            "municipio": "14",
            "complemento": "Calle El Mirador 123, San Salvador",
        },
        "telefono": "22223333",
        "correo": "facturas@esperanza.com.sv",
    },
    "receptor": {
        "tipoDocumento": None,
        "numDocumento": None,
        "nrc": None,
        "nombre": "Consumidor Final",
        "codActividad": None,
        "descActividad": None,
        "direccion": None,
        "telefono": None,
        "correo": None,
    },
    "cuerpoDocumento": [
        {
            "numItem": 1,
            "tipoItem": 1,
            "cantidad": 1,
            "codigo": "P-001",
            "uniMedida": 59,
            "descripcion": "Servicio de mantenimiento",
            "precioUni": 100,
            "montoDescu": 0,
            "ventaNoSuj": 0,
            "ventaExenta": 0,
            "ventaGravada": 100,
            "tributos": ["20"],
            "psv": 0,
            "noGravado": 0,
            "ivaItem": 13,
        }
    ],
    "resumen": {
        "totalNoSuj": 0,
        "totalExenta": 0,
        "totalGravada": 100,
        "subTotalVentas": 100,
        "descuNoSuj": 0,
        "descuExenta": 0,
        "descuGravada": 0,
        "porcentajeDescuento": 0,
        "totalDescu": 0,
        "totalIva": 13,
        "tributos": [
            {
                "codigo": "20",
                "descripcion": "Impuesto al Valor Agregado 13%",
                "valor": 13,
            }
        ],
        "subTotal": 100,
        "ivaRete1": 0,
        "reteRenta": 0,
        "montoTotalOperacion": 113,
        "totalNoGravado": 0,
        "totalPagar": 113,
        "totalLetras": "CIENTO TRECE 00/100 USD",
        "saldoFavor": 0,
        "condicionOperacion": 1,
    },
}


def make_invoice(
    price: float = 100,
    quantity: float = 1,
    document_type: str = "01",
    generation_code: str = GENERATION_CODE,
    emission_date: str = "2024-03-15",
    **recipient: Any,
) -> dict[str, Any]:
    """Build a consistent, fully taxed one-line document."""
    raw = copy.deepcopy(CONSUMER_INVOICE)
    taxed = round(price * quantity, 2)
    tax = round(taxed * 0.13, 2)
    total = round(taxed + tax, 2)

    ident = raw["identificacion"]
    ident["tipoDte"] = document_type
    ident["numeroControl"] = f"DTE-{document_type}-M001P001-000000000000001"
    ident["codigoGeneracion"] = generation_code
    ident["fecEmi"] = emission_date

    item = raw["cuerpoDocumento"][0]
    item.update(cantidad=quantity, precioUni=price, ventaGravada=taxed, ivaItem=tax)

    summary = raw["resumen"]
    summary.update(
        totalGravada=taxed,
        subTotalVentas=taxed,
        subTotal=taxed,
        totalIva=tax,
        montoTotalOperacion=total,
        totalPagar=total,
    )
    summary["tributos"][0]["valor"] = tax

    raw["receptor"].update(recipient)
    return raw


def make_envelope(raw: dict[str, Any]) -> str:
    """A JWS-shaped envelope whose payload is the document."""

    def segment(data: dict[str, Any]) -> str:
        text = json.dumps(data).encode("utf-8")
        return base64.urlsafe_b64encode(text).decode("ascii").rstrip("=")

    return f"{segment({'alg': 'RS512'})}.{segment(raw)}.c2lnbmF0dXJl"


@pytest.fixture
def raw_invoice() -> dict[str, Any]:
    """Valid consumer invoice: one item, price 100, 13% VAT, anonymous recipient."""
    return make_invoice()


@pytest.fixture
def invoice_factory() -> Callable[..., dict[str, Any]]:
    return make_invoice


@pytest.fixture
def envelope_for() -> Callable[[dict[str, Any]], str]:
    return make_envelope


@pytest.fixture
def accepted_result() -> TransmissionResult:
    return TransmissionResult(
        status=TransmissionStatus.ACCEPTED,
        generation_code=GENERATION_CODE,
        receipt_seal="2024AB12CD34EF56GH78IJ90KL12MN34OP56",
        processed_at="15/03/2024 10:31:02",
    )


@pytest.fixture
def mock_signer() -> MagicMock:
    """Mock signing port."""
    mock = MagicMock(spec=SigningPort)
    mock.sign.return_value = "eyJhbGciOiJSUzUxMiJ9.e30.c2ln"
    return mock


@pytest.fixture
def mock_transmitter(accepted_result: TransmissionResult) -> MagicMock:
    """Mock transmission port."""
    mock = MagicMock(spec=TransmissionPort)
    mock.transmit.return_value = accepted_result
    return mock


@pytest.fixture
def mock_archive() -> MagicMock:
    """Mock archive port."""
    return MagicMock(spec=ArchivePort)


@pytest.fixture
def ledger_store() -> MemoryLedgerStore:
    return MemoryLedgerStore()


@pytest.fixture
def ledger_service(ledger_store: MemoryLedgerStore) -> LedgerService:
    return LedgerService(ledger_store, clock=lambda: FIXED_NOW)


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def engine(
    mock_signer: MagicMock,
    mock_transmitter: MagicMock,
    ledger_service: LedgerService,
    mock_archive: MagicMock,
    sleeps: list[float],
) -> WorkflowEngine:
    return WorkflowEngine(
        signer=mock_signer,
        transmitter=mock_transmitter,
        ledger=ledger_service,
        archive=mock_archive,
        sleep=sleeps.append,
        clock=lambda: FIXED_NOW,
    )
