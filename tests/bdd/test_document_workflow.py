"""BDD step definitions for the document workflow."""

from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from pytest_bdd import given, parsers, scenario, then, when

from dteflow.adapters.ledger import MemoryLedgerStore
from dteflow.domain.contingency import LOCAL_TZ
from dteflow.domain.models import (
    AuthorityMessage,
    FlowDirection,
    TransmissionResult,
    TransmissionStatus,
)
from dteflow.domain.services import LedgerService, WorkflowEngine
from dteflow.errors import AuthenticationError, CommunicationError
from dteflow.ports.archive import ArchivePort
from dteflow.ports.signing import SigningPort
from dteflow.ports.transmission import TransmissionPort

FIXED_NOW = datetime(2024, 4, 2, 9, 15, 30, tzinfo=LOCAL_TZ)


@scenario("features/workflow.feature", "Accepted emission")
def test_accepted_emission() -> None:
    pass


@scenario("features/workflow.feature", "Authority unreachable falls back to contingency")
def test_contingency_fallback() -> None:
    pass


@scenario("features/workflow.feature", "Authority rejection")
def test_authority_rejection() -> None:
    pass


@scenario("features/workflow.feature", "Received tax credit voucher")
def test_received_voucher() -> None:
    pass


@scenario("features/workflow.feature", "Blocking rule violation never reaches the signer")
def test_blocking_violation() -> None:
    pass


@scenario("features/workflow.feature", "Rejected authority login is not retried")
def test_rejected_login() -> None:
    pass


@pytest.fixture
def context() -> dict:
    """Shared scenario state."""
    return {}


@given("a workflow engine with mock gateways")
def setup_engine(context: dict) -> None:
    context["signer"] = MagicMock(spec=SigningPort)
    context["signer"].sign.return_value = "eyJhbGciOiJSUzUxMiJ9.e30.c2ln"
    context["transmitter"] = MagicMock(spec=TransmissionPort)
    context["transmitter"].transmit.return_value = TransmissionResult(
        status=TransmissionStatus.ACCEPTED, receipt_seal="SEAL"
    )
    context["archive"] = MagicMock(spec=ArchivePort)
    context["store"] = MemoryLedgerStore()

    context["engine"] = WorkflowEngine(
        signer=context["signer"],
        transmitter=context["transmitter"],
        ledger=LedgerService(context["store"], clock=lambda: FIXED_NOW),
        archive=context["archive"],
        sleep=lambda seconds: None,
        clock=lambda: FIXED_NOW,
    )


@given("a consumer invoice for 100.00 with 13% VAT")
def consumer_invoice(context: dict, invoice_factory) -> None:
    context["document"] = invoice_factory(price=100)


@given("a received tax credit voucher for 100.00 with 13% VAT")
def received_voucher(context: dict, invoice_factory) -> None:
    context["document"] = invoice_factory(price=100, document_type="03")


@given("the amount in words omits the currency")
def words_without_currency(context: dict) -> None:
    context["document"]["resumen"]["totalLetras"] = "CIENTO TRECE 00/100"


@given("the authority is unreachable")
def authority_unreachable(context: dict) -> None:
    context["transmitter"].transmit.side_effect = CommunicationError("Authority unreachable")


@given("the authority refuses our login")
def authority_refuses_login(context: dict) -> None:
    context["transmitter"].transmit.side_effect = AuthenticationError(
        "Authentication rejected: 401", status_code=401
    )


@given(parsers.parse('the authority rejects documents with "{code}" "{description}"'))
def authority_rejects(context: dict, code: str, description: str) -> None:
    context["transmitter"].transmit.return_value = TransmissionResult(
        status=TransmissionStatus.REJECTED,
        message="RECHAZADO",
        errors=(AuthorityMessage(code=code, description=description),),
    )


@when("the invoice is emitted")
def emit(context: dict) -> None:
    context["outcome"] = context["engine"].run(
        context["document"], direction=FlowDirection.EMISSION, credential="s3cret"
    )


@when("the voucher is recorded")
def record(context: dict) -> None:
    context["outcome"] = context["engine"].run(
        context["document"], direction=FlowDirection.RECEPTION
    )


@then(parsers.parse('the workflow status is "{status}"'))
def check_status(context: dict, status: str) -> None:
    assert context["outcome"].status.value == status


@then("the document is deferred")
def check_deferred(context: dict) -> None:
    assert context["outcome"].deferred is True


@then("the document is not deferred")
def check_not_deferred(context: dict) -> None:
    assert context["outcome"].deferred is False


@then(parsers.parse("the authority was contacted {count:d} times"))
def check_transmissions(context: dict, count: int) -> None:
    assert context["transmitter"].transmit.call_count == count


@then(parsers.parse("the document was signed {count:d} times"))
def check_signatures(context: dict, count: int) -> None:
    assert context["signer"].sign.call_count == count


@then("nothing was signed")
def check_not_signed(context: dict) -> None:
    context["signer"].sign.assert_not_called()


@then(parsers.parse('the failure kind is "{kind}"'))
def check_failure_kind(context: dict, kind: str) -> None:
    assert context["outcome"].failure.kind.value == kind


@then(parsers.parse('the failure details mention "{text}"'))
def check_failure_details(context: dict, text: str) -> None:
    assert any(text in detail for detail in context["outcome"].failure.details)


@then(parsers.parse('the ledger for "{period}" has output tax "{amount}"'))
def check_output_tax(context: dict, period: str, amount: str) -> None:
    assert context["store"].get(period).output_tax == Decimal(amount)


@then(parsers.parse('the ledger for "{period}" has input tax "{amount}"'))
def check_input_tax(context: dict, period: str, amount: str) -> None:
    assert context["store"].get(period).input_tax == Decimal(amount)


@then(parsers.parse('no ledger exists for "{period}"'))
def check_no_ledger(context: dict, period: str) -> None:
    assert context["store"].get(period) is None


@then("no ledger periods are stored")
def check_no_periods(context: dict) -> None:
    assert context["store"].periods() == []


@then("the outcome is archived")
def check_archived(context: dict) -> None:
    context["archive"].store.assert_called_once_with(context["outcome"])
