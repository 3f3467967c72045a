"""CLI entry point for dteflow."""

import json
import logging
import re
import sys
from pathlib import Path
from typing import Any

import click

from .adapters.archive import FilesystemArchive
from .adapters.ledger import create_ledger_store
from .adapters.signing import create_signing_adapter
from .adapters.transmission import create_transmission_adapter
from .config import Settings, load_settings
from .domain.models import FlowDirection, MonthlyLedger, ValidationViolation, WorkflowOutcome
from .domain.services import BatchIngestionService, LedgerService, WorkflowEngine
from .domain.validation import validate
from .errors import DteflowError

logger = logging.getLogger(__name__)

PERIOD_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def load_document(path: Path) -> dict[str, Any]:
    """Read a DTE JSON file."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"{path.name} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise click.BadParameter(f"{path.name} does not contain a JSON object")
    return data


def collect_documents(path: Path, recursive: bool) -> list[Path]:
    """Collect JSON files from path (file or directory)."""
    if path.is_file():
        return [path] if path.suffix.lower() == ".json" else []
    pattern = "**/*.json" if recursive else "*.json"
    return sorted(path.glob(pattern))


def parse_period(value: str) -> str:
    if not PERIOD_PATTERN.match(value):
        raise click.BadParameter("Period must be YYYY-MM")
    return value


def format_violation(violation: ValidationViolation) -> str:
    marker = "✗" if violation.blocking else "!"
    field = f" [{violation.field}]" if violation.field else ""
    return f"{marker} {violation.code}{field}: {violation.description}"


def format_ledger(ledger: MonthlyLedger) -> list[str]:
    return [
        f"period: {ledger.period}",
        f"gross_income: {ledger.gross_income}",
        f"total_taxed: {ledger.total_taxed}",
        f"total_exempt: {ledger.total_exempt}",
        f"total_not_subject: {ledger.total_not_subject}",
        f"output_tax: {ledger.output_tax}",
        f"purchases_taxed: {ledger.purchases_taxed}",
        f"purchases_exempt: {ledger.purchases_exempt}",
        f"input_tax: {ledger.input_tax}",
        f"vat_withheld: {ledger.vat_withheld}",
        f"last_updated: {ledger.last_updated.isoformat() if ledger.last_updated else None}",
    ]


def build_engine(settings: Settings) -> WorkflowEngine:
    """Wire adapters from settings."""
    store = create_ledger_store(settings.ledger, settings.paths.ledger)
    return WorkflowEngine(
        signer=create_signing_adapter(settings.signing),
        transmitter=create_transmission_adapter(settings.authority),
        ledger=LedgerService(store),
        archive=FilesystemArchive(settings.paths.archive),
        max_retries=settings.workflow.max_retries,
        backoff_base=settings.workflow.backoff_base,
        backoff_cap=settings.workflow.backoff_cap,
    )


def _credential(settings: Settings) -> str:
    if settings.signing.credential is not None:
        return settings.signing.credential.get_secret_value()
    return click.prompt("Signing credential", hide_input=True)


def _echo_outcome(outcome: WorkflowOutcome) -> None:
    document = outcome.document
    click.echo(f"status: {outcome.status.value}")
    if document is not None:
        click.echo(f"generation_code: {document.generation_code}")
        click.echo(f"control_number: {document.control_number}")
    if outcome.deferred:
        click.echo(f"contingency: {outcome.contingency_reason}")
    if outcome.transmission and outcome.transmission.receipt_seal:
        click.echo(f"receipt_seal: {outcome.transmission.receipt_seal}")
    for violation in outcome.violations:
        click.echo(format_violation(violation), err=violation.blocking)
    if outcome.failure:
        click.echo(f"failure: {outcome.failure.kind.value}: {outcome.failure.message}", err=True)
        for detail in outcome.failure.details:
            click.echo(f"  {detail}", err=True)
    if outcome.ledger_delta:
        click.echo(f"ledger: {outcome.ledger_delta.period} updated")
    if outcome.ledger_error:
        click.echo(f"ledger: not recorded: {outcome.ledger_error}", err=True)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("-c", "--config", type=click.Path(exists=True), help="Config file path")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config: str | None) -> None:
    """dteflow - electronic tax document validation and workflow."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config) if config else None


@cli.command(name="validate")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--type", "document_type", help="Override the document type code")
def validate_command(file: Path, document_type: str | None) -> None:
    """Validate a DTE JSON file without sending it anywhere."""
    document, violations = validate(load_document(file), document_type)

    for violation in violations:
        click.echo(format_violation(violation))

    blocking = [v for v in violations if v.blocking]
    click.echo(
        f"\n{document.generation_code or 'S/N'}: "
        f"{len(blocking)} blocking, {len(violations) - len(blocking)} advisory"
    )
    if blocking:
        sys.exit(1)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--reception", is_flag=True, help="Record a received document instead of emitting")
@click.pass_context
def submit(ctx: click.Context, file: Path, reception: bool) -> None:
    """Run one document through the workflow."""
    settings = load_settings(ctx.obj["config_path"])
    engine = build_engine(settings)
    raw = load_document(file)

    if reception:
        outcome = engine.run(raw, direction=FlowDirection.RECEPTION)
    else:
        outcome = engine.run(
            raw,
            direction=FlowDirection.EMISSION,
            credential=_credential(settings),
            environment=settings.authority.environment,
        )

    _echo_outcome(outcome)
    if not outcome.success:
        sys.exit(1)


@cli.command()
@click.argument("path", type=click.Path(exists=True, path_type=Path))
@click.option("--recursive/--no-recursive", default=False, help="Search directories recursively")
@click.option("--emission", is_flag=True, help="Emit the documents instead of recording them")
@click.pass_context
def ingest(ctx: click.Context, path: Path, recursive: bool, emission: bool) -> None:
    """Process a batch of DTE JSON files sequentially."""
    settings = load_settings(ctx.obj["config_path"])
    files = collect_documents(path, recursive)
    if not files:
        click.echo("No documents to ingest")
        return

    documents = []
    for file in files:
        try:
            documents.append(load_document(file))
        except click.BadParameter as e:
            click.echo(f"✗ {e.message}", err=True)

    direction = FlowDirection.EMISSION if emission else FlowDirection.RECEPTION
    credential = _credential(settings) if emission else None

    service = BatchIngestionService(build_engine(settings))
    try:
        result = service.ingest(documents, direction=direction, credential=credential)
    except DteflowError as e:
        click.echo(f"Aborted: {e}", err=True)
        sys.exit(1)

    for error in result.errors:
        click.echo(f"✗ {error}", err=True)
    click.echo(f"\nIngested: {result.success_count} success, {result.failure_count} errors")
    if result.failure_count or len(documents) < len(files):
        sys.exit(1)


@cli.command()
@click.argument("period", required=False)
@click.pass_context
def ledger(ctx: click.Context, period: str | None) -> None:
    """Show the ledger for PERIOD (YYYY-MM), or list stored periods."""
    settings = load_settings(ctx.obj["config_path"])
    store = create_ledger_store(settings.ledger, settings.paths.ledger)

    if period is None:
        periods = store.periods()
        if not periods:
            click.echo("No ledger periods stored")
        for p in periods:
            click.echo(p)
        return

    snapshot = LedgerService(store).get(parse_period(period))
    for line in format_ledger(snapshot):
        click.echo(line)


if __name__ == "__main__":
    cli()
