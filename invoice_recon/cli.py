"""
Command-line interface for the Invoice Reconciliation Service.

Provides the main commands:
- verify: Check an invoice PDF against an order from a JSON order file
- paid-orders: List paid orders of a store with their total
- rules: Show the field rules applied by verify
"""

import json
from pathlib import Path
from typing import Optional

import typer

from .audit import ActivityLogSink, JsonLinesActivitySink, LoggingActivitySink
from .config import PDF_TEXT_BACKEND, logger
from .errors import ReconciliationError
from .extractor import create_text_extractor
from .reconciler import format_report_text, list_paid_not_printed, verify_invoice
from .repository import JsonOrderRepository
from .rules import get_rule_descriptions


# Create Typer app
app = typer.Typer(
    name="invoice-recon",
    help="Invoice Reconciliation Service CLI",
    add_completion=False,
)


def _load_repository(orders_file: Path) -> JsonOrderRepository:
    try:
        return JsonOrderRepository(orders_file)
    except (OSError, ValueError) as e:
        typer.echo(f"Error: could not load orders from {orders_file}: {e}", err=True)
        raise typer.Exit(code=1)


@app.command()
def verify(
    order_id: str = typer.Option(..., "--order-id", "-o", help="Order identifier"),
    store_id: str = typer.Option(..., "--store-id", "-s", help="Store identifier"),
    pdf: Path = typer.Option(
        ...,
        "--pdf",
        "-p",
        help="Invoice PDF to verify",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    orders_file: Path = typer.Option(
        ...,
        "--orders",
        help="JSON file containing the stored orders",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    report: Optional[Path] = typer.Option(
        None,
        "--report",
        "-r",
        help="Also save the reconciliation report to this JSON file",
    ),
    audit_log: Optional[Path] = typer.Option(
        None,
        "--audit-log",
        help="Append the audit entry to this JSON-lines file instead of the log",
    ),
    actor: Optional[str] = typer.Option(None, "--actor", help="User recorded in the audit entry"),
    backend: str = typer.Option(PDF_TEXT_BACKEND, "--backend", help="PDF text extraction backend"),
    fail_on_diverged: bool = typer.Option(
        False,
        "--fail-on-diverged",
        help="Exit with non-zero status if any field does not match",
    ),
) -> None:
    """
    Verify an invoice PDF against its stored order.

    Extracts the text of the PDF, compares every field rule with the order
    and prints a per-field report.
    """
    typer.echo(f"Verifying {pdf.name} against order {order_id}")

    repository = _load_repository(orders_file)
    sink: ActivityLogSink = JsonLinesActivitySink(audit_log) if audit_log else LoggingActivitySink()

    try:
        extractor = create_text_extractor(backend)
        result = verify_invoice(
            order_id,
            store_id,
            pdf.read_bytes(),
            repository=repository,
            extractor=extractor,
            activity_log=sink,
            actor=actor,
        )
    except ReconciliationError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(code=1)
    except Exception as e:
        typer.echo(f"Error during verification: {e}", err=True)
        logger.exception("Verification failed")
        raise typer.Exit(code=1)

    typer.echo("\n" + format_report_text(result))

    if report:
        with open(report, "w", encoding="utf-8") as f:
            json.dump(result.model_dump(mode="json", by_alias=True), f, indent=2, ensure_ascii=False)
        typer.echo(f"\n[OK] Reconciliation report saved to: {report}")

    if fail_on_diverged and not result.is_aligned:
        raise typer.Exit(code=1)


@app.command("paid-orders")
def paid_orders(
    store_id: str = typer.Option(..., "--store-id", "-s", help="Store identifier"),
    orders_file: Path = typer.Option(
        ...,
        "--orders",
        help="JSON file containing the stored orders",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
) -> None:
    """
    List paid orders of a store, most recently updated first.
    """
    repository = _load_repository(orders_file)

    try:
        result = list_paid_not_printed(store_id, repository=repository)
    except ReconciliationError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(code=1)

    typer.echo(result.message)
    for order in result.orders[:20]:  # Show first 20
        customer = order.customer.name if order.customer and order.customer.name else "-"
        typer.echo(f"  - {order.id} | {customer} | {order.total_amount} | {order.payment_method.value}")
    if len(result.orders) > 20:
        typer.echo(f"  ... and {len(result.orders) - 20} more")

    typer.echo(f"\nTotal orders: {result.summary.total_orders}")
    typer.echo(f"Total amount: {result.summary.total_amount:,.0f}")


@app.command()
def rules() -> None:
    """Show the field rules applied when verifying an invoice."""
    for i, rule in enumerate(get_rule_descriptions(), start=1):
        typer.echo(f"{i}. {rule['label']} ({rule['field']}): {rule['description']}")


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__
    typer.echo(f"Invoice Reconciliation Service v{__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
