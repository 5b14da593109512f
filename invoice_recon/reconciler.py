"""
Reconciliation engine for printed invoices.

This module orchestrates checking an uploaded invoice PDF against the stored
order and produces the per-field report, the audit entry, and the
paid-not-printed listing.
"""

from typing import Optional

from .audit import ActivityLogSink, create_activity_entry, record_activity
from .config import OrderStatus, ReconciliationStatus, TEXT_PREVIEW_LINES, logger
from .errors import NotFoundError, ValidationError
from .extractor import TextExtractor, decimal_to_number, extract_document
from .repository import OrderRepository, is_valid_object_id
from .rules import FIELD_RULES, FieldRule
from .schemas import (
    ExtractedDocument,
    FieldCheck,
    OrderRecord,
    PaidOrdersResult,
    PaidOrdersSummary,
    ReconciliationResult,
    ReconciliationSummary,
)


def require_store_id(store_id: Optional[str]) -> str:
    """
    Check that a store id is present and well formed.

    Raises:
        ValidationError: If the store id is missing or malformed
    """
    if not store_id or not is_valid_object_id(store_id):
        raise ValidationError("Missing or invalid storeId")
    return store_id.strip()


def compare_fields(
    order: OrderRecord,
    document: ExtractedDocument,
    rules: Optional[list[FieldRule]] = None,
) -> list[FieldCheck]:
    """
    Run every field rule against the document.

    Args:
        order: The stored order
        document: Text extracted from the invoice
        rules: Optional list of rules to apply (defaults to FIELD_RULES)

    Returns:
        One FieldCheck per rule, in rule order
    """
    if rules is None:
        rules = FIELD_RULES

    checks = [rule.check(order, document) for rule in rules]
    for check in checks:
        logger.debug(f"{check.field}: expected={check.expected!r} actual={check.actual!r} match={check.match}")
    return checks


def build_report(checks: list[FieldCheck], document: ExtractedDocument) -> ReconciliationResult:
    """Aggregate field checks into a reconciliation report."""
    mismatched = [check for check in checks if not check.match]
    aligned = len(mismatched) == 0

    summary = ReconciliationSummary(
        total_checks=len(checks),
        mismatched=len(mismatched),
        status=ReconciliationStatus.ALIGNED if aligned else ReconciliationStatus.DIVERGED,
        text_preview="\n".join(document.lines[:TEXT_PREVIEW_LINES]),
    )

    return ReconciliationResult(
        message="Invoice matches the system record" if aligned else "Discrepancies found in invoice",
        summary=summary,
        checks=checks,
    )


def describe_outcome(result: ReconciliationResult) -> str:
    """One-line audit description of a reconciliation outcome."""
    if result.is_aligned:
        return "Reconciled invoice PDF - aligned"
    return f"Reconciled invoice PDF - {result.summary.mismatched} mismatched"


def verify_invoice(
    order_id: Optional[str],
    store_id: Optional[str],
    pdf_bytes: Optional[bytes],
    *,
    repository: OrderRepository,
    extractor: TextExtractor,
    activity_log: Optional[ActivityLogSink] = None,
    actor: Optional[str] = None,
    actor_name: Optional[str] = None,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> ReconciliationResult:
    """
    Check an invoice PDF against the stored order it claims to represent.

    Args:
        order_id: Identifier of the order printed on the invoice
        store_id: Store that owns the order
        pdf_bytes: Uploaded PDF content
        repository: Where orders are looked up
        extractor: Text extraction backend
        activity_log: Optional audit sink; failures there are logged only
        actor, actor_name, ip, user_agent: Request details for the audit entry

    Returns:
        ReconciliationResult with one FieldCheck per rule

    Raises:
        ValidationError: If an identifier is malformed or no document was given
        NotFoundError: If the store has no such order
        ExtractionFailure: If the PDF cannot be read
    """
    if not is_valid_object_id(order_id):
        raise ValidationError("Invalid orderId")
    if not pdf_bytes:
        raise ValidationError("Missing invoice PDF file")
    store_id = require_store_id(store_id)
    order_id = order_id.strip()

    order = repository.find_order(order_id, store_id)
    if order is None:
        raise NotFoundError("Invoice not found in the system")

    logger.info(f"Reconciling invoice PDF for order {order.id} (store {store_id})")

    document = extract_document(pdf_bytes, extractor)
    checks = compare_fields(order, document)
    result = build_report(checks, document)

    logger.info(
        f"Order {order.id}: {result.summary.status.value}, "
        f"{result.summary.mismatched}/{result.summary.total_checks} mismatched"
    )

    entry = create_activity_entry(
        action="validate",
        entity="OrderInvoice",
        entity_id=order.id,
        entity_name=f"Invoice reconciliation #{order.id}",
        description=describe_outcome(result),
        actor=actor,
        actor_name=actor_name,
        store_id=order.store_id,
        ip=ip,
        user_agent=user_agent,
    )
    record_activity(activity_log, entry)

    return result


def list_paid_not_printed(store_id: Optional[str], *, repository: OrderRepository) -> PaidOrdersResult:
    """
    List a store's paid orders, newest update first, with their total value.

    Raises:
        ValidationError: If the store id is missing or malformed
    """
    store_id = require_store_id(store_id)

    orders = repository.find_orders(store_id, OrderStatus.PAID)
    total_amount = sum((decimal_to_number(order.total_amount) for order in orders), 0.0)

    logger.info(f"Store {store_id}: {len(orders)} paid orders totalling {total_amount}")

    return PaidOrdersResult(
        message=f"Found {len(orders)} paid invoices",
        summary=PaidOrdersSummary(total_orders=len(orders), total_amount=total_amount),
        orders=orders,
    )


def format_report_text(result: ReconciliationResult) -> str:
    """
    Format a ReconciliationResult as human-readable text for CLI output.
    """
    summary = result.summary
    lines = [
        "=" * 50,
        "INVOICE RECONCILIATION",
        "=" * 50,
        f"Status:        {summary.status.value}",
        f"Checks run:    {summary.total_checks}",
        f"Mismatched:    {summary.mismatched}",
        "",
        "Field Checks:",
        "-" * 40,
    ]

    for check in result.checks:
        mark = "OK " if check.match else "XX "
        lines.append(f"  {mark}{check.label}: expected={check.expected!r} actual={check.actual!r}")

    lines.append("")
    lines.append(result.message)
    lines.append("=" * 50)

    return "\n".join(lines)
