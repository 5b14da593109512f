"""
Field rules for invoice reconciliation.

Each rule reads one field from the extracted invoice text and compares it
with the stored order. Matching is deliberately tolerant (prefix labels,
substring containment) because the invoice layout is produced elsewhere.

Rules run in registry order and every rule always yields exactly one
FieldCheck, so a report for a given order always has the same shape.
"""

import re
from dataclasses import dataclass
from typing import Callable, Optional

from .config import (
    AMOUNT_TOLERANCE,
    CUSTOMER_LABELS,
    NO_VAT_EXPECTED_LABEL,
    ORDER_ID_LABELS,
    PAYMENT_DISPLAY_TOKENS,
    PAYMENT_METHOD_LABELS,
    TOTAL_AMOUNT_LABELS,
    VAT_EXPECTED_LABEL,
    VAT_LABELS,
    VAT_TOKEN,
    WALK_IN_CUSTOMER,
)
from .extractor import decimal_to_number, extract_line_value, sanitize_amount
from .schemas import ExtractedDocument, FieldCheck, OrderRecord


# Type alias for rule check functions
RuleCheckFn = Callable[[OrderRecord, ExtractedDocument], FieldCheck]


@dataclass
class FieldRule:
    """
    Represents a single reconciliation rule.

    Attributes:
        field: Machine-readable field key reported in FieldCheck.field
        label: Human-readable field name
        description: What the rule compares
        check: Function that produces the FieldCheck
    """
    field: str
    label: str
    description: str
    check: RuleCheckFn


# ============================================================================
# Customer Line Parsing
# ============================================================================

def split_customer_line(line: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """
    Split a "Name - Phone" customer line.

    The name is everything before the first '-'. The phone is only present
    when the line has a '-' and keeps just digits and '+'.
    """
    if not line:
        return None, None

    name = line.split("-")[0].strip()
    phone = None
    if "-" in line:
        phone = re.sub(r"[^0-9+]", "", line.split("-", 1)[1]).strip()
    return name, phone


# ============================================================================
# Field Checks
# ============================================================================

def check_order_id(order: OrderRecord, document: ExtractedDocument) -> FieldCheck:
    """The invoice must carry the order id, by label or anywhere in the text."""
    expected = order.id
    actual = extract_line_value(document.lines, ORDER_ID_LABELS)

    if actual is None:
        if expected.lower() in document.normalized_text:
            actual = expected
        elif expected[-8:].lower() in document.normalized_text:
            actual = expected

    return FieldCheck(
        field="orderId",
        label="Order ID",
        expected=expected,
        actual=actual,
        match=bool(actual and expected in actual),
    )


def check_total_amount(order: OrderRecord, document: ExtractedDocument) -> FieldCheck:
    """The printed total must be within AMOUNT_TOLERANCE of the stored total."""
    expected = decimal_to_number(order.total_amount)
    actual = sanitize_amount(extract_line_value(document.lines, TOTAL_AMOUNT_LABELS))

    return FieldCheck(
        field="totalAmount",
        label="Total amount",
        expected=expected,
        actual=actual,
        match=actual is not None and abs(actual - expected) < AMOUNT_TOLERANCE,
    )


def check_payment_method(order: OrderRecord, document: ExtractedDocument) -> FieldCheck:
    """The payment line must mention the display token for the order's method."""
    actual = extract_line_value(document.lines, PAYMENT_METHOD_LABELS)
    token = PAYMENT_DISPLAY_TOKENS[order.payment_method]

    return FieldCheck(
        field="paymentMethod",
        label="Payment method",
        expected=order.payment_method.value,
        actual=actual,
        match=bool(actual and token in actual.lower()),
    )


def _expected_customer(order: OrderRecord) -> tuple[str, str]:
    customer = order.customer
    name = (customer.name if customer else None) or WALK_IN_CUSTOMER
    phone = (customer.phone if customer else None) or ""
    return name, phone


def check_customer_name(order: OrderRecord, document: ExtractedDocument) -> FieldCheck:
    """
    The printed customer name must contain the stored one.

    When the invoice has no customer line, only walk-in orders match.
    """
    expected, _ = _expected_customer(order)
    actual, _ = split_customer_line(extract_line_value(document.lines, CUSTOMER_LABELS))

    if actual:
        match = expected.lower() in actual.lower()
    else:
        match = expected == WALK_IN_CUSTOMER

    return FieldCheck(
        field="customerName",
        label="Customer name",
        expected=expected,
        actual=actual,
        match=match,
    )


def check_customer_phone(order: OrderRecord, document: ExtractedDocument) -> FieldCheck:
    """If the order has a customer phone, the invoice must print exactly that number."""
    _, expected = _expected_customer(order)
    _, actual = split_customer_line(extract_line_value(document.lines, CUSTOMER_LABELS))

    return FieldCheck(
        field="customerPhone",
        label="Customer phone",
        expected=expected,
        actual=actual,
        match=actual == expected if expected else True,
    )


def check_vat(order: OrderRecord, document: ExtractedDocument) -> FieldCheck:
    """
    VAT orders must print a VAT line; non-VAT orders must not print one.
    """
    actual = extract_line_value(document.lines, VAT_LABELS)

    if order.is_vat_invoice:
        expected = VAT_EXPECTED_LABEL
        match = bool(actual and VAT_TOKEN in actual.lower())
    else:
        expected = NO_VAT_EXPECTED_LABEL
        match = actual is None

    return FieldCheck(
        field="vat",
        label="VAT information",
        expected=expected,
        actual=actual,
        match=match,
    )


# ============================================================================
# Rule Registry
# ============================================================================

# All field rules in evaluation order
FIELD_RULES: list[FieldRule] = [
    FieldRule(
        field="orderId",
        label="Order ID",
        description="Invoice id label, or the order id (or its last 8 characters) anywhere in the text",
        check=check_order_id,
    ),
    FieldRule(
        field="totalAmount",
        label="Total amount",
        description="Printed total within 1 of the stored total",
        check=check_total_amount,
    ),
    FieldRule(
        field="paymentMethod",
        label="Payment method",
        description="Payment line mentions 'tiền mặt' for cash or 'qr' for transfer",
        check=check_payment_method,
    ),
    FieldRule(
        field="customerName",
        label="Customer name",
        description="Customer line contains the stored name; no line only for walk-in orders",
        check=check_customer_name,
    ),
    FieldRule(
        field="customerPhone",
        label="Customer phone",
        description="Phone after '-' on the customer line equals the stored phone",
        check=check_customer_phone,
    ),
    FieldRule(
        field="vat",
        label="VAT information",
        description="VAT line present exactly when the order requires a VAT invoice",
        check=check_vat,
    ),
]


def get_rule_descriptions() -> list[dict[str, str]]:
    """Get the rules in evaluation order with their labels and descriptions."""
    return [
        {"field": rule.field, "label": rule.label, "description": rule.description}
        for rule in FIELD_RULES
    ]
