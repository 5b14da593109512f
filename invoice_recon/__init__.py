"""
Invoice Reconciliation Service

A Python service for checking printed invoice PDFs against the orders
stored by a point-of-sale system, field by field.
"""

__version__ = "0.1.0"
__author__ = "Invoice Reconciliation Team"

from .schemas import OrderRecord, FieldCheck, ReconciliationResult, PaidOrdersResult
from .extractor import sanitize_amount, extract_line_value, decimal_to_number
from .reconciler import compare_fields, verify_invoice, list_paid_not_printed

__all__ = [
    "OrderRecord",
    "FieldCheck",
    "ReconciliationResult",
    "PaidOrdersResult",
    "sanitize_amount",
    "extract_line_value",
    "decimal_to_number",
    "compare_fields",
    "verify_invoice",
    "list_paid_not_printed",
]
