"""
Pydantic models for orders, extracted documents and reconciliation results.

This module defines the core data structures used throughout the service:
- OrderRecord and its customer/employee references, as read from the order store
- ExtractedDocument for the text pulled out of an uploaded invoice PDF
- FieldCheck and ReconciliationResult for per-field verification outcomes
- PaidOrdersResult for the paid-not-printed listing
- ActivityEntry for the audit trail

Response models serialize with camelCase keys (totalChecks, textPreview, ...)
and accept either camelCase or snake_case on input.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .config import OrderStatus, PaymentMethod, ReconciliationStatus


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Order Records
# ============================================================================

class CustomerRef(CamelModel):
    """Customer fields resolved onto an order."""
    name: Optional[str] = Field(None, description="Customer display name")
    phone: Optional[str] = Field(None, description="Customer phone number")


class EmployeeRef(CamelModel):
    """Employee fields resolved onto an order."""
    id: Optional[str] = Field(None, alias="_id", description="Employee identifier")
    full_name: Optional[str] = Field(None, description="Employee full name")


class OrderRecord(CamelModel):
    """
    Authoritative order as stored by the point-of-sale system.

    The reconciliation engine only reads orders; it never writes them back.
    """

    id: str = Field(..., alias="_id", min_length=1, description="Order identifier")
    store_id: str = Field(..., min_length=1, description="Owning store identifier")
    total_amount: Decimal = Field(..., ge=0, description="Order total, exact decimal")
    payment_method: PaymentMethod = Field(..., description="How the order was paid")
    is_vat_invoice: bool = Field(
        False,
        alias="isVATInvoice",
        description="Whether a VAT invoice must be issued for this order",
    )
    customer: Optional[CustomerRef] = Field(None, description="Customer, if any")
    employee: Optional[EmployeeRef] = Field(None, description="Cashier who took the order")
    status: OrderStatus = Field(OrderStatus.PENDING, description="Order status")
    print_count: int = Field(0, ge=0, description="Number of times the bill was printed")
    print_date: Optional[datetime] = Field(None, description="When the bill was first printed")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("total_amount", mode="before")
    @classmethod
    def unwrap_decimal(cls, v: Any) -> Any:
        """Accept the {"$numberDecimal": "..."} shape of exported decimals."""
        if isinstance(v, dict) and "$numberDecimal" in v:
            return v["$numberDecimal"]
        return v

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "_id": "665f1c2ab4d3e8a1f0c9d123",
                    "storeId": "665f1b00b4d3e8a1f0c9d001",
                    "totalAmount": "150000",
                    "paymentMethod": "cash",
                    "isVATInvoice": False,
                    "customer": {"name": "Nguyễn Văn A", "phone": "0901234567"},
                    "employee": {"_id": "665f1b11b4d3e8a1f0c9d002", "fullName": "Trần Thị B"},
                    "status": "paid",
                    "printCount": 0,
                }
            ]
        }
    }


# ============================================================================
# Extracted Documents
# ============================================================================

class ExtractedDocument(BaseModel):
    """Text of an uploaded invoice, created fresh for each reconciliation."""
    raw_text: str = Field("", description="Text as returned by the extractor")
    lines: list[str] = Field(default_factory=list, description="Non-empty trimmed lines")
    normalized_text: str = Field("", description="Whitespace-collapsed lower-case text")
    pages: int = Field(0, ge=0, description="Number of pages in the document")


# ============================================================================
# Reconciliation Results
# ============================================================================

class FieldCheck(CamelModel):
    """Outcome of comparing one order field with the printed invoice."""
    field: str = Field(..., description="Machine-readable field key")
    label: str = Field(..., description="Human-readable field name")
    expected: Union[str, float, None] = Field(..., description="Value from the order record")
    actual: Union[str, float, None] = Field(None, description="Value read from the document")
    match: bool = Field(..., description="True if the document agrees with the record")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "field": "totalAmount",
                    "label": "Total amount",
                    "expected": 150000.0,
                    "actual": 149000.0,
                    "match": False,
                }
            ]
        }
    }


class ReconciliationSummary(CamelModel):
    """Aggregated counts for one reconciliation run."""
    total_checks: int = Field(..., ge=0, description="Number of field checks run")
    mismatched: int = Field(..., ge=0, description="Number of checks that did not match")
    status: ReconciliationStatus = Field(..., description="aligned or diverged")
    text_preview: str = Field("", description="First lines of the extracted text")


class ReconciliationResult(CamelModel):
    """
    Complete reconciliation report for one invoice.

    Returned to the caller and summarized into the audit log; never persisted.
    """
    message: str
    summary: ReconciliationSummary
    checks: list[FieldCheck] = Field(default_factory=list)

    @property
    def is_aligned(self) -> bool:
        return self.summary.status == ReconciliationStatus.ALIGNED


class PaidOrdersSummary(CamelModel):
    """Totals for the paid-not-printed listing."""
    total_orders: int = Field(..., ge=0)
    total_amount: float = Field(..., description="Sum of the listed order totals")


class PaidOrdersResult(CamelModel):
    """Response for the paid-not-printed listing."""
    message: str
    summary: PaidOrdersSummary
    orders: list[OrderRecord] = Field(default_factory=list)


# ============================================================================
# Audit Trail
# ============================================================================

class ActivityEntry(CamelModel):
    """One audit-log record describing an action taken on an entity."""
    actor: Optional[str] = Field(None, description="Identifier of the acting user")
    actor_name: Optional[str] = Field(None, description="Display name of the acting user")
    store_id: Optional[str] = Field(None, description="Store the action belongs to")
    action: str = Field(..., description="Action kind, e.g. 'validate'")
    entity: str = Field(..., description="Entity type, e.g. 'OrderInvoice'")
    entity_id: str = Field(..., description="Identifier of the target entity")
    entity_name: Optional[str] = None
    description: Optional[str] = None
    ip: str = "unknown"
    user_agent: str = "unknown"
    created_at: datetime
