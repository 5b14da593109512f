"""
Shared fixtures for the reconciliation tests.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import pytest

from invoice_recon.config import OrderStatus, PaymentMethod
from invoice_recon.extractor import ExtractedText, TextExtractor
from invoice_recon.repository import InMemoryOrderRepository
from invoice_recon.schemas import CustomerRef, OrderRecord


ORDER_ID = "665f1c2ab4d3e8a1f0c9d123"
STORE_ID = "665f1b00b4d3e8a1f0c9d001"
OTHER_STORE_ID = "665f1b00b4d3e8a1f0c9d999"

FAKE_PDF = b"%PDF-1.4 fake invoice"


class FakeTextExtractor(TextExtractor):
    """Extractor returning canned text, recording every buffer it was given."""

    name = "fake"

    def __init__(self, text: str = "", pages: int = 1, error: Optional[Exception] = None):
        self.text = text
        self.pages = pages
        self.error = error
        self.calls: list[bytes] = []

    def extract_text(self, data: bytes) -> ExtractedText:
        self.calls.append(data)
        if self.error is not None:
            raise self.error
        return ExtractedText(text=self.text, pages=self.pages)


def invoice_text(*lines: str) -> str:
    return "\n".join(lines)


@pytest.fixture
def cash_order() -> OrderRecord:
    """A paid walk-in cash order of 150,000 without VAT."""
    return OrderRecord(
        id=ORDER_ID,
        store_id=STORE_ID,
        total_amount=Decimal("150000"),
        payment_method=PaymentMethod.CASH,
        is_vat_invoice=False,
        status=OrderStatus.PAID,
        updated_at=datetime(2024, 5, 2, 10, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def customer_order() -> OrderRecord:
    """A QR-paid VAT order for a registered customer."""
    return OrderRecord(
        id="665f1c2ab4d3e8a1f0c9d456",
        store_id=STORE_ID,
        total_amount=Decimal("1234567.50"),
        payment_method=PaymentMethod.QR,
        is_vat_invoice=True,
        customer=CustomerRef(name="Nguyễn Văn A", phone="0901234567"),
        status=OrderStatus.PAID,
        updated_at=datetime(2024, 5, 3, 9, 30, tzinfo=timezone.utc),
    )


@pytest.fixture
def aligned_text() -> str:
    """Invoice text that agrees with cash_order on every field."""
    return invoice_text(
        "SMARTBIZ STORE",
        "HÓA ĐƠN BÁN HÀNG",
        f"ID Hóa đơn: {ORDER_ID}",
        "Khách hàng: Khách vãng lai",
        "Sữa tươi x2        30.000",
        "Bánh mì x4         120.000",
        "TỔNG TIỀN: 150.000đ",
        "Phương thức: Tiền mặt",
        "Cảm ơn quý khách!",
    )


@pytest.fixture
def repository(cash_order, customer_order) -> InMemoryOrderRepository:
    return InMemoryOrderRepository([cash_order, customer_order])
