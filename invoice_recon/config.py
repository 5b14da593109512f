"""
Configuration constants and enums for the Invoice Reconciliation Service.
"""

import logging
import os
from enum import Enum
from typing import Final

# ============================================================================
# Order Enums
# ============================================================================

class PaymentMethod(str, Enum):
    """Payment methods an order can be settled with."""
    CASH = "cash"
    QR = "qr"  # Electronic transfer via QR code


class OrderStatus(str, Enum):
    """Lifecycle status of an order."""
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class ReconciliationStatus(str, Enum):
    """Overall outcome of a reconciliation run."""
    ALIGNED = "aligned"
    DIVERGED = "diverged"


# ============================================================================
# Reconciliation Tolerances
# ============================================================================

# Printed totals are rounded to whole dong, so anything under 1 is a match
AMOUNT_TOLERANCE: Final[float] = float(os.getenv("AMOUNT_TOLERANCE", "1"))

# Number of extracted lines echoed back in the report preview
TEXT_PREVIEW_LINES: Final[int] = 30

# ============================================================================
# Document Labels
# ============================================================================
# Each list holds the accented and unaccented spelling of the same label,
# since text pulled out of a PDF may lose its diacritics.

ORDER_ID_LABELS: Final[list[str]] = [
    "ID Hóa đơn",
    "ID Hoa don",
    "Mã hóa đơn",
    "Ma hoa don",
]

TOTAL_AMOUNT_LABELS: Final[list[str]] = [
    "TỔNG TIỀN",
    "TONG TIEN",
]

PAYMENT_METHOD_LABELS: Final[list[str]] = [
    "Phương thức",
    "Phuong thuc",
    "Thanh toán",
    "Thanh toan",
]

CUSTOMER_LABELS: Final[list[str]] = [
    "Khách hàng",
    "Khach hang",
]

VAT_LABELS: Final[list[str]] = [
    "VAT",
    "Thuế",
    "Thue",
]

# Token the printed payment line must contain for each payment method
PAYMENT_DISPLAY_TOKENS: Final[dict[PaymentMethod, str]] = {
    PaymentMethod.CASH: "tiền mặt",
    PaymentMethod.QR: "qr",
}

# Customer label printed on receipts for orders without a customer record
WALK_IN_CUSTOMER: Final[str] = "Khách vãng lai"

VAT_TOKEN: Final[str] = "vat"
VAT_EXPECTED_LABEL: Final[str] = "Có VAT"
NO_VAT_EXPECTED_LABEL: Final[str] = "Không VAT"

# Currency glyphs stripped before parsing amounts
CURRENCY_SYMBOLS: Final[str] = "đ₫$€£₹¥"

# ============================================================================
# API Configuration
# ============================================================================

API_HOST: Final[str] = os.getenv("API_HOST", "0.0.0.0")
API_PORT: Final[int] = int(os.getenv("API_PORT", "8000"))
MAX_UPLOAD_SIZE_MB: Final[int] = int(os.getenv("MAX_UPLOAD_SIZE_MB", "10"))
ALLOWED_CONTENT_TYPES: Final[set[str]] = {"application/pdf"}

# Text extraction backend, selected once when the app is built
PDF_TEXT_BACKEND: Final[str] = os.getenv("PDF_TEXT_BACKEND", "pdfplumber")

# Order store and audit file used by the API process
ORDERS_FILE: Final[str] = os.getenv("ORDERS_FILE", "orders.json")
AUDIT_LOG_FILE: Final[str] = os.getenv("AUDIT_LOG_FILE", "")

# ============================================================================
# Logging Configuration
# ============================================================================

LOG_LEVEL: Final[str] = os.getenv("LOG_LEVEL", "INFO")

def setup_logging() -> logging.Logger:
    """Configure and return the application logger."""
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    return logging.getLogger("invoice_recon")


logger = setup_logging()
