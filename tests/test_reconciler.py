"""
Tests for the field rules and the reconciliation engine.

These tests verify each field rule, the fixed shape of the report,
error handling and the audit trail.
"""

from decimal import Decimal

import pytest

from invoice_recon.audit import ActivityLogSink, MemoryActivitySink
from invoice_recon.config import OrderStatus, PaymentMethod, ReconciliationStatus
from invoice_recon.errors import ExtractionFailure, NotFoundError, ValidationError
from invoice_recon.extractor import build_document
from invoice_recon.reconciler import (
    build_report,
    compare_fields,
    format_report_text,
    list_paid_not_printed,
    verify_invoice,
)
from invoice_recon.repository import InMemoryOrderRepository
from invoice_recon.rules import (
    FIELD_RULES,
    check_customer_name,
    check_customer_phone,
    check_order_id,
    check_payment_method,
    check_total_amount,
    check_vat,
    split_customer_line,
)
from invoice_recon.schemas import OrderRecord

from conftest import FAKE_PDF, ORDER_ID, OTHER_STORE_ID, STORE_ID, FakeTextExtractor, invoice_text


EXPECTED_FIELDS = ["orderId", "totalAmount", "paymentMethod", "customerName", "customerPhone", "vat"]


class BrokenSink(ActivityLogSink):
    """Sink that always fails."""

    def record(self, entry):
        raise RuntimeError("audit store unavailable")


# ============================================================================
# Individual Rule Tests
# ============================================================================

class TestOrderIdRule:
    """Tests for the order id rule."""

    def test_label_value(self, cash_order):
        doc = build_document(f"Mã hóa đơn: #{ORDER_ID}")
        check = check_order_id(cash_order, doc)
        assert check.match is True
        assert check.actual == f"#{ORDER_ID}"

    def test_id_anywhere_in_text(self, cash_order):
        doc = build_document(f"Receipt ref {ORDER_ID.upper()} printed")
        check = check_order_id(cash_order, doc)
        assert check.match is True
        assert check.actual == ORDER_ID

    def test_last_eight_characters(self, cash_order):
        doc = build_document(f"Receipt #{ORDER_ID[-8:]}")
        check = check_order_id(cash_order, doc)
        assert check.match is True

    def test_missing(self, cash_order):
        check = check_order_id(cash_order, build_document("no identifier here"))
        assert check.match is False
        assert check.actual is None

    def test_label_with_other_id(self, cash_order):
        doc = build_document("ID Hoa don: 000000000000000000000000")
        assert check_order_id(cash_order, doc).match is False


class TestTotalAmountRule:
    """Tests for the total amount rule."""

    def test_exact(self, cash_order):
        check = check_total_amount(cash_order, build_document("TỔNG TIỀN: 150.000đ"))
        assert check.match is True
        assert check.expected == 150000
        assert check.actual == 150000

    def test_within_tolerance(self, cash_order):
        check = check_total_amount(cash_order, build_document("TONG TIEN: 150.000,50"))
        assert check.match is True

    def test_off_by_one_is_mismatch(self, cash_order):
        check = check_total_amount(cash_order, build_document("TỔNG TIỀN: 150.001"))
        assert check.match is False

    def test_unreadable_amount(self, cash_order):
        check = check_total_amount(cash_order, build_document("TỔNG TIỀN: see attached"))
        assert check.match is False
        assert check.actual is None


class TestPaymentMethodRule:
    """Tests for the payment method rule."""

    def test_cash(self, cash_order):
        check = check_payment_method(cash_order, build_document("Phương thức: TIỀN MẶT"))
        assert check.match is True
        assert check.expected == "cash"

    def test_qr(self, customer_order):
        check = check_payment_method(customer_order, build_document("Thanh toan: Chuyen khoan QR"))
        assert check.match is True

    def test_wrong_method(self, cash_order):
        check = check_payment_method(cash_order, build_document("Phương thức: QR"))
        assert check.match is False

    def test_missing_line(self, cash_order):
        check = check_payment_method(cash_order, build_document("nothing"))
        assert check.match is False
        assert check.actual is None


class TestCustomerRules:
    """Tests for the customer name and phone rules."""

    def test_split_name_and_phone(self):
        assert split_customer_line("Nguyễn Văn A - 0901 234 567") == ("Nguyễn Văn A", "0901234567")

    def test_split_name_only(self):
        assert split_customer_line("Trần Thị B") == ("Trần Thị B", None)

    def test_split_none(self):
        assert split_customer_line(None) == (None, None)

    def test_registered_customer_matches(self, customer_order):
        doc = build_document("Khách hàng: nguyễn văn a - 0901234567")
        assert check_customer_name(customer_order, doc).match is True
        assert check_customer_phone(customer_order, doc).match is True

    def test_wrong_phone(self, customer_order):
        doc = build_document("Khách hàng: Nguyễn Văn A - 0909999999")
        assert check_customer_name(customer_order, doc).match is True
        assert check_customer_phone(customer_order, doc).match is False

    def test_missing_phone_for_registered_customer(self, customer_order):
        doc = build_document("Khach hang: Nguyễn Văn A")
        assert check_customer_phone(customer_order, doc).match is False

    def test_walk_in_without_customer_line(self, cash_order):
        doc = build_document("TỔNG TIỀN: 150.000")
        name = check_customer_name(cash_order, doc)
        assert name.match is True
        assert name.expected == "Khách vãng lai"
        assert check_customer_phone(cash_order, doc).match is True

    def test_registered_customer_without_line(self, customer_order):
        doc = build_document("TỔNG TIỀN: 150.000")
        assert check_customer_name(customer_order, doc).match is False

    def test_walk_in_with_named_customer_printed(self, cash_order):
        doc = build_document("Khách hàng: Lê Văn C")
        assert check_customer_name(cash_order, doc).match is False


class TestVatRule:
    """Tests for the VAT marker rule."""

    def test_vat_order_with_vat_line(self, customer_order):
        check = check_vat(customer_order, build_document("Thuế VAT: 10%"))
        assert check.match is True
        assert check.expected == "Có VAT"

    def test_value_after_vat_label_must_mention_vat(self, customer_order):
        """Only the text after the label is searched for the VAT token."""
        check = check_vat(customer_order, build_document("VAT: 10%"))
        assert check.actual == "10%"
        assert check.match is False

    def test_vat_order_with_tax_line_lacking_token(self, customer_order):
        check = check_vat(customer_order, build_document("Thuế: 10%"))
        assert check.match is False

    def test_vat_order_without_line(self, customer_order):
        check = check_vat(customer_order, build_document("nothing"))
        assert check.match is False
        assert check.actual is None

    def test_non_vat_order_without_line(self, cash_order):
        check = check_vat(cash_order, build_document("nothing"))
        assert check.match is True
        assert check.expected == "Không VAT"

    def test_non_vat_order_with_line(self, cash_order):
        check = check_vat(cash_order, build_document("Thue GTGT: 8%"))
        assert check.match is False


# ============================================================================
# Comparator and Report Tests
# ============================================================================

class TestCompareFields:
    """Tests for the comparator."""

    def test_registry_order(self):
        assert [rule.field for rule in FIELD_RULES] == EXPECTED_FIELDS

    def test_always_six_checks_in_order(self, cash_order):
        for text in ["", "garbage", "TỔNG TIỀN: 1"]:
            checks = compare_fields(cash_order, build_document(text))
            assert [c.field for c in checks] == EXPECTED_FIELDS

    def test_reproducible(self, cash_order, aligned_text):
        doc = build_document(aligned_text)
        assert compare_fields(cash_order, doc) == compare_fields(cash_order, doc)

    def test_custom_rules(self, cash_order):
        checks = compare_fields(cash_order, build_document(""), rules=FIELD_RULES[:2])
        assert len(checks) == 2


class TestBuildReport:
    """Tests for report aggregation."""

    def test_aligned(self, cash_order, aligned_text):
        doc = build_document(aligned_text)
        result = build_report(compare_fields(cash_order, doc), doc)
        assert result.summary.status == ReconciliationStatus.ALIGNED
        assert result.summary.mismatched == 0
        assert result.is_aligned

    def test_preview_limited_to_thirty_lines(self, cash_order):
        doc = build_document("\n".join(f"line {i}" for i in range(50)))
        result = build_report(compare_fields(cash_order, doc), doc)
        preview = result.summary.text_preview.split("\n")
        assert len(preview) == 30
        assert preview[0] == "line 0"
        assert preview[-1] == "line 29"

    def test_format_report_text(self, cash_order):
        doc = build_document("TỔNG TIỀN: 149.000đ")
        text = format_report_text(build_report(compare_fields(cash_order, doc), doc))
        assert "Status:        diverged" in text
        assert "Total amount" in text


# ============================================================================
# Engine Scenarios
# ============================================================================

class TestVerifyInvoice:
    """Tests for the full verification flow."""

    def test_scenario_all_fields_aligned(self, repository, aligned_text):
        sink = MemoryActivitySink()
        result = verify_invoice(
            ORDER_ID, STORE_ID, FAKE_PDF,
            repository=repository,
            extractor=FakeTextExtractor(aligned_text),
            activity_log=sink,
            actor="user-1",
        )

        assert result.summary.total_checks == 6
        assert result.summary.mismatched == 0
        assert result.summary.status == ReconciliationStatus.ALIGNED
        assert all(check.match for check in result.checks)
        assert "TỔNG TIỀN: 150.000đ" in result.summary.text_preview

    def test_scenario_total_differs(self, repository, aligned_text):
        text = aligned_text.replace("150.000đ", "149.000đ")
        result = verify_invoice(
            ORDER_ID, STORE_ID, FAKE_PDF,
            repository=repository,
            extractor=FakeTextExtractor(text),
        )

        total = next(c for c in result.checks if c.field == "totalAmount")
        assert total.match is False
        assert total.actual == 149000
        assert result.summary.status == ReconciliationStatus.DIVERGED
        assert result.summary.mismatched >= 1

    def test_customer_order_aligned(self, repository, customer_order):
        text = invoice_text(
            f"Mã hóa đơn: {customer_order.id}",
            "Khách hàng: Nguyễn Văn A - 0901 234 567",
            "TỔNG TIỀN: 1.234.567,50 đ",
            "Thanh toán: QR",
            "Thuế VAT: 10% đã bao gồm",
        )
        result = verify_invoice(
            customer_order.id, STORE_ID, FAKE_PDF,
            repository=repository,
            extractor=FakeTextExtractor(text),
        )
        assert result.is_aligned, [c for c in result.checks if not c.match]

    def test_scenario_missing_document(self, repository):
        extractor = FakeTextExtractor("")
        with pytest.raises(ValidationError) as exc_info:
            verify_invoice(ORDER_ID, STORE_ID, None, repository=repository, extractor=extractor)
        assert "file" in exc_info.value.message.lower()
        assert extractor.calls == []

    def test_scenario_order_not_in_store(self, repository):
        with pytest.raises(NotFoundError):
            verify_invoice(
                ORDER_ID, OTHER_STORE_ID, FAKE_PDF,
                repository=repository,
                extractor=FakeTextExtractor(""),
            )

    def test_unknown_order(self, repository):
        with pytest.raises(NotFoundError):
            verify_invoice(
                "aaaaaaaaaaaaaaaaaaaaaaaa", STORE_ID, FAKE_PDF,
                repository=repository,
                extractor=FakeTextExtractor(""),
            )

    @pytest.mark.parametrize("order_id", ["", None, "123", "zzzzzzzzzzzzzzzzzzzzzzzz"])
    def test_malformed_order_id(self, repository, order_id):
        with pytest.raises(ValidationError):
            verify_invoice(order_id, STORE_ID, FAKE_PDF, repository=repository, extractor=FakeTextExtractor(""))

    @pytest.mark.parametrize("store_id", ["", None, "store-1"])
    def test_malformed_store_id(self, repository, store_id):
        with pytest.raises(ValidationError):
            verify_invoice(ORDER_ID, store_id, FAKE_PDF, repository=repository, extractor=FakeTextExtractor(""))

    def test_extraction_failure_propagates(self, repository):
        extractor = FakeTextExtractor(error=ExtractionFailure("Could not read PDF: broken xref"))
        with pytest.raises(ExtractionFailure):
            verify_invoice(ORDER_ID, STORE_ID, FAKE_PDF, repository=repository, extractor=extractor)

    def test_unreadable_document_still_reports_every_field(self, repository):
        result = verify_invoice(
            ORDER_ID, STORE_ID, FAKE_PDF,
            repository=repository,
            extractor=FakeTextExtractor(""),
        )
        assert result.summary.total_checks == 6
        assert result.summary.status == ReconciliationStatus.DIVERGED


class TestAuditTrail:
    """Tests for the audit entry written by verify_invoice."""

    def test_entry_recorded(self, repository, aligned_text):
        sink = MemoryActivitySink()
        verify_invoice(
            ORDER_ID, STORE_ID, FAKE_PDF,
            repository=repository,
            extractor=FakeTextExtractor(aligned_text),
            activity_log=sink,
            actor="user-1",
            ip="10.0.0.5",
        )

        assert len(sink.entries) == 1
        entry = sink.entries[0]
        assert entry.action == "validate"
        assert entry.entity == "OrderInvoice"
        assert entry.entity_id == ORDER_ID
        assert entry.store_id == STORE_ID
        assert entry.actor == "user-1"
        assert entry.ip == "10.0.0.5"
        assert entry.description.endswith("aligned")

    def test_mismatch_count_in_description(self, repository):
        sink = MemoryActivitySink()
        verify_invoice(
            ORDER_ID, STORE_ID, FAKE_PDF,
            repository=repository,
            extractor=FakeTextExtractor(f"ID Hóa đơn: {ORDER_ID}"),
            activity_log=sink,
        )
        assert "2 mismatched" in sink.entries[0].description

    def test_sink_failure_does_not_break_result(self, repository, aligned_text):
        result = verify_invoice(
            ORDER_ID, STORE_ID, FAKE_PDF,
            repository=repository,
            extractor=FakeTextExtractor(aligned_text),
            activity_log=BrokenSink(),
        )
        assert result.is_aligned

    def test_no_entry_on_validation_error(self, repository):
        sink = MemoryActivitySink()
        with pytest.raises(ValidationError):
            verify_invoice("bad", STORE_ID, FAKE_PDF, repository=repository,
                           extractor=FakeTextExtractor(""), activity_log=sink)
        assert sink.entries == []


# ============================================================================
# Paid-Not-Printed Listing
# ============================================================================

class TestListPaidNotPrinted:
    """Tests for the paid order listing."""

    def test_empty_store(self):
        result = list_paid_not_printed(STORE_ID, repository=InMemoryOrderRepository())
        assert result.summary.total_orders == 0
        assert result.summary.total_amount == 0
        assert result.orders == []

    def test_totals_and_order(self, repository, cash_order, customer_order):
        result = list_paid_not_printed(STORE_ID, repository=repository)
        assert result.summary.total_orders == 2
        assert result.summary.total_amount == pytest.approx(150000 + 1234567.5)
        # customer_order was updated later, so it comes first
        assert [o.id for o in result.orders] == [customer_order.id, cash_order.id]

    def test_only_paid_orders_of_store(self, repository, cash_order):
        repository.add(cash_order.model_copy(update={"id": "bbbbbbbbbbbbbbbbbbbbbbbb", "status": OrderStatus.PENDING}))
        repository.add(cash_order.model_copy(update={"id": "cccccccccccccccccccccccc", "store_id": OTHER_STORE_ID}))
        result = list_paid_not_printed(STORE_ID, repository=repository)
        assert result.summary.total_orders == 2

    def test_missing_store_id(self, repository):
        with pytest.raises(ValidationError):
            list_paid_not_printed(None, repository=repository)

    def test_malformed_store_id(self, repository):
        with pytest.raises(ValidationError):
            list_paid_not_printed("not-a-store", repository=repository)

    def test_exported_decimal_totals(self):
        order = OrderRecord.model_validate({
            "_id": "dddddddddddddddddddddddd",
            "storeId": STORE_ID,
            "totalAmount": {"$numberDecimal": "98000.25"},
            "paymentMethod": "qr",
            "status": "paid",
        })
        result = list_paid_not_printed(STORE_ID, repository=InMemoryOrderRepository([order]))
        assert result.summary.total_amount == 98000.25
        assert order.payment_method == PaymentMethod.QR
        assert order.total_amount == Decimal("98000.25")
