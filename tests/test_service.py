"""Tests for the print service."""
import pytest

from washprint.printer.capabilities import StaticCapabilities
from washprint.printer.documents import DocumentKind, TransportStrategy
from washprint.printer.escpos import ESCPOSBuilder
from washprint.printer.exceptions import CapabilityError, PreconditionError, TransportExecutionError

LABEL = {"orderId": 1042, "customerName": "Ana Cruz", "numberOfBags": "1 of 2", "quantity": "12"}
ASSIGNMENT = {"trackingNumber": "TRK-7", "itemName": "Jeans", "washType": "Stone",
              "processTypes": ["Enzyme"], "assignedTo": "Line 2", "quantity": 40}
RECORD = {"orderId": 7, "customerName": "Ana", "itemName": "Jeans", "quantity": 10,
          "washType": "Acid", "processTypes": ["Tint"], "trackingNumber": "T-1"}

MOBILE = StaticCapabilities(direct=True, mobile=True)


class TestSingleDocuments:

    def test_direct_when_connected(self, service, manager, factory, history):
        manager.connect()

        result = service.print_bag_label(LABEL)

        assert result.transport is TransportStrategy.DIRECT
        sent = factory.last.writes[-1]
        assert sent.startswith(ESCPOSBuilder.INIT)
        assert b"Ana Cruz" in sent
        assert history.entries[-1]["status"] == "success"
        assert history.entries[-1]["kind"] == "bag-label"
        assert manager.status_message == "Ready to print"

    def test_visual_when_not_connected(self, service):
        result = service.print_assignment_receipt(ASSIGNMENT)

        assert result.transport is TransportStrategy.VISUAL
        assert result.mimetype == "text/html"
        assert "TRK-7" in result.content

    def test_document_transport_returns_pdf(self, service):
        result = service.print_order_record_receipt(RECORD, transport="document")

        assert result.mimetype == "application/pdf"
        assert result.content.startswith(b"%PDF")
        assert result.filename == "order-record-20240517-093000.pdf"

    def test_explicit_direct_without_connection(self, service, history):
        with pytest.raises(PreconditionError):
            service.print_bag_label(LABEL, transport="direct")
        assert history.entries == []

    def test_mobile_never_prints_direct(self, service, manager):
        manager.connect()
        result = service.print_bag_label(LABEL, capabilities=MOBILE)
        assert result.transport is TransportStrategy.VISUAL

    def test_mobile_rejects_explicit_direct(self, service, manager):
        manager.connect()
        with pytest.raises(CapabilityError):
            service.print_bag_label(LABEL, transport="direct", capabilities=MOBILE)

    def test_write_failure_is_recorded(self, service, manager, factory, history):
        manager.connect()
        factory.write_error = TransportExecutionError("paper jam")

        with pytest.raises(TransportExecutionError):
            service.print_bag_label(LABEL)

        entry = history.entries[-1]
        assert entry["status"] == "failed"
        assert entry["error_message"] == "paper jam"
        assert not manager.is_busy

    def test_history_keeps_payload(self, service, history):
        service.print_bag_label(LABEL)
        entry = history.entries[-1]
        assert entry["payload"]["customer_name"] == "Ana Cruz"
        assert "BAG LABEL" in entry["preview"]

    def test_result_carries_preview(self, service):
        result = service.print_bag_label(LABEL)
        assert "Reference No:" in result.preview


class TestBatch:

    def test_direct_batch(self, service, manager, factory, sleep, history):
        manager.connect()
        progress = []

        results = service.print_batch(
            DocumentKind.BAG_LABEL, [LABEL, LABEL, LABEL],
            on_progress=lambda i, total: progress.append((i, total)),
        )

        assert len(results) == 3
        assert progress == [(1, 3), (2, 3), (3, 3)]
        assert sleep.total == 10.0
        # INIT from the handshake plus one write per label
        assert len(factory.last.writes) == 4
        batch_ids = {entry["batch_id"] for entry in history.entries}
        assert len(batch_ids) == 1 and None not in batch_ids
        assert manager.status_message == "Printed 3 documents"

    def test_batch_not_connected(self, service, sleep, history):
        progress = []
        with pytest.raises(PreconditionError):
            service.print_batch(DocumentKind.BAG_LABEL, [LABEL, LABEL], transport="direct",
                                on_progress=lambda i, total: progress.append(i))
        assert progress == []
        assert sleep.calls == []
        assert history.entries == []

    def test_empty_batch(self, service):
        with pytest.raises(ValueError):
            service.print_batch(DocumentKind.BAG_LABEL, [])

    def test_visual_batch(self, service):
        results = service.print_batch(DocumentKind.ORDER_RECORD_RECEIPT, [RECORD, RECORD])
        assert [r.transport for r in results] == [TransportStrategy.VISUAL] * 2


class TestTestPage:

    def test_prints_on_connected_printer(self, service, manager, factory, history):
        manager.connect()
        preview = service.print_test_page()

        assert "PRINTER TEST PAGE" in preview
        assert b"PRINTER TEST PAGE" in factory.last.writes[-1]
        assert history.entries[-1]["kind"] == "test-page"
        assert manager.status_message == "Test page printed"

    def test_requires_connection(self, service, history):
        with pytest.raises(PreconditionError):
            service.print_test_page()
        assert history.entries[-1]["status"] == "failed"

    def test_simple_test_sends_plain_text(self, service, manager, factory, history):
        manager.connect()
        preview = service.print_simple_test()

        data = factory.last.writes[-1]
        assert data.startswith(ESCPOSBuilder.INIT)
        assert b"Hello World!\nThis is a test.\n\n" in data
        assert data.endswith(b"Test 1\r\nTest 2\nTest 3\r")
        assert preview.startswith("Hello World!")
        assert history.entries[-1]["kind"] == "simple-test"
        assert manager.status_message == "Simple test sent"

    def test_simple_test_requires_connection(self, service, history):
        with pytest.raises(PreconditionError):
            service.print_simple_test()
        assert history.entries[-1]["status"] == "failed"


class TestStatus:

    def test_status_snapshot(self, service, manager):
        status = service.status()
        assert status["state"] == "disconnected"
        assert status["best_transport"] == "visual"
        assert status["transports"] == ["visual", "document", "direct"]

        manager.connect()
        status = service.status()
        assert status["connected"] is True
        assert status["best_transport"] == "direct"
        assert status["device"]["port"] == "/dev/ttyUSB0"

    def test_preview(self, service):
        text = service.preview(DocumentKind.BAG_LABEL, LABEL)
        assert "Customer:" in text
