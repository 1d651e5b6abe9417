"""Print service: the entry point the rest of the dashboard calls to print."""
import logging
import time
import uuid
from typing import Callable, Iterable, List, Optional, Union

from washprint.printer.batch import BatchPrinter, ProgressCallback
from washprint.printer.capabilities import CapabilityProvider
from washprint.printer.documents import (
    DocumentKind,
    DocumentLayout,
    Payload,
    PrintBatch,
    PrintJob,
    PrintResult,
    TransportStrategy,
    payload_from_dict,
    payload_to_dict,
)
from washprint.printer.escpos import ESCPOSBuilder
from washprint.printer.exceptions import PrinterError, TransportExecutionError
from washprint.printer.manager import READY_STATUS, ConnectionManager
from washprint.printer.renderer import DocumentRenderer
from washprint.printer.transport import TransportSelector

logger = logging.getLogger(__name__)

SIMPLE_TEST_TEXT = "Hello World!\nThis is a test.\n\nTest 1\r\nTest 2\nTest 3\r"

Writer = Callable[[bytes], None]
TransportArg = Union[TransportStrategy, str, None]


class PrintService:
    """Turns payloads into print jobs and runs them on the chosen transport."""

    def __init__(self, manager: ConnectionManager, selector: TransportSelector,
                 renderer: Optional[DocumentRenderer] = None, batch_delay: float = 5.0,
                 sleep: Callable[[float], None] = time.sleep, history=None):
        """Initialize service.

        Args:
            manager: ConnectionManager that owns the device
            selector: Picks the transport when the caller does not
            renderer: DocumentRenderer for all transports
            batch_delay: Seconds between the jobs of a batch
            sleep: Blocking wait used between batch jobs
            history: Optional recorder with a record() method (see SqlPrintHistory)
        """
        self.manager = manager
        self.selector = selector
        self.renderer = renderer or DocumentRenderer()
        self.history = history
        self.batch_printer = BatchPrinter(manager, self._run, delay=batch_delay, sleep=sleep)

    # Job construction

    def create_job(self, kind: DocumentKind, payload: Union[Payload, dict],
                   transport: TransportArg = None,
                   capabilities: Optional[CapabilityProvider] = None) -> PrintJob:
        """Validate the payload and resolve the transport for one document."""
        if isinstance(payload, dict):
            payload = payload_from_dict(kind, payload)
        resolved = self._selector(capabilities).resolve(transport)
        return PrintJob(kind, payload, resolved)

    def create_batch(self, kind: DocumentKind, payloads: Iterable[Union[Payload, dict]],
                     transport: TransportArg = None,
                     capabilities: Optional[CapabilityProvider] = None) -> PrintBatch:
        payloads = list(payloads)
        if not payloads:
            raise ValueError("Batch has no documents")
        # Resolve once so every job in the batch uses the same transport
        resolved = self._selector(capabilities).resolve(transport)
        return PrintBatch(tuple(self.create_job(kind, payload, resolved, capabilities) for payload in payloads))

    # Single documents

    def print_document(self, kind: DocumentKind, payload: Union[Payload, dict],
                       transport: TransportArg = None,
                       capabilities: Optional[CapabilityProvider] = None) -> PrintResult:
        return self.execute(self.create_job(kind, payload, transport, capabilities))

    def print_bag_label(self, payload, transport: TransportArg = None,
                        capabilities: Optional[CapabilityProvider] = None) -> PrintResult:
        return self.print_document(DocumentKind.BAG_LABEL, payload, transport, capabilities)

    def print_assignment_receipt(self, payload, transport: TransportArg = None,
                                 capabilities: Optional[CapabilityProvider] = None) -> PrintResult:
        return self.print_document(DocumentKind.ASSIGNMENT_RECEIPT, payload, transport, capabilities)

    def print_order_record_receipt(self, payload, transport: TransportArg = None,
                                   capabilities: Optional[CapabilityProvider] = None) -> PrintResult:
        return self.print_document(DocumentKind.ORDER_RECORD_RECEIPT, payload, transport, capabilities)

    def execute(self, job: PrintJob) -> PrintResult:
        """Run one job, taking the printer for its duration when it prints directly."""
        if job.transport is TransportStrategy.DIRECT:
            with self.manager.exclusive() as write:
                return self._run(job, write)
        return self._run(job, None)

    # Batches

    def print_batch(self, kind: DocumentKind, payloads: Iterable[Union[Payload, dict]],
                    transport: TransportArg = None,
                    capabilities: Optional[CapabilityProvider] = None,
                    on_progress: Optional[ProgressCallback] = None) -> List[PrintResult]:
        """Print several documents of one kind with the configured delay between them."""
        batch = self.create_batch(kind, payloads, transport, capabilities)
        batch_id = uuid.uuid4().hex
        logger.info("Starting %s batch %s: %d documents via %s",
                    kind.value, batch_id, len(batch), batch.jobs[0].transport.value)
        results = self.batch_printer.print_batch(
            batch,
            on_progress=on_progress,
            executor=lambda job, write: self._run(job, write, batch_id),
        )
        if batch.requires_direct:
            self.manager.set_status(f"Printed {len(results)} documents")
        return results

    # Test page

    def print_test_page(self) -> str:
        """Print a test page on the connected printer and return its text preview."""
        layout = self.renderer.test_page_layout()
        preview = self.renderer.to_text(layout)
        try:
            self.manager.send(self.renderer.to_escpos(layout))
        except PrinterError as e:
            self._record("test-page", TransportStrategy.DIRECT, None, preview, "failed", str(e))
            raise
        self._record("test-page", TransportStrategy.DIRECT, None, preview, "success")
        self.manager.set_status("Test page printed")
        return preview

    def print_simple_test(self) -> str:
        """Send plain text with mixed line endings and no formatting commands.

        For printers that ignore the formatted test page.
        """
        preview = SIMPLE_TEST_TEXT
        try:
            self.manager.send(ESCPOSBuilder.INIT + SIMPLE_TEST_TEXT.encode("ascii"))
        except PrinterError as e:
            self._record("simple-test", TransportStrategy.DIRECT, None, preview, "failed", str(e))
            raise
        self._record("simple-test", TransportStrategy.DIRECT, None, preview, "success")
        self.manager.set_status("Simple test sent")
        return preview

    # Status

    def status(self, capabilities: Optional[CapabilityProvider] = None) -> dict:
        selector = self._selector(capabilities)
        status = self.manager.status()
        status["transports"] = [transport.value for transport in selector.available_transports()]
        status["best_transport"] = selector.best_transport().value
        status["capabilities"] = selector.capabilities.to_dict()
        return status

    def preview(self, kind: DocumentKind, payload: Union[Payload, dict]) -> str:
        if isinstance(payload, dict):
            payload = payload_from_dict(kind, payload)
        return self.renderer.to_text(self.renderer.layout(kind, payload))

    # Internals

    def _selector(self, capabilities: Optional[CapabilityProvider]) -> TransportSelector:
        if capabilities is None:
            return self.selector
        return self.selector.with_capabilities(capabilities)

    def _run(self, job: PrintJob, write: Optional[Writer], batch_id: Optional[str] = None) -> PrintResult:
        layout = self.renderer.layout(job.kind, job.payload)
        preview = self.renderer.to_text(layout)
        try:
            result = self._deliver(job, layout, write)
        except PrinterError as e:
            self._record(job.kind.value, job.transport, job.payload, preview, "failed", str(e), batch_id)
            raise
        result.preview = preview
        self._record(job.kind.value, job.transport, job.payload, preview, "success", None, batch_id)
        return result

    def _deliver(self, job: PrintJob, layout: DocumentLayout, write: Optional[Writer]) -> PrintResult:
        if job.transport is TransportStrategy.DIRECT:
            if write is None:
                raise TransportExecutionError("Direct print started without holding the printer")
            self.manager.set_status(f"Printing {layout.title.lower()}...")
            write(self.renderer.to_escpos(layout))
            self.manager.set_status(READY_STATUS)
            return PrintResult(job.kind, job.transport)

        if job.transport is TransportStrategy.VISUAL:
            return PrintResult(job.kind, job.transport, content=self.renderer.to_html(layout),
                               mimetype="text/html")

        try:
            pdf = self.renderer.to_pdf(layout)
        except (OSError, ValueError) as e:
            raise TransportExecutionError(f"Failed to render PDF: {e}")
        filename = f"{job.kind.value}-{layout.generated_at.strftime('%Y%m%d-%H%M%S')}.pdf"
        return PrintResult(job.kind, job.transport, content=pdf, mimetype="application/pdf",
                           filename=filename)

    def _record(self, kind: str, transport: TransportStrategy, payload: Optional[Payload],
                preview: str, status: str, error_message: Optional[str] = None,
                batch_id: Optional[str] = None) -> None:
        if self.history is None:
            return
        self.history.record(
            kind=kind,
            transport=transport.value,
            payload=payload_to_dict(payload) if payload is not None else None,
            preview=preview,
            status=status,
            error_message=error_message,
            batch_id=batch_id,
        )
