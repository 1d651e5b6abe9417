"""Printer module: device connections, document rendering and print jobs."""
from washprint.printer.connection import (
    PrinterConnection,
    NetworkPrinter,
    SerialPrinter,
    USBPrinter,
    create_printer,
)
from washprint.printer.documents import (
    AssignmentReceipt,
    BagLabel,
    DocumentKind,
    OrderRecordReceipt,
    PrintBatch,
    PrintJob,
    PrintResult,
    TransportStrategy,
)
from washprint.printer.escpos import ESCPOSBuilder
from washprint.printer.manager import ConnectionManager, ConnectionState
from washprint.printer.renderer import DocumentRenderer
from washprint.printer.service import PrintService
from washprint.printer.transport import TransportSelector

__all__ = [
    "PrinterConnection",
    "NetworkPrinter",
    "SerialPrinter",
    "USBPrinter",
    "create_printer",
    "AssignmentReceipt",
    "BagLabel",
    "DocumentKind",
    "OrderRecordReceipt",
    "PrintBatch",
    "PrintJob",
    "PrintResult",
    "TransportStrategy",
    "ESCPOSBuilder",
    "ConnectionManager",
    "ConnectionState",
    "DocumentRenderer",
    "PrintService",
    "TransportSelector",
]
