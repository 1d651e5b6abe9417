"""REST API endpoints for programmatic access."""
import logging

from flask import Blueprint, Response, current_app, jsonify, request

from washprint import db
from washprint.models import PrinterConfig, PrintHistory
from washprint.printer.capabilities import RequestCapabilities
from washprint.printer.connection import SerialPrinter, USBPrinter
from washprint.printer.documents import DocumentKind, TransportStrategy
from washprint.printer.exceptions import (
    CapabilityError,
    ConnectionInProgressError,
    PreconditionError,
    PrinterConnectionError,
    PrinterError,
    TransportExecutionError,
)

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__)

DOCUMENT_KINDS = [kind.value for kind in DocumentKind]


def get_service():
    return current_app.extensions["washprint"]


def request_capabilities():
    """Capabilities of the server as seen by the client of this request."""
    return RequestCapabilities.from_request(get_service().selector.capabilities, request)


def _document_kind(kind: str) -> DocumentKind:
    try:
        return DocumentKind(kind)
    except ValueError:
        raise ValueError(f"Unknown document kind: {kind} (expected one of {', '.join(DOCUMENT_KINDS)})")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("Request body must be a JSON object")
    return data


# Error handling

def _error(e: Exception, status: int):
    body = {"error": str(e), "type": type(e).__name__}
    if isinstance(e, PrinterError) and e.details:
        body["details"] = e.details
    return jsonify(body), status


@api_bp.errorhandler(CapabilityError)
def handle_capability_error(e):
    return _error(e, 400)


@api_bp.errorhandler(ConnectionInProgressError)
@api_bp.errorhandler(PreconditionError)
def handle_conflict(e):
    return _error(e, 409)


@api_bp.errorhandler(PrinterConnectionError)
def handle_connection_error(e):
    return _error(e, 503)


@api_bp.errorhandler(TransportExecutionError)
def handle_transport_error(e):
    logger.error("Print failed: %s", e)
    return _error(e, 502)


@api_bp.errorhandler(ValueError)
@api_bp.errorhandler(TypeError)
def handle_bad_request(e):
    return _error(e, 400)


# Printer connection API

@api_bp.route("/printer/status", methods=["GET"])
def printer_status():
    """Connection state, status message and usable transports."""
    return jsonify(get_service().status(request_capabilities()))


@api_bp.route("/printer/connect", methods=["POST"])
def printer_connect():
    """Connect to a printer.

    Request body (optional):
    {
        "printer_id": 1  // saved printer; configured printer or default if omitted
    }
    """
    data = _json_body()
    printer_id = data.get("printer_id")
    device = None
    if printer_id:
        device = PrinterConfig.query.get_or_404(printer_id).device
    elif not get_service().manager.device_config:
        default = PrinterConfig.query.filter_by(is_default=True).first()
        device = default.device if default else None

    manager = get_service().manager
    params = manager.connect(device)
    return jsonify({
        "success": True,
        "device": params,
        "message": manager.status_message,
    })


@api_bp.route("/printer/disconnect", methods=["POST"])
def printer_disconnect():
    manager = get_service().manager
    manager.disconnect()
    return jsonify({"success": True, "message": manager.status_message})


@api_bp.route("/printer/reconnect", methods=["POST"])
def printer_reconnect():
    """Quick reconnect with the parameters of the last session."""
    manager = get_service().manager
    params = manager.quick_reconnect()
    return jsonify({
        "success": True,
        "device": params,
        "message": manager.status_message,
    })


@api_bp.route("/printer/test", methods=["POST"])
def printer_test():
    preview = get_service().print_test_page()
    return jsonify({
        "success": True,
        "preview": preview,
        "message": "Test page printed successfully",
    })


@api_bp.route("/printer/simple-test", methods=["POST"])
def printer_simple_test():
    preview = get_service().print_simple_test()
    return jsonify({"success": True, "preview": preview, "message": "Simple test sent"})


@api_bp.route("/printer/baudrate", methods=["POST"])
def printer_find_baudrate():
    """Reconnect a serial printer at the first baud rate it answers on."""
    manager = get_service().manager
    params = manager.find_baudrate()
    return jsonify({
        "success": True,
        "device": params,
        "baudrate": params.get("baudrate"),
        "message": manager.status_message,
    })


@api_bp.route("/printer/transports", methods=["GET"])
def printer_transports():
    selector = get_service().selector.with_capabilities(request_capabilities())
    return jsonify({
        "transports": [t.value for t in selector.available_transports()],
        "best": selector.best_transport().value,
        "capabilities": selector.capabilities.to_dict(),
    })


# Print API

@api_bp.route("/print/<kind>", methods=["POST"])
def print_document(kind):
    """Print one document.

    Request body:
    {
        "payload": {"orderId": 1042, "customerName": "Ana", ...},
        "transport": "direct"  // optional: direct, visual or document
    }

    Direct answers with JSON, visual with a page that opens the print
    dialog, document with a PDF download.
    """
    document_kind = _document_kind(kind)
    data = _json_body()
    if not isinstance(data.get("payload"), dict):
        return jsonify({"error": "payload is required", "type": "ValueError"}), 400

    result = get_service().print_document(
        document_kind, data["payload"], data.get("transport"), request_capabilities()
    )

    if result.transport is TransportStrategy.VISUAL:
        return Response(result.content, mimetype=result.mimetype)
    if result.transport is TransportStrategy.DOCUMENT:
        return Response(
            result.content,
            mimetype=result.mimetype,
            headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
        )
    return jsonify({
        "success": True,
        "result": result.to_dict(),
        "message": f"{document_kind.value} printed successfully",
    })


@api_bp.route("/print/<kind>/batch", methods=["POST"])
def print_batch(kind):
    """Print several documents of one kind.

    Request body:
    {
        "payloads": [{...}, {...}],
        "transport": "direct"  // optional
    }
    """
    document_kind = _document_kind(kind)
    data = _json_body()
    payloads = data.get("payloads")
    if not isinstance(payloads, list) or not payloads:
        return jsonify({"error": "payloads must be a non-empty list", "type": "ValueError"}), 400

    results = get_service().print_batch(
        document_kind, payloads, data.get("transport"), request_capabilities()
    )
    direct = results[0].transport is TransportStrategy.DIRECT
    return jsonify({
        "success": True,
        "count": len(results),
        "results": [r.to_dict(include_content=not direct) for r in results],
    })


@api_bp.route("/preview/<kind>", methods=["POST"])
def preview_document(kind):
    """Preview a document without printing.

    Request body:
    {
        "payload": {...}
    }
    """
    document_kind = _document_kind(kind)
    data = _json_body()
    if not isinstance(data.get("payload"), dict):
        return jsonify({"error": "payload is required", "type": "ValueError"}), 400
    return jsonify({"preview": get_service().preview(document_kind, data["payload"])})


# Printers API

@api_bp.route("/printers", methods=["GET"])
def list_printers():
    """List all printers."""
    printers = PrinterConfig.query.all()
    return jsonify({
        "printers": [p.to_dict() for p in printers]
    })


@api_bp.route("/printers", methods=["POST"])
def create_printer_config():
    """Save a printer.

    Request body:
    {
        "name": "Front desk",
        "type": "serial",
        "config": {"port": "/dev/ttyUSB0", "baudrate": 9600},
        "is_default": true
    }
    """
    data = _json_body()
    if not data.get("name"):
        return jsonify({"error": "Name is required", "type": "ValueError"}), 400
    if data.get("type") not in ("network", "serial", "usb"):
        return jsonify({"error": "Type must be network, serial or usb", "type": "ValueError"}), 400

    printer = PrinterConfig(name=data["name"], type=data["type"])
    printer.config = data.get("config") or {}
    if data.get("is_default"):
        PrinterConfig.query.update({PrinterConfig.is_default: False})
        printer.is_default = True
    db.session.add(printer)
    db.session.commit()
    return jsonify(printer.to_dict()), 201


@api_bp.route("/printers/<int:printer_id>", methods=["GET"])
def get_printer(printer_id):
    """Get a specific printer."""
    printer = PrinterConfig.query.get_or_404(printer_id)
    return jsonify(printer.to_dict())


@api_bp.route("/printers/<int:printer_id>", methods=["DELETE"])
def delete_printer(printer_id):
    """Delete a printer."""
    printer = PrinterConfig.query.get_or_404(printer_id)
    db.session.delete(printer)
    db.session.commit()
    return jsonify({"success": True})


@api_bp.route("/printers/<int:printer_id>/default", methods=["POST"])
def set_default_printer(printer_id):
    """Set a printer as the default."""
    printer = PrinterConfig.query.get_or_404(printer_id)
    PrinterConfig.query.update({PrinterConfig.is_default: False})
    printer.is_default = True
    db.session.commit()
    return jsonify(printer.to_dict())


@api_bp.route("/printers/scan", methods=["GET"])
def scan_printers():
    """List attached USB printers and serial ports."""
    return jsonify({
        "usb": USBPrinter.scan_devices(),
        "serial": SerialPrinter.scan_ports(),
    })


# History API

@api_bp.route("/history", methods=["GET"])
def list_history():
    """List print history.

    Query params:
    - page: Page number (default: 1)
    - per_page: Items per page (default: 20, max: 100)
    - status: Filter by status (success/failed)
    - kind: Filter by document kind
    - batch_id: Filter by batch
    """
    page = request.args.get("page", 1, type=int)
    per_page = min(request.args.get("per_page", 20, type=int), 100)

    query = PrintHistory.query.order_by(PrintHistory.printed_at.desc(), PrintHistory.id.desc())

    for column in ("status", "kind", "batch_id"):
        value = request.args.get(column)
        if value:
            query = query.filter_by(**{column: value})

    pagination = query.paginate(page=page, per_page=per_page, error_out=False)

    return jsonify({
        "history": [h.to_dict() for h in pagination.items],
        "page": pagination.page,
        "pages": pagination.pages,
        "total": pagination.total,
        "has_next": pagination.has_next,
        "has_prev": pagination.has_prev
    })


@api_bp.route("/history/<int:history_id>", methods=["GET"])
def get_history(history_id):
    """Get a specific history record."""
    record = PrintHistory.query.get_or_404(history_id)
    return jsonify(record.to_dict())
