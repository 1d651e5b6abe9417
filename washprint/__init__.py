"""Flask application factory."""
import logging
import threading

from flask import Flask
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

logger = logging.getLogger(__name__)


def create_app(config_name: str = "default", connection_factory=None, capabilities=None):
    """Create and configure the Flask application.

    Args:
        config_name: Key into washprint.config.config
        connection_factory: Replaces create_printer, e.g. with a fake device in tests
        capabilities: CapabilityProvider used instead of ServerCapabilities
    """
    app = Flask(__name__)

    # Load configuration
    from washprint.config import config, printer_device
    app.config.from_object(config[config_name])

    if not app.config.get("TESTING"):
        from washprint.logging_config import setup_logging
        setup_logging(app.config.get("LOG_FILE"), level=app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)

    # Create tables
    with app.app_context():
        from washprint import models  # noqa: F401
        db.create_all()

    # Printer services
    from washprint.printer.capabilities import ServerCapabilities
    from washprint.printer.connection import create_printer
    from washprint.printer.history import SqlPrintHistory
    from washprint.printer.manager import ConnectionManager
    from washprint.printer.renderer import DocumentRenderer
    from washprint.printer.service import PrintService
    from washprint.printer.session import SqlSessionStore
    from washprint.printer.transport import TransportSelector

    manager = ConnectionManager(
        device_config=printer_device(app.config),
        session_store=SqlSessionStore(app),
        connection_factory=connection_factory or create_printer,
        poll_interval=app.config["PRINTER_POLL_INTERVAL"],
    )
    capabilities = capabilities or ServerCapabilities(
        app.config.get("PRINTER_TYPE"), hosted=app.config["PRINTER_IS_HOSTED"]
    )
    service = PrintService(
        manager,
        TransportSelector(capabilities, manager),
        DocumentRenderer(width=app.config["PRINTER_WIDTH"]),
        batch_delay=app.config["PRINTER_BATCH_DELAY"],
        history=SqlPrintHistory(app),
    )
    app.extensions["washprint"] = service

    # Register blueprints
    from washprint.routes.api import api_bp
    app.register_blueprint(api_bp, url_prefix="/api")

    # CLI commands
    from washprint.commands import printer_cli
    app.cli.add_command(printer_cli)

    return app


def start_printer(app):
    """Begin background printer work for a serving process.

    Auto-reconnects on a daemon thread when PRINTER_AUTO_RECONNECT is set,
    otherwise only starts liveness polling. CLI commands build the app
    without calling this.
    """
    manager = app.extensions["washprint"].manager
    if app.config["PRINTER_AUTO_RECONNECT"]:
        thread = threading.Thread(target=manager.start, name="printer-start", daemon=True)
        thread.start()
        return thread
    manager.start_polling()
    return None
