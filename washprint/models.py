"""Database models."""
import json
from datetime import datetime
from washprint import db


class PrinterConfig(db.Model):
    """Printer configuration model."""
    __tablename__ = "printer_configs"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    type = db.Column(db.String(20), nullable=False)  # network, usb, serial
    config_json = db.Column(db.Text, nullable=False)  # JSON: {ip, port} or {vendor_id, product_id} etc.
    is_default = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    @property
    def config(self):
        """Parse config JSON."""
        return json.loads(self.config_json) if self.config_json else {}

    @config.setter
    def config(self, value):
        """Set config as JSON."""
        self.config_json = json.dumps(value)

    @property
    def device(self) -> dict:
        """Connection parameters for create_printer."""
        device = self.config.copy()
        device["type"] = self.type
        return device

    def to_dict(self):
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "config": self.config,
            "is_default": self.is_default,
        }

    def __repr__(self):
        return f"<PrinterConfig {self.name} ({self.type})>"


class PrinterSession(db.Model):
    """Marker that a printer connected successfully in an earlier run.

    Holds the device parameters that worked so the next process can
    reconnect without asking the operator again.
    """
    __tablename__ = "printer_sessions"

    id = db.Column(db.Integer, primary_key=True)
    device_json = db.Column(db.Text, nullable=False)
    connected_at = db.Column(db.DateTime, default=datetime.utcnow)

    @property
    def device(self):
        return json.loads(self.device_json) if self.device_json else {}

    @device.setter
    def device(self, value):
        self.device_json = json.dumps(value)

    def __repr__(self):
        return f"<PrinterSession {self.device_json}>"


class PrintHistory(db.Model):
    """Print history model."""
    __tablename__ = "print_history"

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(30), nullable=False)  # bag-label, assignment-receipt, order-record, test-page
    transport = db.Column(db.String(20), nullable=False)  # direct, visual, document
    payload_json = db.Column(db.Text, nullable=True)  # JSON of the document payload
    rendered_preview = db.Column(db.Text, nullable=True)  # Text preview of what was printed
    batch_id = db.Column(db.String(32), nullable=True)  # Shared by jobs of one batch
    status = db.Column(db.String(20), nullable=False)  # success, failed
    error_message = db.Column(db.Text, nullable=True)
    printed_at = db.Column(db.DateTime, default=datetime.utcnow)

    @property
    def payload(self):
        """Parse payload JSON."""
        return json.loads(self.payload_json) if self.payload_json else {}

    @payload.setter
    def payload(self, value):
        """Set payload as JSON."""
        self.payload_json = json.dumps(value, default=str)

    def to_dict(self):
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "kind": self.kind,
            "transport": self.transport,
            "payload": self.payload,
            "rendered_preview": self.rendered_preview,
            "batch_id": self.batch_id,
            "status": self.status,
            "error_message": self.error_message,
            "printed_at": self.printed_at.isoformat() if self.printed_at else None,
        }

    def __repr__(self):
        return f"<PrintHistory {self.id} {self.kind} ({self.status})>"
