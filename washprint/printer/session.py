"""Storage for the persistent-session marker."""
import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """Remembers the device parameters of the last successful connection.

    The marker survives process restarts and is only removed by clear(),
    which the connection manager calls on an explicit disconnect.
    """

    @abstractmethod
    def load(self) -> Optional[dict]:
        """Return the stored device parameters, or None."""

    @abstractmethod
    def save(self, device: dict) -> None:
        """Record a successful connection."""

    @abstractmethod
    def clear(self) -> None:
        """Forget the previous connection."""

    def exists(self) -> bool:
        return self.load() is not None


class MemorySessionStore(SessionStore):
    """In-process store, for tests and single-run tools."""

    def __init__(self, device: Optional[dict] = None):
        self._device = dict(device) if device else None
        self._lock = threading.Lock()

    def load(self) -> Optional[dict]:
        with self._lock:
            return dict(self._device) if self._device else None

    def save(self, device: dict) -> None:
        with self._lock:
            self._device = dict(device)

    def clear(self) -> None:
        with self._lock:
            self._device = None


class SqlSessionStore(SessionStore):
    """Store backed by the printer_sessions table."""

    def __init__(self, app):
        self.app = app

    def load(self) -> Optional[dict]:
        from washprint.models import PrinterSession

        with self.app.app_context():
            record = PrinterSession.query.order_by(PrinterSession.connected_at.desc()).first()
            return record.device if record else None

    def save(self, device: dict) -> None:
        from washprint import db
        from washprint.models import PrinterSession

        with self.app.app_context():
            PrinterSession.query.delete()
            record = PrinterSession()
            record.device = device
            db.session.add(record)
            db.session.commit()
        logger.info("Saved printer session for %s device", device.get("type"))

    def clear(self) -> None:
        from washprint import db
        from washprint.models import PrinterSession

        with self.app.app_context():
            PrinterSession.query.delete()
            db.session.commit()
        logger.info("Cleared printer session")
