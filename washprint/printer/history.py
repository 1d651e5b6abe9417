"""Print history recording."""
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class SqlPrintHistory:
    """Writes one print_history row per executed job."""

    def __init__(self, app):
        self.app = app

    def record(self, kind: str, transport: str, payload: Optional[dict], preview: str,
               status: str, error_message: Optional[str] = None,
               batch_id: Optional[str] = None) -> None:
        from washprint import db
        from washprint.models import PrintHistory

        with self.app.app_context():
            entry = PrintHistory(
                kind=kind,
                transport=transport,
                rendered_preview=preview,
                batch_id=batch_id,
                status=status,
                error_message=error_message,
            )
            entry.payload = payload
            db.session.add(entry)
            db.session.commit()
        logger.debug("Recorded %s %s print (%s)", kind, transport, status)
