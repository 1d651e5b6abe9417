"""Tests for persistent-session storage."""
from conftest import SERIAL_DEVICE
from washprint.printer.session import MemorySessionStore, SqlSessionStore


class TestMemorySessionStore:

    def test_empty(self):
        store = MemorySessionStore()
        assert store.load() is None
        assert not store.exists()

    def test_save_and_clear(self):
        store = MemorySessionStore()
        store.save(SERIAL_DEVICE)
        assert store.load() == SERIAL_DEVICE
        store.clear()
        assert not store.exists()

    def test_returns_copies(self):
        store = MemorySessionStore(SERIAL_DEVICE)
        store.load()["port"] = "changed"
        assert store.load()["port"] == "/dev/ttyUSB0"


class TestSqlSessionStore:

    def test_survives_new_store(self, app):
        SqlSessionStore(app).save(SERIAL_DEVICE)
        assert SqlSessionStore(app).load() == SERIAL_DEVICE

    def test_save_replaces_previous(self, app):
        store = SqlSessionStore(app)
        store.save(SERIAL_DEVICE)
        store.save(dict(SERIAL_DEVICE, port="/dev/ttyUSB1"))

        from washprint.models import PrinterSession

        with app.app_context():
            assert PrinterSession.query.count() == 1
        assert store.load()["port"] == "/dev/ttyUSB1"

    def test_clear(self, app):
        store = SqlSessionStore(app)
        store.save(SERIAL_DEVICE)
        store.clear()
        assert store.load() is None
        assert not store.exists()
