"""Shared fixtures: fake printer devices, managers and a test app."""
from datetime import datetime

import pytest

from washprint.printer.capabilities import StaticCapabilities
from washprint.printer.connection import PrinterConnection
from washprint.printer.exceptions import TransportExecutionError
from washprint.printer.manager import ConnectionManager
from washprint.printer.renderer import DocumentRenderer
from washprint.printer.service import PrintService
from washprint.printer.session import MemorySessionStore
from washprint.printer.transport import TransportSelector

SERIAL_DEVICE = {"type": "serial", "port": "/dev/ttyUSB0", "baudrate": 9600, "timeout": 3.0}
FIXED_TIME = datetime(2024, 5, 17, 9, 30, 0)


class FakeConnection(PrinterConnection):
    """In-memory printer that records what it is sent."""

    type_name = "serial"

    def __init__(self, factory, params):
        self.factory = factory
        self.params = dict(params)
        self.connected = False
        self.alive = True
        self.writes = []

    def connect(self):
        self.factory.connect_attempts.append(dict(self.params))
        error = self.factory.connect_errors.get(self.params.get("port"), self.factory.connect_error)
        if error:
            raise error
        self.connected = True
        return True

    def disconnect(self):
        self.factory.disconnects += 1
        self.connected = False

    def write(self, data):
        if self.factory.write_error:
            raise self.factory.write_error
        working = self.factory.working_baudrate
        if working is not None and self.params.get("baudrate") != working:
            raise TransportExecutionError("No response at this baud rate")
        if not self.connected:
            raise TransportExecutionError("Not connected")
        self.writes.append(data)
        self.factory.writes.append(data)
        return True

    def is_connected(self):
        return self.connected

    def is_alive(self):
        return self.connected and self.alive

    def describe(self):
        return dict(self.params)


class FakePrinterFactory:
    """Stands in for create_printer; every connection it builds is kept."""

    def __init__(self):
        self.connections = []
        self.connect_attempts = []
        self.connect_error = None
        self.connect_errors = {}
        self.write_error = None
        self.working_baudrate = None
        self.writes = []
        self.disconnects = 0

    def __call__(self, params):
        connection = FakeConnection(self, params)
        self.connections.append(connection)
        return connection

    @property
    def last(self):
        return self.connections[-1]


class RecordingSleep:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)

    @property
    def total(self):
        return sum(self.calls)


class RecordingHistory:
    def __init__(self):
        self.entries = []

    def record(self, **entry):
        self.entries.append(entry)


@pytest.fixture
def factory():
    return FakePrinterFactory()


@pytest.fixture
def session_store():
    return MemorySessionStore()


@pytest.fixture
def manager(factory, session_store):
    manager = ConnectionManager(
        device_config=SERIAL_DEVICE,
        session_store=session_store,
        connection_factory=factory,
        poll_interval=0,
        port_scanner=lambda: [],
    )
    yield manager
    manager.stop()


@pytest.fixture
def renderer():
    return DocumentRenderer(width=48, clock=lambda: FIXED_TIME)


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def history():
    return RecordingHistory()


@pytest.fixture
def service(manager, renderer, sleep, history):
    selector = TransportSelector(StaticCapabilities(direct=True), manager)
    return PrintService(manager, selector, renderer, batch_delay=5.0, sleep=sleep, history=history)


@pytest.fixture
def app(factory):
    from washprint import create_app

    app = create_app("testing", connection_factory=factory, capabilities=StaticCapabilities(direct=True))
    service = app.extensions["washprint"]
    service.manager.device_config = dict(SERIAL_DEVICE)
    service.manager.port_scanner = lambda: []
    service.renderer.clock = lambda: FIXED_TIME
    yield app
    service.manager.stop()


@pytest.fixture
def client(app):
    return app.test_client()
