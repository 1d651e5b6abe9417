"""Connection manager: owns the single logical connection to the printer.

State machine::

    DISCONNECTED --connect--------> CONNECTING --ok----> CONNECTED
    DISCONNECTED --quick_reconnect-> RECONNECTING --ok--> CONNECTED
    CONNECTING / RECONNECTING --failure--> DISCONNECTED
    any state --disconnect--> DISCONNECTED

Only one negotiation and one print job may be in flight at a time. The lock
guards bookkeeping only and is never held across device I/O. A disconnect
during negotiation ends the state in DISCONNECTED at once, but the
negotiation slot stays taken until the cancelled attempt has unwound.
"""
import logging
import threading
from contextlib import contextmanager
from enum import Enum
from typing import Callable, Iterator, List, Optional

from washprint.printer.connection import PrinterConnection, SerialPrinter, create_printer
from washprint.printer.escpos import ESCPOSBuilder
from washprint.printer.exceptions import (
    ConnectionInProgressError,
    DeviceNotFoundError,
    DevicePermissionError,
    PreconditionError,
    PrinterBusyError,
    PrinterConnectionError,
    PrinterError,
    TransportExecutionError,
)
from washprint.printer.session import MemorySessionStore, SessionStore

logger = logging.getLogger(__name__)

READY_STATUS = "Ready to print"

# Tried in this order when searching for a serial printer's speed
BAUD_RATES = (9600, 115200, 38400, 19200, 57600)


class ConnectionState(Enum):
    """Connection lifecycle states."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


TRANSIENT_STATES = (ConnectionState.CONNECTING, ConnectionState.RECONNECTING)


class ConnectionManager:
    """Connects, reconnects, health-checks and hands out the printer."""

    def __init__(self, device_config: Optional[dict] = None,
                 session_store: Optional[SessionStore] = None,
                 connection_factory: Callable[[dict], PrinterConnection] = create_printer,
                 poll_interval: float = 5.0,
                 port_scanner: Callable[[], List[str]] = SerialPrinter.scan_ports):
        """Initialize manager.

        Args:
            device_config: create_printer parameters used by connect()
            session_store: Where the persistent-session marker lives
            connection_factory: Builds a PrinterConnection from parameters
            poll_interval: Seconds between liveness checks; 0 disables polling
            port_scanner: Lists serial ports to try when the cached one is gone
        """
        self.device_config = dict(device_config) if device_config else None
        self.session_store = session_store or MemorySessionStore()
        self.connection_factory = connection_factory
        self.poll_interval = poll_interval
        self.port_scanner = port_scanner

        self._lock = threading.Lock()
        self._state = ConnectionState.DISCONNECTED
        self._status = READY_STATUS
        self._connection: Optional[PrinterConnection] = None
        self._stale: Optional[PrinterConnection] = None
        self._cached_device: Optional[dict] = None
        self._job_active = False
        self._negotiating = False
        self._generation = 0
        self._auto_reconnect_attempted = False

        self._poll_stop = threading.Event()
        self._poll_thread: Optional[threading.Thread] = None

    # Queries

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def status_message(self) -> str:
        return self._status

    @property
    def is_connecting(self) -> bool:
        return self._state in TRANSIENT_STATES

    @property
    def is_busy(self) -> bool:
        return self._job_active

    @property
    def device(self) -> Optional[dict]:
        """Parameters of the live connection, if any."""
        connection = self._connection
        return connection.describe() if connection else None

    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def has_persistent_session(self) -> bool:
        return self.session_store.exists()

    def set_status(self, message: str) -> None:
        self._status = message

    def status(self) -> dict:
        """Snapshot for status displays."""
        return {
            "state": self._state.value,
            "connected": self.is_connected(),
            "connecting": self.is_connecting,
            "busy": self._job_active,
            "status_message": self._status,
            "persistent_session": self.has_persistent_session(),
            "device": self.device,
        }

    # Connection lifecycle

    def connect(self, device: Optional[dict] = None) -> dict:
        """Fresh handshake with the configured device (or ``device``).

        Drops cached negotiation parameters first. Returns the parameters of
        the new connection.
        """
        stale, generation = self._begin(ConnectionState.CONNECTING, "Connecting to printer...")
        connection = None
        try:
            self._release(stale)
            self._cached_device = None
            params = dict(device or self.device_config or {})
            if not params:
                raise PrinterConnectionError("No printer configured")
            logger.info("Connecting to %s printer", params.get("type", "unknown"))
            connection = self._handshake(params)
            return self._established(connection, generation, "Printer connected successfully")
        except Exception as e:
            self._failed(connection, generation, f"Connection failed: {e}")
            raise
        finally:
            self._end_negotiation()

    def quick_reconnect(self) -> dict:
        """Resume with cached parameters, without asking for a device again."""
        if self.is_connected():
            return self.device
        stale, generation = self._begin(ConnectionState.RECONNECTING, "Quick reconnecting...")
        connection = None
        try:
            self._release(stale)
            params = self._cached_device or self.session_store.load()
            if not params:
                raise PrinterConnectionError("No previous printer session to resume")
            logger.info("Quick reconnect to %s printer", params.get("type", "unknown"))
            connection = self._resume(params)
            return self._established(connection, generation, "Quick reconnect successful")
        except Exception as e:
            self._failed(connection, generation, f"Quick reconnect failed: {e}")
            raise
        finally:
            self._end_negotiation()

    def find_baudrate(self, rates=BAUD_RATES) -> dict:
        """Reconnect a serial printer, trying each baud rate until one answers.

        Uses the parameters of the live, cached or configured device. Every
        candidate is verified with a printer initialize, like connect().
        """
        params = dict(self.device or self._cached_device or self.device_config or {})
        if params.get("type") != "serial":
            raise PrinterConnectionError("Baud rate search needs a serial printer", {"device": params or None})
        stale, generation = self._begin(ConnectionState.CONNECTING, "Trying baud rates...")
        connection = None
        try:
            self._release(stale)
            self._cached_device = None
            for rate in rates:
                try:
                    connection = self._handshake(dict(params, baudrate=rate))
                except DevicePermissionError:
                    raise
                except PrinterConnectionError as e:
                    logger.debug("No answer at %s baud: %s", rate, e)
                    continue
                logger.info("Printer answered at %s baud", rate)
                return self._established(connection, generation, f"Printer connected at {rate} baud")
            raise PrinterConnectionError("Failed to connect with any baud rate", {"rates": list(rates)})
        except Exception as e:
            self._failed(connection, generation, f"Connection failed: {e}")
            raise
        finally:
            self._end_negotiation()

    def disconnect(self) -> None:
        """Close the connection and forget the session. Safe to call repeatedly."""
        with self._lock:
            connection, self._connection = self._connection, None
            stale, self._stale = self._stale, None
            self._state = ConnectionState.DISCONNECTED
            self._cached_device = None
            self._generation += 1
            self._status = "Printer disconnected"
        self._release(connection)
        self._release(stale)
        self.session_store.clear()
        if connection:
            logger.info("Printer disconnected")

    def auto_reconnect(self) -> bool:
        """Startup recovery: one quick reconnect when a previous session exists."""
        with self._lock:
            if self._auto_reconnect_attempted:
                return False
            self._auto_reconnect_attempted = True
        if self.is_connected() or not self.has_persistent_session():
            return False
        self._status = "Auto-reconnecting to printer..."
        try:
            self.quick_reconnect()
        except PrinterError as e:
            logger.warning("Auto-reconnect failed: %s", e)
            self._status = "Auto-reconnect failed. Connect the printer manually."
            return False
        logger.info("Auto-reconnect successful")
        return True

    # Health polling

    def refresh(self) -> bool:
        """Re-sample the device handle and drop a connection whose device vanished.

        Never opens, claims or writes to the device.
        """
        connection = self._connection
        if connection is None or self._state is not ConnectionState.CONNECTED:
            return self.is_connected()
        try:
            alive = connection.is_alive()
        except (PrinterError, OSError) as e:
            logger.debug("Liveness check raised: %s", e)
            alive = False
        if not alive:
            with self._lock:
                if self._connection is connection:
                    self._connection = None
                    self._stale = connection
                    self._state = ConnectionState.DISCONNECTED
                    self._status = "Printer disconnected"
                    logger.warning("Printer %r is no longer reachable", connection)
        return self.is_connected()

    def start(self) -> None:
        """Process start: auto-reconnect once, then begin liveness polling."""
        self.auto_reconnect()
        self.start_polling()

    def start_polling(self) -> None:
        if self.poll_interval <= 0 or (self._poll_thread and self._poll_thread.is_alive()):
            return
        self._poll_stop.clear()
        self._poll_thread = threading.Thread(target=self._poll_loop, name="printer-poll", daemon=True)
        self._poll_thread.start()

    def stop(self) -> None:
        self._poll_stop.set()
        if self._poll_thread:
            self._poll_thread.join(timeout=self.poll_interval + 1)
            self._poll_thread = None

    def _poll_loop(self) -> None:
        while not self._poll_stop.wait(self.poll_interval):
            try:
                self.refresh()
            except Exception:
                logger.exception("Printer liveness check failed")

    # Job exclusivity

    @contextmanager
    def exclusive(self) -> Iterator[Callable[[bytes], None]]:
        """Hold the printer for one job or batch.

        Yields a write function bound to the live connection. Only a connected
        and idle printer can be acquired.
        """
        with self._lock:
            if self._job_active:
                raise PrinterBusyError()
            if self._state is not ConnectionState.CONNECTED or self._connection is None:
                raise PreconditionError("Printer not connected")
            self._job_active = True
            connection = self._connection

        def write(data: bytes) -> None:
            try:
                connection.write(data)
            except TransportExecutionError as e:
                self._status = f"Print failed: {e}"
                raise
            except OSError as e:
                self._status = f"Print failed: {e}"
                raise TransportExecutionError(f"Failed to send data: {e}")

        try:
            yield write
        finally:
            with self._lock:
                self._job_active = False

    def send(self, data: bytes) -> None:
        """Write one job's bytes under exclusive access."""
        with self.exclusive() as write:
            write(data)

    # Internals

    def _begin(self, state: ConnectionState, status: str):
        with self._lock:
            if self._negotiating or self._state in TRANSIENT_STATES:
                raise ConnectionInProgressError()
            if self._job_active:
                raise ConnectionInProgressError("Cannot reconnect while a print job is running")
            self._negotiating = True
            self._state = state
            self._status = status
            stale = self._connection or self._stale
            self._connection = None
            self._stale = None
            return stale, self._generation

    def _handshake(self, params: dict) -> PrinterConnection:
        try:
            connection = self.connection_factory(params)
        except (KeyError, ValueError) as e:
            raise PrinterConnectionError(f"Invalid printer configuration: {e}", {"device": params})
        if not connection.connect():
            raise PrinterConnectionError(f"{connection!r} refused the connection")
        try:
            connection.write(ESCPOSBuilder.INIT)
        except (TransportExecutionError, OSError) as e:
            connection.disconnect()
            raise PrinterConnectionError(f"Printer connected but not responding: {e}")
        return connection

    def _resume(self, params: dict) -> PrinterConnection:
        candidates = [params]
        if params.get("type") == "serial":
            # The same printer may come back under a different port name
            candidates += [dict(params, port=port) for port in self.port_scanner()
                           if port != params.get("port")]
        last_error: Optional[PrinterConnectionError] = None
        for candidate in candidates:
            try:
                return self._handshake(candidate)
            except DeviceNotFoundError as e:
                logger.debug("No printer at %s: %s", candidate.get("port"), e)
                last_error = e
        raise last_error

    def _established(self, connection: PrinterConnection, generation: int, status: str) -> dict:
        params = connection.describe()
        with self._lock:
            if generation != self._generation:
                raise PrinterConnectionError("Connection attempt cancelled by disconnect")
            self._connection = connection
            self._cached_device = params
            self._state = ConnectionState.CONNECTED
            self._status = status
        self.session_store.save(params)
        logger.info("Printer connected: %r", connection)
        return params

    def _failed(self, connection: Optional[PrinterConnection], generation: int, status: str) -> None:
        with self._lock:
            current = generation == self._generation
            if current:
                if self._connection is connection:
                    self._connection = None
                self._state = ConnectionState.DISCONNECTED
                self._status = status
        self._release(connection)
        if current:
            logger.warning(status)
        else:
            logger.info("Discarded connection attempt cancelled by disconnect")

    def _end_negotiation(self) -> None:
        with self._lock:
            self._negotiating = False

    def _release(self, connection: Optional[PrinterConnection]) -> None:
        if connection is not None:
            connection.disconnect()
