"""Printer connection handlers for Network, Serial, and USB interfaces."""
import errno
import logging
import os
import socket
from abc import ABC, abstractmethod
from typing import Optional, Type

from washprint.printer.exceptions import (
    CapabilityError,
    DeviceBusyError,
    DeviceNotFoundError,
    DevicePermissionError,
    PrinterConnectionError,
    TransportExecutionError,
)

# Serial support (optional)
try:
    import serial
    import serial.tools.list_ports
    SERIAL_AVAILABLE = True
except ImportError:
    SERIAL_AVAILABLE = False

# USB support (optional)
try:
    import usb.core
    import usb.util
    USB_AVAILABLE = True
except ImportError:
    USB_AVAILABLE = False

logger = logging.getLogger(__name__)

_PERMISSION_CODES = {errno.EACCES, errno.EPERM}
_BUSY_CODES = {errno.EBUSY}
_MISSING_CODES = {errno.ENOENT, errno.ENODEV, errno.ENXIO}


def classify_device_error(exc: Exception, target: str) -> PrinterConnectionError:
    """Map a low-level device error to the matching connection error."""
    code = getattr(exc, "errno", None)
    text = str(exc)
    lowered = text.lower()
    error_class: Type[PrinterConnectionError] = PrinterConnectionError

    if code in _PERMISSION_CODES or "permission denied" in lowered or "access is denied" in lowered:
        error_class = DevicePermissionError
    elif code in _BUSY_CODES or "busy" in lowered:
        error_class = DeviceBusyError
    elif code in _MISSING_CODES or "no such file" in lowered or "filenotfounderror" in lowered:
        error_class = DeviceNotFoundError

    return error_class(f"Failed to connect to {target}: {text}", {"target": target, "errno": code})


class PrinterConnection(ABC):
    """Abstract base class for printer connections."""

    #: Connection type key used by create_printer
    type_name = ""

    @abstractmethod
    def connect(self) -> bool:
        """Establish connection to the printer."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Close connection to the printer."""
        pass

    @abstractmethod
    def write(self, data: bytes) -> bool:
        """Send data to the printer."""
        pass

    @abstractmethod
    def is_connected(self) -> bool:
        """Check if printer is connected."""
        pass

    @abstractmethod
    def describe(self) -> dict:
        """Return the parameters that recreate this connection via create_printer."""
        pass

    def is_alive(self) -> bool:
        """Re-sample the device handle without claiming the device."""
        return self.is_connected()


class NetworkPrinter(PrinterConnection):
    """TCP/IP network printer connection."""

    type_name = "network"

    def __init__(self, ip: str, port: int = 9100, timeout: float = 5.0):
        self.ip = ip
        self.port = port
        self.timeout = timeout
        self._socket: Optional[socket.socket] = None

    def connect(self) -> bool:
        """Connect to network printer."""
        target = f"{self.ip}:{self.port}"
        try:
            self._socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            self._socket.settimeout(self.timeout)
            self._socket.connect((self.ip, self.port))
            return True
        except socket.timeout:
            self._close_socket()
            raise PrinterConnectionError(f"Failed to connect to {target}: timed out", {"target": target})
        except ConnectionRefusedError as e:
            self._close_socket()
            raise DeviceNotFoundError(f"Failed to connect to {target}: {e}", {"target": target})
        except OSError as e:
            self._close_socket()
            raise classify_device_error(e, target)

    def _close_socket(self) -> None:
        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

    def disconnect(self) -> None:
        """Close network connection."""
        self._close_socket()

    def write(self, data: bytes) -> bool:
        """Send data to network printer."""
        if not self._socket:
            raise TransportExecutionError("Not connected")
        try:
            self._socket.sendall(data)
            return True
        except OSError as e:
            raise TransportExecutionError(f"Failed to send data: {e}")

    def is_connected(self) -> bool:
        """Check if socket is connected."""
        return self._socket is not None

    def describe(self) -> dict:
        return {"type": self.type_name, "ip": self.ip, "port": self.port, "timeout": self.timeout}

    def __repr__(self):
        return f"NetworkPrinter({self.ip}:{self.port})"


class SerialPrinter(PrinterConnection):
    """Serial port printer connection (8 data bits, no parity, 1 stop bit, no flow control)."""

    type_name = "serial"

    def __init__(self, port: str, baudrate: int = 9600, timeout: float = 3.0):
        if not SERIAL_AVAILABLE:
            raise CapabilityError("pyserial not installed. Run: pip install pyserial")
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self._serial: Optional["serial.Serial"] = None

    def connect(self) -> bool:
        """Connect to serial printer."""
        try:
            self._serial = serial.Serial(
                self.port,
                self.baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=self.timeout,
                write_timeout=self.timeout,
                exclusive=True if os.name == "posix" else None,
            )
            return True
        except (serial.SerialException, OSError) as e:
            self._serial = None
            raise classify_device_error(e, self.port)

    def disconnect(self) -> None:
        """Close serial connection."""
        if self._serial:
            try:
                self._serial.close()
            except serial.SerialException:
                pass
            self._serial = None

    def write(self, data: bytes) -> bool:
        """Send data to serial printer."""
        if not self._serial:
            raise TransportExecutionError("Not connected")
        try:
            self._serial.write(data)
            self._serial.flush()
            return True
        except (serial.SerialException, OSError) as e:
            raise TransportExecutionError(f"Failed to send data: {e}")

    def is_connected(self) -> bool:
        """Check if serial port is open."""
        return self._serial is not None and self._serial.is_open

    def is_alive(self) -> bool:
        """Check the port is open and still enumerated by the OS."""
        if not self.is_connected():
            return False
        return self.port in self.scan_ports()

    def describe(self) -> dict:
        return {"type": self.type_name, "port": self.port, "baudrate": self.baudrate, "timeout": self.timeout}

    @staticmethod
    def scan_ports() -> list:
        """List serial port device names currently present."""
        if not SERIAL_AVAILABLE:
            return []
        return [info.device for info in serial.tools.list_ports.comports()]

    def __repr__(self):
        return f"SerialPrinter({self.port}@{self.baudrate})"


class USBPrinter(PrinterConnection):
    """USB printer connection."""

    type_name = "usb"

    # Common thermal printer vendor IDs
    KNOWN_VENDORS = {
        0x04b8: "Epson",
        0x0519: "Star Micronics",
        0x0dd4: "Custom",
        0x0fe6: "Bixolon",
        0x1504: "Sewoo",
        0x0493: "MAG-TEK",
        0x1a86: "QinHeng (CH340)",
    }

    def __init__(self, vendor_id: int, product_id: int, timeout: float = 5.0):
        if not USB_AVAILABLE:
            raise CapabilityError("pyusb not installed. Run: pip install pyusb")
        self.vendor_id = vendor_id
        self.product_id = product_id
        self.timeout = timeout
        self._device = None
        self._endpoint_out = None

    @property
    def target(self) -> str:
        return f"USB device {self.vendor_id:04x}:{self.product_id:04x}"

    def connect(self) -> bool:
        """Connect to USB printer."""
        try:
            self._device = usb.core.find(idVendor=self.vendor_id, idProduct=self.product_id)
        except usb.core.NoBackendError as e:
            raise CapabilityError(f"No USB backend available: {e}")
        if not self._device:
            raise DeviceNotFoundError(f"{self.target} not found", {"target": self.target})

        # Kernel driver may not be detachable on every platform
        try:
            if self._device.is_kernel_driver_active(0):
                self._device.detach_kernel_driver(0)
        except NotImplementedError:
            pass
        except usb.core.USBError as e:
            self._device = None
            raise classify_device_error(e, self.target)

        try:
            self._device.set_configuration()
        except usb.core.USBError as e:
            if e.errno in _BUSY_CODES or e.errno in _PERMISSION_CODES:
                self._device = None
                raise classify_device_error(e, self.target)
            # Already configured

        cfg = self._device.get_active_configuration()
        intf = cfg[(0, 0)]
        self._endpoint_out = usb.util.find_descriptor(
            intf,
            custom_match=lambda e: usb.util.endpoint_direction(e.bEndpointAddress) == usb.util.ENDPOINT_OUT
        )

        if not self._endpoint_out:
            self._device = None
            raise PrinterConnectionError("Could not find USB OUT endpoint", {"target": self.target})

        return True

    def disconnect(self) -> None:
        """Release USB device."""
        if self._device:
            try:
                usb.util.dispose_resources(self._device)
            except usb.core.USBError:
                pass
            self._device = None
            self._endpoint_out = None

    def write(self, data: bytes) -> bool:
        """Send data to USB printer."""
        if not self._endpoint_out:
            raise TransportExecutionError("Not connected")
        try:
            self._endpoint_out.write(data, timeout=int(self.timeout * 1000))
            return True
        except usb.core.USBError as e:
            raise TransportExecutionError(f"Failed to send data: {e}")

    def is_connected(self) -> bool:
        """Check if USB device is connected."""
        return self._device is not None and self._endpoint_out is not None

    def is_alive(self) -> bool:
        """Check the device is still on the bus."""
        if not self.is_connected():
            return False
        try:
            return usb.core.find(idVendor=self.vendor_id, idProduct=self.product_id) is not None
        except usb.core.USBError:
            return False

    def describe(self) -> dict:
        return {
            "type": self.type_name,
            "vendor_id": f"{self.vendor_id:04x}",
            "product_id": f"{self.product_id:04x}",
            "timeout": self.timeout,
        }

    @classmethod
    def scan_devices(cls) -> list:
        """Scan for known USB printers."""
        if not USB_AVAILABLE:
            return []

        found = []
        try:
            devices = usb.core.find(find_all=True)
        except usb.core.NoBackendError:
            logger.warning("No USB backend available, skipping USB scan")
            return []
        for dev in devices:
            if dev.idVendor in cls.KNOWN_VENDORS:
                found.append({
                    "vendor_id": dev.idVendor,
                    "product_id": dev.idProduct,
                    "vendor_name": cls.KNOWN_VENDORS[dev.idVendor],
                    "vendor_id_hex": f"{dev.idVendor:04x}",
                    "product_id_hex": f"{dev.idProduct:04x}",
                })
        return found

    def __repr__(self):
        return f"USBPrinter({self.vendor_id:04x}:{self.product_id:04x})"


def create_printer(config: dict) -> PrinterConnection:
    """Factory function to create printer connection from config dict.

    Args:
        config: Dictionary with 'type' and connection parameters.
            - Network: {"type": "network", "ip": "192.168.1.100", "port": 9100}
            - Serial: {"type": "serial", "port": "/dev/ttyUSB0", "baudrate": 9600}
            - USB: {"type": "usb", "vendor_id": "04b8", "product_id": "0e15"}

    Returns:
        PrinterConnection instance.
    """
    printer_type = (config.get("type") or "").lower()

    if printer_type == "network":
        return NetworkPrinter(
            ip=config["ip"],
            port=int(config.get("port", 9100)),
            timeout=float(config.get("timeout", 5.0))
        )
    elif printer_type == "serial":
        return SerialPrinter(
            port=config["port"],
            baudrate=int(config.get("baudrate", 9600)),
            timeout=float(config.get("timeout", 3.0))
        )
    elif printer_type == "usb":
        # Handle hex string or int for vendor/product IDs
        vendor_id = config["vendor_id"]
        product_id = config["product_id"]
        if isinstance(vendor_id, str):
            vendor_id = int(vendor_id, 16)
        if isinstance(product_id, str):
            product_id = int(product_id, 16)
        return USBPrinter(
            vendor_id=vendor_id,
            product_id=product_id,
            timeout=float(config.get("timeout", 5.0))
        )
    else:
        raise ValueError(f"Unknown printer type: {printer_type}")
