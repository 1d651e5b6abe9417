"""Printer exceptions.

Hierarchy:
    PrinterError
    ├── CapabilityError           - transport not usable in this environment
    ├── PrinterConnectionError    - handshake failed (also a builtin ConnectionError)
    │   ├── DevicePermissionError
    │   ├── DeviceNotFoundError
    │   ├── DeviceBusyError
    │   └── ConnectionInProgressError
    ├── TransportExecutionError   - write failed on an established session
    └── PreconditionError         - Direct transport requested without a live connection
        └── PrinterBusyError      - another job holds the printer

None of these are retried inside the printer package; the caller decides.
"""
from typing import Any, Dict, Optional


class PrinterError(Exception):
    """Base class for all printer errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class CapabilityError(PrinterError):
    """Requested transport is not supported in this environment."""


class PrinterConnectionError(PrinterError, ConnectionError):
    """Connection to the printer could not be established."""


class DevicePermissionError(PrinterConnectionError):
    """The OS refused access to the device."""


class DeviceNotFoundError(PrinterConnectionError):
    """No device answered at the configured address."""


class DeviceBusyError(PrinterConnectionError):
    """The device is claimed by another process or session."""


class ConnectionInProgressError(PrinterConnectionError):
    """Another connection attempt or print job is already running."""

    def __init__(self, message: str = "A printer connection attempt is already in progress"):
        super().__init__(message)


class TransportExecutionError(PrinterError):
    """Sending a job over an established session failed."""


class PreconditionError(PrinterError):
    """A job cannot start in the current connection state."""


class PrinterBusyError(PreconditionError):
    """The printer is already running a job."""

    def __init__(self, message: str = "Printer is busy with another job"):
        super().__init__(message)
