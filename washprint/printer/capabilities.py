"""Runtime capability detection for transport selection."""
import re
from abc import ABC, abstractmethod
from typing import Optional

from washprint.printer import connection

MOBILE_PATTERN = re.compile(
    r"Android|webOS|iPhone|iPad|iPod|BlackBerry|IEMobile|Opera Mini", re.IGNORECASE
)
LOCAL_HOSTS = ("localhost", "127.0.0.1")


class CapabilityProvider(ABC):
    """Answers what the current environment can do."""

    @abstractmethod
    def supports_direct_transport(self) -> bool:
        """Whether device-level I/O to a printer is possible."""

    @abstractmethod
    def is_mobile(self) -> bool:
        """Whether the operator is on a touch/mobile form factor."""

    @abstractmethod
    def is_hosted(self) -> bool:
        """Whether the dashboard is served from a remote host rather than locally."""

    def to_dict(self) -> dict:
        return {
            "direct": self.supports_direct_transport(),
            "mobile": self.is_mobile(),
            "hosted": self.is_hosted(),
        }


class StaticCapabilities(CapabilityProvider):
    """Fixed answers, for tests and headless use."""

    def __init__(self, direct: bool = True, mobile: bool = False, hosted: bool = False):
        self.direct = direct
        self.mobile = mobile
        self.hosted = hosted

    def supports_direct_transport(self) -> bool:
        return self.direct

    def is_mobile(self) -> bool:
        return self.mobile

    def is_hosted(self) -> bool:
        return self.hosted


class ServerCapabilities(CapabilityProvider):
    """Capabilities of the machine the printer is attached to.

    Direct transport needs the I/O library for the configured device type:
    pyserial for serial, pyusb for USB, plain sockets for network printers.
    """

    def __init__(self, device_type: Optional[str] = None, hosted: bool = False):
        self.device_type = (device_type or "").lower()
        self.hosted = hosted

    def supports_direct_transport(self) -> bool:
        if self.device_type == "network":
            return True
        if self.device_type == "serial":
            return connection.SERIAL_AVAILABLE
        if self.device_type == "usb":
            return connection.USB_AVAILABLE
        return connection.SERIAL_AVAILABLE or connection.USB_AVAILABLE

    def is_mobile(self) -> bool:
        return False

    def is_hosted(self) -> bool:
        return self.hosted


class RequestCapabilities(CapabilityProvider):
    """Server capabilities seen through the client making the current request."""

    def __init__(self, base: CapabilityProvider, user_agent: str = "", host: str = ""):
        self.base = base
        self.user_agent = user_agent or ""
        self.host = (host or "").split(":")[0]

    @classmethod
    def from_request(cls, base: CapabilityProvider, request) -> "RequestCapabilities":
        return cls(base, request.headers.get("User-Agent", ""), request.host)

    def supports_direct_transport(self) -> bool:
        return self.base.supports_direct_transport()

    def is_mobile(self) -> bool:
        return self.base.is_mobile() or bool(MOBILE_PATTERN.search(self.user_agent))

    def is_hosted(self) -> bool:
        if not self.host:
            return self.base.is_hosted()
        return self.host not in LOCAL_HOSTS and not self.host.startswith("192.168.")
