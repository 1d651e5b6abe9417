"""Tests for capability detection and transport selection."""
from unittest.mock import Mock, patch

import pytest

from washprint.printer.capabilities import RequestCapabilities, ServerCapabilities, StaticCapabilities
from washprint.printer.documents import TransportStrategy
from washprint.printer.exceptions import CapabilityError
from washprint.printer.transport import TransportSelector


def selector_for(direct, mobile, connected):
    manager = Mock()
    manager.is_connected.return_value = connected
    return TransportSelector(StaticCapabilities(direct=direct, mobile=mobile), manager)


class TestTransportSelector:

    @pytest.mark.parametrize("direct, mobile, connected, expected", [
        (True, False, True, TransportStrategy.DIRECT),
        (True, False, False, TransportStrategy.VISUAL),
        (False, False, True, TransportStrategy.VISUAL),
        (False, False, False, TransportStrategy.VISUAL),
        (True, True, True, TransportStrategy.VISUAL),
        (True, True, False, TransportStrategy.VISUAL),
        (False, True, True, TransportStrategy.VISUAL),
        (False, True, False, TransportStrategy.VISUAL),
    ])
    def test_best_transport(self, direct, mobile, connected, expected):
        assert selector_for(direct, mobile, connected).best_transport() is expected

    def test_available_transports_desktop(self):
        selector = selector_for(True, False, False)
        assert selector.available_transports() == [
            TransportStrategy.VISUAL, TransportStrategy.DOCUMENT, TransportStrategy.DIRECT,
        ]

    def test_available_transports_mobile(self):
        selector = selector_for(True, True, True)
        assert selector.available_transports() == [TransportStrategy.VISUAL, TransportStrategy.DOCUMENT]

    def test_resolve_defaults_to_best(self):
        assert selector_for(True, False, True).resolve() is TransportStrategy.DIRECT
        assert selector_for(True, False, False).resolve(None) is TransportStrategy.VISUAL

    def test_resolve_accepts_strings(self):
        assert selector_for(True, False, False).resolve("document") is TransportStrategy.DOCUMENT

    def test_resolve_unavailable_transport(self):
        with pytest.raises(CapabilityError) as exc_info:
            selector_for(True, True, True).resolve(TransportStrategy.DIRECT)
        assert exc_info.value.details["transport"] == "direct"

    def test_resolve_unknown_transport(self):
        with pytest.raises(ValueError, match="Unknown transport"):
            selector_for(True, False, True).resolve("fax")

    def test_with_capabilities_keeps_manager(self):
        selector = selector_for(True, False, True)
        mobile = selector.with_capabilities(StaticCapabilities(direct=True, mobile=True))
        assert mobile.manager is selector.manager
        assert mobile.best_transport() is TransportStrategy.VISUAL


class TestServerCapabilities:

    def test_network_always_direct(self):
        assert ServerCapabilities("network").supports_direct_transport()

    def test_serial_needs_pyserial(self):
        with patch("washprint.printer.connection.SERIAL_AVAILABLE", False):
            assert not ServerCapabilities("serial").supports_direct_transport()
        with patch("washprint.printer.connection.SERIAL_AVAILABLE", True):
            assert ServerCapabilities("serial").supports_direct_transport()

    def test_usb_needs_pyusb(self):
        with patch("washprint.printer.connection.USB_AVAILABLE", False):
            assert not ServerCapabilities("usb").supports_direct_transport()

    def test_unconfigured_needs_any_library(self):
        with patch("washprint.printer.connection.SERIAL_AVAILABLE", False), \
                patch("washprint.printer.connection.USB_AVAILABLE", False):
            assert not ServerCapabilities().supports_direct_transport()

    def test_hosted_flag(self):
        assert ServerCapabilities("network", hosted=True).is_hosted()
        assert not ServerCapabilities("network").is_mobile()


class TestRequestCapabilities:

    IPHONE = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15"
    DESKTOP = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 Chrome/120.0 Safari/537.36"

    def test_mobile_user_agent(self):
        caps = RequestCapabilities(StaticCapabilities(direct=True), self.IPHONE, "localhost:5000")
        assert caps.is_mobile()
        assert caps.supports_direct_transport()

    def test_mobile_forces_visual_even_with_device_support(self):
        manager = Mock()
        manager.is_connected.return_value = True
        caps = RequestCapabilities(StaticCapabilities(direct=True), self.IPHONE, "localhost")
        assert TransportSelector(caps, manager).best_transport() is TransportStrategy.VISUAL

    def test_desktop_user_agent(self):
        caps = RequestCapabilities(StaticCapabilities(direct=True), self.DESKTOP, "localhost")
        assert not caps.is_mobile()

    @pytest.mark.parametrize("host, hosted", [
        ("localhost:5000", False),
        ("127.0.0.1", False),
        ("192.168.1.20:8080", False),
        ("dashboard.example.com", True),
        ("x192.168.example.com", True),
    ])
    def test_hosted_detection(self, host, hosted):
        caps = RequestCapabilities(StaticCapabilities(), self.DESKTOP, host)
        assert caps.is_hosted() is hosted

    def test_from_request(self):
        request = Mock()
        request.headers = {"User-Agent": self.IPHONE}
        request.host = "dashboard.example.com"
        caps = RequestCapabilities.from_request(StaticCapabilities(), request)
        assert caps.to_dict() == {"direct": True, "mobile": True, "hosted": True}
