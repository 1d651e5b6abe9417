"""Transport selection: which strategy prints a document right now."""
from typing import List, Union

from washprint.printer.capabilities import CapabilityProvider
from washprint.printer.documents import TransportStrategy
from washprint.printer.exceptions import CapabilityError


class TransportSelector:
    """Picks a transport from environment capability and connection state.

    Holds no device handle; it only asks the connection manager whether it
    is connected.
    """

    def __init__(self, capabilities: CapabilityProvider, manager):
        self.capabilities = capabilities
        self.manager = manager

    def with_capabilities(self, capabilities: CapabilityProvider) -> "TransportSelector":
        """Selector for the same printer seen from a different environment."""
        return TransportSelector(capabilities, self.manager)

    def direct_available(self) -> bool:
        # Direct device access is desktop-only
        return self.capabilities.supports_direct_transport() and not self.capabilities.is_mobile()

    def available_transports(self) -> List[TransportStrategy]:
        """Strategies usable here, visual first since it needs no setup."""
        transports = [TransportStrategy.VISUAL, TransportStrategy.DOCUMENT]
        if self.direct_available():
            transports.append(TransportStrategy.DIRECT)
        return transports

    def best_transport(self) -> TransportStrategy:
        """DIRECT when available and connected, VISUAL otherwise."""
        if self.direct_available() and self.manager.is_connected():
            return TransportStrategy.DIRECT
        return TransportStrategy.VISUAL

    def resolve(self, requested: Union[TransportStrategy, str, None] = None) -> TransportStrategy:
        """Validate an explicit transport, or pick the best one when none is given."""
        transport = TransportStrategy.parse(requested)
        if transport is None:
            return self.best_transport()
        if transport not in self.available_transports():
            raise CapabilityError(
                f"{transport.value} printing is not available in this environment",
                {"transport": transport.value, "capabilities": self.capabilities.to_dict()},
            )
        return transport
