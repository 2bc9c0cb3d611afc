"""Exception hierarchy for the gateway.

Everything the listener can encounter while handling a datagram derives from
GatewayError, so a handler can tell expected failures apart from bugs.
"""


class GatewayError(Exception):
    """Base exception for all gateway errors."""

    def __init__(self, message: str, domain: str | None = None) -> None:
        self.message = message
        self.domain = domain
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, domain={self.domain!r})"


class NotMagicPacket(GatewayError):
    """Datagram is not a Wake-on-LAN magic packet. Routine, not a failure."""


class BackendConnectionError(GatewayError):
    """The virtualization backend itself is unreachable, failing or timed out."""


class DomainConfigError(GatewayError):
    """A single domain's configuration could not be fetched or parsed."""


class DomainStateError(GatewayError):
    """A single domain's power state could not be fetched."""


class StartDomainError(GatewayError):
    """The backend refused a start request."""


class ListenerBindError(GatewayError):
    """The UDP listen address could not be bound. Fatal at startup."""
