"""Error taxonomy for state resolution."""

from typing import Any


class StateResolutionError(Exception):
    """Base class for everything the engine raises internally."""


class GatewayError(StateResolutionError):
    """A JSON-RPC call did not produce a result."""

    def __init__(self, message: str, *, endpoint: str | None = None) -> None:
        super().__init__(message)
        self.endpoint = endpoint


class TransportError(GatewayError):
    """Endpoint unreachable: timeout, connection failure, HTTP error or a non-JSON body."""


class RemoteProtocolError(GatewayError):
    """The node answered with a well-formed JSON-RPC error object."""

    def __init__(self, code: int | None, message: str, *, data: Any = None, endpoint: str | None = None) -> None:
        super().__init__(f"RPC error {code}: {message}", endpoint=endpoint)
        self.code = code
        self.remote_message = message
        self.data = data


class UnrecognizedEncoding(StateResolutionError):
    """A tagged value could not be interpreted."""


class NotFound(StateResolutionError):
    """An expected key is absent. A normal negative result, not a fault."""


class ConfigurationError(StateResolutionError):
    """Malformed engine configuration."""


class ExplorerError(StateResolutionError):
    """The block-explorer API could not be read."""
