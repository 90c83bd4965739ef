"""Exception hierarchy shared by the cisl_io modules."""


class CislIoError(Exception):
    """Base class for all cisl_io errors."""


class ConfigurationError(CislIoError, ValueError):
    """Raised when configuration is missing or inconsistent."""


class NotInitializedError(CislIoError):
    """Raised when accessing a module that was not configured."""


class RpcError(CislIoError):
    """Base class for errors settling a single RPC call."""


class RpcTimeoutError(RpcError):
    """The responder did not reply before the call timed out."""

    def __init__(self, timeout_ms: int) -> None:
        super().__init__(f"Request timed out after {timeout_ms} ms.")
        self.timeout_ms = timeout_ms


class RpcMismatchError(RpcError):
    """A reply arrived on the reply queue with a foreign correlation id."""


class RpcRemoteError(RpcError):
    """The responder answered with an ``error`` header."""


class ReplyAlreadySentError(CislIoError):
    """An RPC handler tried to reply to the same request twice."""


class ConnectionClosedError(CislIoError):
    """Work was submitted to a connection that is closed or failed."""


class ManagementError(CislIoError):
    """Raised when the broker management API answers with an error."""


class IoThreadBlockedError(CislIoError):
    """A handler waited on a pending result from the connection's own I/O thread."""
