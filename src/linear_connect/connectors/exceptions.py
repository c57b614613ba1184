"""Connector-specific exception types.

Every failure a trigger, search or create can hit is raised as one of these.
The host renders them through ``to_host_error()``; the HTTP adapter turns
that into a JSON error response with ``http_status``.
"""

from typing import Any, Dict


class ConnectorError(Exception):
    """Base exception for all connector errors."""

    error_code = "connector_error"
    http_status = 500

    def __init__(self, message: str, connector_name: str = "linear"):
        self.message = message
        self.connector_name = connector_name
        super().__init__(message)

    def to_host_error(self) -> Dict[str, Any]:
        """Arguments for the host's structured-error constructor."""
        return {
            "message": self.message,
            "code": self.error_code,
            "status": self.http_status,
        }


class ConnectorTransportError(ConnectorError):
    """Network or HTTP-layer failure (non-2xx, timeout, connection error)."""

    error_code = "request_failed"
    http_status = 502

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        response_body: str = "",
        connector_name: str = "linear",
    ):
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message, connector_name)


class ConnectorAuthExpiredError(ConnectorError):
    """Credentials rejected by Linear; the host must re-authenticate."""

    error_code = "auth_expired"
    http_status = 401


class ConnectorValidationError(ConnectorError):
    """Linear rejected the input. The message is shown to the user as-is."""

    error_code = "invalid_input"
    http_status = 400


class ConnectorSchemaMismatchError(ConnectorError):
    """Response parsed but lacks the expected success shape."""

    error_code = "unexpected_response"
    http_status = 502


class ConnectorPreconditionError(ConnectorError):
    """Required input missing or inconsistent. Raised before any request."""

    error_code = "halted"
    http_status = 400
