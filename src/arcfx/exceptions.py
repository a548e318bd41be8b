"""ARC-FX exception hierarchy.

Management operations raise these; the webhook delivery path never lets
them escape to the business operation that triggered a notification.
Each class carries the HTTP status the management API answers with.
"""

from __future__ import annotations


class ArcfxError(Exception):
    """Base exception for all ARC-FX errors.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code for API responses.
        http_status: Status the management API responds with.
    """

    code: str = "arcfx_error"
    http_status: int = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def details(self) -> dict[str, object]:
        """Extra fields for the error body. Subclasses add their context."""
        return {}

    def to_dict(self) -> dict[str, object]:
        """Error body: ``{"error": {"code", <details>, "message"}}``."""
        return {"error": {"code": self.code, **self.details(), "message": self.message}}


class ValidationError(ArcfxError):
    """Rejected input.

    A malformed endpoint URL, an unknown or missing event type, or a
    status an operator may not set.
    """

    code = "validation_error"
    http_status = 400

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"{field}: {message}")

    def details(self) -> dict[str, object]:
        return {"field": self.field}


class NotFoundError(ArcfxError):
    """Unknown subscription id.

    Registry lookups report a miss as None/False; only the HTTP layer
    raises this.
    """

    code = "not_found"
    http_status = 404

    def __init__(self, resource_type: str, resource_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} not found: {resource_id}")

    def details(self) -> dict[str, object]:
        return {"resource_type": self.resource_type, "resource_id": self.resource_id}


class StorageError(ArcfxError):
    """The subscription store could not be read or written."""

    code = "storage_error"


class DeliveryTransientFailure(ArcfxError):
    """A single delivery attempt failed.

    Covers non-2xx responses, network errors and timeouts. Only the
    delivery engine's retry loop sees this.

    Attributes:
        status_code: HTTP status of the response, if one was received.
    """

    code = "delivery_failed"
    http_status = 502

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)

    def details(self) -> dict[str, object]:
        if self.status_code is None:
            return {}
        return {"status_code": self.status_code}


class AuthenticationError(ArcfxError):
    """Operator credentials missing, forged or expired."""

    code = "authentication_error"
    http_status = 401
