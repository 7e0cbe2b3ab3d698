"""Domain error hierarchy.

Every error carries the HTTP status the API answers with; the exception
handler in main.py renders them as ``{"error": message}``.
"""


class KhozoError(Exception):
    """Base class for all domain errors."""

    status_code = 500


class InvalidStatus(KhozoError):
    """Requested status is not part of the lifecycle enumeration."""

    status_code = 400

    def __init__(self, status: str, valid: list[str]):
        self.status = status
        super().__init__(f"Invalid status: {status}. Must be one of: {', '.join(valid)}")


class Unauthorized(KhozoError):
    """Acting user does not own the resource."""

    status_code = 403

    def __init__(self, message: str = "Not allowed to modify this resource"):
        super().__init__(message)


class NotFound(KhozoError):
    status_code = 404

    def __init__(self, resource_type: str, identifier: str):
        self.resource_type = resource_type
        self.identifier = identifier
        super().__init__(f"{resource_type} not found: {identifier}")


class InvalidTransition(KhozoError):
    """Only raised when STRICT_TRANSITIONS is enabled."""

    status_code = 409

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Transition from {current} to {requested} is not allowed")


class NoDeliveryTarget(KhozoError):
    status_code = 422

    def __init__(self, message: str = "no delivery target"):
        super().__init__(message)


class UpstreamFailure(KhozoError):
    """Database or push gateway call failed."""

    status_code = 502
