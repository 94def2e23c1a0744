"""
Typed errors for the lead and booking lifecycle.

Services raise these; api.errors maps each one to an HTTP status and an
error code. DependencyError never crosses the scoring engine boundary.
"""


class EstateError(Exception):
    """Base exception for the back office core."""

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class ValidationError(EstateError, ValueError):
    """Missing or malformed input, or a value outside its enumeration."""

    def __init__(self, message: str = "Validation failed", field: str | None = None):
        self.field = field
        if field:
            message = f"Validation failed for field '{field}': {message}"
        super().__init__(message)


class NotFoundError(EstateError):
    """Referenced entity does not exist (or is no longer active)."""

    def __init__(self, resource: str = "Resource", resource_id: object = None):
        self.resource = resource
        self.resource_id = resource_id
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with id '{resource_id}' not found"
        super().__init__(message)


class ConflictError(EstateError):
    """Concurrent modification outlasted the optimistic retry budget."""

    def __init__(self, resource: str = "Resource", resource_id: object = None):
        message = f"{resource} was modified concurrently"
        if resource_id is not None:
            message = f"{resource} with id '{resource_id}' was modified concurrently"
        super().__init__(message)


class DependencyError(EstateError):
    """An optional collaborator (the predictive scorer) is unavailable."""

    def __init__(self, service: str = "Dependency", message: str | None = None):
        msg = f"{service} unavailable"
        if message:
            msg = f"{msg}: {message}"
        super().__init__(msg)
