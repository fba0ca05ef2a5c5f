"""
Platform-wide exception hierarchy.

Services raise these; blueprints register handlers against these types once
and get consistent HTTP status codes everywhere.

Usage:
    from g3tornado.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Task", resource_id=42)
    raise ValidationError("fu_cadence_days must be positive", details={"fu_cadence_days": "..."})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist or is not visible to the actor.

    Used for BOTH genuinely missing records AND records hidden by visibility
    rules. A 403 would confirm the resource exists; a 404 does not.

    Args:
        resource: Human-readable model/entity name (e.g. "Task", "Contact").
        resource_id: The PK that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation collides with existing state.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The field (or relation) in conflict.
        value: The conflicting value.
        message: Optional override for the generated message.
    """

    def __init__(
        self,
        resource: str,
        field: str,
        value: str | None = None,
        message: str | None = None,
    ) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = message or f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class PermissionDeniedError(Exception):
    """Raised when the actor is known but lacks the role for the operation.

    Maps to HTTP 403.
    """
