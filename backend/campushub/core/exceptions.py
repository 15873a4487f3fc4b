class AppError(Exception):
    """Base class for all application exceptions."""

    code = "app_error"

    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(AppError):
    """Raised when a resource, reservation or user id cannot be resolved."""

    code = "not_found"

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} not found", status_code=404, details={"id": entity_id})


class ForbiddenError(AppError):
    """Raised when a role or ownership check fails."""

    code = "forbidden"

    def __init__(self, message: str = "You are not authorized to perform this action"):
        super().__init__(message, status_code=403)


class InvalidTimeRangeError(AppError):
    code = "invalid_time_range"

    def __init__(self, message: str = "Start time must be before end time"):
        super().__init__(message, status_code=400)


class ResourceUnavailableError(AppError):
    code = "resource_unavailable"

    def __init__(self, resource_id: str):
        super().__init__(
            "Resource is not available for booking",
            status_code=409,
            details={"resource_id": resource_id},
        )


class RoleNotAllowedError(AppError):
    code = "role_not_allowed"

    def __init__(self, role: str):
        super().__init__(
            "Your role is not allowed to book this resource",
            status_code=403,
            details={"role": role},
        )


class ConflictDetectedError(AppError):
    """Raised when an overlapping active reservation exists for the resource."""

    code = "conflict_detected"

    def __init__(self, conflicting_reservation_id: str | None = None):
        details = {"conflicting_reservation_id": conflicting_reservation_id} if conflicting_reservation_id else {}
        super().__init__("Reservation conflicts with an existing booking", status_code=409, details=details)


class InvalidStateTransitionError(AppError):
    code = "invalid_state_transition"

    def __init__(self, action: str, current_status: str):
        super().__init__(
            f"Cannot {action} a {current_status} reservation",
            status_code=409,
            details={"action": action, "status": current_status},
        )


class MissingReasonError(AppError):
    code = "missing_reason"

    def __init__(self):
        super().__init__("Please provide a reason for rejection", status_code=400)


class DuplicateResourceError(AppError):
    code = "duplicate_resource"

    def __init__(self, name: str):
        super().__init__("Resource name already exists", status_code=409, details={"name": name})


class StorageUnavailableError(AppError):
    """Raised when the underlying database call fails; callers may retry."""

    code = "storage_unavailable"

    def __init__(self, operation: str):
        super().__init__(
            "Storage is temporarily unavailable, please try again",
            status_code=503,
            details={"operation": operation},
        )


class AuthenticationError(AppError):
    code = "unauthorized"

    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(message, status_code=401)
        self.headers = {"WWW-Authenticate": "Bearer"}
