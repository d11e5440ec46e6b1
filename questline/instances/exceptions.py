"""Custom exceptions for the instance lifecycle."""

from fastapi import HTTPException, status


class InstanceLifecycleError(Exception):
    """Base exception for instance lifecycle errors."""

    def __init__(self, message: str, error_type: str = "instance_lifecycle_error"):
        self.message = message
        self.error_type = error_type
        super().__init__(message)


class InstanceNotFoundError(InstanceLifecycleError):
    """Raised when an instance id does not resolve."""

    def __init__(self, instance_id: str):
        super().__init__(
            f"Instance '{instance_id}' not found",
            "instance_not_found",
        )
        self.instance_id = instance_id


class InvalidTransitionError(InstanceLifecycleError):
    """Raised when the requested edge is not in the transition table."""

    def __init__(self, current_status: str, target_status: str):
        super().__init__(
            f"Cannot transition from '{current_status}' to '{target_status}'",
            "invalid_transition",
        )
        self.current_status = current_status
        self.target_status = target_status


class MissingReasonError(InstanceLifecycleError):
    """Raised when a disruptive transition is requested without a reason."""

    def __init__(self, target_status: str):
        super().__init__(
            f"A reason is required to transition to '{target_status}'",
            "missing_reason",
        )
        self.target_status = target_status


class PersistenceError(InstanceLifecycleError):
    """Raised when the authoritative read or write fails or times out."""

    def __init__(self, instance_id: str, detail: str):
        super().__init__(
            f"Failed to persist instance '{instance_id}': {detail}",
            "persistence_error",
        )
        self.instance_id = instance_id
        self.detail = detail


class ConcurrentModificationError(InstanceLifecycleError):
    """Raised when the status changed between read and write."""

    def __init__(self, instance_id: str, expected_status: str):
        super().__init__(
            f"Instance '{instance_id}' is no longer '{expected_status}'; "
            "it was modified concurrently",
            "concurrent_modification",
        )
        self.instance_id = instance_id
        self.expected_status = expected_status


STATUS_CODES: dict[str, int] = {
    "instance_not_found": status.HTTP_404_NOT_FOUND,
    "invalid_transition": status.HTTP_409_CONFLICT,
    "missing_reason": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "persistence_error": status.HTTP_503_SERVICE_UNAVAILABLE,
    "concurrent_modification": status.HTTP_409_CONFLICT,
    "instance_lifecycle_error": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def raise_http_exception(error: InstanceLifecycleError) -> None:
    """Convert InstanceLifecycleError to HTTPException."""
    status_code = STATUS_CODES.get(error.error_type, status.HTTP_500_INTERNAL_SERVER_ERROR)

    raise HTTPException(
        status_code=status_code,
        detail={
            "type": f"https://api.questline.app/errors/{error.error_type}",
            "title": error.error_type.replace("_", " ").title(),
            "status": status_code,
            "detail": error.message,
        },
    )
