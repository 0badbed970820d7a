"""
Kitchen Exceptions

Every failure the core reports to a caller derives from KitchenError.
The HTTP layer maps each class to a status code; services never build
HTTP responses themselves.
"""

from typing import Any, Iterable, Optional


class KitchenError(Exception):
    """Base class for all reportable kitchen errors."""

    status_code = 500
    error = "Internal Server Error"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Convert to the standard error body."""
        return {
            "success": False,
            "error": self.error,
            "detail": self.message,
            "details": self.details,
        }


class ValidationFailedError(KitchenError):
    """Malformed or out-of-range request fields."""

    status_code = 400
    error = "Bad Request"


class IngredientsUnavailableError(ValidationFailedError):
    """Some requested ingredients do not exist or are not available."""

    def __init__(self, missing_ids: list[int]):
        self.missing_ids = missing_ids
        super().__init__(
            f"Ingredients not found or unavailable: {', '.join(str(i) for i in missing_ids)}",
            {"missing_ids": missing_ids},
        )


class CapacityExceededError(ValidationFailedError):
    """The bowl cannot hold the requested quantities."""

    def __init__(self, total_weight_g: float, bowl_size: int):
        self.total_weight_g = total_weight_g
        self.bowl_size = bowl_size
        super().__init__(
            f"Total weight ({total_weight_g:g}g) exceeds bowl capacity ({bowl_size}g)",
            {"total_weight_g": total_weight_g, "bowl_size": bowl_size},
        )


class NotFoundError(KitchenError):
    """Referenced order or robot does not exist."""

    status_code = 404
    error = "Not Found"


class ConflictError(KitchenError):
    """Well-formed request that would break a protocol invariant."""

    status_code = 409
    error = "Conflict"

    def __init__(
        self,
        message: str,
        current_status: Optional[str] = None,
        allowed: Iterable[str] = (),
    ):
        self.current_status = current_status
        self.allowed = list(allowed)
        super().__init__(
            message,
            {"current_status": current_status, "allowed": self.allowed},
        )


class InvalidTransitionError(ConflictError):
    """Requested status change is not in the transition table."""

    def __init__(self, current_status: str, target_status: str, allowed: Iterable[str]):
        allowed = list(allowed)
        super().__init__(
            f"Invalid status transition: {current_status} -> {target_status}. "
            f"Allowed: {', '.join(allowed) or 'none'}",
            current_status=current_status,
            allowed=allowed,
        )
        self.target_status = target_status


class AssignmentConflict(Exception):
    """
    A bind lost its race: the robot or the order changed between selection
    and update. Raised inside the bind transaction to force a rollback and
    never propagated past the assignment engine.
    """
