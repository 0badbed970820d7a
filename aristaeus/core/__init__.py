"""
Core module initialization.
Exports configuration, logging utilities and the error hierarchy.
"""

from aristaeus.core.config import get_settings, setup_logging, Settings, EnvironmentMode
from aristaeus.core.exceptions import (
    KitchenError,
    ValidationFailedError,
    IngredientsUnavailableError,
    CapacityExceededError,
    NotFoundError,
    ConflictError,
    InvalidTransitionError,
    AssignmentConflict,
)

__all__ = [
    "get_settings",
    "setup_logging",
    "Settings",
    "EnvironmentMode",
    "KitchenError",
    "ValidationFailedError",
    "IngredientsUnavailableError",
    "CapacityExceededError",
    "NotFoundError",
    "ConflictError",
    "InvalidTransitionError",
    "AssignmentConflict",
]
