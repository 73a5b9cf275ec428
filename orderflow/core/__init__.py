"""
Core module initialization.
Exports configuration, logging utilities and the typed error taxonomy.
"""

from orderflow.core.config import get_settings, Settings, EnvironmentMode, setup_logging
from orderflow.core.errors import (
    ServiceError,
    ServiceResult,
    EstablishmentClosed,
    InvalidTransition,
    NotFound,
    ValidationError,
    PersistenceError,
)

__all__ = [
    "get_settings",
    "Settings",
    "EnvironmentMode",
    "setup_logging",
    "ServiceError",
    "ServiceResult",
    "EstablishmentClosed",
    "InvalidTransition",
    "NotFound",
    "ValidationError",
    "PersistenceError",
]
