"""
Typed Error Taxonomy and Service Results

Order Service operations never raise for expected business conditions.
They return a ServiceResult whose `error` is one of the typed errors below,
each carrying a machine-readable code and the HTTP status the API layer
maps it to. Only unexpected infrastructure faults propagate as exceptions.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class ServiceError:
    """Base for every expected failure surfaced to callers."""
    message: str

    code: ClassVar[str] = "error"
    http_status: ClassVar[int] = 400

    def to_dict(self) -> dict:
        """Convert to the API error body."""
        return {
            "success": False,
            "error": self.code,
            "detail": self.message,
        }


@dataclass
class EstablishmentClosed(ServiceError):
    """Order rejected because the establishment is closed. No state change."""
    reason: str = ""

    code: ClassVar[str] = "establishment_closed"
    http_status: ClassVar[int] = 403

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["reason"] = self.reason
        return body


@dataclass
class InvalidTransition(ServiceError):
    """Status change rejected by the state machine. No state change."""
    current_status: Optional[str] = None
    target_status: Optional[str] = None

    code: ClassVar[str] = "invalid_transition"
    http_status: ClassVar[int] = 409

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["current_status"] = self.current_status
        body["target_status"] = self.target_status
        return body


@dataclass
class NotFound(ServiceError):
    """Referenced order or resource is absent."""
    resource_id: Optional[str] = None

    code: ClassVar[str] = "not_found"
    http_status: ClassVar[int] = 404


@dataclass
class ValidationError(ServiceError):
    """Malformed input: missing fields, unknown catalog entries, empty items."""
    errors: list[dict[str, Any]] = field(default_factory=list)

    code: ClassVar[str] = "validation_error"
    http_status: ClassVar[int] = 422

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.errors:
            body["errors"] = self.errors
        return body


@dataclass
class PersistenceError(ServiceError):
    """Store unavailable or write failed. Message never carries storage detail."""

    code: ClassVar[str] = "persistence_error"
    http_status: ClassVar[int] = 503


@dataclass
class ServiceResult(Generic[T]):
    """
    Outcome of an Order Service operation.

    Attributes:
        success: Whether the operation committed
        value: Operation output when successful
        error: Typed error when unsuccessful
    """
    success: bool
    value: Optional[T] = None
    error: Optional[ServiceError] = None

    @classmethod
    def ok(cls, value: Optional[T] = None) -> "ServiceResult[T]":
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: ServiceError) -> "ServiceResult[T]":
        return cls(success=False, error=error)
