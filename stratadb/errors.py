"""
Error types for StrataDB.

This module defines all exception types raised by the store:
- StrataError: Base exception
- NotFoundError: Entity or attribute absent where presence was required
- CardinalityViolationError: Multi-value write against a single attribute
- InvalidCardinalityError: Unrecognized cardinality tag at construction
- OutOfRangeError: Logical time with no corresponding layer
- SwapRetriesExceededError: Optimistic retry cap reached

Invariants:
    - All errors inherit from StrataError
    - Errors include context for debugging
    - A raised error never leaves a partially-updated database visible
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class StrataError(Exception):
    """Base exception for all StrataDB errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "STRATA_ERROR"
        self.details = details or {}


class NotFoundError(StrataError):
    """Entity or attribute does not exist where it was required."""

    pass


class EntityNotFoundError(NotFoundError):
    """No entity with the given id exists in the storage snapshot."""

    def __init__(self, entity_id: Any) -> None:
        super().__init__(
            f"Entity {entity_id!r} not found",
            code="ENTITY_NOT_FOUND",
            details={"entity_id": entity_id},
        )
        self.entity_id = entity_id


class AttributeNotFoundError(NotFoundError):
    """The entity exists but does not carry the named attribute."""

    def __init__(self, entity_id: Any, attribute: str) -> None:
        super().__init__(
            f"Attribute '{attribute}' not found on entity {entity_id!r}",
            code="ATTRIBUTE_NOT_FOUND",
            details={"entity_id": entity_id, "attribute": attribute},
        )
        self.entity_id = entity_id
        self.attribute = attribute


class CardinalityViolationError(StrataError):
    """Attempted to accumulate values under a single-cardinality attribute.

    Raised when:
    - A second value is added to a `single` attribute without replacing it
    - A name slot holding one cardinality is written with the other
    """

    def __init__(self, entity_id: Any, attribute: str, reason: str) -> None:
        super().__init__(
            f"Cardinality violation on '{attribute}' of entity {entity_id!r}: {reason}",
            code="CARDINALITY_VIOLATION",
            details={"entity_id": entity_id, "attribute": attribute},
        )
        self.entity_id = entity_id
        self.attribute = attribute


class InvalidCardinalityError(StrataError, ValueError):
    """Attribute constructed with an unrecognized cardinality tag."""

    def __init__(self, cardinality: Any) -> None:
        super().__init__(
            f"Invalid cardinality {cardinality!r}. Valid values: ['single', 'multiple']",
            code="INVALID_CARDINALITY",
            details={"cardinality": cardinality},
        )


class OutOfRangeError(StrataError, IndexError):
    """Requested logical time has no corresponding layer."""

    def __init__(self, time: Any, curr_time: int, message: Optional[str] = None) -> None:
        super().__init__(
            message or f"Time {time!r} is out of range [0, {curr_time}]",
            code="OUT_OF_RANGE",
            details={"time": time, "curr_time": curr_time},
        )
        self.time = time
        self.curr_time = curr_time


class SwapRetriesExceededError(StrataError):
    """Optimistic swap lost the race more times than the configured cap."""

    def __init__(self, attempts: int) -> None:
        super().__init__(
            f"Gave up after {attempts} conflicting swap attempts",
            code="SWAP_RETRIES_EXCEEDED",
            details={"attempts": attempts},
        )
        self.attempts = attempts
