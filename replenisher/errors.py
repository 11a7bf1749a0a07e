"""
Error taxonomy and Result type for the replenishment engine.

Engine operations never raise for expected failures. They return a Result
carrying either a value or an EngineError:
- SCAN_FAILED: a container read returned no usable data
- DISCONNECTED: the transport failed during an otherwise valid operation
- SLOT_CHANGED: race guard tripped, the expected item is no longer in the slot
- TRANSFER_FAILED: the move primitive reported zero items moved
- UNKNOWN_TYPE / UNKNOWN_MATERIAL: a configuration reference does not resolve
- NO_CANDIDATE_AVAILABLE: nothing to do for one machine this cycle

TransportError is the only exception the engine expects from a container,
and SafeContainer is the only place it is caught.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Failure categories surfaced by the engine."""
    SCAN_FAILED = "scan_failed"
    DISCONNECTED = "disconnected"
    SLOT_CHANGED = "slot_changed"
    TRANSFER_FAILED = "transfer_failed"
    UNKNOWN_TYPE = "unknown_type"
    UNKNOWN_MATERIAL = "unknown_material"
    NO_CANDIDATE_AVAILABLE = "no_candidate_available"
    CONTAINER_MISSING = "container_missing"      # Not present on the transport
    NOT_A_CONTAINER = "not_a_container"          # Present but lacks container methods
    CONFIG_INVALID = "config_invalid"


class EngineError(BaseModel):
    """Structured error information attached to a failed Result."""
    kind: ErrorKind = Field(..., description="Category of error")
    message: str = Field(..., description="Human-readable error message")
    context: dict[str, Any] = Field(default_factory=dict, description="Additional context")


@dataclass
class Result(Generic[T]):
    """Outcome of an engine operation: a value or an EngineError."""
    value: Optional[T] = None
    error: Optional[EngineError] = None
    noop: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error else None

    @classmethod
    def success(cls, value: T, noop: bool = False) -> "Result[T]":
        return cls(value=value, noop=noop)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str, **context: Any) -> "Result[T]":
        return cls(error=EngineError(kind=kind, message=message, context=context))


class TransportError(Exception):
    """Raised by a container or transport when the underlying call fails."""


class ConfigError(Exception):
    """
    Raised when a factory configuration cannot be loaded or fails validation.

    Carries:
    - code: error category (e.g., 'CONFIG_NOT_FOUND', 'CONFIG_INVALID')
    - message: human-readable description
    - details: optional dict with debug information
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(f"{code}: {message}")
