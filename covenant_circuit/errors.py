"""Error taxonomy.

Witness-validity failures (``CircuitError`` subclasses) are kept apart from
proving-backend failures (``BackendError`` subclasses) so callers can tell an
invalid transfer from broken infrastructure.
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence


class CircuitError(Exception):
    """Base class for constraint-system and witness errors."""


class CircuitFrozen(CircuitError):
    """Raised when a frozen constraint system is modified."""


class ShapeMismatch(CircuitError):
    """A caller-supplied input does not match the compiled fixed capacity."""

    def __init__(self, name: str, expected: Any, actual: Any):
        super().__init__(f"input '{name}': expected shape {expected}, got {actual}")
        self.name = name
        self.expected = expected
        self.actual = actual


class MalformedFieldValue(CircuitError, ValueError):
    """A value is not a valid representative of the field."""

    def __init__(self, name: str, value: Any, reason: str):
        super().__init__(f"malformed field value for '{name}': {reason}")
        self.name = name
        self.value = value
        self.reason = reason


class UnsatisfiedConstraint(CircuitError):
    """The assignment violates at least one constraint.

    The message is deliberately generic. ``labels`` holds the labels of the
    violated constraints for debugging only; it is not part of the proof
    semantics.
    """

    def __init__(self, labels: Optional[Sequence[str]] = None):
        super().__init__("witness does not satisfy the constraint system")
        self.labels: List[str] = list(labels or [])


class BackendError(Exception):
    """Base class for proving-backend (infrastructure) failures."""


class KeyLoadError(BackendError):
    """A proving or verification key could not be loaded."""


class ProofGenerationError(BackendError):
    """The backend could not produce a proof for the given witness."""
