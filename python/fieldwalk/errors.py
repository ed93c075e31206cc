"""
Exceptions raised by fieldwalk.
"""

from typing import Any, TypeVar

E = TypeVar("E", bound=BaseException)


class FieldWalkError(Exception):
    """Base class for all errors raised by fieldwalk."""


class MalformedTagError(FieldWalkError, ValueError):
    """Exception raised when a field tag string doesn't follow the `key:"value"` grammar."""

    def __init__(self, tag: str, reason: str):
        super().__init__(f"malformed tag `{tag}`: {reason}")
        self.tag = tag
        self.reason = reason


class ShapeError(FieldWalkError, TypeError):
    """Exception raised when a walk target is not a (non-nil) pointer to a struct or slice."""


class ConversionError(FieldWalkError, ValueError):
    """Exception raised when a value cannot be converted to the declared type."""


class IterationError(FieldWalkError):
    """
    Exception raised when visiting a field or item fails.

    The original exception is kept as `error` and chained as `__cause__`.
    """

    def __init__(self, message: str, position: Any, declared_type: Any, error: Exception):
        super().__init__(message)
        self.position = position
        self.declared_type = declared_type
        self.error = error


def find_cause(error: BaseException, error_type: type[E]) -> E | None:
    """
    Find the first exception of `error_type` in the `__cause__` chain of `error`,
    starting with `error` itself.
    """
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        if isinstance(current, error_type):
            return current
        seen.add(id(current))
        current = current.__cause__
    return None
