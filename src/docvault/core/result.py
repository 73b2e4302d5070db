"""
Result envelope for storage and codec operations.

Operations that can fail for expected reasons (a blob that does not decode,
a key that is missing) return ``Ok[T]`` or ``Err[T]`` instead of raising.
The persistence core turns an ``Err`` into a typed DocVaultError at its
public boundary, so internal plumbing stays free of try/except pyramids.

This is deliberately a different type from the validation ``Success`` /
``Failure`` pair: validation failures carry a list of field-level errors,
while ``Err`` carries exactly one exception.

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────┐
        │                       Result[T]                           │
        ├──────────────────┬──────────────────┬────────────────────┤
        │      Ok[T]       │      Err[T]      │     Utilities      │
        ├──────────────────┼──────────────────┼────────────────────┤
        │ • value: T       │ • error: Exc     │ • try_result()     │
        │ • map()          │ • map_err()      │ • collect_results()│
        │ • flat_map()     │ • or_else()      │ • partition_...()  │
        │ • unwrap()       │ • unwrap_or()    │                    │
        └──────────────────┴──────────────────┴────────────────────┘

Examples:
    >>> from docvault.core.result import Ok, Err
    >>> Ok(10).map(lambda x: x * 2).unwrap()
    20
    >>> Err(ValueError("bad bytes")).map(lambda x: x * 2).unwrap_or(0)
    0

    Pattern matching:

    >>> match Ok("doc"):
    ...     case Ok(value):
    ...         print(value)
    ...     case Err(error):
    ...         print(error)
    doc

Guardrails:
    ❌ DON'T: Call unwrap() on a Result you have not checked
    ✅ DO: Use pattern matching or unwrap_or()

    ❌ DON'T: Raise inside map()/flat_map()
    ✅ DO: Return Err from flat_map() when the step can fail

Tags:
    result-pattern, error-handling, functional-programming, docvault

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from docvault.core.errors import DocVaultError

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """
    Successful result containing a value.

    Examples:
        >>> ok = Ok(42)
        >>> ok.is_ok(), ok.unwrap()
        (True, 42)
        >>> Ok("v1").flat_map(lambda s: Ok(s.upper())).unwrap()
        'V1'
    """

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        """Get the value. Safe for Ok."""
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def unwrap_or_else(self, f: Callable[[Exception], T]) -> T:
        return self.value

    def map(self, f: Callable[[T], U]) -> Result[U]:
        """Transform the value if Ok."""
        return Ok(f(self.value))

    def flat_map(self, f: Callable[[T], Result[U]]) -> Result[U]:
        """Chain to another Result-returning function."""
        return f(self.value)

    def map_err(self, f: Callable[[Exception], Exception]) -> Result[T]:
        return self

    def or_else(self, f: Callable[[Exception], Result[T]]) -> Result[T]:
        return self

    def inspect(self, f: Callable[[T], None]) -> Result[T]:
        """Call f with value for side effects, return self."""
        f(self.value)
        return self

    def inspect_err(self, f: Callable[[Exception], None]) -> Result[T]:
        return self

    def to_dict(self) -> dict[str, Any]:
        return {"ok": True, "value": self.value}

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[T]):
    """
    Failed result containing an error.

    ``map``/``flat_map`` pass the error through unchanged; ``or_else`` and
    ``unwrap_or`` are the recovery points.

    Examples:
        >>> err = Err(ValueError("truncated"))
        >>> err.is_err(), err.unwrap_or("fallback")
        (True, 'fallback')
        >>> Err(ValueError("x")).or_else(lambda e: Ok("recovered")).unwrap()
        'recovered'
    """

    error: Exception

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Raise the error. Use only when you're sure it's Ok."""
        raise self.error

    def unwrap_or(self, default: T) -> T:
        return default

    def unwrap_or_else(self, f: Callable[[Exception], T]) -> T:
        return f(self.error)

    def map(self, f: Callable[[T], U]) -> Result[U]:
        return Err(self.error)

    def flat_map(self, f: Callable[[T], Result[U]]) -> Result[U]:
        return Err(self.error)

    def map_err(self, f: Callable[[Exception], Exception]) -> Result[T]:
        """Transform the error."""
        return Err(f(self.error))

    def or_else(self, f: Callable[[Exception], Result[T]]) -> Result[T]:
        """Call f with error to try recovery."""
        return f(self.error)

    def inspect(self, f: Callable[[T], None]) -> Result[T]:
        return self

    def inspect_err(self, f: Callable[[Exception], None]) -> Result[T]:
        """Call f with error for side effects, return self."""
        f(self.error)
        return self

    def to_dict(self) -> dict[str, Any]:
        if isinstance(self.error, DocVaultError):
            return {"ok": False, "error": self.error.to_dict()}
        return {
            "ok": False,
            "error": {
                "error_type": type(self.error).__name__,
                "message": str(self.error),
            },
        }

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


# Type alias for Result
Result = Ok[T] | Err[T]


# =============================================================================
# CONSTRUCTORS AND COLLECTORS
# =============================================================================


def try_result(
    f: Callable[[], T],
    error_mapper: Callable[[Exception], Exception] | None = None,
) -> Result[T]:
    """
    Execute a zero-argument callable and wrap the outcome.

    Exceptions become ``Err``; ``error_mapper`` (if given) converts them into
    a typed DocVaultError first.

    Examples:
        >>> import json
        >>> try_result(lambda: json.loads('{"version": 1}')).unwrap()
        {'version': 1}
        >>> try_result(lambda: json.loads("{")).is_err()
        True
    """
    try:
        return Ok(f())
    except Exception as e:
        if error_mapper is not None:
            return Err(error_mapper(e))
        return Err(e)


def collect_results(results: list[Result[T]]) -> Result[list[T]]:
    """Collect a list of Results into a Result of list, stopping at the first Err."""
    values = []
    for result in results:
        match result:
            case Ok(value):
                values.append(value)
            case Err(error):
                return Err(error)
    return Ok(values)


def partition_results(
    results: list[Result[T]],
) -> tuple[list[T], list[Exception]]:
    """Split results into (values, errors)."""
    values = []
    errors = []
    for result in results:
        match result:
            case Ok(value):
                values.append(value)
            case Err(error):
                errors.append(error)
    return values, errors


__all__ = [
    "Result",
    "Ok",
    "Err",
    "try_result",
    "collect_results",
    "partition_results",
]
