"""
Validation results: aggregated, non-throwing outcomes.

Every validator in docvault returns a ``ValidationResult``: either the
``Success`` singleton or a ``Failure`` carrying one or more
``ValidationError`` records. Validators never raise for bad data; the write
boundary (PersistenceCore, repositories) converts a Failure into a
``ValidationFailure`` exception when it refuses a change.

Manifesto:
    - **Collect, don't stop:** ``a & b`` keeps the errors of both sides, so a
      user sees every problem with a form at once
    - **Typed errors:** each error says which field, which kind of rule
      (field, business, relationship, ...) and optionally a stable code
    - **Immutable:** results are frozen and safe to cache (see ``memoize``)

Architecture:
    ::

        ValidationResult = Success | Failure
        ┌──────────────────────────┬───────────────────────────────────┐
        │ Success                  │ Failure(errors)                   │
        ├──────────────────────────┼───────────────────────────────────┤
        │ errors == ()             │ errors: tuple[ValidationError]    │
        │ a & b → the other side   │ a & b → errors concatenated       │
        └──────────────────────────┴───────────────────────────────────┘

        ValidationError(message, field, type, code)
        type ∈ field | business | relationship | database | custom | internal

Examples:
    >>> from docvault.validation.result import failure, success, combine
    >>> result = success() & failure("Name cannot be blank", "name")
    >>> result.is_failure()
    True
    >>> result.first_error_message()
    'Name cannot be blank'

    Building up errors:

    >>> result = (
    ...     ValidationResultBuilder()
    ...     .add_field_error("port", "port must be at most 65535")
    ...     .build()
    ... )
    >>> result.field_errors("port")[0].type.value
    'field'

Guardrails:
    ❌ DON'T: Raise from inside a rule to signal invalid data
    ✅ DO: Return ``failure(...)``; ``from_callable`` converts stray exceptions

    ❌ DON'T: Compare ``result == Success()`` to test for success
    ✅ DO: Use ``result.is_success()`` or pattern matching

Tags:
    validation, result-pattern, error-aggregation, docvault

Doc-Types:
    - API Reference
    - Validation Guide
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable


class ValidationErrorType(str, Enum):
    """Kind of rule that produced an error."""

    FIELD = "field"
    BUSINESS = "business"
    RELATIONSHIP = "relationship"
    DATABASE = "database"
    CUSTOM = "custom"
    INTERNAL = "internal"


@dataclass(frozen=True, slots=True)
class ValidationError:
    """
    A single validation error.

    Attributes:
        message: Human-readable message
        field: JSON field name the error refers to (None for entity-level)
        type: Kind of rule that failed
        code: Stable machine-readable code, e.g. ``MISSING_SSH_IDENTITY``
    """

    message: str
    field: str | None = None
    type: ValidationErrorType = ValidationErrorType.FIELD
    code: str | None = None

    @classmethod
    def field_error(cls, field: str, message: str, code: str | None = None) -> ValidationError:
        return cls(message, field, ValidationErrorType.FIELD, code)

    @classmethod
    def business(cls, message: str, field: str | None = None, code: str | None = None) -> ValidationError:
        return cls(message, field, ValidationErrorType.BUSINESS, code)

    @classmethod
    def relationship(cls, message: str, field: str | None = None, code: str | None = None) -> ValidationError:
        return cls(message, field, ValidationErrorType.RELATIONSHIP, code)

    @classmethod
    def database(cls, message: str, field: str | None = None, code: str | None = None) -> ValidationError:
        return cls(message, field, ValidationErrorType.DATABASE, code)

    @classmethod
    def custom(cls, message: str, field: str | None = None, code: str | None = None) -> ValidationError:
        return cls(message, field, ValidationErrorType.CUSTOM, code)

    @classmethod
    def internal(cls, message: str, field: str | None = None, code: str | None = None) -> ValidationError:
        return cls(message, field, ValidationErrorType.INTERNAL, code)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"message": self.message, "type": self.type.value}
        if self.field is not None:
            result["field"] = self.field
        if self.code is not None:
            result["code"] = self.code
        return result


# =============================================================================
# RESULT TYPES
# =============================================================================


@dataclass(frozen=True, slots=True)
class Success:
    """Validation passed."""

    @property
    def errors(self) -> tuple[ValidationError, ...]:
        return ()

    def is_success(self) -> bool:
        return True

    def is_failure(self) -> bool:
        return False

    def error_messages(self) -> list[str]:
        return []

    def first_error_message(self) -> str | None:
        return None

    def field_errors(self, field: str) -> list[ValidationError]:
        return []

    def inspect(self, f: Callable[[], None]) -> ValidationResult:
        """Call ``f`` for side effects, return self."""
        f()
        return self

    def inspect_err(self, f: Callable[[tuple[ValidationError, ...]], None]) -> ValidationResult:
        return self

    def __and__(self, other: ValidationResult) -> ValidationResult:
        return other

    def __repr__(self) -> str:
        return "Success()"


@dataclass(frozen=True, slots=True)
class Failure:
    """Validation failed with one or more errors."""

    errors: tuple[ValidationError, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not isinstance(self.errors, tuple):
            object.__setattr__(self, "errors", tuple(self.errors))

    @classmethod
    def of(cls, message: str, field: str | None = None, **kwargs: Any) -> Failure:
        """Single-error shortcut."""
        return cls((ValidationError(message, field, **kwargs),))

    def is_success(self) -> bool:
        return False

    def is_failure(self) -> bool:
        return True

    def error_messages(self) -> list[str]:
        return [e.message for e in self.errors]

    def first_error_message(self) -> str | None:
        return self.errors[0].message if self.errors else None

    def field_errors(self, field: str) -> list[ValidationError]:
        return [e for e in self.errors if e.field == field]

    def errors_of_type(self, error_type: ValidationErrorType) -> list[ValidationError]:
        return [e for e in self.errors if e.type == error_type]

    def has_code(self, code: str) -> bool:
        return any(e.code == code for e in self.errors)

    def inspect(self, f: Callable[[], None]) -> ValidationResult:
        return self

    def inspect_err(self, f: Callable[[tuple[ValidationError, ...]], None]) -> ValidationResult:
        """Call ``f`` with the errors for side effects, return self."""
        f(self.errors)
        return self

    def __and__(self, other: ValidationResult) -> ValidationResult:
        if isinstance(other, Failure):
            return Failure(self.errors + other.errors)
        return self

    def __repr__(self) -> str:
        return f"Failure({list(self.errors)!r})"


ValidationResult = Success | Failure

SUCCESS = Success()


# =============================================================================
# BUILDER
# =============================================================================


class ValidationResultBuilder:
    """Accumulates errors from many checks into one result.

    Every ``add_*`` method returns the builder so calls can be chained.
    """

    def __init__(self) -> None:
        self._errors: list[ValidationError] = []

    def add_error(self, error: ValidationError) -> ValidationResultBuilder:
        self._errors.append(error)
        return self

    def add_field_error(self, field: str, message: str, code: str | None = None) -> ValidationResultBuilder:
        return self.add_error(ValidationError.field_error(field, message, code))

    def add_business_error(
        self, message: str, field: str | None = None, code: str | None = None
    ) -> ValidationResultBuilder:
        return self.add_error(ValidationError.business(message, field, code))

    def add_relationship_error(
        self, message: str, field: str | None = None, code: str | None = None
    ) -> ValidationResultBuilder:
        return self.add_error(ValidationError.relationship(message, field, code))

    def add_database_error(
        self, message: str, field: str | None = None, code: str | None = None
    ) -> ValidationResultBuilder:
        return self.add_error(ValidationError.database(message, field, code))

    def add_custom_error(
        self, message: str, field: str | None = None, code: str | None = None
    ) -> ValidationResultBuilder:
        return self.add_error(ValidationError.custom(message, field, code))

    def add_internal_error(
        self, message: str, field: str | None = None, code: str | None = None
    ) -> ValidationResultBuilder:
        return self.add_error(ValidationError.internal(message, field, code))

    def add_result(self, result: ValidationResult) -> ValidationResultBuilder:
        """Merge another result's errors (no-op for Success)."""
        self._errors.extend(result.errors)
        return self

    def has_errors(self) -> bool:
        return bool(self._errors)

    def error_count(self) -> int:
        return len(self._errors)

    def build(self) -> ValidationResult:
        if not self._errors:
            return SUCCESS
        return Failure(tuple(self._errors))


# =============================================================================
# HELPERS
# =============================================================================


def success() -> ValidationResult:
    return SUCCESS


def failure(
    message: str | Iterable[ValidationError],
    field: str | None = None,
    *,
    type: ValidationErrorType = ValidationErrorType.FIELD,
    code: str | None = None,
) -> ValidationResult:
    """Failure with a single error, or from an iterable of errors."""
    if isinstance(message, str):
        return Failure((ValidationError(message, field, type, code),))
    errors = tuple(message)
    return Failure(errors) if errors else SUCCESS


def combine(*results: ValidationResult | Iterable[ValidationResult]) -> ValidationResult:
    """Fold results with ``&``; accepts varargs or a single iterable."""
    if len(results) == 1 and not isinstance(results[0], (Success, Failure)):
        items = list(results[0])
    else:
        items = list(results)

    combined: ValidationResult = SUCCESS
    for result in items:
        combined = combined & result
    return combined


def from_condition(condition: bool, message: str, field: str | None = None, **kwargs: Any) -> ValidationResult:
    """Success if ``condition`` holds, else a single-error Failure."""
    if condition:
        return SUCCESS
    return failure(message, field, **kwargs)


def from_optional(value: Any, message: str, field: str | None = None) -> ValidationResult:
    """Success unless ``value`` is None."""
    return from_condition(value is not None, message, field)


def from_callable(f: Callable[[], Any], field: str | None = None) -> ValidationResult:
    """Run ``f``; a ValueError becomes a field failure, anything else an internal one."""
    try:
        f()
    except ValueError as e:
        return failure(str(e) or "Validation failed", field)
    except Exception as e:
        return failure(
            f"Internal validation error: {e}",
            field,
            type=ValidationErrorType.INTERNAL,
        )
    return SUCCESS


__all__ = [
    "ValidationErrorType",
    "ValidationError",
    "Success",
    "Failure",
    "ValidationResult",
    "SUCCESS",
    "ValidationResultBuilder",
    "success",
    "failure",
    "combine",
    "from_condition",
    "from_optional",
    "from_callable",
]
