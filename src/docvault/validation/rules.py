"""
Composable validation rules.

A rule is any callable ``T -> ValidationResult``. Rules are plain functions
(or closures returned by the factories below) and combine with "and"
semantics: every rule runs and every failure is collected. A rule wrapped
with ``conditional`` only runs when its guard holds.

Architecture:
    ::

        RuleBuilder[T]
          .add(rule)                       ─┐
          .check(predicate, message, field) ├─► build() → Rule[T]
          .when(guard, rule)               ─┘     (runs all, collects all)

        Factories (field name first, JSON spelling):
          not_blank  length  pattern  int_range  port  positive_timestamp
          size  not_none  url  hostname  unix_username  ssh_fingerprint
          entity_name

        Lifting:
          on_field("hostname", hostname("hostname"))  Rule[str] → Rule[Profile]
          optional(rule)                              skip when value is None

Examples:
    >>> name_rule = entity_name("name")
    >>> name_rule("Dev box").is_success()
    True
    >>> name_rule("").error_messages()[0]
    'name cannot be blank'

    Builder with a conditional rule:

    >>> check_port = (
    ...     RuleBuilder()
    ...     .add(int_range("port", 1, 65535))
    ...     .when(lambda p: p != 22, lambda p: from_condition(p >= 1024, "non-default port below 1024", "port"))
    ...     .build()
    ... )
    >>> check_port(22).is_success(), check_port(80).is_failure()
    (True, True)

Tags:
    validation, rules, combinators, builder, docvault

Doc-Types:
    - API Reference
    - Validation Guide
"""

from __future__ import annotations

import re
from collections.abc import Sized
from typing import Any, Callable, Generic, TypeVar

from docvault.validation.result import (
    SUCCESS,
    ValidationErrorType,
    ValidationResult,
    combine,
    failure,
    from_condition,
)

T = TypeVar("T")

Rule = Callable[[T], ValidationResult]

ENTITY_NAME_RE = re.compile(r"^[a-zA-Z0-9\s\-_()\[\]{}]+$")
HOSTNAME_RE = re.compile(r"^[a-zA-Z0-9.-]+$")
USERNAME_RE = re.compile(r"^[a-zA-Z0-9_.-]+$")
FINGERPRINT_HEX_RE = re.compile(r"^[A-Fa-f0-9:]+$")
FINGERPRINT_SHA256_RE = re.compile(r"^SHA256:[A-Za-z0-9+/=]+$")
URL_RE = re.compile(r"^https?://\S+$")

MAX_ENTITY_NAME_LENGTH = 100
MAX_HOSTNAME_LENGTH = 253
MAX_USERNAME_LENGTH = 32
MIN_PORT = 1
MAX_PORT = 65535


# =============================================================================
# COMBINATORS
# =============================================================================


def rule(
    predicate: Callable[[T], bool],
    message: str,
    field: str | None = None,
    *,
    type: ValidationErrorType = ValidationErrorType.FIELD,
    code: str | None = None,
) -> Rule[T]:
    """Rule from a predicate and the error to report when it is false."""

    def check(value: T) -> ValidationResult:
        return from_condition(predicate(value), message, field, type=type, code=code)

    return check


def conditional(guard: Callable[[T], bool], inner: Rule[T]) -> Rule[T]:
    """Run ``inner`` only when ``guard(value)`` is true."""

    def check(value: T) -> ValidationResult:
        return inner(value) if guard(value) else SUCCESS

    return check


def all_of(*rules: Rule[T]) -> Rule[T]:
    """Run every rule and collect every failure."""

    def check(value: T) -> ValidationResult:
        return combine([r(value) for r in rules])

    return check


def optional(inner: Rule[T]) -> Rule[T | None]:
    """Skip ``inner`` when the value is None."""
    return conditional(lambda value: value is not None, inner)


def on_field(attr: str, inner: Rule[Any]) -> Rule[Any]:
    """Lift a value rule onto an object attribute."""

    def check(obj: Any) -> ValidationResult:
        return inner(getattr(obj, attr))

    return check


class RuleBuilder(Generic[T]):
    """Accumulates rules and builds one composite rule with "and" semantics."""

    def __init__(self) -> None:
        self._rules: list[Rule[T]] = []

    def add(self, *rules: Rule[T]) -> RuleBuilder[T]:
        self._rules.extend(rules)
        return self

    def check(
        self,
        predicate: Callable[[T], bool],
        message: str,
        field: str | None = None,
        **kwargs: Any,
    ) -> RuleBuilder[T]:
        self._rules.append(rule(predicate, message, field, **kwargs))
        return self

    def when(self, guard: Callable[[T], bool], inner: Rule[T]) -> RuleBuilder[T]:
        self._rules.append(conditional(guard, inner))
        return self

    def build(self) -> Rule[T]:
        return all_of(*self._rules)

    def __len__(self) -> int:
        return len(self._rules)


# =============================================================================
# COMMON RULES
# =============================================================================


def not_blank(field: str, message: str | None = None) -> Rule[str]:
    return rule(lambda v: bool(v and v.strip()), message or f"{field} cannot be blank", field)


def length(field: str, min: int = 0, max: int | None = None) -> Rule[str]:
    def check(value: str) -> ValidationResult:
        if len(value) < min:
            return failure(f"{field} must be at least {min} characters", field)
        if max is not None and len(value) > max:
            return failure(f"{field} must be at most {max} characters", field)
        return SUCCESS

    return check


def pattern(field: str, regex: re.Pattern[str], message: str | None = None) -> Rule[str]:
    return rule(
        lambda v: regex.fullmatch(v) is not None,
        message or f"{field} contains invalid characters",
        field,
    )


def int_range(field: str, min: int | None = None, max: int | None = None) -> Rule[int]:
    def check(value: int) -> ValidationResult:
        if min is not None and value < min:
            return failure(f"{field} must be at least {min}", field)
        if max is not None and value > max:
            return failure(f"{field} must be at most {max}", field)
        return SUCCESS

    return check


def port(field: str) -> Rule[int]:
    return int_range(field, MIN_PORT, MAX_PORT)


def positive_timestamp(field: str) -> Rule[int]:
    return rule(lambda v: v > 0, f"{field} timestamp must be positive", field)


def size(field: str, min: int = 0, max: int | None = None) -> Rule[Sized]:
    def check(value: Sized) -> ValidationResult:
        count = len(value)
        if count < min:
            return failure(f"{field} must contain at least {min} items", field)
        if max is not None and count > max:
            return failure(f"{field} must contain at most {max} items", field)
        return SUCCESS

    return check


def not_none(field: str) -> Rule[Any]:
    return rule(lambda v: v is not None, f"{field} cannot be null", field)


def url(field: str) -> Rule[str]:
    return pattern(field, URL_RE, f"{field} must be a valid URL starting with http:// or https://")


def hostname(field: str) -> Rule[str]:
    return all_of(
        not_blank(field, "Hostname cannot be blank"),
        length(field, max=MAX_HOSTNAME_LENGTH),
        pattern(
            field,
            HOSTNAME_RE,
            "Hostname must be a valid domain name or IP address. "
            "Only letters, numbers, dots, and hyphens are allowed",
        ),
        rule(
            lambda v: not v.startswith(".") and not v.endswith(".") and ".." not in v,
            "Hostname cannot start or end with a dot or contain consecutive dots",
            field,
        ),
    )


def unix_username(field: str) -> Rule[str]:
    return all_of(
        not_blank(field, "Username cannot be blank"),
        length(field, max=MAX_USERNAME_LENGTH),
        pattern(
            field,
            USERNAME_RE,
            "Username contains invalid characters. "
            "Only letters, numbers, underscores, dots, and hyphens are allowed",
        ),
    )


def ssh_fingerprint(field: str) -> Rule[str]:
    def well_formed(value: str) -> bool:
        return bool(FINGERPRINT_HEX_RE.fullmatch(value) or FINGERPRINT_SHA256_RE.fullmatch(value))

    return all_of(
        not_blank(field, "Public key fingerprint cannot be blank"),
        rule(
            well_formed,
            "Public key fingerprint must be in hex:colon format (e.g. 'ab:cd:ef:12') "
            "or SHA256:base64 format",
            field,
        ),
    )


def entity_name(field: str, label: str | None = None) -> Rule[str]:
    """Name rule shared by identities, server profiles and projects."""
    subject = label or field
    return all_of(
        not_blank(field, f"{subject} cannot be blank"),
        length(field, max=MAX_ENTITY_NAME_LENGTH),
        pattern(
            field,
            ENTITY_NAME_RE,
            f"{subject} contains invalid characters. Only letters, numbers, spaces, "
            "hyphens, underscores, and brackets are allowed",
        ),
        rule(
            lambda v: v == v.strip(),
            f"{subject} cannot start or end with spaces",
            field,
        ),
    )


__all__ = [
    "Rule",
    "RuleBuilder",
    "rule",
    "conditional",
    "all_of",
    "optional",
    "on_field",
    "not_blank",
    "length",
    "pattern",
    "int_range",
    "port",
    "positive_timestamp",
    "size",
    "not_none",
    "url",
    "hostname",
    "unix_username",
    "ssh_fingerprint",
    "entity_name",
    "ENTITY_NAME_RE",
    "FINGERPRINT_HEX_RE",
]
