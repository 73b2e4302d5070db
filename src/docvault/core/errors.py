"""
Structured error types for docvault.

Provides the typed failure taxonomy shared by the persistence core, the
migration coordinator and the entity repositories. Lower-level failures
(I/O, JSON decoding, pydantic validation) are caught at the layer that
understands them and re-raised as one of these types, so callers only ever
handle a small, closed set of kinds.

Every DocVaultError carries:
- **Category:** Which subsystem the failure belongs to
- **Kind:** Short taxonomy name suitable for showing to a user
- **Retryable:** Whether repeating the same call can succeed
- **Context:** Document version, entity, backup and migration metadata
- **Cause:** The chained underlying exception for diagnostics

Manifesto:
    - **Closed taxonomy:** Callers match on a handful of kinds, not on
      whatever an encoder or file system happened to raise
    - **Messages for humans, causes for logs:** ``message`` is safe to show;
      the raw error lives on ``cause``
    - **Validation is data:** ValidationFailure carries the full
      ValidationResult, not just the first message

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────────┐
        │                         DocVaultError                             │
        │            (category, retryable, context, cause, kind)            │
        ├──────────────────────────────────────────────────────────────────┤
        │                                                                   │
        │  ValidationFailure     CorruptedDataError     SaveFailedError     │
        │  (VALIDATION)          (CORRUPTION)           (STORAGE)           │
        │                                                                   │
        │  InitializationError   StorageError ── BackupError                │
        │  (STORAGE)             (STORAGE)                                  │
        │                                                                   │
        │  MigrationError (MIGRATION)                                       │
        │    ├── MigrationNotFoundError      ├── InvalidVersionError        │
        │    ├── MigrationValidationError    ├── MigrationExecutionError    │
        │    ├── MigrationCancelledError     ├── RollbackNotSupportedError  │
        │    └── RollbackFailedError                                        │
        │                                                                   │
        │  RepositoryError (REPOSITORY)                                     │
        │    ├── DuplicateNameError                                         │
        │    ├── EntityNotFoundError                                        │
        │    └── ConstraintViolationError                                   │
        └──────────────────────────────────────────────────────────────────┘

Examples:
    Wrapping a lower-level failure:

    >>> try:
    ...     raise OSError("disk full")
    ... except OSError as e:
    ...     error = SaveFailedError("Failed to write document", cause=e)
    >>> error.kind
    'SaveFailed'
    >>> error.category.value
    'STORAGE'

    Adding context fluently:

    >>> error = EntityNotFoundError("Project 'p1' not found")
    >>> error.with_context(entity_type="project", entity_id="p1").context.entity_id
    'p1'

Guardrails:
    ❌ DON'T: Let json.JSONDecodeError or OSError escape the persistence layer
    ✅ DO: Wrap them as CorruptedDataError / SaveFailedError with cause=

    ❌ DON'T: Raise for an ordinary validation failure inside a validator
    ✅ DO: Return a Failure; raise ValidationFailure only at the write boundary

Tags:
    error-handling, exception-hierarchy, taxonomy, error-context, docvault

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from docvault.validation.result import ValidationResult


class ErrorCategory(str, Enum):
    """
    Subsystem a failure belongs to.

    Used for log routing and for the coarse grouping shown next to a kind in
    user-facing messages.

    Attributes:
        VALIDATION: Field, business or relationship violation
        STORAGE: Blob store I/O, serialization on write, backups
        CORRUPTION: Stored bytes cannot be decoded into a document
        MIGRATION: Path resolution, step execution, rollback
        REPOSITORY: Entity-level CRUD constraint failures
        CONFIG: Invalid settings
        INTERNAL: Bugs, unexpected state
        UNKNOWN: Uncategorized errors
    """

    VALIDATION = "VALIDATION"
    STORAGE = "STORAGE"
    CORRUPTION = "CORRUPTION"
    MIGRATION = "MIGRATION"
    REPOSITORY = "REPOSITORY"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only non-None fields are emitted by ``to_dict()``; anything that does not
    have a dedicated field goes into ``metadata``.

    Examples:
        >>> ErrorContext(document_version=2, backup_filename="b.backup").to_dict()
        {'document_version': 2, 'backup_filename': 'b.backup'}
    """

    document_version: int | None = None
    entity_type: str | None = None
    entity_id: str | None = None
    backup_filename: str | None = None
    migration: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["document_version", "entity_type", "entity_id",
                    "backup_filename", "migration"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class DocVaultError(Exception):
    """
    Base exception for every docvault failure.

    Subclasses set ``default_category``, ``default_retryable`` and
    ``kind_name`` so that raising sites only pass a message (and usually a
    cause).

    Examples:
        >>> error = DocVaultError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.to_dict()["error_type"]
        'DocVaultError'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False
    kind_name: str = "Internal"

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    @property
    def kind(self) -> str:
        """Short taxonomy name, e.g. ``MigrationNotFound``."""
        return self.kind_name

    def with_context(self, **kwargs: Any) -> DocVaultError:
        """
        Add context to this error (fluent API).

        Usage:
            raise EntityNotFoundError("missing").with_context(
                entity_type="project",
                entity_id=project_id,
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def user_message(self) -> str:
        """Human-readable message prefixed with the taxonomy kind."""
        return f"{self.kind}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "kind": self.kind,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# VALIDATION
# =============================================================================


class ValidationFailure(DocVaultError):
    """
    A document or entity failed validation at a write boundary.

    Never retryable - the data must change. ``result`` holds the complete
    Failure so callers can inspect every error, not just the first.
    """

    default_category = ErrorCategory.VALIDATION
    kind_name = "Validation"

    def __init__(
        self,
        message: str,
        *,
        result: ValidationResult | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.result = result

    @classmethod
    def from_result(cls, result: ValidationResult, prefix: str | None = None) -> ValidationFailure:
        """Build from a Failure, using its first message as the headline."""
        first = result.first_error_message() or "Validation failed"
        message = f"{prefix}: {first}" if prefix else first
        return cls(message, result=result)

    @property
    def errors(self) -> list[Any]:
        if self.result is None:
            return []
        return list(self.result.errors)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.result is not None:
            result["errors"] = [e.to_dict() for e in self.result.errors]
        return result


# =============================================================================
# STORAGE / CORRUPTION
# =============================================================================


class StorageError(DocVaultError):
    """Blob store failure (I/O, missing key, permissions)."""

    default_category = ErrorCategory.STORAGE
    kind_name = "Storage"


class CorruptedDataError(DocVaultError):
    """Stored bytes could not be decoded into a valid document."""

    default_category = ErrorCategory.CORRUPTION
    kind_name = "CorruptedData"


class SaveFailedError(StorageError):
    """Serialization or write failed; the cached document is unchanged."""

    kind_name = "SaveFailed"


class InitializationError(StorageError):
    """The store could not be brought up."""

    kind_name = "Initialization"


class BackupError(StorageError):
    """Creating, reading or restoring a backup failed."""

    kind_name = "Backup"


# =============================================================================
# MIGRATION
# =============================================================================


class MigrationError(DocVaultError):
    """Base for migration failures."""

    default_category = ErrorCategory.MIGRATION
    kind_name = "Migration"


class MigrationNotFoundError(MigrationError):
    """No registered path connects the two versions."""

    kind_name = "MigrationNotFound"

    def __init__(self, from_version: int, to_version: int, message: str | None = None):
        self.from_version = from_version
        self.to_version = to_version
        super().__init__(
            message or f"No migration path found from version {from_version} to {to_version}"
        )


class InvalidVersionError(MigrationError):
    """A migration was handed a document at the wrong version."""

    kind_name = "InvalidVersion"


class MigrationValidationError(MigrationError):
    """A step refused its input or produced output that failed its check."""

    kind_name = "Validation"


class MigrationExecutionError(MigrationError):
    """A step raised while transforming the document."""

    kind_name = "MigrationExecutionFailed"


class MigrationCancelledError(MigrationExecutionError):
    """The run was cancelled between steps."""

    kind_name = "MigrationCancelled"


class RollbackNotSupportedError(MigrationError):
    """The migration cannot be reversed."""

    kind_name = "RollbackNotSupported"


class RollbackFailedError(MigrationError):
    """Restoring a backup snapshot failed."""

    kind_name = "RollbackFailed"


# =============================================================================
# REPOSITORY
# =============================================================================


class RepositoryError(DocVaultError):
    """Base for entity repository failures."""

    default_category = ErrorCategory.REPOSITORY
    kind_name = "Repository"


class DuplicateNameError(RepositoryError):
    """An entity with the same name (or id) already exists."""

    kind_name = "DuplicateName"


class EntityNotFoundError(RepositoryError):
    """The referenced entity does not exist."""

    kind_name = "EntityNotFound"


class ConstraintViolationError(RepositoryError):
    """A foreign key, ceiling or in-use constraint would be broken."""

    kind_name = "ConstraintViolation"


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, DocVaultError):
        return error.category
    # UnicodeDecodeError is a ValueError; check it first
    if isinstance(error, UnicodeDecodeError):
        return ErrorCategory.CORRUPTION
    if isinstance(error, ValueError):
        return ErrorCategory.VALIDATION
    if isinstance(error, OSError):
        return ErrorCategory.STORAGE
    if isinstance(error, (KeyError, AttributeError, TypeError)):
        return ErrorCategory.INTERNAL
    return ErrorCategory.UNKNOWN


def as_docvault_error(
    error: Exception,
    fallback: type[DocVaultError] = MigrationExecutionError,
    message: str | None = None,
) -> DocVaultError:
    """Return ``error`` unchanged if it is already typed, else wrap it."""
    if isinstance(error, DocVaultError):
        return error
    return fallback(message or str(error) or type(error).__name__, cause=error)


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "DocVaultError",
    # Validation
    "ValidationFailure",
    # Storage
    "StorageError",
    "CorruptedDataError",
    "SaveFailedError",
    "InitializationError",
    "BackupError",
    # Migration
    "MigrationError",
    "MigrationNotFoundError",
    "InvalidVersionError",
    "MigrationValidationError",
    "MigrationExecutionError",
    "MigrationCancelledError",
    "RollbackNotSupportedError",
    "RollbackFailedError",
    # Repository
    "RepositoryError",
    "DuplicateNameError",
    "EntityNotFoundError",
    "ConstraintViolationError",
    # Utilities
    "categorize_error",
    "as_docvault_error",
]
