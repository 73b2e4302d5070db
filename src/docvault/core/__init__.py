"""docvault core -- cross-cutting primitives used by every other layer.

Architecture::

    Layer 1 -- Type System & Errors
        errors.py          Structured error hierarchy (DocVaultError + kinds)
        result.py          Result[T] envelope (Ok / Err / try_result)
        timestamps.py      ULID generation + epoch-millisecond helpers

    Layer 2 -- Cross-Cutting Concerns
        logging.py         Structured logging (structlog)
        settings.py        DocVaultSettings (pydantic-settings, DOCVAULT_ prefix)
        cache.py           InMemoryCache with TTL + LRU (memoized validators)
        retry.py           ConstantBackoff + RetryContext (retried validators)
        broadcast.py       Replay-latest Broadcaster (document + progress feeds)

Tags:
    docvault, foundation, errors, logging, settings

Doc-Types:
    package-overview, module-index
"""

from docvault.core.broadcast import Broadcaster
from docvault.core.cache import InMemoryCache
from docvault.core.errors import (
    BackupError,
    ConstraintViolationError,
    CorruptedDataError,
    DocVaultError,
    DuplicateNameError,
    EntityNotFoundError,
    ErrorCategory,
    ErrorContext,
    InitializationError,
    InvalidVersionError,
    MigrationCancelledError,
    MigrationError,
    MigrationExecutionError,
    MigrationNotFoundError,
    MigrationValidationError,
    RepositoryError,
    RollbackFailedError,
    RollbackNotSupportedError,
    SaveFailedError,
    StorageError,
    ValidationFailure,
)
from docvault.core.logging import configure_logging, get_logger
from docvault.core.result import Err, Ok, Result, try_result
from docvault.core.settings import DocVaultSettings, get_settings
from docvault.core.timestamps import generate_ulid, now_ms

__all__ = [
    # broadcast
    "Broadcaster",
    # cache
    "InMemoryCache",
    # errors
    "BackupError",
    "ConstraintViolationError",
    "CorruptedDataError",
    "DocVaultError",
    "DuplicateNameError",
    "EntityNotFoundError",
    "ErrorCategory",
    "ErrorContext",
    "InitializationError",
    "InvalidVersionError",
    "MigrationCancelledError",
    "MigrationError",
    "MigrationExecutionError",
    "MigrationNotFoundError",
    "MigrationValidationError",
    "RepositoryError",
    "RollbackFailedError",
    "RollbackNotSupportedError",
    "SaveFailedError",
    "StorageError",
    "ValidationFailure",
    # logging
    "configure_logging",
    "get_logger",
    # result
    "Err",
    "Ok",
    "Result",
    "try_result",
    # settings
    "DocVaultSettings",
    "get_settings",
    # timestamps
    "generate_ulid",
    "now_ms",
]
