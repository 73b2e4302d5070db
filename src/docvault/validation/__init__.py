"""docvault validation engine.

Architecture::

    result.py       ValidationResult (Success | Failure), errors, builder
    rules.py        Pure ``T -> ValidationResult`` rules and combinators
    async_rules.py  parallel / sequential / timeout / retry / memoize
    entities.py     Field validators per entity type
    business.py     Transition tables, cross-field rules, advisories
    document.py     DocumentValidator (every stored invariant)

Nothing in this package raises for invalid data.
"""

from docvault.validation.async_rules import (
    VALIDATION_RETRY_EXHAUSTED,
    VALIDATION_TIMEOUT,
    AsyncRule,
    AsyncWorkflow,
    memoize,
    parallel,
    sequential,
    to_async,
    with_fallback,
    with_retry,
    with_timeout,
)
from docvault.validation.business import (
    CONNECTION_TRANSITIONS,
    PROJECT_TRANSITIONS,
    BusinessRuleValidator,
    validate_connection_transition,
    validate_project_transition,
)
from docvault.validation.document import DocumentValidator
from docvault.validation.entities import (
    IdentityValidator,
    MessageValidator,
    ProjectValidator,
    ServerProfileValidator,
)
from docvault.validation.result import (
    SUCCESS,
    Failure,
    Success,
    ValidationError,
    ValidationErrorType,
    ValidationResult,
    ValidationResultBuilder,
    combine,
    failure,
    from_callable,
    from_condition,
    from_optional,
    success,
)
from docvault.validation.rules import Rule, RuleBuilder, conditional, on_field, optional

__all__ = [
    # result
    "SUCCESS",
    "Failure",
    "Success",
    "ValidationError",
    "ValidationErrorType",
    "ValidationResult",
    "ValidationResultBuilder",
    "combine",
    "failure",
    "from_callable",
    "from_condition",
    "from_optional",
    "success",
    # rules
    "Rule",
    "RuleBuilder",
    "conditional",
    "on_field",
    "optional",
    # async
    "AsyncRule",
    "AsyncWorkflow",
    "VALIDATION_RETRY_EXHAUSTED",
    "VALIDATION_TIMEOUT",
    "memoize",
    "parallel",
    "sequential",
    "to_async",
    "with_fallback",
    "with_retry",
    "with_timeout",
    # validators
    "BusinessRuleValidator",
    "CONNECTION_TRANSITIONS",
    "PROJECT_TRANSITIONS",
    "DocumentValidator",
    "IdentityValidator",
    "MessageValidator",
    "ProjectValidator",
    "ServerProfileValidator",
    "validate_connection_transition",
    "validate_project_transition",
]
