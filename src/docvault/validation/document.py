"""
Whole-document validation.

``DocumentValidator.validate(doc)`` is the gate every stored document passes:
on load, on save, on import and after each migration step. It collects
every error from six independent sections:

    fields          every entity through its field validator
    relationships   sshIdentityId / serverProfileId / message keys resolve
    uniqueness      ids, names (case-insensitive), project paths per server
    limits          collection ceilings
    messages        per-project timestamp order
    business        cross-field and cross-entity consistency

The sections are pure and independent, so ``validate_async`` runs them
through the ``parallel`` combinator under a deadline.

Examples:
    >>> from docvault.models import Document, ServerProfile
    >>> profile = ServerProfile(name="Dev", hostname="dev.local", username="ops",
    ...                         ssh_identity_id="x")
    >>> result = DocumentValidator().validate(Document(server_profiles=[profile]))
    >>> [(e.type.value, e.field) for e in result.errors]
    [('relationship', 'sshIdentityId')]

Tags:
    validation, document, relationships, uniqueness, docvault
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Iterable

from docvault.models.document import (
    INITIAL_VERSION,
    MAX_IDENTITIES,
    MAX_MESSAGES_PER_PROJECT,
    MAX_PROJECTS,
    MAX_SERVER_PROFILES,
    MAX_TOTAL_MESSAGES,
    SYSTEM_MESSAGES_KEY,
    Document,
)
from docvault.validation.async_rules import parallel, to_async, with_timeout
from docvault.validation.business import BusinessRuleValidator
from docvault.validation.entities import (
    IdentityValidator,
    MessageValidator,
    ProjectValidator,
    ServerProfileValidator,
)
from docvault.validation.result import ValidationResult, ValidationResultBuilder, combine

Section = Callable[[Document], ValidationResult]


def _duplicates(values: Iterable[str]) -> list[str]:
    return [value for value, count in Counter(values).items() if count > 1]


def _name_key(name: str) -> str:
    return name.strip().lower()


class DocumentValidator:
    """Validates a whole :class:`Document` against every stored invariant."""

    def __init__(self, business: BusinessRuleValidator | None = None) -> None:
        self.identities = IdentityValidator()
        self.server_profiles = ServerProfileValidator()
        self.projects = ProjectValidator()
        self.messages = MessageValidator()
        self.business = business or BusinessRuleValidator()

    @property
    def sections(self) -> list[Section]:
        return [
            self.validate_fields,
            self.validate_relationships,
            self.validate_uniqueness,
            self.validate_limits,
            self.validate_message_order,
            self.business.validate,
        ]

    def validate(self, doc: Document) -> ValidationResult:
        """Run every section and collect every error."""
        return combine(section(doc) for section in self.sections)

    async def validate_async(self, doc: Document, timeout_seconds: float | None = None) -> ValidationResult:
        """Run the sections concurrently under a deadline."""
        rule = with_timeout(parallel(*[to_async(s) for s in self.sections]), timeout_seconds)
        return await rule(doc)

    # ── Sections ──────────────────────────────────────────────────────────

    def validate_fields(self, doc: Document) -> ValidationResult:
        builder = ValidationResultBuilder()
        if doc.version < INITIAL_VERSION:
            builder.add_field_error(
                "version", f"Document version must be at least {INITIAL_VERSION}", "INVALID_VERSION"
            )
        for identity in doc.identities:
            builder.add_result(self.identities.validate(identity))
        for profile in doc.server_profiles:
            builder.add_result(self.server_profiles.validate(profile))
        for project in doc.projects:
            builder.add_result(self.projects.validate(project))
        for thread in doc.messages.values():
            for message in thread:
                builder.add_result(self.messages.validate(message))
        return builder.build()

    def validate_relationships(self, doc: Document) -> ValidationResult:
        builder = ValidationResultBuilder()
        identity_ids = {i.id for i in doc.identities}
        profile_ids = {p.id for p in doc.server_profiles}
        project_ids = {p.id for p in doc.projects}

        for profile in doc.server_profiles:
            if profile.ssh_identity_id not in identity_ids:
                builder.add_relationship_error(
                    f"Server profile '{profile.name}' references non-existent "
                    f"SSH identity '{profile.ssh_identity_id}'",
                    "sshIdentityId",
                    "MISSING_SSH_IDENTITY",
                )
        for project in doc.projects:
            if project.server_profile_id not in profile_ids:
                builder.add_relationship_error(
                    f"Project '{project.name}' references non-existent "
                    f"server profile '{project.server_profile_id}'",
                    "serverProfileId",
                    "MISSING_SERVER_PROFILE",
                )
        for key in doc.messages:
            if key != SYSTEM_MESSAGES_KEY and key not in project_ids:
                builder.add_relationship_error(
                    f"Messages reference non-existent project '{key}'",
                    "projectId",
                    "MISSING_PROJECT",
                )
        return builder.build()

    def validate_uniqueness(self, doc: Document) -> ValidationResult:
        builder = ValidationResultBuilder()

        for label, items in (
            ("SSH identity", doc.identities),
            ("server profile", doc.server_profiles),
            ("project", doc.projects),
        ):
            for entity_id in _duplicates(item.id for item in items):
                builder.add_business_error(
                    f"Duplicate {label} id: {entity_id}", "id", "DUPLICATE_ENTITY_IDS"
                )

        for name in _duplicates(_name_key(i.name) for i in doc.identities):
            builder.add_business_error(
                f"Duplicate SSH identity name: {name}", "name", "DUPLICATE_SSH_IDENTITY_NAME"
            )
        for name in _duplicates(_name_key(p.name) for p in doc.server_profiles):
            builder.add_business_error(
                f"Duplicate server profile name: {name}", "name", "DUPLICATE_SERVER_PROFILE_NAME"
            )
        for name in _duplicates(_name_key(p.name) for p in doc.projects):
            builder.add_business_error(
                f"Duplicate project name: {name}", "name", "DUPLICATE_PROJECT_NAME"
            )

        for path in _duplicates(
            f"{p.server_profile_id}:{p.project_path.rstrip('/')}" for p in doc.projects
        ):
            builder.add_business_error(
                f"Multiple projects use the same path on one server: {path.split(':', 1)[1]}",
                "projectPath",
                "DUPLICATE_PROJECT_PATH_ON_SERVER",
            )

        for key, thread in doc.messages.items():
            for message_id in _duplicates(m.id for m in thread):
                builder.add_business_error(
                    f"Duplicate message id in '{key}': {message_id}", "id", "DUPLICATE_ENTITY_IDS"
                )
        return builder.build()

    def validate_limits(self, doc: Document) -> ValidationResult:
        builder = ValidationResultBuilder()
        if len(doc.identities) > MAX_IDENTITIES:
            builder.add_business_error(
                f"Maximum {MAX_IDENTITIES} SSH identities allowed",
                "identities",
                "SSH_IDENTITY_LIMIT_EXCEEDED",
            )
        if len(doc.server_profiles) > MAX_SERVER_PROFILES:
            builder.add_business_error(
                f"Maximum {MAX_SERVER_PROFILES} server profiles allowed",
                "serverProfiles",
                "SERVER_PROFILE_LIMIT_EXCEEDED",
            )
        if len(doc.projects) > MAX_PROJECTS:
            builder.add_business_error(
                f"Maximum {MAX_PROJECTS} projects allowed", "projects", "PROJECT_LIMIT_EXCEEDED"
            )
        for key, thread in doc.messages.items():
            if len(thread) > MAX_MESSAGES_PER_PROJECT:
                builder.add_business_error(
                    f"Maximum {MAX_MESSAGES_PER_PROJECT} messages allowed for '{key}'",
                    "messages",
                    "PROJECT_MESSAGE_LIMIT_EXCEEDED",
                )
        if doc.total_messages() > MAX_TOTAL_MESSAGES:
            builder.add_business_error(
                f"Maximum {MAX_TOTAL_MESSAGES} total messages allowed",
                "messages",
                "MESSAGE_LIMIT_EXCEEDED",
            )
        return builder.build()

    def validate_message_order(self, doc: Document) -> ValidationResult:
        builder = ValidationResultBuilder()
        for key, thread in doc.messages.items():
            if any(a.timestamp > b.timestamp for a, b in zip(thread, thread[1:])):
                builder.add_business_error(
                    f"Messages for '{key}' are not in timestamp order",
                    "timestamp",
                    "MESSAGES_OUT_OF_ORDER",
                )
        return builder.build()


__all__ = [
    "DocumentValidator",
    "Section",
]
