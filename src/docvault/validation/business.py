"""
Business rules: cross-field consistency, status transitions and advisories.

Field validators answer "is this value well formed?"; the rules here answer
"does this combination make sense?". A status change is legal only if the
target is in the current state's row of the transition table. An illegal
change is reported as a ``business`` error, never raised.

Advisories (unused, overused or stale identities) are returned separately by
``advisories()`` as ``custom`` errors. They describe a document that is
valid but worth a look and never block a save.

Examples:
    >>> from docvault.models import ProjectStatus
    >>> validate_project_transition(ProjectStatus.INACTIVE, ProjectStatus.ACTIVE).first_error_message()
    'Invalid status transition from INACTIVE to ACTIVE'
    >>> validate_project_transition(ProjectStatus.INACTIVE, ProjectStatus.CONNECTING).is_success()
    True
"""

from __future__ import annotations

from collections import Counter
from enum import Enum
from typing import TypeVar

from docvault.core.timestamps import DAY_MS, now_ms
from docvault.models.document import Document
from docvault.models.entities import (
    STALE_AFTER_DAYS,
    ConnectionStatus,
    Identity,
    Project,
    ProjectStatus,
    ServerProfile,
)
from docvault.validation.result import (
    SUCCESS,
    ValidationErrorType,
    ValidationResult,
    ValidationResultBuilder,
    failure,
)

S = TypeVar("S", bound=Enum)

OVERUSED_IDENTITY_THRESHOLD = 10

# ── Transition tables: current state -> allowed next states ─────────────────

PROJECT_TRANSITIONS: dict[ProjectStatus, frozenset[ProjectStatus]] = {
    ProjectStatus.INACTIVE: frozenset({ProjectStatus.CONNECTING, ProjectStatus.INACTIVE}),
    ProjectStatus.CONNECTING: frozenset({
        ProjectStatus.ACTIVE,
        ProjectStatus.ERROR,
        ProjectStatus.DISCONNECTED,
        ProjectStatus.INACTIVE,
        ProjectStatus.CONNECTING,
    }),
    ProjectStatus.ACTIVE: frozenset({
        ProjectStatus.DISCONNECTED,
        ProjectStatus.ERROR,
        ProjectStatus.CONNECTING,
        ProjectStatus.ACTIVE,
    }),
    ProjectStatus.DISCONNECTED: frozenset({
        ProjectStatus.CONNECTING,
        ProjectStatus.INACTIVE,
        ProjectStatus.ERROR,
        ProjectStatus.DISCONNECTED,
    }),
    ProjectStatus.ERROR: frozenset({
        ProjectStatus.CONNECTING,
        ProjectStatus.INACTIVE,
        ProjectStatus.DISCONNECTED,
        ProjectStatus.ERROR,
    }),
}

CONNECTION_TRANSITIONS: dict[ConnectionStatus, frozenset[ConnectionStatus]] = {
    ConnectionStatus.NEVER_CONNECTED: frozenset({
        ConnectionStatus.CONNECTING,
        ConnectionStatus.NEVER_CONNECTED,
    }),
    ConnectionStatus.CONNECTING: frozenset({
        ConnectionStatus.CONNECTED,
        ConnectionStatus.ERROR,
        ConnectionStatus.DISCONNECTED,
        ConnectionStatus.CONNECTING,
    }),
    ConnectionStatus.CONNECTED: frozenset({
        ConnectionStatus.DISCONNECTED,
        ConnectionStatus.ERROR,
        ConnectionStatus.CONNECTING,
        ConnectionStatus.CONNECTED,
    }),
    ConnectionStatus.DISCONNECTED: frozenset({
        ConnectionStatus.CONNECTING,
        ConnectionStatus.CONNECTED,
        ConnectionStatus.ERROR,
        ConnectionStatus.DISCONNECTED,
    }),
    ConnectionStatus.ERROR: frozenset({
        ConnectionStatus.CONNECTING,
        ConnectionStatus.CONNECTED,
        ConnectionStatus.DISCONNECTED,
        ConnectionStatus.ERROR,
    }),
}


def validate_transition(
    table: dict[S, frozenset[S]],
    current: S,
    target: S,
    field: str = "status",
) -> ValidationResult:
    """Business error unless ``target`` is in ``table[current]``."""
    if target in table.get(current, frozenset()):
        return SUCCESS
    return failure(
        f"Invalid status transition from {current.value} to {target.value}",
        field,
        type=ValidationErrorType.BUSINESS,
        code="INVALID_STATUS_TRANSITION",
    )


def validate_project_transition(current: ProjectStatus, target: ProjectStatus) -> ValidationResult:
    return validate_transition(PROJECT_TRANSITIONS, current, target)


def validate_connection_transition(
    current: ConnectionStatus, target: ConnectionStatus
) -> ValidationResult:
    return validate_transition(CONNECTION_TRANSITIONS, current, target)


class BusinessRuleValidator:
    """Cross-field and cross-entity consistency rules."""

    # ── Per entity ────────────────────────────────────────────────────────

    def validate_identity(self, identity: Identity) -> ValidationResult:
        builder = ValidationResultBuilder()
        if identity.last_used_at is not None and identity.last_used_at < identity.created_at:
            builder.add_business_error(
                "Last used timestamp cannot be before creation timestamp",
                "lastUsedAt",
                "INVALID_TIMESTAMP_ORDER",
            )
        return builder.build()

    def validate_server_profile(self, profile: ServerProfile) -> ValidationResult:
        builder = ValidationResultBuilder()
        if profile.last_connected_at is not None:
            if profile.last_connected_at < profile.created_at:
                builder.add_business_error(
                    "Last connected timestamp cannot be before creation timestamp",
                    "lastConnectedAt",
                    "INVALID_TIMESTAMP_ORDER",
                )
            if profile.status is ConnectionStatus.NEVER_CONNECTED:
                builder.add_business_error(
                    "Status is NEVER_CONNECTED but lastConnectedAt is set",
                    "status",
                    "STATUS_TIMESTAMP_INCONSISTENCY",
                )
        return builder.build()

    def validate_project(self, project: Project) -> ValidationResult:
        builder = ValidationResultBuilder()
        if project.last_active_at is not None and project.last_active_at < project.created_at:
            builder.add_business_error(
                "Last active timestamp cannot be before creation timestamp",
                "lastActiveAt",
                "INVALID_TIMESTAMP_ORDER",
            )
        if project.status is ProjectStatus.ERROR and not project.last_error:
            builder.add_business_error(
                "Project in ERROR status must have an error message",
                "lastError",
                "ERROR_PROJECT_NO_MESSAGE",
            )
        if project.status is not ProjectStatus.ERROR and project.last_error:
            builder.add_business_error(
                "Only projects in ERROR status can carry an error message",
                "lastError",
                "STATUS_ERROR_INCONSISTENCY",
            )
        return builder.build()

    # ── Updates ───────────────────────────────────────────────────────────

    def validate_project_update(self, before: Project, after: Project) -> ValidationResult:
        builder = ValidationResultBuilder().add_result(self.validate_project(after))
        if before.id != after.id:
            builder.add_business_error(
                "Project ID cannot be changed during update", "id", "ID_CHANGE_NOT_ALLOWED"
            )
        if before.created_at != after.created_at:
            builder.add_business_error(
                "Created timestamp cannot be changed during update",
                "createdAt",
                "CREATION_TIMESTAMP_CHANGE_NOT_ALLOWED",
            )
        builder.add_result(validate_project_transition(before.status, after.status))
        if before.server_profile_id != after.server_profile_id and after.status is ProjectStatus.ACTIVE:
            builder.add_business_error(
                "Cannot change server profile while project is active",
                "serverProfileId",
                "SERVER_CHANGE_WHILE_ACTIVE",
            )
        return builder.build()

    def validate_server_profile_update(
        self, before: ServerProfile, after: ServerProfile
    ) -> ValidationResult:
        builder = ValidationResultBuilder().add_result(self.validate_server_profile(after))
        if before.id != after.id:
            builder.add_business_error(
                "Server profile ID cannot be changed during update", "id", "ID_CHANGE_NOT_ALLOWED"
            )
        if (
            before.last_connected_at is not None
            and after.last_connected_at is not None
            and after.last_connected_at < before.last_connected_at
        ):
            builder.add_business_error(
                "Last connected timestamp cannot go backwards",
                "lastConnectedAt",
                "LAST_CONNECTED_TIMESTAMP_BACKWARDS",
            )
        builder.add_result(validate_connection_transition(before.status, after.status))
        return builder.build()

    # ── Whole document ────────────────────────────────────────────────────

    def validate(self, doc: Document) -> ValidationResult:
        """Every per-entity rule plus the cross-entity duplicate checks."""
        builder = ValidationResultBuilder()
        for identity in doc.identities:
            builder.add_result(self.validate_identity(identity))
        for profile in doc.server_profiles:
            builder.add_result(self.validate_server_profile(profile))
        for project in doc.projects:
            builder.add_result(self.validate_project(project))

        fingerprints = Counter(i.public_key_fingerprint for i in doc.identities)
        for fingerprint, count in fingerprints.items():
            if count > 1:
                builder.add_business_error(
                    f"Duplicate public key fingerprint: {fingerprint}",
                    "publicKeyFingerprint",
                    "DUPLICATE_SSH_FINGERPRINT",
                )

        host_keys = Counter(p.host_key for p in doc.server_profiles)
        for host_key, count in host_keys.items():
            if count > 1:
                builder.add_business_error(
                    f"Multiple server profiles point to {host_key}",
                    "hostname",
                    "DUPLICATE_HOSTNAME_PORT",
                )
        return builder.build()

    def advisories(self, doc: Document, now: int | None = None) -> ValidationResult:
        """Non-blocking observations about identity usage."""
        current = now if now is not None else now_ms()
        usage = Counter(p.ssh_identity_id for p in doc.server_profiles)
        builder = ValidationResultBuilder()

        for identity in doc.identities:
            used_by = usage.get(identity.id, 0)
            if used_by == 0:
                builder.add_custom_error(
                    f"SSH identity '{identity.name}' is not used by any server profile",
                    "identities",
                    "UNUSED_SSH_IDENTITY",
                )
            elif used_by > OVERUSED_IDENTITY_THRESHOLD:
                builder.add_custom_error(
                    f"SSH identity '{identity.name}' is used by {used_by} server profiles",
                    "identities",
                    "OVERUSED_SSH_IDENTITY",
                )
            if identity.is_stale(current):
                days = (current - identity.last_used_at) // DAY_MS
                builder.add_custom_error(
                    f"SSH identity '{identity.name}' has not been used for {days} days "
                    f"(more than {STALE_AFTER_DAYS})",
                    "identities",
                    "STALE_SSH_IDENTITY",
                )
        return builder.build()


__all__ = [
    "PROJECT_TRANSITIONS",
    "CONNECTION_TRANSITIONS",
    "OVERUSED_IDENTITY_THRESHOLD",
    "BusinessRuleValidator",
    "validate_transition",
    "validate_project_transition",
    "validate_connection_transition",
]
