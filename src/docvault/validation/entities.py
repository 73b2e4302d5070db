"""
Field-level validators for each entity type.

Each validator is a small class whose ``validate(entity)`` runs one composite
rule built from :mod:`docvault.validation.rules`. Errors name the JSON
(camelCase) field so they can be mapped straight back onto a form or an
imported file.

Examples:
    >>> from docvault.models import ServerProfile
    >>> profile = ServerProfile(name="Dev", hostname="dev.local", port=22,
    ...                         username="ops", ssh_identity_id="id1", wrapper_port=22)
    >>> ServerProfileValidator().validate(profile).error_messages()
    ['SSH port and wrapper port must be different']
"""

from __future__ import annotations

import re

from docvault.models.document import MAX_MESSAGE_METADATA_ENTRIES
from docvault.models.entities import Identity, Message, Project, ServerProfile
from docvault.validation.result import SUCCESS, ValidationResult, combine, failure
from docvault.validation.rules import (
    Rule,
    RuleBuilder,
    entity_name,
    hostname,
    length,
    not_blank,
    on_field,
    optional,
    pattern,
    port,
    positive_timestamp,
    rule,
    ssh_fingerprint,
    unix_username,
)

MAX_DESCRIPTION_LENGTH = 500
MIN_ENCRYPTED_KEY_LENGTH = 10
MAX_ENCRYPTED_KEY_LENGTH = 10_000
MAX_PROJECT_PATH_LENGTH = 255
MAX_SCRIPTS_FOLDER_LENGTH = 50
MAX_REPOSITORY_URL_LENGTH = 500
MAX_SESSION_ID_LENGTH = 100
MAX_LAST_ERROR_LENGTH = 1000
MAX_MESSAGE_CONTENT_LENGTH = 50_000
MAX_METADATA_KEY_LENGTH = 100
MAX_METADATA_VALUE_LENGTH = 1000

PROJECT_PATH_RE = re.compile(r"^/[a-zA-Z0-9/_.-]+$")
SCRIPTS_FOLDER_RE = re.compile(r"^[a-zA-Z0-9_.-]+$")


class IdentityValidator:
    """Field rules for :class:`Identity`."""

    def __init__(self) -> None:
        self._rule: Rule[Identity] = (
            RuleBuilder()
            .add(
                on_field("id", not_blank("id")),
                on_field("name", entity_name("name", "SSH identity name")),
                on_field("encrypted_private_key", not_blank(
                    "encryptedPrivateKey", "Encrypted private key cannot be blank")),
                on_field("encrypted_private_key", length(
                    "encryptedPrivateKey", MIN_ENCRYPTED_KEY_LENGTH, MAX_ENCRYPTED_KEY_LENGTH)),
                on_field("public_key_fingerprint", ssh_fingerprint("publicKeyFingerprint")),
                on_field("description", optional(length("description", max=MAX_DESCRIPTION_LENGTH))),
                on_field("created_at", positive_timestamp("createdAt")),
                on_field("last_used_at", optional(positive_timestamp("lastUsedAt"))),
            )
            .check(
                lambda i: i.description is None or bool(i.description.strip()),
                "Description cannot be only whitespace",
                "description",
            )
            .build()
        )

    def validate(self, identity: Identity) -> ValidationResult:
        return self._rule(identity)


class ServerProfileValidator:
    """Field rules for :class:`ServerProfile`."""

    def __init__(self) -> None:
        self._rule: Rule[ServerProfile] = (
            RuleBuilder()
            .add(
                on_field("id", not_blank("id")),
                on_field("name", entity_name("name", "Server profile name")),
                on_field("hostname", hostname("hostname")),
                on_field("port", port("port")),
                on_field("username", unix_username("username")),
                on_field("ssh_identity_id", not_blank(
                    "sshIdentityId", "SSH identity must be selected")),
                on_field("wrapper_port", port("wrapperPort")),
                on_field("created_at", positive_timestamp("createdAt")),
                on_field("last_connected_at", optional(positive_timestamp("lastConnectedAt"))),
            )
            .check(
                lambda p: p.port != p.wrapper_port,
                "SSH port and wrapper port must be different",
                "wrapperPort",
            )
            .build()
        )

    def validate(self, profile: ServerProfile) -> ValidationResult:
        return self._rule(profile)


def _repository_url(value: str) -> ValidationResult:
    if not value.strip():
        return failure("Repository URL cannot be blank if provided", "repositoryUrl")
    if not (value.startswith("https://") or value.startswith("git@")):
        return failure("Repository URL must start with https:// or git@", "repositoryUrl")
    return length("repositoryUrl", max=MAX_REPOSITORY_URL_LENGTH)(value)


class ProjectValidator:
    """Field rules for :class:`Project`."""

    def __init__(self) -> None:
        self._rule: Rule[Project] = (
            RuleBuilder()
            .add(
                on_field("id", not_blank("id")),
                on_field("name", entity_name("name", "Project name")),
                on_field("server_profile_id", not_blank(
                    "serverProfileId", "Server profile must be selected")),
                on_field("project_path", not_blank("projectPath", "Project path cannot be blank")),
                on_field("project_path", length("projectPath", max=MAX_PROJECT_PATH_LENGTH)),
                on_field("project_path", rule(
                    lambda v: v.startswith("/"), "Project path must be absolute", "projectPath")),
                on_field("project_path", pattern(
                    "projectPath", PROJECT_PATH_RE, "Project path contains invalid characters")),
                on_field("scripts_folder", not_blank(
                    "scriptsFolder", "Scripts folder cannot be blank")),
                on_field("scripts_folder", length("scriptsFolder", max=MAX_SCRIPTS_FOLDER_LENGTH)),
                on_field("scripts_folder", rule(
                    lambda v: not v.startswith("/"),
                    "Scripts folder must be a relative path",
                    "scriptsFolder",
                )),
                on_field("scripts_folder", pattern(
                    "scriptsFolder", SCRIPTS_FOLDER_RE, "Scripts folder contains invalid characters")),
                on_field("repository_url", optional(_repository_url)),
                on_field("session_id", optional(not_blank(
                    "sessionId", "Session ID cannot be blank if provided"))),
                on_field("session_id", optional(length("sessionId", max=MAX_SESSION_ID_LENGTH))),
                on_field("last_error", optional(length("lastError", max=MAX_LAST_ERROR_LENGTH))),
                on_field("created_at", positive_timestamp("createdAt")),
                on_field("last_active_at", optional(positive_timestamp("lastActiveAt"))),
            )
            .build()
        )

    def validate(self, project: Project) -> ValidationResult:
        return self._rule(project)


class MessageValidator:
    """Field rules for :class:`Message`, including its metadata map."""

    def __init__(self) -> None:
        self._rule: Rule[Message] = (
            RuleBuilder()
            .add(
                on_field("id", not_blank("id")),
                on_field("content", not_blank("content", "Message content cannot be blank")),
                on_field("content", length("content", max=MAX_MESSAGE_CONTENT_LENGTH)),
                on_field("timestamp", positive_timestamp("timestamp")),
                on_field("metadata", self._metadata),
            )
            .build()
        )

    @staticmethod
    def _metadata(metadata: dict[str, str]) -> ValidationResult:
        if len(metadata) > MAX_MESSAGE_METADATA_ENTRIES:
            return failure(
                f"Message metadata cannot have more than {MAX_MESSAGE_METADATA_ENTRIES} entries",
                "metadata",
                code="METADATA_TOO_MANY_ENTRIES",
            )
        results = []
        for key, value in metadata.items():
            if not key.strip():
                results.append(failure("Metadata key cannot be blank", "metadata"))
            elif len(key) > MAX_METADATA_KEY_LENGTH:
                results.append(failure(f"Metadata key '{key[:20]}' is too long", "metadata"))
            if len(value) > MAX_METADATA_VALUE_LENGTH:
                results.append(failure(f"Metadata value for '{key[:20]}' is too long", "metadata"))
        return combine(results) if results else SUCCESS

    def validate(self, message: Message) -> ValidationResult:
        return self._rule(message)


__all__ = [
    "IdentityValidator",
    "ServerProfileValidator",
    "ProjectValidator",
    "MessageValidator",
]
