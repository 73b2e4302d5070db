"""Tests for transition tables, cross-field rules and advisories."""

from docvault.core.timestamps import DAY_MS
from docvault.models import ConnectionStatus, Document, ProjectStatus
from docvault.validation.business import (
    BusinessRuleValidator,
    validate_connection_transition,
    validate_project_transition,
)

from conftest import BASE_TS


class TestTransitions:
    def test_allowed(self):
        assert validate_project_transition(ProjectStatus.INACTIVE, ProjectStatus.CONNECTING).is_success()
        assert validate_connection_transition(
            ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED
        ).is_success()

    def test_rejected(self):
        result = validate_project_transition(ProjectStatus.INACTIVE, ProjectStatus.ACTIVE)
        assert result.error_messages() == ["Invalid status transition from INACTIVE to ACTIVE"]
        assert result.has_code("INVALID_STATUS_TRANSITION")

    def test_never_connected_cannot_jump(self):
        result = validate_connection_transition(
            ConnectionStatus.NEVER_CONNECTED, ConnectionStatus.CONNECTED
        )
        assert result.is_failure()


class TestEntityRules:
    def test_error_project_needs_message(self, make_project):
        result = BusinessRuleValidator().validate_project(make_project("p", status=ProjectStatus.ERROR))
        assert result.has_code("ERROR_PROJECT_NO_MESSAGE")

    def test_error_message_only_in_error(self, make_project):
        result = BusinessRuleValidator().validate_project(make_project("p", last_error="boom"))
        assert result.has_code("STATUS_ERROR_INCONSISTENCY")

    def test_timestamp_order(self, make_identity):
        identity = make_identity(last_used_at=BASE_TS - 1)
        assert BusinessRuleValidator().validate_identity(identity).has_code("INVALID_TIMESTAMP_ORDER")

    def test_never_connected_with_timestamp(self, make_profile):
        profile = make_profile("i", last_connected_at=BASE_TS + 1)
        result = BusinessRuleValidator().validate_server_profile(profile)
        assert result.has_code("STATUS_TIMESTAMP_INCONSISTENCY")


class TestUpdates:
    def test_server_change_while_active(self, make_project):
        before = make_project("p1", status=ProjectStatus.ACTIVE)
        after = before.model_copy(update={"server_profile_id": "p2"})
        result = BusinessRuleValidator().validate_project_update(before, after)
        assert result.has_code("SERVER_CHANGE_WHILE_ACTIVE")

    def test_created_at_is_immutable(self, make_project):
        before = make_project("p1")
        after = before.model_copy(update={"created_at": BASE_TS + 5})
        result = BusinessRuleValidator().validate_project_update(before, after)
        assert result.has_code("CREATION_TIMESTAMP_CHANGE_NOT_ALLOWED")

    def test_last_connected_cannot_go_backwards(self, make_profile):
        before = make_profile("i", status=ConnectionStatus.CONNECTED, last_connected_at=BASE_TS + 100)
        after = before.model_copy(update={"last_connected_at": BASE_TS + 50})
        result = BusinessRuleValidator().validate_server_profile_update(before, after)
        assert result.has_code("LAST_CONNECTED_TIMESTAMP_BACKWARDS")


class TestDocumentRules:
    def test_duplicate_fingerprint(self, make_identity):
        doc = Document(identities=[
            make_identity(public_key_fingerprint="ab:cd"),
            make_identity(public_key_fingerprint="ab:cd"),
        ])
        assert BusinessRuleValidator().validate(doc).has_code("DUPLICATE_SSH_FINGERPRINT")

    def test_duplicate_host_and_port(self, make_identity, make_profile):
        identity = make_identity()
        doc = Document(
            identities=[identity],
            server_profiles=[
                make_profile(identity.id, hostname="same.host"),
                make_profile(identity.id, hostname="same.host"),
            ],
        )
        assert BusinessRuleValidator().validate(doc).has_code("DUPLICATE_HOSTNAME_PORT")


class TestAdvisories:
    def test_unused_and_stale(self, make_identity):
        identity = make_identity(last_used_at=BASE_TS)
        doc = Document(identities=[identity])
        result = BusinessRuleValidator().advisories(doc, now=BASE_TS + 31 * DAY_MS)
        assert result.has_code("UNUSED_SSH_IDENTITY")
        assert result.has_code("STALE_SSH_IDENTITY")

    def test_overused(self, make_identity, make_profile):
        identity = make_identity(last_used_at=BASE_TS)
        profiles = [make_profile(identity.id) for _ in range(11)]
        doc = Document(identities=[identity], server_profiles=profiles)
        result = BusinessRuleValidator().advisories(doc, now=BASE_TS)
        assert result.error_messages() == [
            f"SSH identity '{identity.name}' is used by 11 server profiles"
        ]
