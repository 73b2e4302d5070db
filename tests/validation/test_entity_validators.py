"""Tests for the per-entity field validators."""

from docvault.validation.entities import (
    IdentityValidator,
    MessageValidator,
    ProjectValidator,
    ServerProfileValidator,
)


class TestIdentityValidator:
    def test_valid(self, make_identity):
        assert IdentityValidator().validate(make_identity()).is_success()

    def test_blank_key_and_bad_fingerprint(self, make_identity):
        identity = make_identity(encrypted_private_key=" ", public_key_fingerprint="zz")
        result = IdentityValidator().validate(identity)
        fields = {e.field for e in result.errors}
        assert {"encryptedPrivateKey", "publicKeyFingerprint"} <= fields

    def test_whitespace_description(self, make_identity):
        result = IdentityValidator().validate(make_identity(description="   "))
        assert "Description cannot be only whitespace" in result.error_messages()


class TestServerProfileValidator:
    def test_valid(self, make_profile):
        assert ServerProfileValidator().validate(make_profile("id-1")).is_success()

    def test_ports_must_differ(self, make_profile):
        result = ServerProfileValidator().validate(make_profile("id-1", port=8080, wrapper_port=8080))
        assert result.error_messages() == ["SSH port and wrapper port must be different"]
        assert result.errors[0].field == "wrapperPort"

    def test_identity_required(self, make_profile):
        result = ServerProfileValidator().validate(make_profile(""))
        assert result.field_errors("sshIdentityId")[0].message == "SSH identity must be selected"


class TestProjectValidator:
    def test_valid(self, make_project):
        project = make_project("p-1", repository_url="git@github.com:org/repo.git")
        assert ProjectValidator().validate(project).is_success()

    def test_relative_path(self, make_project):
        result = ProjectValidator().validate(make_project("p-1", project_path="relative/dir"))
        assert "Project path must be absolute" in result.error_messages()

    def test_absolute_scripts_folder(self, make_project):
        result = ProjectValidator().validate(make_project("p-1", scripts_folder="/abs"))
        assert "Scripts folder must be a relative path" in result.error_messages()

    def test_repository_url_scheme(self, make_project):
        result = ProjectValidator().validate(make_project("p-1", repository_url="http://x"))
        assert result.error_messages() == ["Repository URL must start with https:// or git@"]


class TestMessageValidator:
    def test_blank_content(self, make_message):
        result = MessageValidator().validate(make_message(content="  "))
        assert result.error_messages() == ["Message content cannot be blank"]

    def test_too_many_metadata_entries(self, make_message):
        metadata = {f"k{i}": "v" for i in range(21)}
        result = MessageValidator().validate(make_message(metadata=metadata))
        assert result.has_code("METADATA_TOO_MANY_ENTRIES")

    def test_blank_metadata_key(self, make_message):
        result = MessageValidator().validate(make_message(metadata={" ": "v"}))
        assert result.error_messages() == ["Metadata key cannot be blank"]
