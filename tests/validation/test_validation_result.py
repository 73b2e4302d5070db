"""Tests for ValidationResult, the builder and the helper constructors."""

from docvault.validation.result import (
    SUCCESS,
    Failure,
    ValidationError,
    ValidationErrorType,
    ValidationResultBuilder,
    combine,
    failure,
    from_callable,
    from_condition,
    from_optional,
)


class TestCombination:
    def test_success_and_success(self):
        assert (SUCCESS & SUCCESS).is_success()

    def test_errors_accumulate_in_order(self):
        result = failure("a", "x") & SUCCESS & failure("b", "y")
        assert result.is_failure()
        assert result.error_messages() == ["a", "b"]
        assert result.first_error_message() == "a"

    def test_combine_accepts_iterable(self):
        result = combine(failure(m) for m in ["one", "two"])
        assert result.error_messages() == ["one", "two"]

    def test_combine_empty_is_success(self):
        assert combine([]).is_success()


class TestFailure:
    def test_field_errors_and_codes(self):
        result = failure("bad port", "port", code="PORT") & failure(
            "missing", "sshIdentityId", type=ValidationErrorType.RELATIONSHIP
        )
        assert [e.message for e in result.field_errors("port")] == ["bad port"]
        assert result.has_code("PORT")
        assert len(result.errors_of_type(ValidationErrorType.RELATIONSHIP)) == 1

    def test_failure_from_empty_iterable_is_success(self):
        assert failure([]).is_success()

    def test_inspect_err_sees_errors(self):
        seen = []
        failure("x").inspect_err(seen.extend)
        assert [e.message for e in seen] == ["x"]

    def test_success_inspect_runs(self):
        seen = []
        SUCCESS.inspect(lambda: seen.append(True))
        assert seen == [True]


class TestBuilder:
    def test_typed_errors(self):
        result = (
            ValidationResultBuilder()
            .add_field_error("name", "Name is required")
            .add_business_error("Duplicate", "name", "DUP")
            .add_relationship_error("Missing", "sshIdentityId", "MISSING")
            .build()
        )
        assert isinstance(result, Failure)
        types = [e.type for e in result.errors]
        assert types == [
            ValidationErrorType.FIELD,
            ValidationErrorType.BUSINESS,
            ValidationErrorType.RELATIONSHIP,
        ]

    def test_empty_builder_is_success(self):
        builder = ValidationResultBuilder()
        assert not builder.has_errors()
        assert builder.build() is SUCCESS

    def test_add_result(self):
        builder = ValidationResultBuilder().add_result(failure("a")).add_result(SUCCESS)
        assert builder.error_count() == 1


class TestHelpers:
    def test_from_condition(self):
        assert from_condition(True, "never").is_success()
        assert from_condition(False, "shown", "f").field_errors("f")[0].message == "shown"

    def test_from_optional(self):
        assert from_optional(0, "missing").is_success()
        assert from_optional(None, "missing").is_failure()

    def test_from_callable_value_error(self):
        def bad():
            raise ValueError("not a number")

        result = from_callable(bad, "port")
        assert result.error_messages() == ["not a number"]

    def test_from_callable_other_error_is_internal(self):
        def bad():
            raise KeyError("k")

        result = from_callable(bad)
        assert result.errors[0].type == ValidationErrorType.INTERNAL

    def test_error_factories(self):
        error = ValidationError.relationship("Missing", "sshIdentityId", "MISSING_SSH_IDENTITY")
        assert error.to_dict() == {
            "message": "Missing",
            "type": "relationship",
            "field": "sshIdentityId",
            "code": "MISSING_SSH_IDENTITY",
        }
