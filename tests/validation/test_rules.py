"""Tests for composable synchronous rules."""

import pytest

from docvault.validation.rules import (
    RuleBuilder,
    all_of,
    conditional,
    entity_name,
    hostname,
    length,
    not_blank,
    on_field,
    optional,
    port,
    rule,
    size,
    ssh_fingerprint,
    unix_username,
    url,
)


class TestCombinators:
    def test_rule_from_predicate(self):
        positive = rule(lambda v: v > 0, "must be positive", "n", code="POS")
        assert positive(1).is_success()
        assert positive(0).has_code("POS")

    def test_all_of_collects_every_failure(self):
        check = all_of(not_blank("name"), length("name", min=3))
        assert check(" ").error_messages() == [
            "name cannot be blank",
            "name must be at least 3 characters",
        ]

    def test_conditional_skips(self):
        check = conditional(lambda v: v.startswith("/"), length("path", max=3))
        assert check("relative/path/that/is/long").is_success()
        assert check("/long/path").is_failure()

    def test_optional_skips_none(self):
        assert optional(not_blank("description"))(None).is_success()
        assert optional(not_blank("description"))("  ").is_failure()

    def test_on_field(self):
        class Box:
            port = 70000

        assert on_field("port", port("port"))(Box()).error_messages() == ["port must be at most 65535"]

    def test_rule_builder(self):
        builder = (
            RuleBuilder()
            .add(not_blank("name"))
            .check(lambda v: v != "root", "reserved name", "name")
            .when(lambda v: v.isdigit(), rule(lambda v: False, "digits only", "name"))
        )
        assert len(builder) == 3
        validate = builder.build()
        assert validate("alice").is_success()
        assert validate("root").error_messages() == ["reserved name"]
        assert validate("123").error_messages() == ["digits only"]


class TestCommonRules:
    @pytest.mark.parametrize("value", ["dev.example.com", "10.0.0.1", "localhost"])
    def test_hostname_valid(self, value):
        assert hostname("hostname")(value).is_success()

    @pytest.mark.parametrize("value", ["", "bad host", ".leading", "a..b", "x" * 254])
    def test_hostname_invalid(self, value):
        assert hostname("hostname")(value).is_failure()

    @pytest.mark.parametrize("value", ["ab:cd:ef:12", "SHA256:uNiVztksCsDhcc0u9e8BujQXVUpKZIDTMczCvj3tD2s="])
    def test_fingerprint_valid(self, value):
        assert ssh_fingerprint("publicKeyFingerprint")(value).is_success()

    def test_fingerprint_invalid(self):
        assert ssh_fingerprint("publicKeyFingerprint")("not a fingerprint").is_failure()

    def test_username(self):
        assert unix_username("username")("deploy_bot").is_success()
        assert unix_username("username")("x" * 33).is_failure()

    def test_entity_name(self):
        check = entity_name("name", "Project name")
        assert check("My Project (v2)").is_success()
        assert check(" padded ").error_messages() == ["Project name cannot start or end with spaces"]
        assert check("semi;colon").is_failure()

    def test_url(self):
        assert url("repositoryUrl")("https://example.com/repo").is_success()
        assert url("repositoryUrl")("ftp://example.com").is_failure()

    def test_size(self):
        assert size("tags", max=2)([1, 2, 3]).error_messages() == ["tags must contain at most 2 items"]
