"""Tests for symbol naming and the name registry."""

import pytest

from wiregen.core.naming import NameRegistry, StructuralKey, safe_identifier, to_pascal_case, to_snake_case
from wiregen.errors import NamingError


class TestCaseConversion:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("method_a", "MethodA"),
            ("MethodA", "MethodA"),
            ("bad-request", "BadRequest"),
            ("result.view", "ResultView"),
            ("", ""),
        ],
        ids=["snake", "pascal", "kebab", "dotted", "empty"],
    )
    def test_to_pascal_case(self, text: str, expected: str) -> None:
        assert to_pascal_case(text) == expected

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("MethodARequestBody", "method_a_request_body"),
            ("BPayloadRequestBody", "b_payload_request_body"),
            ("HTTPServer", "http_server"),
            ("X-Count", "x_count"),
            ("already_snake", "already_snake"),
        ],
        ids=["single-letter-word", "leading-acronym", "acronym", "kebab", "snake"],
    )
    def test_to_snake_case(self, text: str, expected: str) -> None:
        assert to_snake_case(text) == expected


class TestSafeIdentifier:
    def test_keyword_gets_suffix(self) -> None:
        assert safe_identifier("class") == "class_"

    def test_leading_digit_is_prefixed(self) -> None:
        assert safe_identifier("2fa") == "f_2fa"

    def test_builtin_names_are_kept(self) -> None:
        """Builtins are legal attribute names on generated dataclasses."""
        assert safe_identifier("int") == "int"

    def test_empty_name(self) -> None:
        assert safe_identifier("") == "field_"


class TestNameRegistry:
    def test_reserve_returns_candidate_when_free(self) -> None:
        registry = NameRegistry()
        assert registry.reserve("Foo") == "Foo"
        assert "Foo" in registry

    def test_reserve_uses_disambiguator_first(self) -> None:
        registry = NameRegistry()
        registry.reserve("FooRequestBody")
        assert registry.reserve("FooRequestBody", "MethodA") == "FooRequestBodyMethodA"

    def test_reserve_falls_back_to_numeric_suffix(self) -> None:
        registry = NameRegistry()
        registry.reserve("Foo")
        registry.reserve("FooBar")
        assert registry.reserve("Foo", "Bar") == "FooBar2"
        assert registry.reserve("Foo") == "Foo2"

    def test_reserved_names_are_never_handed_out(self) -> None:
        registry = NameRegistry(reserved=["body"])
        assert registry.reserve("body") == "body2"

    def test_empty_candidate_is_rejected(self) -> None:
        with pytest.raises(NamingError):
            NameRegistry().reserve("")

    def test_lookup_or_reserve_reports_existing(self) -> None:
        """The second lookup of a structural key returns the first name and flags it."""
        registry = NameRegistry()
        key = StructuralKey("body", "BPayload", "request")
        first, first_exists = registry.lookup_or_reserve(key, "BPayloadRequestBody")
        second, second_exists = registry.lookup_or_reserve(key, "SomethingElse")
        assert (first, first_exists) == ("BPayloadRequestBody", False)
        assert (second, second_exists) == ("BPayloadRequestBody", True)
        assert registry.lookup(key) == "BPayloadRequestBody"

    def test_keys_differing_by_role_get_distinct_names(self) -> None:
        registry = NameRegistry()
        request, _ = registry.lookup_or_reserve(StructuralKey("body", "T", "request"), "TBody")
        response, _ = registry.lookup_or_reserve(StructuralKey("body", "T", "response"), "TBody")
        assert request != response
