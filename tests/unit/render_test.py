"""Tests for the rendered modules, imported and exercised."""

import ast
from collections.abc import Callable
from types import ModuleType
from typing import Any

import pytest

from wiregen.config import Settings
from wiregen.core.generate import ServiceArtifacts
from wiregen.models import Design
from wiregen.render import module_filename, render_service
from wiregen.runtime import ContractViolation, MultiError

Generate = Callable[[Design, str], ServiceArtifacts]
Load = Callable[[ServiceArtifacts], ModuleType]


def test_module_filename() -> None:
    assert module_filename("ServiceMixedPayloadInBody") == "service_mixed_payload_in_body_server_types.py"


class TestSource:
    def test_header_and_imports(self, mixed_payload_design: Design, artifacts_for: Generate, settings: Settings) -> None:
        source = render_service(artifacts_for(mixed_payload_design, "ServiceMixedPayloadInBody"), settings)
        lines = source.splitlines()
        assert lines[0] == "# Code generated by wiregen, DO NOT EDIT."
        assert "from __future__ import annotations" in lines
        assert "import dataclasses" in lines
        assert "from typing import Any" in lines
        assert "import wiregen.runtime as rt" in lines
        ast.parse(source)

    def test_runtime_module_is_configurable(self, mixed_payload_design: Design, artifacts_for: Generate) -> None:
        settings = Settings(runtime_module="myapp.wire")
        source = render_service(artifacts_for(mixed_payload_design, "ServiceMixedPayloadInBody"), settings)
        assert "import myapp.wire as rt" in source

    def test_field_tags(self, mixed_payload_design: Design, artifacts_for: Generate, settings: Settings) -> None:
        source = render_service(artifacts_for(mixed_payload_design, "ServiceMixedPayloadInBody"), settings)
        assert (
            'dup_obj: BPayloadRequestBody | None = dataclasses.field(default=None, metadata={"form": '
            '"dup_obj,omitempty", "json": "dup_obj,omitempty", "xml": "dup_obj,omitempty"})'
        ) in source

    def test_sections_in_order(self, result_design: Design, artifacts_for: Generate, settings: Settings) -> None:
        source = render_service(artifacts_for(result_design, "ServiceResults"), settings)
        positions = [
            source.index("class ResultType:"),
            source.index("class MethodResultTypeResponseBody:"),
            source.index("RtCollectionResponseBody: TypeAlias"),
            source.index("def new_method_result_type_response_body("),
            source.index("def marshal_rt_to_rt_response_body("),
        ]
        assert positions == sorted(positions)
        ast.parse(source)

    def test_generated_modules_parse(
        self,
        validate_design: Design,
        error_design: Design,
        custom_names_design: Design,
        optional_cycle_design: Design,
        artifacts_for: Generate,
        settings: Settings,
    ) -> None:
        for design in (validate_design, error_design, custom_names_design, optional_cycle_design):
            for service in design.services:
                ast.parse(render_service(artifacts_for(design, service.name), settings))


class TestMixedPayloadModule:
    @pytest.fixture
    def module(self, mixed_payload_design: Design, artifacts_for: Generate, load_generated: Load) -> ModuleType:
        return load_generated(artifacts_for(mixed_payload_design, "ServiceMixedPayloadInBody"))

    def test_valid_body_round_trips(self, module: ModuleType) -> None:
        body = module.MethodARequestBody(
            array=[1.5],
            map={1: "x"},
            object=module.BPayloadRequestBody(int=3, bytes=b"raw"),
        )
        assert module.validate_method_a_request_body(body) is None
        payload = module.new_method_a_a_payload(body)
        assert payload == module.APayload(
            any=None,
            array=[1.5],
            map={1: "x"},
            object=module.BPayload(int=3, bytes=b"raw"),
            dup_obj=None,
        )

    def test_reports_every_missing_field(self, module: ModuleType) -> None:
        err = module.validate_method_a_request_body(module.MethodARequestBody())
        assert isinstance(err, MultiError)
        assert [e.field for e in err] == ["body.array", "body.object"]
        assert err.status == 400

    def test_nested_errors_carry_their_path(self, module: ModuleType) -> None:
        body = module.MethodARequestBody(
            array=[],
            object=module.BPayloadRequestBody(),
            dup_obj=module.BPayloadRequestBody(),
        )
        err = module.validate_method_a_request_body(body)
        assert [e.field for e in err] == ["body.object.int", "body.dup_obj.int"]

    def test_custom_root_path(self, module: ModuleType) -> None:
        err = module.validate_b_payload_request_body(module.BPayloadRequestBody(), "payload")
        assert [e.field for e in err] == ["payload.int"]


class TestValidateModule:
    @pytest.fixture
    def module(self, validate_design: Design, artifacts_for: Generate, load_generated: Load) -> ModuleType:
        return load_generated(artifacts_for(validate_design, "ServiceBodyValidate"))

    def test_every_violation_is_reported(self, module: ModuleType) -> None:
        body = module.MethodBodyValidateRequestBody(
            name="ABC", kind="c", count=0, created="yesterday", tags=["ok", "toolong"]
        )
        err = module.validate_method_body_validate_request_body(body)
        assert [(e.code, e.field) for e in err] == [
            ("invalid_pattern", "body.name"),
            ("invalid_value", "body.kind"),
            ("invalid_range", "body.count"),
            ("invalid_format", "body.created"),
            ("invalid_length", "body.tags[1]"),
        ]

    def test_valid_body(self, module: ModuleType) -> None:
        body = module.MethodBodyValidateRequestBody(
            name="abc", kind="a", count=10, created="2024-01-01T00:00:00Z", tags=["ok", None]
        )
        assert module.validate_method_body_validate_request_body(body) is None

    def test_empty_collection_violates_min_length(self, module: ModuleType) -> None:
        body = module.MethodBodyValidateRequestBody(name="abc", kind="a", tags=[])
        (error,) = module.validate_method_body_validate_request_body(body)
        assert error.code == "invalid_length"
        assert error.field == "body.tags"

    def test_constructor_combines_body_and_parameters(self, module: ModuleType) -> None:
        body = module.MethodBodyValidateRequestBody(name="abc", kind="a")
        payload = module.new_method_body_validate_method_body_validate_payload(body, "search", 7)
        assert payload.name == "abc"
        assert payload.q == "search"
        assert payload.h == 7
        assert payload.tags is None

    def test_defaults_apply_when_absent(self, module: ModuleType) -> None:
        payload = module.new_method_defaults_method_defaults_payload(module.MethodDefaultsRequestBody(), None)
        assert (payload.limit, payload.page) == (20, 1)
        payload = module.new_method_defaults_method_defaults_payload(module.MethodDefaultsRequestBody(limit=5), 2)
        assert (payload.limit, payload.page) == (5, 2)


class TestResultModule:
    @pytest.fixture
    def module(self, result_design: Design, artifacts_for: Generate, load_generated: Load) -> ModuleType:
        return load_generated(artifacts_for(result_design, "ServiceResults"))

    def test_builds_nested_response(self, module: ModuleType) -> None:
        res = module.ResultType(name="n", items=[module.Rt(x="a"), None])
        body = module.new_method_result_type_response_body(res)
        assert body.name == "n"
        assert body.items == [module.RtResponseBody(x="a"), None]
        assert body.count is None

    def test_missing_required_value_is_a_contract_violation(self, module: ModuleType) -> None:
        with pytest.raises(ContractViolation):
            module.new_method_result_type_response_body(module.ResultType(name=None))

    def test_view_response(self, module: ModuleType) -> None:
        body = module.new_method_result_with_result_view_response_body_tiny(module.ResultTypeView(name="n", count=3))
        assert body == module.MethodResultWithResultViewResponseBodyTiny(name="n")

    def test_alias_response(self, module: ModuleType) -> None:
        assert module.new_method_list_result_response_body(["a", "b"]) == ["a", "b"]
        assert module.new_method_list_result_response_body(None) is None


class TestOptionalCycleModule:
    def test_recursive_conversion(
        self, optional_cycle_design: Design, artifacts_for: Generate, load_generated: Load
    ) -> None:
        module = load_generated(artifacts_for(optional_cycle_design, "ServiceTree"))
        body = module.MethodTreeRequestBody(child=module.TreeRequestBody(child=module.TreeRequestBody(label="leaf")))
        tree = module.new_method_tree_tree(body)
        assert tree.child.child.label == "leaf"
        assert tree.child.child.child is None


class TestCollectionBodyModule:
    @pytest.fixture
    def module(self, collection_body_design: Design, artifacts_for: Generate, load_generated: Load) -> ModuleType:
        return load_generated(artifacts_for(collection_body_design, "ServiceTags"))

    def test_empty_body_violates_min_length(self, module: ModuleType) -> None:
        (error,) = module.validate_method_tags_request_body([])
        assert error.code == "invalid_length"
        assert error.field == "body"

    def test_elements_are_checked(self, module: ModuleType) -> None:
        err = module.validate_method_tags_request_body(["ok", "toolong"])
        assert [(e.code, e.field) for e in err] == [("invalid_length", "body[1]")]

    def test_valid_body(self, module: ModuleType) -> None:
        assert module.validate_method_tags_request_body(["ok"]) is None
        assert module.new_method_tags_payload(["ok"]) == ["ok"]


class TestEchoModule:
    """A value built by the service goes out on the wire and comes back unchanged."""

    @pytest.fixture
    def module(self, echo_design: Design, artifacts_for: Generate, load_generated: Load) -> ModuleType:
        return load_generated(artifacts_for(echo_design, "ServiceEcho"))

    def _resend(self, module: ModuleType, wire: Any) -> Any:
        owner = None if wire.owner is None else module.OwnerRequestBody(id=wire.owner.id)
        return module.MethodEchoRequestBody(name=wire.name, tags=wire.tags, owner=owner)

    def test_full_value(self, module: ModuleType) -> None:
        item = module.Item(name="n", tags=["a", "b"], owner=module.Owner(id=7))
        wire = module.new_method_echo_response_body(item)
        assert wire == module.MethodEchoResponseBody(name="n", tags=["a", "b"], owner=module.OwnerResponseBody(id=7))
        body = self._resend(module, wire)
        assert module.validate_method_echo_request_body(body) is None
        assert module.new_method_echo_item(body) == item

    def test_absent_optional_fields(self, module: ModuleType) -> None:
        item = module.Item(name="n")
        body = self._resend(module, module.new_method_echo_response_body(item))
        assert module.validate_method_echo_request_body(body) is None
        assert module.new_method_echo_item(body) == item
