"""Shared fixtures and helpers for tests."""

import sys
import types
from collections.abc import Callable, Iterator
from typing import Any

import pytest

from wiregen.config import Settings
from wiregen.core.generate import ServiceArtifacts, generate_service
from wiregen.models import Design
from wiregen.render import render_service


# ---------------------------------------------------------------------------
# Auto-marker: every test in this tree is a unit test
# ---------------------------------------------------------------------------


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        item.add_marker(pytest.mark.unit)


# ---------------------------------------------------------------------------
# Description builders
# ---------------------------------------------------------------------------


def string(**extra: Any) -> dict[str, Any]:
    return {"kind": "primitive", "type": "string", **extra}


def integer(**extra: Any) -> dict[str, Any]:
    return {"kind": "primitive", "type": "int", **extra}


def ref(name: str, **extra: Any) -> dict[str, Any]:
    return {"kind": "user_type", "ref": name, **extra}


def build_design(services: list[dict[str, Any]], types_: list[dict[str, Any]] | None = None) -> Design:
    return Design.model_validate({"name": "test", "types": types_ or [], "services": services})


# ---------------------------------------------------------------------------
# Designs
# ---------------------------------------------------------------------------


@pytest.fixture
def mixed_payload_design() -> Design:
    """A payload mixing primitives, collections and two references to one user type."""
    return build_design(
        types_=[
            {
                "name": "APayload",
                "attribute": {
                    "kind": "object",
                    "fields": {
                        "any": {"kind": "primitive", "type": "any"},
                        "array": {"kind": "array", "element": {"kind": "primitive", "type": "float32"}},
                        "map": {
                            "kind": "map",
                            "key": {"kind": "primitive", "type": "uint"},
                            "value": {"kind": "primitive", "type": "any"},
                        },
                        "object": ref("BPayload"),
                        "dup_obj": ref("BPayload"),
                    },
                    "required": ["array", "object"],
                },
            },
            {
                "name": "BPayload",
                "attribute": {
                    "kind": "object",
                    "fields": {"int": integer(), "bytes": {"kind": "primitive", "type": "bytes"}},
                    "required": ["int"],
                },
            },
        ],
        services=[
            {
                "name": "ServiceMixedPayloadInBody",
                "methods": [{"name": "MethodA", "payload": ref("APayload")}],
            }
        ],
    )


@pytest.fixture
def validate_design() -> Design:
    """A payload with every kind of constraint plus query and header parameters."""
    return build_design(
        services=[
            {
                "name": "ServiceBodyValidate",
                "methods": [
                    {
                        "name": "MethodBodyValidate",
                        "payload": {
                            "kind": "object",
                            "fields": {
                                "name": string(validation={"pattern": "^[a-z]+$"}),
                                "kind": string(validation={"enum": ["a", "b"]}),
                                "count": integer(validation={"minimum": 1, "maximum": 10}),
                                "created": string(validation={"format": "date-time"}),
                                "tags": {
                                    "kind": "array",
                                    "element": string(validation={"max_length": 4}),
                                    "validation": {"min_length": 1},
                                },
                                "q": string(location="query"),
                                "h": integer(location="header", wire_name="X-Count"),
                            },
                            "required": ["name", "kind", "h"],
                        },
                    },
                    {
                        "name": "MethodDefaults",
                        "payload": {
                            "kind": "object",
                            "fields": {
                                "limit": integer(default=20),
                                "page": integer(location="query", default=1),
                            },
                        },
                    },
                ],
            }
        ],
    )


@pytest.fixture
def result_design() -> Design:
    """Results built from a user type, a user collection and a projected view."""
    return build_design(
        types_=[
            {
                "name": "ResultType",
                "attribute": {
                    "kind": "object",
                    "fields": {"name": string(), "items": ref("RtCollection"), "count": integer()},
                    "required": ["name"],
                },
                "views": {"full": ["name", "items", "count"], "tiny": ["name"]},
            },
            {"name": "RtCollection", "attribute": {"kind": "array", "element": ref("Rt")}},
            {"name": "Rt", "attribute": {"kind": "object", "fields": {"x": string()}}},
        ],
        services=[
            {
                "name": "ServiceResults",
                "methods": [
                    {"name": "MethodResultType", "result": ref("ResultType")},
                    {
                        "name": "MethodResultWithResultCollection",
                        "result": {"kind": "object", "fields": {"a": ref("ResultType")}},
                    },
                    {
                        "name": "MethodResultWithResultView",
                        "result": {"kind": "result_view", "ref": "ResultType", "view": "tiny"},
                    },
                    {
                        "name": "MethodListResult",
                        "result": {"kind": "array", "element": string()},
                    },
                ],
            }
        ],
    )


@pytest.fixture
def error_design() -> Design:
    """A method with an error carrying a required name and an error without a body."""
    return build_design(
        types_=[
            {
                "name": "CustomError",
                "attribute": {"kind": "object", "fields": {"name": string()}, "required": ["name"]},
            }
        ],
        services=[
            {
                "name": "ServiceWithErrors",
                "methods": [
                    {
                        "name": "MethodWithError",
                        "errors": [
                            {"name": "bad_request", "attribute": ref("CustomError")},
                            {"name": "not_found", "status": 404},
                        ],
                    }
                ],
            }
        ],
    )


@pytest.fixture
def custom_names_design() -> Design:
    """Fields whose wire names differ from their attribute names, in every location."""
    return build_design(
        services=[
            {
                "name": "ServiceCustomNames",
                "methods": [
                    {
                        "name": "MethodCustomNames",
                        "payload": {
                            "kind": "object",
                            "fields": {
                                "body": string(wire_name="b"),
                                "path": string(location="path", wire_name="p"),
                                "query": string(location="query", wire_name="q"),
                                "header": string(location="header", wire_name="h"),
                                "cookie": string(location="cookie", wire_name="c"),
                            },
                            "required": ["body", "path"],
                        },
                    }
                ],
            }
        ],
    )


@pytest.fixture
def cycle_design() -> Design:
    """A user type that requires itself and can therefore never be encoded."""
    return build_design(
        types_=[
            {"name": "Node", "attribute": {"kind": "object", "fields": {"next": ref("Node")}, "required": ["next"]}}
        ],
        services=[{"name": "ServiceCycle", "methods": [{"name": "MethodCycle", "payload": ref("Node")}]}],
    )


@pytest.fixture
def optional_cycle_design() -> Design:
    """A self-referencing user type reached through an optional field."""
    return build_design(
        types_=[{"name": "Tree", "attribute": {"kind": "object", "fields": {"child": ref("Tree"), "label": string()}}}],
        services=[{"name": "ServiceTree", "methods": [{"name": "MethodTree", "payload": ref("Tree")}]}],
    )


@pytest.fixture
def mutual_cycle_design() -> Design:
    """A and B require each other and are reached through an optional field of C."""
    return build_design(
        types_=[
            {"name": "A", "attribute": {"kind": "object", "fields": {"b": ref("B")}, "required": ["b"]}},
            {"name": "B", "attribute": {"kind": "object", "fields": {"a": ref("A")}, "required": ["a"]}},
            {"name": "C", "attribute": {"kind": "object", "fields": {"a": ref("A")}}},
        ],
        services=[{"name": "ServiceMutual", "methods": [{"name": "MethodMutual", "payload": ref("C")}]}],
    )


@pytest.fixture
def array_cycle_design() -> Design:
    """A required self-reference that goes through an array and may therefore be empty."""
    return build_design(
        types_=[
            {
                "name": "Node",
                "attribute": {
                    "kind": "object",
                    "fields": {"children": {"kind": "array", "element": ref("Node")}},
                    "required": ["children"],
                },
            }
        ],
        services=[{"name": "ServiceForest", "methods": [{"name": "MethodForest", "payload": ref("Node")}]}],
    )


@pytest.fixture
def collection_body_design() -> Design:
    """A request body that is a named collection with its own length limit."""
    return build_design(
        types_=[
            {
                "name": "Tags",
                "attribute": {
                    "kind": "array",
                    "element": string(validation={"max_length": 3}),
                    "validation": {"min_length": 1},
                },
            }
        ],
        services=[{"name": "ServiceTags", "methods": [{"name": "MethodTags", "payload": ref("Tags")}]}],
    )


@pytest.fixture
def echo_design() -> Design:
    """One user type used both as the payload and the result of a method."""
    return build_design(
        types_=[
            {
                "name": "Item",
                "attribute": {
                    "kind": "object",
                    "fields": {
                        "name": string(),
                        "tags": {"kind": "array", "element": string()},
                        "owner": ref("Owner"),
                    },
                    "required": ["name"],
                },
            },
            {"name": "Owner", "attribute": {"kind": "object", "fields": {"id": integer()}, "required": ["id"]}},
        ],
        services=[
            {"name": "ServiceEcho", "methods": [{"name": "MethodEcho", "payload": ref("Item"), "result": ref("Item")}]}
        ],
    )


# ---------------------------------------------------------------------------
# Generated code helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return Settings(workers=2)


@pytest.fixture
def artifacts_for() -> Callable[[Design, str], ServiceArtifacts]:
    """Return a function generating the artifacts of one named service."""

    def _generate(design: Design, service: str) -> ServiceArtifacts:
        found = design.service(service)
        assert found is not None
        return generate_service(design, found)

    return _generate


@pytest.fixture
def load_generated(settings: Settings) -> Iterator[Callable[[ServiceArtifacts], types.ModuleType]]:
    """Render artifacts and import the result as a throwaway module."""
    loaded: list[str] = []

    def _load(artifacts: ServiceArtifacts) -> types.ModuleType:
        source = render_service(artifacts, settings)
        name = f"wiregen_generated_{len(loaded)}_{artifacts.service.lower()}"
        module = types.ModuleType(name)
        sys.modules[name] = module
        loaded.append(name)
        exec(compile(source, f"<{name}>", "exec"), module.__dict__)
        return module

    yield _load
    for name in loaded:
        sys.modules.pop(name, None)
