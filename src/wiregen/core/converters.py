"""Converters between wire bodies and domain values.

Inbound converters build a method payload from a validated request body plus the non-body
parameters, outbound converters build response and error bodies from domain results. Nested
records go through shared ``unmarshal_*``/``marshal_*`` helpers, one per record, so that every
reference to a deduplicated shape calls the same function.
"""

import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any

from wiregen.core.domain import DomainField, DomainSynthesizer
from wiregen.core.naming import NameRegistry, StructuralKey, safe_identifier, to_snake_case
from wiregen.core.schema import as_object, is_scalar_or_scalar_list, non_body_fields
from wiregen.core.shapes import (
    ArrayShape,
    BodyShape,
    CollectionShape,
    MapShape,
    NamedShape,
    PrimitiveShape,
    RecordShape,
    Role,
    Shape,
    ShapeField,
    ShapeSynthesizer,
    wire_annotation,
)
from wiregen.errors import SchemaError
from wiregen.models import Design, Method

logger = logging.getLogger(__name__)

# names used by the rendered function bodies
_LOCAL_NAMES = ("body", "res", "v", "rt")


@dataclass(frozen=True)
class Ref:
    expr: str


@dataclass(frozen=True)
class Call:
    function: str
    argument: "Expr"


@dataclass(frozen=True)
class ListOf:
    source: str
    var: str
    item: "Expr"


@dataclass(frozen=True)
class MapOf:
    source: str
    key_var: str
    value_var: str
    key: "Expr"
    value: "Expr"


@dataclass(frozen=True)
class Guarded:
    """``inner`` when ``source`` is present, ``fallback`` otherwise."""

    source: str
    inner: "Expr"
    fallback: Any = None


@dataclass(frozen=True)
class Required:
    """A domain value the wire body cannot omit; absence is a caller bug."""

    inner: "Expr"
    name: str


Expr = Ref | Call | ListOf | MapOf | Guarded | Required


class ConverterKind(str, Enum):
    REQUEST = "request"
    RESPONSE = "response"
    ERROR = "error"
    UNMARSHAL = "unmarshal"
    MARSHAL = "marshal"


@dataclass(frozen=True)
class Param:
    name: str
    annotation: str


@dataclass(frozen=True)
class FieldAssignment:
    name: str
    value: Expr


@dataclass(frozen=True)
class ConverterPlan:
    """One generated conversion function.

    When ``target`` is set the function returns ``target(**assignments)``, otherwise it returns
    ``value``. Helpers return None for a None argument.
    """

    name: str
    kind: ConverterKind
    params: tuple[Param, ...]
    returns: str
    target: str | None = None
    assignments: tuple[FieldAssignment, ...] = ()
    value: Expr | None = None
    method: str | None = None
    error: str | None = None
    source: str | None = None


class ConverterSynthesizer:
    def __init__(
        self, design: Design, registry: NameRegistry, domain: DomainSynthesizer, shapes: ShapeSynthesizer
    ) -> None:
        self.design = design
        self.registry = registry
        self.domain = domain
        self.shapes = shapes
        self._pending: deque[tuple[str, ConverterKind]] = deque()
        self._helper_names: dict[tuple[str, ConverterKind], str] = {}

    def request_constructor(self, method: Method, body: BodyShape | None) -> ConverterPlan | None:
        """Plan the function rebuilding *method*'s payload from its body and other parameters."""
        if method.payload is None:
            return None
        domain = self.domain.payload_type(method)
        obj = as_object(self.design, method.payload)
        stem = to_snake_case(domain) if obj is not None else "payload"
        name, _ = self.registry.lookup_or_reserve(
            StructuralKey("constructor", method.name, Role.REQUEST.value), f"new_{to_snake_case(method.name)}_{stem}"
        )
        params: list[Param] = []
        if body is not None:
            annotation = body.record_name or _nullable(wire_annotation(body.shape))
            params.append(Param("body", annotation))
        if obj is None:
            assert body is not None
            value = _guard_collection("body", self._inbound(body.shape, "body", 0))
            return ConverterPlan(
                name, ConverterKind.REQUEST, tuple(params), _nullable(domain), value=value, method=method.name
            )

        locals_ = NameRegistry(reserved=_LOCAL_NAMES)
        domain_fields = self._domain_fields(domain)
        assignments: list[FieldAssignment] = []
        if body is not None and body.record_name is not None:
            record = self.shapes.definitions[body.record_name]
            assert isinstance(record, RecordShape)
            assignments.extend(self._inbound_assignments(record, domain_fields, "body"))
        for field_name, attribute in non_body_fields(obj):
            if not is_scalar_or_scalar_list(self.design, attribute):
                raise SchemaError(
                    f"{attribute.location.value} parameter {field_name!r} must be a scalar or a list of scalars",
                    method=method.name,
                    path=field_name,
                )
            domain_field = domain_fields[field_name]
            param = locals_.reserve(safe_identifier(to_snake_case(attribute.wire_name or field_name)))
            annotation = domain_field.annotation
            if domain_field.optional or domain_field.has_default:
                annotation = f"{annotation} | None"
            params.append(Param(param, annotation))
            expr: Expr = Ref(param)
            if domain_field.has_default:
                expr = Guarded(param, expr, domain_field.default)
            assignments.append(FieldAssignment(domain_field.name, expr))
        return ConverterPlan(
            name,
            ConverterKind.REQUEST,
            tuple(params),
            domain,
            target=domain,
            assignments=tuple(_in_domain_order(assignments, domain_fields)),
            method=method.name,
        )

    def response_constructor(self, body: BodyShape) -> ConverterPlan:
        """Plan the function building a response or error body from a domain value."""
        kind = ConverterKind.ERROR if body.role is Role.ERROR else ConverterKind.RESPONSE
        origin = f"{body.method}/error/{body.error}" if body.error else body.method
        key = StructuralKey("constructor", origin, body.role.value)
        if body.record_name is None:
            error = f"_{to_snake_case(body.error)}" if body.error else ""
            candidate = f"new_{to_snake_case(body.method)}{error}_response_body"
            name, _ = self.registry.lookup_or_reserve(key, candidate)
            value = _guard_collection("res", self._outbound(body.shape, "res", 0))
            return ConverterPlan(
                name,
                kind,
                (Param("res", _nullable(body.domain)),),
                _nullable(wire_annotation(body.shape)),
                value=value,
                method=body.method,
                error=body.error,
            )
        record = self.shapes.definitions[body.record_name]
        assert isinstance(record, RecordShape)
        name, _ = self.registry.lookup_or_reserve(key, f"new_{to_snake_case(record.name)}")
        assignments = self._outbound_assignments(record, self._domain_fields(record.domain), "res")
        return ConverterPlan(
            name,
            kind,
            (Param("res", record.domain),),
            record.name,
            target=record.name,
            assignments=tuple(assignments),
            method=body.method,
            error=body.error,
        )

    def helpers(self) -> list[ConverterPlan]:
        """Plan every helper referenced so far, including the ones they reference in turn."""
        plans: list[ConverterPlan] = []
        while self._pending:
            record_name, kind = self._pending.popleft()
            record = self.shapes.definitions[record_name]
            assert isinstance(record, RecordShape)
            domain_fields = self._domain_fields(record.domain)
            if kind is ConverterKind.UNMARSHAL:
                params, returns, target = (Param("v", f"{record.name} | None"),), record.domain, record.domain
                assignments = _in_domain_order(self._inbound_assignments(record, domain_fields, "v"), domain_fields)
            else:
                params, returns, target = (Param("v", f"{record.domain} | None"),), record.name, record.name
                assignments = self._outbound_assignments(record, domain_fields, "v")
            plans.append(
                ConverterPlan(
                    self._helper_names[(record_name, kind)],
                    kind,
                    params,
                    f"{returns} | None",
                    target=target,
                    assignments=tuple(assignments),
                    source=record_name,
                )
            )
        return plans

    def _helper(self, record: RecordShape, kind: ConverterKind) -> str:
        existing = self._helper_names.get((record.name, kind))
        if existing is not None:
            return existing
        if kind is ConverterKind.UNMARSHAL:
            candidate = f"unmarshal_{to_snake_case(record.name)}_to_{to_snake_case(record.domain)}"
        else:
            candidate = f"marshal_{to_snake_case(record.domain)}_to_{to_snake_case(record.name)}"
        name, exists = self.registry.lookup_or_reserve(StructuralKey("helper", record.name, kind.value), candidate)
        if exists:
            logger.debug("reusing helper %s", name)
        self._helper_names[(record.name, kind)] = name
        self._pending.append((record.name, kind))
        return name

    def _domain_fields(self, domain: str) -> dict[str, DomainField]:
        domain_type = self.domain.types.get(domain)
        if domain_type is None:
            raise SchemaError(f"no domain type named {domain!r}")
        return {f.source_name: f for f in domain_type.fields}

    def _inbound_assignments(
        self, record: RecordShape, domain_fields: dict[str, DomainField], var: str
    ) -> list[FieldAssignment]:
        assignments = []
        for field in record.fields:
            domain_field = domain_fields[field.source_name]
            assignments.append(FieldAssignment(domain_field.name, self._inbound_field(field, domain_field, var)))
        return assignments

    def _inbound_field(self, field: ShapeField, domain_field: DomainField, var: str) -> Expr:
        source = f"{var}.{field.name}"
        expr = self._inbound(field.shape, source, 0)
        if isinstance(expr, Call):
            return expr
        if isinstance(expr, Ref):
            return Guarded(source, expr, domain_field.default) if domain_field.has_default else expr
        if field.required and not domain_field.has_default:
            # presence was checked by the validator
            return expr
        return Guarded(source, expr, domain_field.default)

    def _outbound_assignments(
        self, record: RecordShape, domain_fields: dict[str, DomainField], var: str
    ) -> list[FieldAssignment]:
        assignments = []
        for field in record.fields:
            source = f"{var}.{domain_fields[field.source_name].name}"
            expr = self._outbound(field.shape, source, 0)
            if isinstance(expr, Ref) and not field.nullable:
                expr = Required(expr, field.wire_name)
            elif not isinstance(expr, (Ref, Call)):
                expr = Guarded(source, expr)
            assignments.append(FieldAssignment(field.name, expr))
        return assignments

    def _inbound(self, shape: Shape, source: str, depth: int) -> Expr:
        return self._convert(shape, source, depth, ConverterKind.UNMARSHAL)

    def _outbound(self, shape: Shape, source: str, depth: int) -> Expr:
        return self._convert(shape, source, depth, ConverterKind.MARSHAL)

    def _convert(self, shape: Shape, source: str, depth: int, kind: ConverterKind) -> Expr:
        """Convert a present value of *shape*; collections are rebuilt element by element."""
        if isinstance(shape, PrimitiveShape):
            return Ref(source)
        if isinstance(shape, NamedShape):
            definition = self.shapes.definitions[shape.name]
            if isinstance(definition, CollectionShape):
                assert definition.element is not None
                return self._convert(ArrayShape(definition.element), source, depth, kind)
            return Call(self._helper(definition, kind), Ref(source))
        suffix = "" if depth == 0 else str(depth + 1)
        value_var = f"val{suffix}"
        if isinstance(shape, ArrayShape):
            item = self._convert(shape.element, value_var, depth + 1, kind)
            return ListOf(source, value_var, _guard_collection(value_var, item))
        assert isinstance(shape, MapShape)
        key_var = f"key{suffix}"
        value = self._convert(shape.value, value_var, depth + 1, kind)
        return MapOf(source, key_var, value_var, Ref(key_var), _guard_collection(value_var, value))


def _nullable(annotation: str) -> str:
    if annotation == "Any" or annotation.endswith(" | None"):
        return annotation
    return f"{annotation} | None"


def _guard_collection(source: str, expr: Expr) -> Expr:
    # helpers accept None, comprehensions do not
    if isinstance(expr, (ListOf, MapOf)):
        return Guarded(source, expr)
    return expr


def _in_domain_order(assignments: list[FieldAssignment], domain_fields: dict[str, DomainField]) -> list[FieldAssignment]:
    order = {f.name: index for index, f in enumerate(domain_fields.values())}
    return sorted(assignments, key=lambda a: order.get(a.name, len(order)))
