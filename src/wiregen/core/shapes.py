"""Wire body shapes derived from method payloads, results and errors."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from wiregen.core.domain import DomainSynthesizer, PathContext
from wiregen.core.naming import NameRegistry, StructuralKey, to_pascal_case
from wiregen.core.schema import (
    body_fields,
    field_identifiers,
    lookup_user_type,
    project_view,
    python_type,
    resolve,
    wire_name,
)
from wiregen.errors import CycleError, SchemaError
from wiregen.models import (
    ArrayAttribute,
    Attribute,
    Design,
    MapAttribute,
    Method,
    ObjectAttribute,
    PrimitiveAttribute,
    PrimitiveType,
    ResultViewAttribute,
    UserTypeAttribute,
)

logger = logging.getLogger(__name__)


class Role(str, Enum):
    REQUEST = "request"
    RESPONSE = "response"
    ERROR = "error"

    @property
    def suffix(self) -> str:
        return "RequestBody" if self is Role.REQUEST else "ResponseBody"

    @property
    def family(self) -> str:
        """Nested shapes are shared by every role that encodes the same direction."""
        return "request" if self is Role.REQUEST else "response"


@dataclass(frozen=True)
class PrimitiveShape:
    type: PrimitiveType


@dataclass(frozen=True)
class ArrayShape:
    element: "Shape"


@dataclass(frozen=True)
class MapShape:
    key: "Shape"
    value: "Shape"


@dataclass(frozen=True)
class NamedShape:
    """Reference to a record or collection definition held by the synthesizer."""

    name: str


Shape = PrimitiveShape | ArrayShape | MapShape | NamedShape


@dataclass(frozen=True)
class ShapeField:
    name: str
    source_name: str
    wire_name: str
    shape: Shape
    attribute: Attribute
    required: bool
    pointer: bool
    default: Any = None

    @property
    def nullable(self) -> bool:
        if isinstance(self.shape, PrimitiveShape):
            return self.pointer or self.shape.type == PrimitiveType.ANY
        return True

    @property
    def tags(self) -> dict[str, str]:
        value = f"{self.wire_name},omitempty" if self.nullable else self.wire_name
        return {"form": value, "json": value, "xml": value}


@dataclass
class RecordShape:
    name: str
    role: Role
    domain: str
    description: str
    fields: list[ShapeField] = field(default_factory=list)
    origin: str | None = None
    view: str | None = None
    top_level: bool = False


@dataclass
class CollectionShape:
    name: str
    role: Role
    domain: str
    description: str
    attribute: ArrayAttribute
    element: Shape | None = None
    origin: str | None = None


NamedDefinition = RecordShape | CollectionShape


@dataclass(frozen=True)
class BodyShape:
    """The body of one method role: a named record, or an alias for non-object bodies."""

    method: str
    role: Role
    shape: Shape
    attribute: Attribute
    domain: str
    error: str | None = None

    @property
    def record_name(self) -> str | None:
        if isinstance(self.shape, NamedShape) and isinstance(self.attribute, ObjectAttribute):
            return self.shape.name
        return None


def wire_annotation(shape: Shape) -> str:
    """Python annotation of a wire value of *shape*."""
    if isinstance(shape, PrimitiveShape):
        return python_type(shape.type)
    if isinstance(shape, ArrayShape):
        return f"list[{wire_annotation(shape.element)}]"
    if isinstance(shape, MapShape):
        return f"dict[{wire_annotation(shape.key)}, {wire_annotation(shape.value)}]"
    return shape.name


def top_level_key(method: str, role: Role, error: str | None = None) -> StructuralKey:
    origin = f"{method}/error/{error}" if error else method
    return StructuralKey("body", origin, role.value)


class ShapeSynthesizer:
    def __init__(self, design: Design, registry: NameRegistry, domain: DomainSynthesizer) -> None:
        self.design = design
        self.registry = registry
        self.domain = domain
        self.definitions: dict[str, NamedDefinition] = {}
        self._stack: list[tuple[str, bool]] = []
        self._method = ""

    def reserve_top_level(self, method: Method) -> None:
        """Reserve the top-level body names of *method* ahead of any nested shape."""
        for role, error, attribute in _roles(method):
            if attribute is None:
                continue
            obj = self._top_level_object(attribute)
            if obj is None or not body_fields(obj):
                continue
            view = attribute.view if isinstance(attribute, ResultViewAttribute) else "default"
            candidate = f"{to_pascal_case(method.name)}{to_pascal_case(error or '')}{role.suffix}"
            if view != "default":
                candidate += to_pascal_case(view)
            self.registry.lookup_or_reserve(top_level_key(method.name, role, error), candidate)

    def synthesize(self, method: Method, role: Role, error: str | None = None) -> BodyShape | None:
        attribute, domain, context = self._top_level(method, role, error)
        if attribute is None:
            return None
        self._method = method.name
        obj = self._top_level_object(attribute)
        if obj is None:
            shape = self.shape_of(attribute, role, context, hard=False)
            return BodyShape(method.name, role, shape, attribute, domain, error)
        fields = body_fields(obj)
        if not fields:
            return None
        name = self.registry.lookup(top_level_key(method.name, role, error))
        if name is None:
            raise SchemaError("top-level body names must be reserved before synthesis", method=method.name)
        origin: str | None = None
        view: str | None = None
        identifiers = field_identifiers(obj)
        if isinstance(attribute, ResultViewAttribute):
            origin, view = attribute.ref, attribute.view
            full, _ = resolve(self.design, lookup_user_type(self.design, attribute.ref).attribute)
            assert isinstance(full, ObjectAttribute)
            identifiers = field_identifiers(full)
        elif isinstance(attribute, UserTypeAttribute):
            _, origin = resolve(self.design, attribute)
        description = obj.description or f"{name} is the {role.value} body of the {method.name!r} method."
        record = RecordShape(name, role, domain, description, origin=origin, view=view, top_level=True)
        self.definitions[name] = record
        if origin is not None:
            self._stack.append((origin, True))
        try:
            self._fill(record, obj, fields, identifiers, context, hard=True)
        finally:
            if origin is not None:
                self._stack.pop()
        return BodyShape(method.name, role, NamedShape(name), obj, domain, error)

    def shape_of(self, attribute: Attribute, role: Role, context: PathContext, hard: bool) -> Shape:
        if isinstance(attribute, PrimitiveAttribute):
            return PrimitiveShape(attribute.type)
        if isinstance(attribute, ObjectAttribute):
            return self._inline_record(attribute, role, context, hard)
        if isinstance(attribute, ArrayAttribute):
            return ArrayShape(self.shape_of(attribute.element, role, context.element(), hard=False))
        if isinstance(attribute, MapAttribute):
            key = self.shape_of(attribute.key, role, context.element(), hard=False)
            if not isinstance(key, PrimitiveShape):
                raise SchemaError("map keys must be primitive", method=self._method, path=context.origin)
            return MapShape(key, self.shape_of(attribute.value, role, context.element(), hard=False))
        if isinstance(attribute, UserTypeAttribute):
            resolved, origin = resolve(self.design, attribute)
            assert origin is not None
            if isinstance(resolved, PrimitiveAttribute):
                return PrimitiveShape(resolved.type)
            if isinstance(resolved, ObjectAttribute):
                return self._user_record(origin, resolved, role, hard)
            if isinstance(resolved, ArrayAttribute):
                return self._user_collection(origin, resolved, role, hard)
            self._check_cycle(origin, hard)
            self._stack.append((origin, hard))
            try:
                return self.shape_of(resolved, role, PathContext(origin, to_pascal_case(origin)), hard=False)
            finally:
                self._stack.pop()
        if isinstance(attribute, ResultViewAttribute):
            return self._view_record(attribute, role, hard)
        raise SchemaError(f"unsupported attribute kind {attribute.kind!r}", method=self._method, path=context.origin)

    def _top_level(self, method: Method, role: Role, error: str | None) -> tuple[Attribute | None, str, PathContext]:
        if role is Role.REQUEST:
            attribute = method.payload
            origin, display = f"{method.name}/payload", f"{to_pascal_case(method.name)}Payload"
            domain = self.domain.payload_type(method) if attribute is not None else ""
        elif role is Role.RESPONSE:
            attribute = method.result
            origin, display = f"{method.name}/result", f"{to_pascal_case(method.name)}Result"
            domain = self.domain.result_type(method) if attribute is not None else ""
        else:
            assert error is not None
            attribute = next(e.attribute for e in method.errors if e.name == error)
            origin, display = f"{method.name}/error/{error}", f"{to_pascal_case(method.name)}{to_pascal_case(error)}Error"
            domain = self.domain.error_type(method, error) if attribute is not None else ""
        if isinstance(attribute, UserTypeAttribute):
            _, ref = resolve(self.design, attribute)
            assert ref is not None
            return attribute, domain, PathContext(ref, to_pascal_case(ref))
        if isinstance(attribute, ResultViewAttribute):
            base = self.registry.lookup(StructuralKey("domain", attribute.ref)) or to_pascal_case(attribute.ref)
            return attribute, domain, PathContext(attribute.ref, base)
        if isinstance(attribute, ObjectAttribute):
            return attribute, domain, PathContext(origin, domain)
        return attribute, domain, PathContext(origin, display)

    def _top_level_object(self, attribute: Attribute) -> ObjectAttribute | None:
        if isinstance(attribute, ResultViewAttribute):
            return project_view(self.design, attribute)
        resolved, _ = resolve(self.design, attribute)
        return resolved if isinstance(resolved, ObjectAttribute) else None

    def _fill(
        self,
        record: RecordShape,
        obj: ObjectAttribute,
        fields: list[tuple[str, Attribute]],
        identifiers: dict[str, str],
        context: PathContext,
        hard: bool,
    ) -> None:
        for name, attribute in fields:
            required = name in obj.required
            shape = self.shape_of(attribute, record.role, context.child(name), hard=hard and required)
            pointer = (
                isinstance(shape, PrimitiveShape)
                and shape.type != PrimitiveType.ANY
                and (record.role is Role.REQUEST or (not required and attribute.default is None))
            )
            record.fields.append(
                ShapeField(
                    name=identifiers[name],
                    source_name=name,
                    wire_name=wire_name(name, attribute),
                    shape=shape,
                    attribute=attribute,
                    required=required,
                    pointer=pointer,
                    default=attribute.default,
                )
            )

    def _inline_record(self, obj: ObjectAttribute, role: Role, context: PathContext, hard: bool) -> NamedShape:
        domain = self.domain.inline_type(obj, context)
        key = StructuralKey("body", context.origin, role.family)
        name, exists = self.registry.lookup_or_reserve(key, f"{domain}{role.suffix}", to_pascal_case(self._method))
        if exists:
            return NamedShape(name)
        description = f"{name} is used to define fields on {role.family} body types."
        record = RecordShape(name, role, domain, description)
        self.definitions[name] = record
        self._fill(record, obj, list(obj.fields.items()), field_identifiers(obj), PathContext(context.origin, domain), hard)
        return NamedShape(name)

    def _user_record(self, type_name: str, obj: ObjectAttribute, role: Role, hard: bool) -> NamedShape:
        self._check_cycle(type_name, hard)
        domain = self.domain.user_type(type_name)
        key = StructuralKey("body", type_name, role.family)
        name, exists = self.registry.lookup_or_reserve(key, f"{domain}{role.suffix}", to_pascal_case(self._method))
        if exists:
            logger.debug("reusing %s for %s", name, type_name)
            return NamedShape(name)
        description = f"{name} is used to define fields on {role.family} body types."
        record = RecordShape(name, role, domain, description, origin=type_name)
        self.definitions[name] = record
        self._stack.append((type_name, hard))
        try:
            self._fill(
                record, obj, list(obj.fields.items()), field_identifiers(obj), PathContext(type_name, domain), hard=True
            )
        finally:
            self._stack.pop()
        return NamedShape(name)

    def _view_record(self, attribute: ResultViewAttribute, role: Role, hard: bool) -> NamedShape:
        type_name = attribute.ref
        self._check_cycle(type_name, hard)
        obj = project_view(self.design, attribute)
        full, _ = resolve(self.design, lookup_user_type(self.design, type_name).attribute)
        assert isinstance(full, ObjectAttribute)
        domain = self.domain.view_type(type_name)
        view = "" if attribute.view == "default" else attribute.view
        key = StructuralKey("body", type_name, role.family, view=attribute.view)
        candidate = f"{to_pascal_case(type_name)}{to_pascal_case(view)}{role.suffix}"
        name, exists = self.registry.lookup_or_reserve(key, candidate, to_pascal_case(self._method))
        if exists:
            return NamedShape(name)
        description = f"{name} is used to define fields on {role.family} body types."
        record = RecordShape(name, role, domain, description, origin=type_name, view=attribute.view)
        self.definitions[name] = record
        base = self.registry.lookup(StructuralKey("domain", type_name)) or to_pascal_case(type_name)
        self._stack.append((type_name, hard))
        try:
            self._fill(
                record, obj, list(obj.fields.items()), field_identifiers(full), PathContext(type_name, base), hard=True
            )
        finally:
            self._stack.pop()
        return NamedShape(name)

    def _user_collection(self, type_name: str, array: ArrayAttribute, role: Role, hard: bool) -> NamedShape:
        self._check_cycle(type_name, hard)
        context = PathContext(type_name, to_pascal_case(type_name))
        domain = self.domain.annotation(UserTypeAttribute(ref=type_name), context)
        key = StructuralKey("body", type_name, role.family)
        candidate = f"{to_pascal_case(type_name)}{role.suffix}"
        name, exists = self.registry.lookup_or_reserve(key, candidate, to_pascal_case(self._method))
        if exists:
            return NamedShape(name)
        description = f"{name} is used to define fields on {role.family} body types."
        collection = CollectionShape(name, role, domain, description, attribute=array, origin=type_name)
        self.definitions[name] = collection
        self._stack.append((type_name, hard))
        try:
            collection.element = self.shape_of(array.element, role, context.element(), hard=False)
        finally:
            self._stack.pop()
        return NamedShape(name)

    def _check_cycle(self, type_name: str, hard: bool) -> None:
        """Reject re-entering *type_name* when every edge since its last visit is mandatory."""
        for index in range(len(self._stack) - 1, -1, -1):
            if self._stack[index][0] != type_name:
                continue
            edges = [entered_hard for _, entered_hard in self._stack[index + 1 :]] + [hard]
            if all(edges):
                chain = [name for name, _ in self._stack[index:]] + [type_name]
                raise CycleError(chain, method=self._method or None)
            return


def _roles(method: Method) -> list[tuple[Role, str | None, Attribute | None]]:
    roles: list[tuple[Role, str | None, Attribute | None]] = [
        (Role.REQUEST, None, method.payload),
        (Role.RESPONSE, None, method.result),
    ]
    roles.extend((Role.ERROR, error.name, error.attribute) for error in method.errors)
    return roles
