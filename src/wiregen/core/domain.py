"""Domain (service-side) types the generated converters produce and consume."""

from dataclasses import dataclass, field
from typing import Any

from wiregen.core.naming import NameRegistry, StructuralKey, to_pascal_case
from wiregen.core.schema import field_identifiers, lookup_user_type, python_type, resolve
from wiregen.errors import SchemaError
from wiregen.models import (
    ArrayAttribute,
    Attribute,
    Design,
    MapAttribute,
    Method,
    ObjectAttribute,
    PrimitiveAttribute,
    ResultViewAttribute,
    UserTypeAttribute,
)


@dataclass(frozen=True)
class PathContext:
    """Where an attribute sits in the description.

    ``origin`` is a stable key for inline (anonymous) objects and ``display`` the PascalCase stem
    their generated names are built from.
    """

    origin: str
    display: str

    def child(self, field_name: str) -> "PathContext":
        return PathContext(f"{self.origin}/{field_name}", f"{self.display}{to_pascal_case(field_name)}")

    def element(self) -> "PathContext":
        return PathContext(f"{self.origin}/*", self.display)


@dataclass(frozen=True)
class DomainField:
    name: str
    source_name: str
    annotation: str
    optional: bool
    default: Any = None

    @property
    def has_default(self) -> bool:
        return self.default is not None


@dataclass
class DomainType:
    name: str
    description: str
    fields: list[DomainField] = field(default_factory=list)


class DomainSynthesizer:
    """Names and describes the domain dataclasses of one service.

    Every object reachable from a method payload, result or error gets one dataclass. Names are
    reserved in the unit's registry before any body type so that domain names stay stable.
    """

    def __init__(self, design: Design, registry: NameRegistry) -> None:
        self.design = design
        self.registry = registry
        self.types: dict[str, DomainType] = {}

    def collect(self, method: Method) -> None:
        if method.payload is not None:
            self.payload_type(method)
        if method.result is not None:
            self.result_type(method)
        for error in method.errors:
            if error.attribute is not None:
                self.error_type(method, error.name)

    def payload_type(self, method: Method) -> str:
        assert method.payload is not None
        return self._top_level(method.payload, PathContext(f"{method.name}/payload", f"{to_pascal_case(method.name)}Payload"))

    def result_type(self, method: Method) -> str:
        assert method.result is not None
        return self._top_level(method.result, PathContext(f"{method.name}/result", f"{to_pascal_case(method.name)}Result"))

    def error_type(self, method: Method, error_name: str) -> str:
        error = next(e for e in method.errors if e.name == error_name)
        assert error.attribute is not None
        display = f"{to_pascal_case(method.name)}{to_pascal_case(error_name)}Error"
        return self._top_level(error.attribute, PathContext(f"{method.name}/error/{error_name}", display))

    def _top_level(self, attribute: Attribute, context: PathContext) -> str:
        if isinstance(attribute, ObjectAttribute):
            return self.inline_type(attribute, context)
        return self.annotation(attribute, context)

    def user_type(self, name: str) -> str:
        user_type = lookup_user_type(self.design, name)
        resolved, _ = resolve(self.design, user_type.attribute)
        if not isinstance(resolved, ObjectAttribute):
            raise SchemaError(f"user type {name!r} is not an object")
        key = StructuralKey("domain", name)
        type_name, exists = self.registry.lookup_or_reserve(key, to_pascal_case(name) or name)
        if not exists:
            description = user_type.description or resolved.description or f"{type_name} is a domain type."
            self._define(type_name, description, resolved, PathContext(name, type_name), all_optional=False)
        return type_name

    def view_type(self, name: str) -> str:
        """Return the view dataclass of result type *name*; every field of a view is optional."""
        user_type = lookup_user_type(self.design, name)
        resolved, _ = resolve(self.design, user_type.attribute)
        if not isinstance(resolved, ObjectAttribute):
            raise SchemaError(f"result type {name!r} must be an object to define views")
        key = StructuralKey("domain", name, view="*")
        type_name, exists = self.registry.lookup_or_reserve(key, f"{to_pascal_case(name)}View")
        if not exists:
            base = self.registry.lookup(StructuralKey("domain", name)) or to_pascal_case(name)
            description = f"{type_name} is a projected view of {base}."
            self._define(type_name, description, resolved, PathContext(name, base), all_optional=True)
        return type_name

    def inline_type(self, obj: ObjectAttribute, context: PathContext) -> str:
        key = StructuralKey("domain", context.origin)
        type_name, exists = self.registry.lookup_or_reserve(key, context.display)
        if not exists:
            description = obj.description or f"{type_name} is a domain type."
            self._define(type_name, description, obj, PathContext(context.origin, type_name), all_optional=False)
        return type_name

    def annotation(self, attribute: Attribute, context: PathContext) -> str:
        if isinstance(attribute, PrimitiveAttribute):
            return python_type(attribute.type)
        if isinstance(attribute, ObjectAttribute):
            return self.inline_type(attribute, context)
        if isinstance(attribute, ArrayAttribute):
            return f"list[{self.annotation(attribute.element, context.element())}]"
        if isinstance(attribute, MapAttribute):
            key, _ = resolve(self.design, attribute.key)
            if not isinstance(key, PrimitiveAttribute):
                raise SchemaError("map keys must be primitive", path=context.origin)
            return f"dict[{python_type(key.type)}, {self.annotation(attribute.value, context.element())}]"
        if isinstance(attribute, UserTypeAttribute):
            resolved, origin = resolve(self.design, attribute)
            assert origin is not None
            if isinstance(resolved, ObjectAttribute):
                return self.user_type(origin)
            return self.annotation(resolved, PathContext(origin, to_pascal_case(origin)))
        if isinstance(attribute, ResultViewAttribute):
            return self.view_type(attribute.ref)
        raise SchemaError(f"unsupported attribute kind {attribute.kind!r}", path=context.origin)

    def _define(
        self,
        type_name: str,
        description: str,
        obj: ObjectAttribute,
        context: PathContext,
        *,
        all_optional: bool,
    ) -> None:
        domain_type = DomainType(name=type_name, description=description)
        # registered before the fields so that recursive references find it
        self.types[type_name] = domain_type
        identifiers = field_identifiers(obj)
        for name, attribute in obj.fields.items():
            annotation = self.annotation(attribute, context.child(name))
            default = None if all_optional else attribute.default
            optional = all_optional or (name not in obj.required and default is None)
            domain_type.fields.append(
                DomainField(
                    name=identifiers[name],
                    source_name=name,
                    annotation=annotation,
                    optional=optional,
                    default=default,
                )
            )
