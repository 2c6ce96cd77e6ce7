"""Read-only queries over the description tree."""

from wiregen.core.naming import safe_identifier, to_snake_case
from wiregen.errors import SchemaError
from wiregen.models import (
    ArrayAttribute,
    Attribute,
    Design,
    Location,
    ObjectAttribute,
    PrimitiveAttribute,
    PrimitiveType,
    ResultViewAttribute,
    UserType,
    UserTypeAttribute,
    Validation,
)

# module names the generated class bodies refer to
_CLASS_BODY_NAMES = frozenset({"dataclasses"})

_PYTHON_TYPES = {
    PrimitiveType.BOOLEAN: "bool",
    PrimitiveType.INT: "int",
    PrimitiveType.INT32: "int",
    PrimitiveType.INT64: "int",
    PrimitiveType.UINT: "int",
    PrimitiveType.UINT32: "int",
    PrimitiveType.UINT64: "int",
    PrimitiveType.FLOAT32: "float",
    PrimitiveType.FLOAT64: "float",
    PrimitiveType.STRING: "str",
    PrimitiveType.BYTES: "bytes",
    PrimitiveType.ANY: "Any",
}


def python_type(primitive: PrimitiveType) -> str:
    return _PYTHON_TYPES[primitive]


def lookup_user_type(design: Design, name: str) -> UserType:
    user_type = design.user_type(name)
    if user_type is None:
        raise SchemaError(f"unknown user type {name!r}")
    return user_type


def resolve(design: Design, attribute: Attribute) -> tuple[Attribute, str | None]:
    """Follow user type references until a concrete attribute is reached.

    Returns the concrete attribute and the name of the outermost user type that was followed
    (None when *attribute* is not a reference). Result views are not followed, they are
    projections rather than aliases.
    """
    origin: str | None = None
    seen: list[str] = []
    while isinstance(attribute, UserTypeAttribute):
        if attribute.ref in seen:
            raise SchemaError("user type aliases refer to each other: " + " -> ".join([*seen, attribute.ref]))
        seen.append(attribute.ref)
        if origin is None:
            origin = attribute.ref
        attribute = lookup_user_type(design, attribute.ref).attribute
    return attribute, origin


def validation_of(design: Design, attribute: Attribute) -> Validation | None:
    """Return the validation rules that apply to *attribute*, looking through aliases."""
    if attribute.validation is not None:
        return attribute.validation
    if isinstance(attribute, UserTypeAttribute):
        resolved, _ = resolve(design, attribute)
        return resolved.validation
    return None


def project_view(design: Design, attribute: ResultViewAttribute) -> ObjectAttribute:
    """Return the object attribute holding the fields selected by a result view."""
    user_type = lookup_user_type(design, attribute.ref)
    resolved, _ = resolve(design, user_type.attribute)
    if not isinstance(resolved, ObjectAttribute):
        raise SchemaError(f"result type {attribute.ref!r} must be an object to define views")
    try:
        selected = user_type.view_fields(attribute.view)
    except KeyError:
        raise SchemaError(f"result type {attribute.ref!r} has no view {attribute.view!r}") from None
    if selected is None:
        return resolved
    unknown = [name for name in selected if name not in resolved.fields]
    if unknown:
        raise SchemaError(f"view {attribute.view!r} of {attribute.ref!r} lists unknown fields {unknown}")
    fields = {name: attr for name, attr in resolved.fields.items() if name in selected}
    required = [name for name in resolved.required if name in fields]
    return resolved.model_copy(update={"fields": fields, "required": required})


def as_object(design: Design, attribute: Attribute) -> ObjectAttribute | None:
    """Return the object behind *attribute* (through references and views), if any."""
    if isinstance(attribute, ResultViewAttribute):
        return project_view(design, attribute)
    resolved, _ = resolve(design, attribute)
    if isinstance(resolved, ObjectAttribute):
        return resolved
    return None


def wire_name(name: str, attribute: Attribute) -> str:
    return attribute.wire_name or name


def field_identifiers(obj: ObjectAttribute) -> dict[str, str]:
    """Map each declared field of *obj* to a unique Python identifier, in declared order."""
    identifiers: dict[str, str] = {}
    taken: set[str] = set(_CLASS_BODY_NAMES)
    for name in obj.fields:
        identifier = safe_identifier(to_snake_case(name))
        candidate, index = identifier, 2
        while candidate in taken:
            candidate = f"{identifier}{index}"
            index += 1
        taken.add(candidate)
        identifiers[name] = candidate
    return identifiers


def body_fields(obj: ObjectAttribute) -> list[tuple[str, Attribute]]:
    return [(name, attr) for name, attr in obj.fields.items() if attr.location == Location.BODY]


def non_body_fields(obj: ObjectAttribute) -> list[tuple[str, Attribute]]:
    return [(name, attr) for name, attr in obj.fields.items() if attr.location != Location.BODY]


def is_scalar_or_scalar_list(design: Design, attribute: Attribute) -> bool:
    resolved, _ = resolve(design, attribute)
    if isinstance(resolved, PrimitiveAttribute):
        return True
    if isinstance(resolved, ArrayAttribute):
        element, _ = resolve(design, resolved.element)
        return isinstance(element, PrimitiveAttribute)
    return False
