"""Validation plans for request bodies.

A plan is an ordered list of :class:`Check` records. Subjects and paths are already Python
expressions, so rendering a plan is a mechanical walk. Paths are kept as the body of an
f-string rooted at the ``path`` parameter of the validator.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from wiregen.core.naming import NameRegistry, StructuralKey, to_snake_case
from wiregen.core.schema import resolve, validation_of
from wiregen.core.shapes import (
    ArrayShape,
    BodyShape,
    CollectionShape,
    MapShape,
    NamedDefinition,
    NamedShape,
    PrimitiveShape,
    RecordShape,
    Role,
    Shape,
    ShapeSynthesizer,
)
from wiregen.errors import SchemaError
from wiregen.models import ArrayAttribute, Attribute, Design, MapAttribute, PrimitiveType, Validation
from wiregen.runtime.validation import FORMATS

logger = logging.getLogger(__name__)

ROOT_PATH = "{path}"

_NUMERIC = frozenset(
    {
        PrimitiveType.INT,
        PrimitiveType.INT32,
        PrimitiveType.INT64,
        PrimitiveType.UINT,
        PrimitiveType.UINT32,
        PrimitiveType.UINT64,
        PrimitiveType.FLOAT32,
        PrimitiveType.FLOAT64,
    }
)


class CheckKind(str, Enum):
    MISSING = "missing"
    ENUM = "enum"
    FORMAT = "format"
    PATTERN = "pattern"
    MINIMUM = "minimum"
    MAXIMUM = "maximum"
    MIN_LENGTH = "min_length"
    MAX_LENGTH = "max_length"
    NESTED = "nested"
    EACH = "each"


@dataclass(frozen=True)
class Check:
    """One validation step.

    ``subject`` is the expression being checked and ``path`` the f-string body of its error path.
    MISSING checks carry the wire name in ``argument`` and the parent path in ``path``. EACH
    checks loop over ``subject`` binding ``index`` and ``var`` (key and value when ``mapping``)
    and run ``checks`` on every element.
    """

    kind: CheckKind
    subject: str
    path: str
    guarded: bool = False
    argument: Any = None
    checks: tuple["Check", ...] = ()
    index: str = ""
    var: str = ""
    mapping: bool = False


@dataclass(frozen=True)
class ValidatorPlan:
    name: str
    shape: Shape
    checks: tuple[Check, ...]
    target: str | None = None
    method: str | None = None


def field_path(parent: str, wire_name: str) -> str:
    escaped = wire_name.replace("\\", "\\\\").replace('"', '\\"').replace("{", "{{").replace("}", "}}")
    return f"{parent}.{escaped}"


class ValidationSynthesizer:
    def __init__(self, design: Design, registry: NameRegistry, shapes: ShapeSynthesizer) -> None:
        self.design = design
        self.registry = registry
        self.shapes = shapes
        self._validators: dict[str, str] = {}

    def plan(self, bodies: list[BodyShape]) -> list[ValidatorPlan]:
        """Plan the validators of every request body in *bodies* and of the shapes they reach."""
        definitions = {
            name: definition
            for name, definition in self.shapes.definitions.items()
            if definition.role is Role.REQUEST
        }
        needed = self._needing_validation(definitions)
        ordered = [name for name, d in definitions.items() if isinstance(d, RecordShape) and d.top_level]
        ordered += [name for name in definitions if name not in ordered]
        for name in ordered:
            if name in needed:
                candidate = f"validate_{to_snake_case(name)}"
                self._validators[name], _ = self.registry.lookup_or_reserve(
                    StructuralKey("validator", name), candidate
                )

        owners = {body.record_name: body.method for body in bodies if body.role is Role.REQUEST and body.record_name}
        plans: list[ValidatorPlan] = []
        for body in bodies:
            if body.role is not Role.REQUEST or body.record_name is not None:
                continue
            # a named collection body gets its own length limits here, then the element validator
            constraints, nested = self._value_checks(body.shape, body.attribute, "body", ROOT_PATH, 0)
            if not constraints and not nested:
                continue
            candidate = f"validate_{to_snake_case(body.method)}_request_body"
            name, _ = self.registry.lookup_or_reserve(StructuralKey("validator", f"{body.method}/request"), candidate)
            plans.append(ValidatorPlan(name, body.shape, tuple(constraints + nested), method=body.method))
        for name in ordered:
            if name not in needed:
                continue
            definition = definitions[name]
            if isinstance(definition, RecordShape):
                checks = self._record_checks(definition)
            else:
                checks = self._collection_checks(definition)
            method = owners.get(name)
            plans.append(ValidatorPlan(self._validators[name], NamedShape(name), tuple(checks), target=name, method=method))
        logger.debug("planned %d validators", len(plans))
        return plans

    def _needing_validation(self, definitions: dict[str, NamedDefinition]) -> set[str]:
        # a shape needs a validator when it checks something itself or calls a shape that does
        needed = {name for name, definition in definitions.items() if self._has_direct_checks(definition)}
        changed = True
        while changed:
            changed = False
            for name, definition in definitions.items():
                if name in needed:
                    continue
                if any(ref in needed for ref in _references(definition)):
                    needed.add(name)
                    changed = True
        return needed

    def _has_direct_checks(self, definition: NamedDefinition) -> bool:
        if isinstance(definition, CollectionShape):
            assert definition.element is not None
            constraints, _ = self._value_checks(
                definition.element, definition.attribute.element, "body", ROOT_PATH, 0, nested=False
            )
            return bool(constraints)
        for field in definition.fields:
            if field.required and field.nullable:
                return True
            constraints, _ = self._value_checks(field.shape, field.attribute, "body", ROOT_PATH, 0, nested=False)
            if constraints:
                return True
        return False

    def _record_checks(self, record: RecordShape) -> list[Check]:
        missing: list[Check] = []
        constraints: list[Check] = []
        nested: list[Check] = []
        for field in record.fields:
            subject = f"body.{field.name}"
            if field.required and field.nullable:
                missing.append(Check(CheckKind.MISSING, subject, ROOT_PATH, argument=field.wire_name))
            own, calls = self._value_checks(
                field.shape, field.attribute, subject, field_path(ROOT_PATH, field.wire_name), 0
            )
            constraints.extend(replace(check, guarded=field.nullable) for check in own)
            nested.extend(replace(check, guarded=field.nullable) for check in calls)
        return missing + constraints + nested

    def _collection_checks(self, collection: CollectionShape) -> list[Check]:
        assert collection.element is not None
        # length constraints of the collection itself are checked where it is referenced
        attribute = collection.attribute.model_copy(update={"validation": None})
        constraints, nested = self._value_checks(ArrayShape(collection.element), attribute, "body", ROOT_PATH, 0)
        return constraints + nested

    def _value_checks(
        self,
        shape: Shape,
        attribute: Attribute,
        subject: str,
        path: str,
        depth: int,
        nested: bool = True,
    ) -> tuple[list[Check], list[Check]]:
        """Return the constraint checks and the nested validator calls for one value."""
        constraints = _constraints(shape, validation_of(self.design, attribute), subject, path, self.shapes)
        calls: list[Check] = []
        resolved, _ = resolve(self.design, attribute)
        suffix = "" if depth == 0 else str(depth + 1)
        if isinstance(shape, NamedShape):
            if nested and shape.name in self._validators:
                calls.append(Check(CheckKind.NESTED, subject, path, argument=self._validators[shape.name]))
        elif isinstance(shape, ArrayShape) and isinstance(resolved, ArrayAttribute):
            index, var = f"i{suffix}", f"e{suffix}"
            inner, inner_calls = self._value_checks(
                shape.element, resolved.element, var, f"{path}[{{{index}}}]", depth + 1, nested
            )
            if inner:
                constraints.append(Check(CheckKind.EACH, subject, path, checks=_guarded(inner), index=index, var=var))
            if inner_calls:
                calls.append(Check(CheckKind.EACH, subject, path, checks=_guarded(inner_calls), index=index, var=var))
        elif isinstance(shape, MapShape) and isinstance(resolved, MapAttribute):
            key, var = f"k{suffix}", f"v{suffix}"
            element_path = f"{path}[{{{key}!r}}]"
            inner = _constraints(shape.key, validation_of(self.design, resolved.key), key, element_path, self.shapes)
            value_checks, inner_calls = self._value_checks(
                shape.value, resolved.value, var, element_path, depth + 1, nested
            )
            inner += value_checks
            if inner:
                constraints.append(
                    Check(CheckKind.EACH, subject, path, checks=_guarded(inner), index=key, var=var, mapping=True)
                )
            if inner_calls:
                calls.append(
                    Check(CheckKind.EACH, subject, path, checks=_guarded(inner_calls), index=key, var=var, mapping=True)
                )
        return constraints, calls


def _constraints(
    shape: Shape, validation: Validation | None, subject: str, path: str, shapes: ShapeSynthesizer
) -> list[Check]:
    if validation is None:
        return []
    primitive = shape.type if isinstance(shape, PrimitiveShape) else None
    sized = primitive in (PrimitiveType.STRING, PrimitiveType.BYTES) or isinstance(shape, (ArrayShape, MapShape))
    if isinstance(shape, NamedShape) and isinstance(shapes.definitions.get(shape.name), CollectionShape):
        sized = True
    checks: list[Check] = []
    if validation.enum is not None and primitive is not None:
        checks.append(Check(CheckKind.ENUM, subject, path, argument=tuple(validation.enum)))
    if primitive is PrimitiveType.STRING:
        if validation.format is not None:
            if validation.format not in FORMATS:
                raise SchemaError(f"unknown format {validation.format!r}", path=subject)
            checks.append(Check(CheckKind.FORMAT, subject, path, argument=validation.format))
        if validation.pattern is not None:
            checks.append(Check(CheckKind.PATTERN, subject, path, argument=validation.pattern))
    if primitive in _NUMERIC:
        if validation.minimum is not None:
            checks.append(Check(CheckKind.MINIMUM, subject, path, argument=validation.minimum))
        if validation.maximum is not None:
            checks.append(Check(CheckKind.MAXIMUM, subject, path, argument=validation.maximum))
    if sized:
        if validation.min_length is not None:
            checks.append(Check(CheckKind.MIN_LENGTH, subject, path, argument=validation.min_length))
        if validation.max_length is not None:
            checks.append(Check(CheckKind.MAX_LENGTH, subject, path, argument=validation.max_length))
    return checks


def _references(definition: NamedDefinition) -> list[str]:
    if isinstance(definition, CollectionShape):
        return _shape_references(definition.element) if definition.element is not None else []
    return [ref for field in definition.fields for ref in _shape_references(field.shape)]


def _shape_references(shape: Shape) -> list[str]:
    if isinstance(shape, NamedShape):
        return [shape.name]
    if isinstance(shape, ArrayShape):
        return _shape_references(shape.element)
    if isinstance(shape, MapShape):
        return _shape_references(shape.value)
    return []


def _guarded(checks: list[Check]) -> tuple[Check, ...]:
    # decoded collections may hold null elements
    return tuple(replace(check, guarded=True) for check in checks)
