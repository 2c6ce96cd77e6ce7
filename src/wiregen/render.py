"""Render the artifacts of one service as a Python module."""

import json
import re
import textwrap
from typing import Any

from wiregen.config import Settings
from wiregen.core.converters import (
    Call,
    ConverterKind,
    ConverterPlan,
    Expr,
    Guarded,
    ListOf,
    MapOf,
    Ref,
    Required,
)
from wiregen.core.domain import DomainField, DomainType
from wiregen.core.generate import ServiceArtifacts
from wiregen.core.naming import to_snake_case
from wiregen.core.shapes import (
    BodyShape,
    CollectionShape,
    NamedShape,
    RecordShape,
    Role,
    ShapeField,
    wire_annotation,
)
from wiregen.core.validation import Check, CheckKind, ValidatorPlan

_INDENT = "    "
_LINE_WIDTH = 96
_ANY = re.compile(r"\bAny\b")


def module_filename(service: str) -> str:
    return f"{to_snake_case(service)}_server_types.py"


def render_service(artifacts: ServiceArtifacts, settings: Settings) -> str:
    return ModuleWriter(artifacts, settings.runtime_module).render()


class ModuleWriter:
    """Writes one generated module.

    Sections are written in a fixed order (domain types, body types, request constructors,
    response and error constructors, validators, helpers) and imports are collected while
    writing, so the same artifacts always produce the same text.
    """

    def __init__(self, artifacts: ServiceArtifacts, runtime_module: str) -> None:
        self._artifacts = artifacts
        self._runtime_module = runtime_module
        self._lines: list[str] = []
        self._typing_imports: set[str] = set()
        self._uses_dataclasses = False
        self._uses_runtime = False
        self._owners: dict[str, BodyShape] = {
            body.record_name: body for body in artifacts.bodies if body.record_name is not None
        }

    def render(self) -> str:
        for domain_type in self._artifacts.domain_types:
            self._domain_type(domain_type)
        for definition in self._artifacts.definitions:
            if isinstance(definition, RecordShape):
                self._record(definition)
            else:
                self._collection(definition)
        for plan in self._artifacts.request_constructors:
            self._converter(plan)
        for plan in self._artifacts.response_constructors:
            self._converter(plan)
        for validator in self._artifacts.validators:
            self._validator(validator)
        for plan in self._artifacts.helpers:
            self._converter(plan)
        return "\n".join([*self._header(), *self._lines]).rstrip() + "\n"

    def _header(self) -> list[str]:
        summary = f"Server types of the {self._artifacts.service} service."
        if self._artifacts.description:
            summary += "\n\n" + self._artifacts.description
        lines = ["# Code generated by wiregen, DO NOT EDIT.", *_docstring(summary, 0), "", "from __future__ import annotations"]
        imports = []
        if self._uses_dataclasses:
            imports.append("import dataclasses")
        if self._typing_imports:
            imports.append("from typing import " + ", ".join(sorted(self._typing_imports)))
        if imports:
            lines += ["", *imports]
        if self._uses_runtime:
            lines += ["", f"import {self._runtime_module} as rt"]
        return lines

    def _emit(self, line: str = "", depth: int = 0) -> None:
        self._lines.append(f"{_INDENT * depth}{line}" if line else "")

    def _block(self) -> None:
        self._emit()
        self._emit()

    def _annotation(self, annotation: str, optional: bool = False) -> str:
        if _ANY.search(annotation):
            self._typing_imports.add("Any")
        if optional and annotation != "Any":
            return f"{annotation} | None"
        return annotation

    def _domain_type(self, domain_type: DomainType) -> None:
        self._uses_dataclasses = True
        self._block()
        self._emit("@dataclasses.dataclass(kw_only=True)")
        self._emit(f"class {domain_type.name}:")
        self._lines.extend(_docstring(domain_type.description, 1))
        if domain_type.fields:
            self._emit()
        for domain_field in domain_type.fields:
            self._emit(self._domain_field(domain_field), 1)

    def _domain_field(self, domain_field: DomainField) -> str:
        annotation = self._annotation(domain_field.annotation, domain_field.optional)
        if domain_field.has_default:
            return f"{domain_field.name}: {annotation} = {_default(domain_field.default)}"
        if domain_field.optional:
            return f"{domain_field.name}: {annotation} = None"
        return f"{domain_field.name}: {annotation}"

    def _record(self, record: RecordShape) -> None:
        self._uses_dataclasses = True
        self._block()
        self._emit("@dataclasses.dataclass(kw_only=True)")
        self._emit(f"class {record.name}:")
        self._lines.extend(_docstring(self._record_description(record), 1))
        if record.fields:
            self._emit()
        for shape_field in record.fields:
            self._emit(self._body_field(shape_field), 1)

    def _record_description(self, record: RecordShape) -> str:
        body = self._owners.get(record.name)
        if body is None:
            return record.description
        service = self._artifacts.service
        text = f'{record.name} is the type of the "{service}" service "{body.method}" endpoint'
        if body.role is Role.REQUEST:
            return f"{text} request body."
        if body.error:
            return f'{text} response body for the "{body.error}" error.'
        return f"{text} response body."

    def _body_field(self, shape_field: ShapeField) -> str:
        annotation = self._annotation(wire_annotation(shape_field.shape), shape_field.nullable)
        tags = ", ".join(f"{_literal(key)}: {_literal(value)}" for key, value in shape_field.tags.items())
        if shape_field.nullable:
            return f"{shape_field.name}: {annotation} = dataclasses.field(default=None, metadata={{{tags}}})"
        return f"{shape_field.name}: {annotation} = dataclasses.field(metadata={{{tags}}})"

    def _collection(self, collection: CollectionShape) -> None:
        assert collection.element is not None
        self._typing_imports.add("TypeAlias")
        self._block()
        self._emit(f"# {collection.description}")
        annotation = self._annotation(f"list[{wire_annotation(collection.element)}]")
        self._emit(f'{collection.name}: TypeAlias = "{annotation}"')

    def _converter(self, plan: ConverterPlan) -> None:
        self._block()
        params = ", ".join(f"{param.name}: {self._annotation(param.annotation)}" for param in plan.params)
        self._emit(f"def {plan.name}({params}) -> {self._annotation(plan.returns)}:")
        self._lines.extend(_docstring(self._converter_description(plan), 1))
        if plan.kind in (ConverterKind.UNMARSHAL, ConverterKind.MARSHAL):
            self._emit("if v is None:", 1)
            self._emit("return None", 2)
        if plan.target is None:
            assert plan.value is not None
            self._emit(f"return {self._expr(plan.value)}", 1)
            return
        if not plan.assignments:
            self._emit(f"return {plan.target}()", 1)
            return
        self._emit(f"return {plan.target}(", 1)
        for assignment in plan.assignments:
            self._emit(f"{assignment.name}={self._expr(assignment.value)},", 2)
        self._emit(")", 1)

    def _converter_description(self, plan: ConverterPlan) -> str:
        service = self._artifacts.service
        if plan.kind is ConverterKind.REQUEST:
            return f"{plan.name} builds a {service} service {plan.method} endpoint payload."
        if plan.kind is ConverterKind.RESPONSE:
            return (
                f'{plan.name} builds the response body from the result of the "{plan.method}" endpoint '
                f'of the "{service}" service.'
            )
        if plan.kind is ConverterKind.ERROR:
            return (
                f'{plan.name} builds the response body for the "{plan.error}" error of the '
                f'"{plan.method}" endpoint of the "{service}" service.'
            )
        source, target = plan.params[0].annotation.removesuffix(" | None"), plan.returns.removesuffix(" | None")
        return f"{plan.name} builds a value of type {target} from a value of type {source}."

    def _expr(self, expr: Expr) -> str:
        if isinstance(expr, Ref):
            return expr.expr
        if isinstance(expr, Call):
            return f"{expr.function}({self._expr(expr.argument)})"
        if isinstance(expr, ListOf):
            return f"[{self._expr(expr.item)} for {expr.var} in {expr.source}]"
        if isinstance(expr, MapOf):
            key, value = self._expr(expr.key), self._expr(expr.value)
            return f"{{{key}: {value} for {expr.key_var}, {expr.value_var} in {expr.source}.items()}}"
        if isinstance(expr, Guarded):
            return f"{self._expr(expr.inner)} if {expr.source} is not None else {_literal(expr.fallback)}"
        if isinstance(expr, Required):
            self._uses_runtime = True
            return f"rt.expect_present({self._expr(expr.inner)}, {_literal(expr.name)})"
        raise TypeError(f"unknown expression {expr!r}")

    def _validator(self, plan: ValidatorPlan) -> None:
        self._uses_runtime = True
        self._block()
        annotation = self._annotation(plan.shape.name if isinstance(plan.shape, NamedShape) else wire_annotation(plan.shape))
        self._emit(f'def {plan.name}(body: {annotation}, path: str = "body") -> rt.MultiError | None:')
        target = plan.target or f"the {plan.method} request body"
        self._lines.extend(_docstring(f"{plan.name} runs the validations defined on {target}.", 1))
        self._emit("err: rt.MultiError | None = None", 1)
        for check in plan.checks:
            self._check(check, 1)
        self._emit("return err", 1)

    def _check(self, check: Check, depth: int) -> None:
        if check.guarded:
            self._emit(f"if {check.subject} is not None:", depth)
            depth += 1
        path = _path(check.path)
        subject = check.subject
        if check.kind is CheckKind.MISSING:
            self._emit(f"if {subject} is None:", depth)
            self._merge(f"rt.missing_field_error({_literal(check.argument)}, {path})", depth + 1)
        elif check.kind is CheckKind.ENUM:
            allowed = _literal(list(check.argument))
            self._emit(f"if {subject} not in {allowed}:", depth)
            self._merge(f"rt.invalid_enum_value_error({path}, {subject}, {allowed})", depth + 1)
        elif check.kind is CheckKind.FORMAT:
            self._merge(f"rt.validate_format({path}, {subject}, {_literal(check.argument)})", depth)
        elif check.kind is CheckKind.PATTERN:
            self._merge(f"rt.validate_pattern({path}, {subject}, {_literal(check.argument)})", depth)
        elif check.kind in (CheckKind.MINIMUM, CheckKind.MAXIMUM):
            minimum = check.kind is CheckKind.MINIMUM
            self._emit(f"if {subject} {'<' if minimum else '>'} {check.argument!r}:", depth)
            self._merge(f"rt.invalid_range_error({path}, {subject}, {check.argument!r}, {minimum})", depth + 1)
        elif check.kind in (CheckKind.MIN_LENGTH, CheckKind.MAX_LENGTH):
            minimum = check.kind is CheckKind.MIN_LENGTH
            self._emit(f"if len({subject}) {'<' if minimum else '>'} {check.argument!r}:", depth)
            self._merge(
                f"rt.invalid_length_error({path}, {subject}, len({subject}), {check.argument!r}, {minimum})",
                depth + 1,
            )
        elif check.kind is CheckKind.NESTED:
            self._merge(f"{check.argument}({subject}, {path})", depth)
        elif check.kind is CheckKind.EACH:
            if check.mapping:
                self._emit(f"for {check.index}, {check.var} in {subject}.items():", depth)
            else:
                self._emit(f"for {check.index}, {check.var} in enumerate({subject}):", depth)
            for inner in check.checks:
                self._check(inner, depth + 1)
        else:
            raise ValueError(f"unknown check kind {check.kind!r}")

    def _merge(self, call: str, depth: int) -> None:
        self._emit(f"err = rt.merge_errors(err, {call})", depth)


def _path(path: str) -> str:
    if path == "{path}":
        return "path"
    return f'f"{path}"'


def _default(value: Any) -> str:
    if isinstance(value, (list, dict)):
        return f"dataclasses.field(default_factory=lambda: {_literal(value)})"
    return _literal(value)


def _literal(value: Any) -> str:
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, list):
        return "[" + ", ".join(_literal(item) for item in value) + "]"
    if isinstance(value, dict):
        return "{" + ", ".join(f"{_literal(key)}: {_literal(item)}" for key, item in value.items()) + "}"
    return repr(value)


def _docstring(text: str, depth: int) -> list[str]:
    text = text.replace("\\", "\\\\").replace('"""', '\\"\\"\\"')
    if text.endswith('"'):
        text = text[:-1] + '\\"'
    indent = _INDENT * depth
    paragraphs = [
        textwrap.wrap(paragraph, width=_LINE_WIDTH - len(indent)) for paragraph in text.split("\n\n") if paragraph.strip()
    ] or [[""]]
    if len(paragraphs) == 1 and len(paragraphs[0]) == 1:
        return [f'{indent}"""{paragraphs[0][0]}"""']
    lines = [f'{indent}"""{paragraphs[0][0]}']
    lines += [f"{indent}{line}" for line in paragraphs[0][1:]]
    for paragraph in paragraphs[1:]:
        lines.append("")
        lines += [f"{indent}{line}" for line in paragraph]
    lines.append(f'{indent}"""')
    return lines
