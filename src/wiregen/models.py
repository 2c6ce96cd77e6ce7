"""Service description model consumed by the generators.

A description is loaded once (usually from JSON) and never mutated afterwards: every model is
frozen, so independent services can be generated concurrently while reading the same tree.
"""

from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Location(str, Enum):
    BODY = "body"
    PATH = "path"
    QUERY = "query"
    HEADER = "header"
    COOKIE = "cookie"


class PrimitiveType(str, Enum):
    BOOLEAN = "boolean"
    INT = "int"
    INT32 = "int32"
    INT64 = "int64"
    UINT = "uint"
    UINT32 = "uint32"
    UINT64 = "uint64"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    STRING = "string"
    BYTES = "bytes"
    ANY = "any"


class Validation(BaseModel):
    model_config = ConfigDict(frozen=True)

    pattern: str | None = None
    format: str | None = None
    minimum: float | None = None
    maximum: float | None = None
    min_length: int | None = None
    max_length: int | None = None
    enum: list[Any] | None = None


class _AttributeBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str | None = None
    validation: Validation | None = None
    location: Location = Location.BODY
    wire_name: str | None = None
    default: Any = None


class PrimitiveAttribute(_AttributeBase):
    kind: Literal["primitive"] = "primitive"
    type: PrimitiveType


class ObjectAttribute(_AttributeBase):
    kind: Literal["object"] = "object"
    fields: dict[str, "Attribute"] = Field(default_factory=dict)
    required: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_fields(self) -> "ObjectAttribute":
        unknown = [name for name in self.required if name not in self.fields]
        if unknown:
            raise ValueError(f"required fields {unknown} are not declared")
        seen: dict[str, str] = {}
        for name, attribute in self.fields.items():
            wire = attribute.wire_name or name
            if wire in seen:
                raise ValueError(f"fields {seen[wire]!r} and {name!r} share the wire name {wire!r}")
            seen[wire] = name
        return self


class ArrayAttribute(_AttributeBase):
    kind: Literal["array"] = "array"
    element: "Attribute"


class MapAttribute(_AttributeBase):
    kind: Literal["map"] = "map"
    key: "Attribute"
    value: "Attribute"


class UserTypeAttribute(_AttributeBase):
    kind: Literal["user_type"] = "user_type"
    ref: str


class ResultViewAttribute(_AttributeBase):
    kind: Literal["result_view"] = "result_view"
    ref: str
    view: str = "default"


Attribute = Annotated[
    PrimitiveAttribute
    | ObjectAttribute
    | ArrayAttribute
    | MapAttribute
    | UserTypeAttribute
    | ResultViewAttribute,
    Field(discriminator="kind"),
]

# necessary for recursive types
ObjectAttribute.model_rebuild()
ArrayAttribute.model_rebuild()
MapAttribute.model_rebuild()


class UserType(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    attribute: Attribute
    description: str | None = None
    views: dict[str, list[str]] = Field(default_factory=dict)

    def view_fields(self, view: str) -> list[str] | None:
        """Return the field names of *view*, or None when the view projects every field."""
        if view in self.views:
            return self.views[view]
        if view == "default":
            return None
        raise KeyError(view)


class ErrorDef(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    attribute: Attribute | None = None
    status: int = 400


class Method(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str | None = None
    payload: Attribute | None = None
    result: Attribute | None = None
    errors: list[ErrorDef] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_errors(self) -> "Method":
        names = [error.name for error in self.errors]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"method {self.name!r} declares errors {duplicates} more than once")
        return self


class Service(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str | None = None
    methods: list[Method] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_methods(self) -> "Service":
        names = [method.name for method in self.methods]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"service {self.name!r} declares methods {duplicates} more than once")
        return self


class Design(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = "api"
    types: list[UserType] = Field(default_factory=list)
    services: list[Service] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_names(self) -> "Design":
        for label, names in (
            ("user types", [t.name for t in self.types]),
            ("services", [s.name for s in self.services]),
        ):
            duplicates = sorted({name for name in names if names.count(name) > 1})
            if duplicates:
                raise ValueError(f"{label} {duplicates} are declared more than once")
        return self

    def user_type(self, name: str) -> UserType | None:
        for user_type in self.types:
            if user_type.name == name:
                return user_type
        return None

    def service(self, name: str) -> Service | None:
        for service in self.services:
            if service.name == name:
                return service
        return None


def load_design(path: Path) -> Design:
    return Design.model_validate_json(path.read_text(encoding="utf-8"))
