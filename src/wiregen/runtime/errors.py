"""Structured errors raised and collected by generated code.

Every violation found while validating a request body becomes a :class:`ServiceError` carrying a
stable code, the status class of the error, a human readable detail and the path of the offending
field. Validators never raise these: they fold them into a :class:`MultiError` with
:func:`merge_errors` so that a single pass reports every violation.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from typing import Any

INTERNAL_STATUS = 500
CLIENT_STATUS = 400


class ServiceError(Exception):
    def __init__(
        self,
        code: str,
        status: int,
        detail: str,
        meta: dict[str, Any] | None = None,
        field: str | None = None,
    ) -> None:
        super().__init__(detail)
        self.code = code
        self.status = status
        self.detail = detail
        self.meta: dict[str, Any] = dict(meta or {})
        self.field = field

    def __str__(self) -> str:
        return self.detail

    def __repr__(self) -> str:
        return f"ServiceError(code={self.code!r}, status={self.status}, detail={self.detail!r})"

    def with_meta(self, *keyvals: Any) -> ServiceError:
        """Add key/value pairs to the error metadata; a trailing key without value gets ``"MISSING"``."""
        for index in range(0, len(keyvals), 2):
            value = keyvals[index + 1] if index + 1 < len(keyvals) else "MISSING"
            self.meta[str(keyvals[index])] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"code": self.code, "status": self.status, "detail": self.detail}
        if self.meta:
            data["meta"] = dict(self.meta)
        return data


class ErrorClass:
    """Factory of errors sharing one code and status.

    Calling the class formats ``message % args``; *message* may be a string, an exception or any
    value, in which case its string form is used. Callers are responsible for keeping codes unique.
    """

    def __init__(self, code: str, status: int) -> None:
        self.code = code
        self.status = status

    def __call__(self, message: object, *args: Any, field: str | None = None) -> ServiceError:
        template = message if isinstance(message, str) else str(message)
        detail = template % args if args else template
        return ServiceError(self.code, self.status, detail, field=field)


def new_error_class(code: str, status: int) -> ErrorClass:
    return ErrorClass(code, status)


invalid_parameter_type = new_error_class("invalid_parameter_type", 400)
missing_parameter = new_error_class("missing_parameter", 400)
invalid_attribute = new_error_class("invalid_attribute", 400)
missing_attribute = new_error_class("missing_attribute", 400)
invalid_value = new_error_class("invalid_value", 400)
missing_header = new_error_class("missing_header", 400)
invalid_format = new_error_class("invalid_format", 400)
invalid_pattern = new_error_class("invalid_pattern", 400)
invalid_range = new_error_class("invalid_range", 400)
invalid_length = new_error_class("invalid_length", 400)
invalid_encoding = new_error_class("invalid_encoding", 400)
internal = new_error_class("internal", INTERNAL_STATUS)


def invalid_parameter_type_error(name: str, value: Any, expected: str) -> ServiceError:
    return invalid_parameter_type("invalid value %r for parameter %r, must be a %s", value, name, expected, field=name)


def missing_parameter_error(name: str) -> ServiceError:
    return missing_parameter("missing required parameter %r", name, field=name)


def invalid_field_type_error(path: str, value: Any, expected: str) -> ServiceError:
    return invalid_attribute("type of %s must be %s but got value %r", path, expected, value, field=path)


def missing_field_error(name: str, path: str) -> ServiceError:
    return missing_attribute("attribute %r of %s is missing and required", name, path, field=f"{path}.{name}")


def missing_header_error(name: str) -> ServiceError:
    return missing_header("missing required HTTP header %r", name, field=name)


def invalid_enum_value_error(path: str, value: Any, allowed: Sequence[Any]) -> ServiceError:
    choices = ", ".join(repr(choice) for choice in allowed)
    return invalid_value("value of %s must be one of %s but got value %r", path, choices, value, field=path)


def invalid_format_error(path: str, value: str, format: str, reason: object) -> ServiceError:
    return invalid_format("%s must be formatted as a %s but got value %r, %s", path, format, value, reason, field=path)


def invalid_pattern_error(path: str, value: str, pattern: str) -> ServiceError:
    return invalid_pattern("%s must match the regexp %r but got value %r", path, pattern, value, field=path)


def invalid_range_error(path: str, value: Any, bound: float, minimum: bool) -> ServiceError:
    comparison = "greater or equal" if minimum else "lesser or equal"
    return invalid_range(
        "%s must be %s than %s but got value %r", path, comparison, _bound(bound), value, field=path
    )


def invalid_length_error(path: str, value: Any, length: int, bound: int, minimum: bool) -> ServiceError:
    comparison = "greater or equal" if minimum else "lesser or equal"
    return invalid_length(
        "length of %s must be %s than %d but got value %r (len=%d)",
        path,
        comparison,
        bound,
        value,
        length,
        field=path,
    )


def decode_payload_error(reason: object) -> ServiceError:
    return invalid_encoding("request body could not be decoded: %s", reason)


def _bound(bound: float) -> float | int:
    if isinstance(bound, float) and bound.is_integer():
        return int(bound)
    return bound


class MultiError(Exception):
    """An ordered, flat collection of errors."""

    def __init__(self, errors: Iterable[BaseException] = ()) -> None:
        self.errors: list[BaseException] = list(errors)
        super().__init__(str(self))

    def __str__(self) -> str:
        return ", ".join(str(error) for error in self.errors)

    def __repr__(self) -> str:
        return f"MultiError({self.errors!r})"

    def __len__(self) -> int:
        return len(self.errors)

    def __iter__(self) -> Iterator[BaseException]:
        return iter(self.errors)

    def __getitem__(self, index: int) -> BaseException:
        return self.errors[index]

    @property
    def status(self) -> int:
        """Status class of the whole collection.

        An empty collection or any internal error gives 500 and a single error gives its own
        status. Otherwise the shared status is used if every entry agrees, and 400 when they
        disagree. That last rule loses information: 404 and 409 together report 400.
        """
        if not self.errors:
            return INTERNAL_STATUS
        first = self.errors[0]
        if not isinstance(first, ServiceError):
            return INTERNAL_STATUS
        status = first.status
        if status == INTERNAL_STATUS:
            return status
        for error in self.errors[1:]:
            if not isinstance(error, ServiceError) or error.status == INTERNAL_STATUS:
                return INTERNAL_STATUS
            if error.status != status:
                status = CLIENT_STATUS
        return status


def merge_errors(*errors: BaseException | None) -> MultiError | None:
    """Fold *errors* into one flat :class:`MultiError`, ignoring None; None when nothing remains."""
    merged: list[BaseException] = []
    for error in errors:
        if error is None:
            continue
        if isinstance(error, MultiError):
            merged.extend(error.errors)
        else:
            merged.append(error)
    if not merged:
        return None
    return MultiError(merged)


class ContractViolation(RuntimeError):
    """A domain value handed to a generated converter does not honor the description."""


def expect_present(value: Any, name: str) -> Any:
    if value is None:
        raise ContractViolation(f"{name!r} is required by the response body but the domain value is missing")
    return value

