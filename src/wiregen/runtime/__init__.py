from wiregen.runtime.errors import (
    ContractViolation,
    ErrorClass,
    MultiError,
    ServiceError,
    decode_payload_error,
    expect_present,
    internal,
    invalid_attribute,
    invalid_encoding,
    invalid_enum_value_error,
    invalid_field_type_error,
    invalid_format,
    invalid_format_error,
    invalid_length,
    invalid_length_error,
    invalid_parameter_type,
    invalid_parameter_type_error,
    invalid_pattern,
    invalid_pattern_error,
    invalid_range,
    invalid_range_error,
    invalid_value,
    merge_errors,
    missing_attribute,
    missing_field_error,
    missing_header,
    missing_header_error,
    missing_parameter,
    missing_parameter_error,
    new_error_class,
)
from wiregen.runtime.validation import FORMATS, validate_format, validate_pattern

__all__ = [
    "ContractViolation",
    "ErrorClass",
    "FORMATS",
    "MultiError",
    "ServiceError",
    "decode_payload_error",
    "expect_present",
    "internal",
    "invalid_attribute",
    "invalid_encoding",
    "invalid_enum_value_error",
    "invalid_field_type_error",
    "invalid_format",
    "invalid_format_error",
    "invalid_length",
    "invalid_length_error",
    "invalid_parameter_type",
    "invalid_parameter_type_error",
    "invalid_pattern",
    "invalid_pattern_error",
    "invalid_range",
    "invalid_range_error",
    "invalid_value",
    "merge_errors",
    "missing_attribute",
    "missing_field_error",
    "missing_header",
    "missing_header_error",
    "missing_parameter",
    "missing_parameter_error",
    "new_error_class",
    "validate_format",
    "validate_pattern",
]
