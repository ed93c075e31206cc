"""
Loaders filling structs from mappings and environment variables, built on `for_each()`.
"""

import logging
import os
from typing import Any, Mapping

from .convert import describe_type
from .structs import Field, StructInfoCache, for_each, nested_struct_type
from .typing import (
    AnalyzedBasicType,
    AnalyzedNumericType,
    AnalyzedRefType,
    AnalyzedSequenceType,
    AnalyzedTypeInfo,
    Ref,
    analyze_type_info,
)

_logger = logging.getLogger(__name__)

_TRUE_VALUES = frozenset(["1", "true", "t", "yes", "y", "on"])
_FALSE_VALUES = frozenset(["0", "false", "f", "no", "n", "off", ""])


def load_from_mapping(
    target: Any,
    data: Mapping[str, Any],
    *,
    tag_key: str = "map",
    cache: StructInfoCache | None = None,
) -> None:
    """
    Fill the fields of a struct from a mapping, looking up each field by its tag.

    Fields without the tag, and tags missing in the mapping, are left untouched.
    Struct fields are filled recursively when the mapping holds a nested mapping for them.
    A nested struct is created with no arguments when the field holds `None`.
    """

    def visit(field: Field) -> None:
        key = field.tags.get(tag_key)
        if not key:
            return
        if key not in data:
            _logger.debug("Key '%s' for field '%s' is missing", key, field.name)
            return

        value = data[key]
        struct_type = nested_struct_type(field.info.type_info)
        if struct_type is not None and isinstance(value, Mapping):
            current = field.value
            if current is None:
                nested = Ref(struct_type(), struct_type)
                load_from_mapping(nested, value, tag_key=tag_key, cache=cache)
                field.set(nested)
            elif isinstance(current, Ref):
                load_from_mapping(current, value, tag_key=tag_key, cache=cache)
            else:
                load_from_mapping(field.ref, value, tag_key=tag_key, cache=cache)
            return

        field.set(value)

    for_each(target, visit, cache=cache)


def _parse_env_value(raw: str, type_info: AnalyzedTypeInfo) -> Any:
    variant = type_info.variant
    if isinstance(variant, AnalyzedRefType):
        return _parse_env_value(raw, analyze_type_info(variant.pointee_type))
    if isinstance(variant, AnalyzedNumericType):
        if "int" in variant.kind:
            return int(raw.strip())
        return float(raw)
    if isinstance(variant, AnalyzedBasicType) and variant.kind == "bool":
        lowered = raw.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ValueError(
            f"Invalid value for {describe_type(type_info)}: {raw!r}. "
            f"Expected one of {sorted(_TRUE_VALUES | _FALSE_VALUES)}"
        )
    if isinstance(variant, AnalyzedSequenceType):
        if not raw.strip():
            return []
        elem_type_info = analyze_type_info(variant.elem_type)
        return [_parse_env_value(part.strip(), elem_type_info) for part in raw.split(",")]
    return raw


def load_from_env(
    target: Any,
    *,
    tag_key: str = "env",
    environ: Mapping[str, str] | None = None,
    cache: StructInfoCache | None = None,
) -> None:
    """
    Fill the fields of a struct from environment variables named by their tags.

    Raw strings are parsed for numeric, bool and sequence fields (comma separated).
    Unset variables leave the field untouched.

    Raises:
        IterationError: If a value can't be parsed or converted. The parsing `ValueError`
            or the `ConversionError` is kept as its cause.
    """
    if environ is None:
        environ = os.environ

    def visit(field: Field) -> None:
        name = field.tags.get(tag_key)
        if not name:
            return
        raw = environ.get(name)
        if raw is None:
            _logger.debug(
                "Environment variable '%s' for field '%s' is not set", name, field.name
            )
            return
        field.set(_parse_env_value(raw, field.info.type_info))

    for_each(target, visit, cache=cache)
