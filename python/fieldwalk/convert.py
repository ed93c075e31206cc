"""
Utilities to convert dynamic values into declared field types.
"""

from __future__ import annotations

import collections.abc
import reprlib
from typing import Any

import numpy as np

from .errors import ConversionError
from .typing import (
    AnalyzedAnyType,
    AnalyzedBasicType,
    AnalyzedDictType,
    AnalyzedNumericType,
    AnalyzedOpaqueType,
    AnalyzedRefType,
    AnalyzedSequenceType,
    AnalyzedStructType,
    AnalyzedTypeInfo,
    AnalyzedUnionType,
    AnalyzedUnknownType,
    Ref,
    analyze_type_info,
    is_numeric_value,
    is_numpy_number_type,
    is_sequence_value,
    type_name,
    value_type_name,
)


class ChildFieldPath:
    """Context manager to append a field to field_path on enter and pop it on exit."""

    _field_path: list[str]
    _field_name: str

    def __init__(self, field_path: list[str], field_name: str):
        self._field_path: list[str] = field_path
        self._field_name = field_name

    def __enter__(self) -> ChildFieldPath:
        self._field_path.append(self._field_name)
        return self

    def __exit__(self, _exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        self._field_path.pop()


def describe_value(value: Any) -> str:
    """Describe a value with its runtime type and kind, for error messages."""
    kind = analyze_type_info(type(value)).kind
    return f"{reprlib.repr(value)} of type {value_type_name(value)} ({kind})"


def describe_type(type_info: AnalyzedTypeInfo) -> str:
    name = type_name(type_info.core_type)
    if type_info.nullable:
        name += " | None"
    return f"{name} ({type_info.kind})"


def _mismatch_prefix(field_path: list[str]) -> str:
    if not field_path:
        return ""
    return f"Type mismatch for `{''.join(field_path)}`: "


class Converter:
    """
    Converter of a single source value, e.g. `Converter(np.uint64(10)).convert(int)`.
    """

    _value: Any

    def __init__(self, value: Any):
        self._value = value

    def convert(self, dst_type: Any, field_path: list[str] | None = None) -> Any:
        return convert(self._value, dst_type, field_path)


def convert(value: Any, dst_type: Any, field_path: list[str] | None = None) -> Any:
    """
    Convert a value into one assignable to the given type.

    Args:
        value: The source value.
        dst_type: The declared type annotation, or its `AnalyzedTypeInfo`.
        field_path: The path to the value being converted. For error messages.

    Returns:
        The converted value. Sequences and typed dicts are always rebuilt, other
        values are returned as-is when they're already assignable.

    Raises:
        ConversionError: If the value can't be converted. The message names both the
            source value type and the declared type.
    """
    dst_type_info = (
        dst_type
        if isinstance(dst_type, AnalyzedTypeInfo)
        else analyze_type_info(dst_type)
    )
    return _convert_value(
        field_path if field_path is not None else [], value, dst_type_info
    )


def _convert_value(
    field_path: list[str], value: Any, dst_type_info: AnalyzedTypeInfo
) -> Any:
    dst_variant = dst_type_info.variant

    if isinstance(dst_variant, AnalyzedUnknownType):
        raise ConversionError(
            f"{_mismatch_prefix(field_path)}"
            f"declared `{type_name(dst_type_info.core_type)}`, an unsupported type"
        )

    if not isinstance(dst_variant, AnalyzedRefType):
        while isinstance(value, Ref):
            if value.is_nil():
                raise ConversionError(
                    f"{_mismatch_prefix(field_path)}"
                    f"cannot convert nil {value_type_name(value)} to {describe_type(dst_type_info)}"
                )
            value = value.value

    if value is None:
        if dst_type_info.nullable or isinstance(
            dst_variant, (AnalyzedAnyType, AnalyzedRefType)
        ):
            return None
        if isinstance(dst_variant, AnalyzedBasicType) and dst_variant.kind == "none":
            return None
        raise ConversionError(
            f"{_mismatch_prefix(field_path)}"
            f"cannot convert nil to {describe_type(dst_type_info)}"
        )

    if isinstance(dst_variant, AnalyzedRefType):
        return _convert_to_ref(field_path, value, dst_variant)

    if isinstance(dst_variant, AnalyzedSequenceType) and is_sequence_value(value):
        return _convert_sequence(field_path, value, dst_variant)

    if (
        isinstance(dst_variant, AnalyzedDictType)
        and not _is_untyped_dict(dst_variant)
        and isinstance(value, collections.abc.Mapping)
    ):
        return _convert_dict(field_path, value, dst_variant)

    if is_assignable(value, dst_type_info):
        return value

    if isinstance(dst_variant, AnalyzedNumericType) and is_numeric_value(value):
        return _convert_number(field_path, value, dst_type_info)

    if isinstance(dst_variant, AnalyzedUnionType):
        for variant_type in dst_variant.variant_types:
            try:
                return _convert_value(
                    field_path, value, analyze_type_info(variant_type)
                )
            except ConversionError:
                continue

    raise ConversionError(
        f"{_mismatch_prefix(field_path)}"
        f"cannot convert {describe_value(value)} to {describe_type(dst_type_info)}"
    )


def _convert_to_ref(
    field_path: list[str], value: Any, dst_variant: AnalyzedRefType
) -> Ref[Any]:
    pointee_type = dst_variant.pointee_type
    pointee_type_info = analyze_type_info(pointee_type)

    if isinstance(value, Ref):
        if isinstance(pointee_type_info.variant, AnalyzedAnyType):
            return value
        if value.is_nil():
            return Ref(None, pointee_type)
        if value.pointee_type == pointee_type:
            return value
        if value.pointee_type is Any and is_assignable(value.value, pointee_type_info):
            return value
        value = value.value

    converted = _convert_value(field_path, value, pointee_type_info)
    return Ref(converted, pointee_type)


def _convert_sequence(
    field_path: list[str], value: Any, dst_variant: AnalyzedSequenceType
) -> Any:
    elem_type_info = analyze_type_info(dst_variant.elem_type)
    items = []
    for i, item in enumerate(value):
        with ChildFieldPath(field_path, f"[{i}]"):
            items.append(_convert_value(field_path, item, elem_type_info))
    return make_sequence(dst_variant, items)


def _is_untyped_dict(variant: AnalyzedDictType) -> bool:
    return variant.key_type is Any and variant.value_type is Any


def _convert_dict(
    field_path: list[str], value: Any, dst_variant: AnalyzedDictType
) -> dict[Any, Any]:
    key_type_info = analyze_type_info(dst_variant.key_type)
    value_type_info = analyze_type_info(dst_variant.value_type)
    result = {}
    for k, v in value.items():
        with ChildFieldPath(field_path, f"[{k!r}]"):
            result[_convert_value(field_path, k, key_type_info)] = _convert_value(
                field_path, v, value_type_info
            )
    return result


def make_sequence(variant: AnalyzedSequenceType, items: list[Any]) -> Any:
    """Build a container of the shape declared by `variant` from converted items."""
    if variant.container is np.ndarray:
        dtype = variant.elem_type if is_numpy_number_type(variant.elem_type) else None
        return np.array(items, dtype=dtype)
    if variant.container is tuple:
        return tuple(items)
    return items


def is_assignable(value: Any, type_info: AnalyzedTypeInfo) -> bool:
    """Whether the value can be assigned to the type without any conversion."""
    variant = type_info.variant

    if isinstance(variant, AnalyzedAnyType):
        return True

    if value is None:
        return type_info.nullable

    if isinstance(variant, AnalyzedNumericType):
        if isinstance(value, bool):
            return False
        if is_numpy_number_type(type_info.core_type):
            return type(value) is type_info.core_type
        return isinstance(value, type_info.core_type) and not isinstance(
            value, np.generic
        )

    if isinstance(variant, AnalyzedBasicType):
        if variant.kind == "bool":
            return isinstance(value, bool)
        return isinstance(value, type_info.base_type)

    if isinstance(variant, AnalyzedStructType):
        return isinstance(value, variant.struct_type)

    if isinstance(variant, AnalyzedDictType):
        return _is_untyped_dict(variant) and isinstance(value, type_info.base_type)

    if isinstance(variant, AnalyzedOpaqueType):
        return isinstance(value, variant.cls)

    if isinstance(variant, AnalyzedUnionType):
        return any(
            is_assignable(value, analyze_type_info(t)) for t in variant.variant_types
        )

    return False


def _convert_number(
    field_path: list[str], value: Any, dst_type_info: AnalyzedTypeInfo
) -> Any:
    dst_core_type = dst_type_info.core_type
    try:
        if is_numpy_number_type(dst_core_type):
            return np.asarray(value).astype(dst_core_type)[()]
        return dst_core_type(value)
    except (OverflowError, ValueError, TypeError) as e:
        raise ConversionError(
            f"{_mismatch_prefix(field_path)}"
            f"cannot convert {describe_value(value)} to {describe_type(dst_type_info)}: {e}"
        ) from e
