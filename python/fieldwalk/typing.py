import collections.abc
import dataclasses
import datetime
import inspect
import types
import typing
import uuid
from typing import (
    Annotated,
    Any,
    Generic,
    NamedTuple,
    TypeVar,
)

import numpy as np

T = TypeVar("T")


class Tag(NamedTuple):
    """Raw tag string of a field, e.g. `Annotated[str, Tag('env:"HOME"')]`."""

    raw: str


class Embedded(NamedTuple):
    """Marks a struct field as embedded, e.g. `Annotated[Address, Embedded()]`."""


Annotation = Tag | Embedded


class Ref(Generic[T]):
    """
    A settable location holding a value of type T. It plays the role of a pointer:
    `Ref[int]` annotates a field holding a reference to an int.

    The pointee type is taken from the `type` argument, or from the type parameter
    when created as `Ref[T](value)`. It's `Any` otherwise.
    """

    def __init__(self, value: T | None = None, type: Any = None):
        self._value = value
        self._type = type

    @property
    def value(self) -> T | None:
        return self._value

    @value.setter
    def value(self, value: T | None) -> None:
        self._value = value

    @property
    def pointee_type(self) -> Any:
        if self._type is not None:
            return self._type
        orig_class = getattr(self, "__orig_class__", None)
        if orig_class is not None:
            args = typing.get_args(orig_class)
            if args:
                return args[0]
        return Any

    def is_nil(self) -> bool:
        return self.value is None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Ref):
            return NotImplemented
        return bool(self.value == other.value)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Ref[{type_name(self.pointee_type)}]({self.value!r})"


def extract_ndarray_elem_dtype(ndarray_type: Any) -> Any:
    args = typing.get_args(ndarray_type)
    _, dtype_spec = args
    dtype_args = typing.get_args(dtype_spec)
    if not dtype_args:
        raise ValueError(f"Invalid dtype specification: {dtype_spec}")
    return dtype_args[0]


def is_numpy_number_type(t: Any) -> bool:
    return isinstance(t, type) and issubclass(t, (np.integer, np.floating))


def is_namedtuple_type(t: Any) -> bool:
    return isinstance(t, type) and issubclass(t, tuple) and hasattr(t, "_fields")


def is_struct_type(t: Any) -> bool:
    return isinstance(t, type) and (
        dataclasses.is_dataclass(t) or is_namedtuple_type(t)
    )


def is_value_struct(v: Any) -> bool:
    """
    Whether `v` is a struct instance that can't be updated in place, i.e. a NamedTuple
    or a frozen dataclass.
    """
    t = type(v)
    if is_namedtuple_type(t):
        return True
    params = getattr(t, "__dataclass_params__", None)
    return params is not None and bool(params.frozen)


_IMMUTABLE_VALUE_TYPES = (
    int,
    float,
    complex,
    str,
    bytes,
    tuple,
    frozenset,
    type,
    np.generic,
)


def is_immutable_value(v: Any) -> bool:
    """
    Whether `v` is a plain value rather than a reference to something updatable in place.
    """
    return isinstance(v, _IMMUTABLE_VALUE_TYPES) or is_value_struct(v)


def is_sequence_value(v: Any) -> bool:
    if isinstance(v, np.ndarray):
        return v.ndim >= 1
    return (
        isinstance(v, collections.abc.Sequence)
        and not isinstance(v, (str, bytes, bytearray, memoryview))
        and not is_namedtuple_type(type(v))
    )


def is_numeric_value(v: Any) -> bool:
    return isinstance(v, (int, float, np.integer, np.floating)) and not isinstance(
        v, bool
    )


def _numpy_kind(t: type) -> str:
    try:
        return np.dtype(t).name
    except TypeError:
        return t.__name__


class AnalyzedAnyType(NamedTuple):
    """
    When the type annotation is missing or matches any type.
    """


class AnalyzedNumericType(NamedTuple):
    """
    `int`, `float` and NumPy integer/floating scalar types.
    """

    kind: str


class AnalyzedBasicType(NamedTuple):
    """
    Other scalar types with a well-known kind, e.g. `bool`, `str`, `bytes`.
    """

    kind: str


class AnalyzedRefType(NamedTuple):
    """
    `Ref[T]`, a settable location holding a T.
    """

    pointee_type: Any


class AnalyzedSequenceType(NamedTuple):
    """
    Any homogeneous sequence type, e.g. list[T], Sequence[T], tuple[T, ...], NDArray[T].
    """

    elem_type: Any
    container: type


class AnalyzedStructType(NamedTuple):
    """
    Any struct type, e.g. dataclass, NamedTuple.
    """

    struct_type: type


class AnalyzedDictType(NamedTuple):
    """
    Any dict type, e.g. dict[T1, T2], Mapping[T1, T2], etc.
    """

    key_type: Any
    value_type: Any


class AnalyzedUnionType(NamedTuple):
    """
    Any union type, e.g. T1 | T2 | ..., etc.
    """

    variant_types: list[Any]


class AnalyzedOpaqueType(NamedTuple):
    """
    Any other class. Values are only assigned as-is, when they are instances of it.
    """

    cls: type


class AnalyzedUnknownType(NamedTuple):
    """
    Any annotation that can't be checked against a value, e.g. `Literal[...]`.
    """


AnalyzedTypeVariant = (
    AnalyzedAnyType
    | AnalyzedNumericType
    | AnalyzedBasicType
    | AnalyzedRefType
    | AnalyzedSequenceType
    | AnalyzedStructType
    | AnalyzedDictType
    | AnalyzedUnionType
    | AnalyzedOpaqueType
    | AnalyzedUnknownType
)

_VARIANT_KINDS: dict[type, str] = {
    AnalyzedAnyType: "any",
    AnalyzedRefType: "ref",
    AnalyzedSequenceType: "slice",
    AnalyzedStructType: "struct",
    AnalyzedDictType: "map",
    AnalyzedUnionType: "union",
    AnalyzedOpaqueType: "object",
    AnalyzedUnknownType: "unknown",
}

_BASIC_KINDS: dict[Any, str] = {
    bool: "bool",
    str: "str",
    bytes: "bytes",
    uuid.UUID: "uuid",
    datetime.date: "date",
    datetime.time: "time",
    datetime.datetime: "datetime",
    datetime.timedelta: "timedelta",
    types.NoneType: "none",
}

_SEQUENCE_BASE_TYPES = (
    list,
    collections.abc.Sequence,
    collections.abc.MutableSequence,
)

_MAPPING_BASE_TYPES = (
    dict,
    collections.abc.Mapping,
    collections.abc.MutableMapping,
)


@dataclasses.dataclass
class AnalyzedTypeInfo:
    """
    Analyzed info of a Python type.
    """

    # The type without annotations. e.g. int, list[int], dict[str, int]
    core_type: Any
    # The type without annotations and parameters. e.g. int, list, dict
    base_type: Any
    variant: AnalyzedTypeVariant
    # The raw tag string from `Tag` annotations, joined by spaces.
    tag: str | None = None
    embedded: bool = False
    nullable: bool = False

    @property
    def kind(self) -> str:
        variant = self.variant
        if isinstance(variant, (AnalyzedNumericType, AnalyzedBasicType)):
            return variant.kind
        return _VARIANT_KINDS[type(variant)]


def analyze_type_info(t: Any) -> AnalyzedTypeInfo:
    """
    Analyze a Python type annotation and classify it into one of the type variants.
    """

    tag_parts: list[str] = []
    embedded = False
    base_type = None
    type_args: tuple[Any, ...] = ()
    while True:
        base_type = typing.get_origin(t)
        if base_type is Annotated:
            for attr in t.__metadata__:
                if isinstance(attr, Tag):
                    tag_parts.append(attr.raw)
                elif isinstance(attr, Embedded):
                    embedded = True
            t = t.__origin__
        else:
            if base_type is None:
                base_type = t
            else:
                type_args = typing.get_args(t)
            break
    core_type = t
    tag = " ".join(tag_parts) if tag_parts else None

    variant: AnalyzedTypeVariant

    if t is None:
        core_type = base_type = types.NoneType
        variant = AnalyzedBasicType(kind="none")
    elif (
        base_type is Any
        or base_type is inspect.Parameter.empty
        or isinstance(t, TypeVar)
    ):
        variant = AnalyzedAnyType()
    elif base_type is Ref:
        pointee_type = type_args[0] if len(type_args) > 0 else Any
        variant = AnalyzedRefType(pointee_type=pointee_type)
    elif is_struct_type(base_type):
        variant = AnalyzedStructType(struct_type=base_type)
    elif is_numpy_number_type(t):
        variant = AnalyzedNumericType(kind=_numpy_kind(t))
    elif t is int or t is float:
        variant = AnalyzedNumericType(kind=t.__name__)
    elif base_type in _SEQUENCE_BASE_TYPES:
        elem_type = type_args[0] if len(type_args) > 0 else Any
        variant = AnalyzedSequenceType(elem_type=elem_type, container=list)
    elif base_type is tuple and (
        len(type_args) == 0 or (len(type_args) == 2 and type_args[1] is Ellipsis)
    ):
        elem_type = type_args[0] if len(type_args) > 0 else Any
        variant = AnalyzedSequenceType(elem_type=elem_type, container=tuple)
    elif base_type is np.ndarray:
        elem_type = extract_ndarray_elem_dtype(t) if type_args else Any
        variant = AnalyzedSequenceType(elem_type=elem_type, container=np.ndarray)
    elif base_type in _MAPPING_BASE_TYPES:
        key_type = type_args[0] if len(type_args) > 0 else Any
        value_type = type_args[1] if len(type_args) > 1 else Any
        variant = AnalyzedDictType(key_type=key_type, value_type=value_type)
    elif base_type in (types.UnionType, typing.Union):
        non_none_types = [arg for arg in type_args if arg not in (None, types.NoneType)]
        if len(non_none_types) == 0:
            return analyze_type_info(None)

        nullable = len(non_none_types) < len(type_args)
        if len(non_none_types) == 1:
            result = analyze_type_info(non_none_types[0])
            result.nullable = result.nullable or nullable
            result.embedded = result.embedded or embedded
            if tag is not None:
                result.tag = tag if result.tag is None else f"{tag} {result.tag}"
            return result

        return AnalyzedTypeInfo(
            core_type=core_type,
            base_type=base_type,
            variant=AnalyzedUnionType(variant_types=non_none_types),
            tag=tag,
            embedded=embedded,
            nullable=nullable,
        )
    elif t in _BASIC_KINDS:
        variant = AnalyzedBasicType(kind=_BASIC_KINDS[t])
    elif isinstance(base_type, type):
        variant = AnalyzedOpaqueType(cls=base_type)
    else:
        variant = AnalyzedUnknownType()

    return AnalyzedTypeInfo(
        core_type=core_type,
        base_type=base_type,
        variant=variant,
        tag=tag,
        embedded=embedded,
    )


def type_name(t: Any) -> str:
    """Readable name of a type annotation, e.g. `list[int]`, `Ref[uint64]`."""
    if t is Any:
        return "Any"
    if t is None or t is types.NoneType:
        return "None"
    if t is Ellipsis:
        return "..."
    origin = typing.get_origin(t)
    if origin is Annotated:
        return type_name(t.__origin__)
    if origin in (types.UnionType, typing.Union):
        return " | ".join(type_name(arg) for arg in typing.get_args(t))
    if origin is not None:
        args = typing.get_args(t)
        if origin is np.ndarray and args:
            return f"NDArray[{type_name(extract_ndarray_elem_dtype(t))}]"
        name = type_name(origin)
        if not args:
            return name
        return f"{name}[{', '.join(type_name(arg) for arg in args)}]"
    if isinstance(t, type):
        return t.__name__
    return str(t)


def value_type_name(v: Any) -> str:
    """Readable name of the runtime type of a value, e.g. `list[str]` for `["a"]`."""
    if isinstance(v, Ref):
        return f"Ref[{type_name(v.pointee_type)}]"
    if isinstance(v, np.ndarray):
        return f"NDArray[{v.dtype.name}]"
    if isinstance(v, (list, tuple)) and not is_namedtuple_type(type(v)) and v:
        elem_types = {type(item) for item in v}
        if len(elem_types) == 1:
            return f"{type(v).__name__}[{type_name(elem_types.pop())}]"
    return type_name(type(v))
