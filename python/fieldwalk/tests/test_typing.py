import dataclasses
from collections.abc import Mapping, Sequence
from typing import Annotated, Any, Literal, NamedTuple, Optional

import numpy as np
from numpy.typing import NDArray

from fieldwalk.typing import (
    AnalyzedAnyType,
    AnalyzedBasicType,
    AnalyzedDictType,
    AnalyzedNumericType,
    AnalyzedOpaqueType,
    AnalyzedRefType,
    AnalyzedSequenceType,
    AnalyzedStructType,
    AnalyzedUnionType,
    AnalyzedUnknownType,
    Embedded,
    Ref,
    Tag,
    analyze_type_info,
    is_immutable_value,
    is_sequence_value,
    is_value_struct,
    type_name,
    value_type_name,
)


@dataclasses.dataclass
class SimpleDataclass:
    Name: str
    Value: int


@dataclasses.dataclass(frozen=True)
class FrozenDataclass:
    Name: str


class SimpleNamedTuple(NamedTuple):
    Name: str
    Value: int


class Color:
    pass


def test_numeric_types() -> None:
    assert analyze_type_info(int).variant == AnalyzedNumericType(kind="int")
    assert analyze_type_info(float).variant == AnalyzedNumericType(kind="float")
    assert analyze_type_info(np.uint64).variant == AnalyzedNumericType(kind="uint64")
    assert analyze_type_info(np.int8).kind == "int8"
    assert analyze_type_info(np.float32).kind == "float32"


def test_bool_is_not_numeric() -> None:
    result = analyze_type_info(bool)
    assert result.variant == AnalyzedBasicType(kind="bool")


def test_basic_types() -> None:
    assert analyze_type_info(str).kind == "str"
    assert analyze_type_info(bytes).kind == "bytes"


def test_any_type() -> None:
    result = analyze_type_info(Any)
    assert isinstance(result.variant, AnalyzedAnyType)
    assert result.kind == "any"


def test_list_type() -> None:
    result = analyze_type_info(list[int])
    assert result.variant == AnalyzedSequenceType(elem_type=int, container=list)
    assert result.kind == "slice"
    assert result.base_type is list


def test_sequence_type() -> None:
    result = analyze_type_info(Sequence[str])
    assert result.variant == AnalyzedSequenceType(elem_type=str, container=list)


def test_homogeneous_tuple_type() -> None:
    result = analyze_type_info(tuple[float, ...])
    assert result.variant == AnalyzedSequenceType(elem_type=float, container=tuple)


def test_fixed_tuple_type_is_opaque() -> None:
    result = analyze_type_info(tuple[int, str])
    assert result.variant == AnalyzedOpaqueType(cls=tuple)


def test_ndarray_type() -> None:
    result = analyze_type_info(NDArray[np.float32])
    assert isinstance(result.variant, AnalyzedSequenceType)
    assert result.variant.elem_type == np.float32
    assert result.variant.container is np.ndarray


def test_dict_type() -> None:
    result = analyze_type_info(dict[str, int])
    assert result.variant == AnalyzedDictType(key_type=str, value_type=int)
    assert result.kind == "map"
    assert analyze_type_info(Mapping[str, Any]).kind == "map"


def test_struct_types() -> None:
    result = analyze_type_info(SimpleDataclass)
    assert result.variant == AnalyzedStructType(struct_type=SimpleDataclass)
    assert result.kind == "struct"
    assert analyze_type_info(SimpleNamedTuple).kind == "struct"


def test_ref_type() -> None:
    result = analyze_type_info(Ref[int])
    assert result.variant == AnalyzedRefType(pointee_type=int)
    assert result.kind == "ref"
    assert analyze_type_info(Ref).variant == AnalyzedRefType(pointee_type=Any)


def test_optional_type() -> None:
    result = analyze_type_info(Optional[int])
    assert result.variant == AnalyzedNumericType(kind="int")
    assert result.nullable is True

    result = analyze_type_info(list[str] | None)
    assert isinstance(result.variant, AnalyzedSequenceType)
    assert result.nullable is True


def test_union_type() -> None:
    result = analyze_type_info(int | str | None)
    assert result.variant == AnalyzedUnionType(variant_types=[int, str])
    assert result.nullable is True
    assert result.kind == "union"


def test_opaque_and_unknown_types() -> None:
    assert analyze_type_info(Color).variant == AnalyzedOpaqueType(cls=Color)
    assert analyze_type_info(Color).kind == "object"
    assert isinstance(analyze_type_info(Literal["a"]).variant, AnalyzedUnknownType)


def test_annotated_tag_and_embedded() -> None:
    result = analyze_type_info(
        Annotated[SimpleDataclass, Tag('map:"simple"'), Embedded()]
    )
    assert result.core_type is SimpleDataclass
    assert result.tag == 'map:"simple"'
    assert result.embedded is True


def test_multiple_tags_are_joined() -> None:
    result = analyze_type_info(Annotated[str, Tag('env:"A"'), Tag('map:"a"')])
    assert result.tag == 'env:"A" map:"a"'


def test_tag_kept_through_optional() -> None:
    result = analyze_type_info(Annotated[int | None, Tag('env:"PORT"')])
    assert result.tag == 'env:"PORT"'
    assert result.nullable is True

    result = analyze_type_info(Annotated[int, Tag('env:"PORT"')] | None)
    assert result.tag == 'env:"PORT"'
    assert result.nullable is True


def test_ref_pointee_type() -> None:
    assert Ref(1).pointee_type is Any
    assert Ref(1, int).pointee_type is int
    assert Ref[list[int]]([1]).pointee_type == list[int]


def test_ref_value() -> None:
    ref = Ref[int]()
    assert ref.is_nil()
    ref.value = 3
    assert not ref.is_nil()
    assert ref == Ref(3)
    assert repr(ref) == "Ref[int](3)"


def test_type_name() -> None:
    assert type_name(int) == "int"
    assert type_name(list[int]) == "list[int]"
    assert type_name(Ref[np.uint64]) == "Ref[uint64]"
    assert type_name(dict[str, Any]) == "dict[str, Any]"
    assert type_name(int | None) == "int | None"
    assert type_name(Annotated[str, Tag('a:"b"')]) == "str"
    assert type_name(NDArray[np.float64]) == "NDArray[float64]"


def test_value_type_name() -> None:
    assert value_type_name("x") == "str"
    assert value_type_name(["a", "b"]) == "list[str]"
    assert value_type_name([1, "b"]) == "list"
    assert value_type_name(np.array([1.0])) == "NDArray[float64]"
    assert value_type_name(Ref(1, int)) == "Ref[int]"
    assert value_type_name(SimpleNamedTuple("a", 1)) == "SimpleNamedTuple"


def test_value_helpers() -> None:
    assert is_sequence_value([1])
    assert is_sequence_value((1,))
    assert is_sequence_value(np.array([1]))
    assert not is_sequence_value("abc")
    assert not is_sequence_value(SimpleNamedTuple("a", 1))

    assert is_value_struct(SimpleNamedTuple("a", 1))
    assert is_value_struct(FrozenDataclass("a"))
    assert not is_value_struct(SimpleDataclass("a", 1))

    assert is_immutable_value(1)
    assert is_immutable_value(np.int8(1))
    assert is_immutable_value((1, 2))
    assert not is_immutable_value([1, 2])
    assert not is_immutable_value({"a": 1})
