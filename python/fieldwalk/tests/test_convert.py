import dataclasses
from collections.abc import Mapping
from typing import Any, NamedTuple

import numpy as np
import pytest
from numpy.typing import NDArray

from fieldwalk.convert import Converter, convert
from fieldwalk.errors import ConversionError
from fieldwalk.typing import Ref


@dataclasses.dataclass
class Empty:
    pass


@dataclasses.dataclass
class Foo:
    Name: str


class Point(NamedTuple):
    X: int
    Y: int


def test_numeric_unsigned_to_int() -> None:
    result = convert(np.uint64(10), int)
    assert result == 10
    assert type(result) is int


def test_numeric_int_to_float() -> None:
    result = convert(3, float)
    assert result == 3.0
    assert type(result) is float


def test_numeric_float_to_int_truncates() -> None:
    assert convert(2.9, int) == 2
    assert convert(-2.9, int) == -2


def test_numeric_to_numpy_types() -> None:
    result = convert(3, np.uint64)
    assert result == 3
    assert type(result) is np.uint64

    result = convert(1.5, np.float32)
    assert type(result) is np.float32


def test_numeric_narrowing_wraps_around() -> None:
    result = convert(np.int64(300), np.int8)
    assert type(result) is np.int8
    assert result == 44


def test_numeric_sign_crossing_follows_numpy_cast() -> None:
    result = convert(np.int8(-1), np.uint8)
    assert result == 255


def test_numpy_float_becomes_builtin_float() -> None:
    result = convert(np.float64(1.25), float)
    assert type(result) is float
    assert result == 1.25


def test_numeric_conversion_failure() -> None:
    with pytest.raises(ConversionError, match="cannot convert"):
        convert(float("nan"), int)


def test_bool_is_not_a_number() -> None:
    with pytest.raises(ConversionError):
        convert(True, int)
    with pytest.raises(ConversionError):
        convert(1, bool)


def test_direct_assignment_keeps_identity() -> None:
    foo = Foo(Name="test")
    assert convert(foo, Foo) is foo

    mapping = {"name": "x"}
    assert convert(mapping, dict) is mapping
    assert convert(mapping, dict[Any, Any]) is mapping


def test_any_accepts_everything() -> None:
    value = object()
    assert convert(value, Any) is value


def test_struct_to_int_fails_naming_both_types() -> None:
    with pytest.raises(ConversionError) as exc_info:
        convert(Empty(), int)
    message = str(exc_info.value)
    assert "cannot convert" in message
    assert "struct" in message
    assert "Empty" in message
    assert "int" in message


def test_string_to_int_fails() -> None:
    with pytest.raises(ConversionError, match="str.*int"):
        convert("example-value", int)


def test_ref_is_dereferenced() -> None:
    assert convert(Ref(64), int) == 64
    assert convert(Ref(Ref(np.int32(7))), int) == 7


def test_nil_ref_cannot_be_converted() -> None:
    with pytest.raises(ConversionError, match="cannot convert nil"):
        convert(Ref(None, int), int)


def test_none_source() -> None:
    assert convert(None, int | None) is None
    assert convert(None, Any) is None
    assert convert(None, Ref[int]) is None
    with pytest.raises(ConversionError, match="cannot convert nil to int"):
        convert(None, int)


def test_value_is_boxed_into_ref() -> None:
    result = convert(64, Ref[int])
    assert isinstance(result, Ref)
    assert result.value == 64
    assert result.pointee_type is int


def test_value_is_converted_before_boxing() -> None:
    result = convert(np.uint8(5), Ref[float])
    assert isinstance(result, Ref)
    assert type(result.value) is float


def test_matching_ref_is_kept() -> None:
    ref = Ref(5, int)
    assert convert(ref, Ref[int]) is ref

    untyped = Ref(Foo(Name="a"))
    assert convert(untyped, Ref[Foo]) is untyped


def test_mismatching_ref_is_reboxed() -> None:
    ref = Ref(5, int)
    result = convert(ref, Ref[float])
    assert result is not ref
    assert result == Ref(5.0)
    assert type(result.value) is float


def test_sequence_elementwise_conversion() -> None:
    result = convert([1.0, 2.0, 3.0], list[int])
    assert result == [1, 2, 3]
    assert all(type(v) is int for v in result)


def test_sequence_is_always_rebuilt() -> None:
    source = [1, 2, 3]
    result = convert(source, list[int])
    assert result == source
    assert result is not source


def test_sequence_of_refs() -> None:
    assert convert([Ref(1), Ref(2)], list[float]) == [1.0, 2.0]


def test_ref_to_sequence() -> None:
    assert convert(Ref([1, 2, 3]), list[int]) == [1, 2, 3]


def test_sequence_into_ref_to_sequence() -> None:
    result = convert([1, 2, 3], Ref[list[int]])
    assert isinstance(result, Ref)
    assert result.value == [1, 2, 3]


def test_sequence_to_tuple_and_ndarray() -> None:
    assert convert([1, 2], tuple[float, ...]) == (1.0, 2.0)

    result = convert([1, 2, 3], NDArray[np.float32])
    assert isinstance(result, np.ndarray)
    assert result.dtype == np.float32
    assert np.array_equal(result, [1.0, 2.0, 3.0])


def test_ndarray_to_list() -> None:
    result = convert(np.array([1.5, 2.5]), list[int])
    assert result == [1, 2]


def test_nested_sequences() -> None:
    assert convert([[1, 2], [3]], list[list[float]]) == [[1.0, 2.0], [3.0]]


def test_sequence_failure_reports_index() -> None:
    with pytest.raises(ConversionError) as exc_info:
        convert([1, "not a number", 3], list[int])
    message = str(exc_info.value)
    assert "[1]" in message
    assert "not a number" in message


def test_field_path_in_message() -> None:
    with pytest.raises(ConversionError, match=r"Type mismatch for `\.values\[2\]`"):
        convert([1, 2, "x"], list[int], field_path=[".values"])


def test_non_sequence_to_sequence_fails() -> None:
    with pytest.raises(ConversionError, match="cannot convert"):
        convert("abc", list[str])


def test_namedtuple_is_not_a_sequence() -> None:
    point = Point(1, 2)
    assert convert(point, Point) is point
    with pytest.raises(ConversionError):
        convert(point, list[int])


def test_dict_entries_are_converted() -> None:
    source = {"a": np.int8(1), "b": 2.7}
    result = convert(source, dict[str, int])
    assert result == {"a": 1, "b": 2}
    assert all(type(v) is int for v in result.values())
    assert result is not source

    assert convert({1: "x"}, dict[float, str]) == {1.0: "x"}
    assert convert({"k": [1.0, 2.0]}, Mapping[str, list[int]]) == {"k": [1, 2]}


def test_dict_entry_failure_reports_key() -> None:
    with pytest.raises(ConversionError) as exc_info:
        convert({"a": 1, "b": "not-an-int"}, dict[str, int])
    message = str(exc_info.value)
    assert "Type mismatch for `['b']`" in message
    assert "not-an-int" in message

    with pytest.raises(ConversionError, match="cannot convert"):
        convert({"a": 1}, dict[int, int])


def test_union_target() -> None:
    assert convert("a", int | str) == "a"
    result = convert(np.int16(3), int | str)
    assert result == 3
    assert type(result) is int


def test_unknown_target_type() -> None:
    from typing import Literal

    with pytest.raises(ConversionError, match="unsupported type"):
        convert("a", Literal["a"])


def test_converter() -> None:
    assert Converter(np.uint64(10)).convert(int) == 10
    with pytest.raises(ConversionError):
        Converter(Empty()).convert(int)
