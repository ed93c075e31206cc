"""
Walk the items of sequences: lists, NumPy arrays, or sequences held by a `Ref`.
"""

from __future__ import annotations

import reprlib
from typing import Any, Callable

import numpy as np

from .convert import convert, make_sequence
from .errors import ConversionError, IterationError, ShapeError
from .typing import (
    AnalyzedAnyType,
    AnalyzedSequenceType,
    Ref,
    analyze_type_info,
    is_immutable_value,
    type_name,
    value_type_name,
)


class _SliceTarget:
    """
    Location of a sequence being walked.

    Lists and arrays are updated in place. Tuples held by a `Ref` are replaced as a whole
    in the `Ref` on every write.
    """

    def __init__(self, seq: Any, ref: Ref[Any] | None = None, declared_type: Any = Any):
        self._seq = seq
        self._ref = ref
        self.declared_type = declared_type

    @property
    def seq(self) -> Any:
        return self._ref.value if self._ref is not None else self._seq

    @property
    def is_ref(self) -> bool:
        return self._ref is not None

    def __len__(self) -> int:
        seq = self.seq
        return 0 if seq is None else len(seq)

    def type_name(self) -> str:
        if isinstance(analyze_type_info(self.declared_type).variant, AnalyzedSequenceType):
            return type_name(self.declared_type)
        return value_type_name(self.seq)

    def read(self, index: int) -> Any:
        return self.seq[index]

    def write(self, index: int, value: Any) -> None:
        seq = self.seq
        if isinstance(seq, tuple):
            assert self._ref is not None
            self._ref.value = seq[:index] + (value,) + seq[index + 1 :]
        else:
            seq[index] = value

    def extend(self, items: list[Any]) -> None:
        seq = self.seq
        if seq is None:
            assert self._ref is not None
            variant = analyze_type_info(self.declared_type).variant
            self._ref.value = (
                make_sequence(variant, items)
                if isinstance(variant, AnalyzedSequenceType)
                else items
            )
        elif isinstance(seq, list):
            seq.extend(items)
        elif isinstance(seq, tuple):
            assert self._ref is not None
            self._ref.value = seq + tuple(items)
        else:
            assert self._ref is not None
            self._ref.value = np.concatenate([seq, np.asarray(items, dtype=seq.dtype)])


def _resolve_slice_target(target: Any) -> _SliceTarget:
    if target is None:
        raise ShapeError("unexpected nil input")

    if isinstance(target, Ref):
        value = target.value
        if value is None:
            pointee_variant = analyze_type_info(target.pointee_type).variant
            if isinstance(pointee_variant, (AnalyzedSequenceType, AnalyzedAnyType)):
                return _SliceTarget(None, target, target.pointee_type)
            raise ShapeError(
                f"can only get slice info from slices, but got: {value_type_name(target)}"
            )
        if isinstance(value, (list, tuple)) or (
            isinstance(value, np.ndarray) and value.ndim == 1
        ):
            return _SliceTarget(value, target, target.pointee_type)
        raise ShapeError(
            f"can only get slice info from slices, but got: Ref[{value_type_name(value)}]"
        )

    if isinstance(target, list) or (
        isinstance(target, np.ndarray) and target.ndim == 1
    ):
        return _SliceTarget(target)

    if is_immutable_value(target):
        raise ShapeError(f"expected slice pointer but got: {value_type_name(target)}")
    raise ShapeError(
        f"can only get slice info from slices, but got: {value_type_name(target)}"
    )


def _declared_elem_type(target: _SliceTarget, elem_type: Any) -> Any | None:
    if elem_type is not None:
        return elem_type
    variant = analyze_type_info(target.declared_type).variant
    if isinstance(variant, AnalyzedSequenceType) and variant.elem_type is not Any:
        return variant.elem_type
    seq = target.seq
    if isinstance(seq, np.ndarray) and seq.dtype != np.dtype(object):
        return seq.dtype.type
    return None


class ItemRef(Ref[Any]):
    """
    A `Ref` to a single item of a sequence. Reads and writes don't convert values.
    """

    def __init__(self, target: _SliceTarget, index: int, item_type: Any):
        super().__init__(type=item_type)
        self._target = target
        self._index = index

    @property
    def value(self) -> Any:
        return self._target.read(self._index)

    @value.setter
    def value(self, value: Any) -> None:
        self._target.write(self._index, value)


class Item:
    """
    Handle to a single item of a sequence, passed to the visitor of `for_each()`.
    It's only meant to be used during the visitor call.
    """

    _target: _SliceTarget
    _index: int
    _type: Any

    def __init__(self, target: _SliceTarget, index: int, declared_type: Any | None):
        self._target = target
        self._index = index
        if declared_type is not None:
            self._type = declared_type
        else:
            current = target.read(index)
            self._type = Any if current is None else type(current)

    @property
    def index(self) -> int:
        return self._index

    @property
    def type(self) -> Any:
        return self._type

    @property
    def kind(self) -> str:
        return analyze_type_info(self._type).kind

    @property
    def value(self) -> Any:
        """The current value of the item."""
        return self._target.read(self._index)

    @property
    def ref(self) -> ItemRef:
        """A settable location of the item, e.g. to walk into it."""
        return ItemRef(self._target, self._index, self._type)

    def set(self, value: Any) -> None:
        """
        Convert the value to the type of the item and assign it.
        """
        try:
            converted = convert(value, self._type)
        except ConversionError as e:
            raise ConversionError(
                f"error converting {self._target.type_name()}[{self._index}]: {e}"
            ) from e
        self._target.write(self._index, converted)

    def __repr__(self) -> str:
        return f"Item({self._index}: {type_name(self._type)})"


def for_each(
    target: Any,
    visit: Callable[[Item], Any],
    *,
    elem_type: Any = None,
) -> None:
    """
    Call `visit` once for each item of a sequence, in index order.

    Args:
        target: A list, a 1-D NumPy array, or a `Ref` holding a list, tuple or array.
            A `Ref` holding `None` is walked as an empty sequence.
        visit: Called with an `Item` handle. Values assigned by `Item.set()` are
            written immediately. Any exception raised stops the iteration.
        elem_type: The type to convert assigned values to. Defaults to the declared
            item type of the `Ref`, or the array dtype, or the runtime type of the item.

    Raises:
        ShapeError: If the target is not a pointer to a sequence.
        IterationError: If `visit` raises, chained to the original exception.
    """
    slice_target = _resolve_slice_target(target)
    declared_type = _declared_elem_type(slice_target, elem_type)

    for i in range(len(slice_target)):
        item = Item(slice_target, i, declared_type)
        try:
            visit(item)
        except Exception as e:
            raise IterationError(
                f"iteration error on item '{i}' of type '{type_name(item.type)}': {e}",
                i,
                item.type,
                e,
            ) from e


def append(target: Any, *items: Any, elem_type: Any = None) -> None:
    """
    Convert the items to the item type of a sequence and append them to it.

    All items are converted before anything is appended: when any conversion fails,
    the sequence is left untouched.

    Args:
        target: A list, or a `Ref` holding a list, tuple, 1-D NumPy array or `None`.
        items: The values to append.
        elem_type: The type to convert items to. Defaults to the declared item type of
            the `Ref`, or the array dtype. Items are appended as-is when no type is
            declared.

    Raises:
        ShapeError: If the target is not a pointer to a sequence that can grow.
        ConversionError: If any item can't be converted.
    """
    slice_target = _resolve_slice_target(target)
    if not slice_target.is_ref and isinstance(slice_target.seq, np.ndarray):
        raise ShapeError(
            f"expected slice pointer but got: {value_type_name(slice_target.seq)}"
        )
    if not items:
        return

    dst_type = _declared_elem_type(slice_target, elem_type)
    if dst_type is None:
        dst_type = Any
    dst_type_info = analyze_type_info(dst_type)

    batch = []
    for item in items:
        try:
            batch.append(convert(item, dst_type_info))
        except ConversionError as e:
            raise ConversionError(
                f"error converting {reprlib.repr(item)} to {type_name(dst_type)}: {e}"
            ) from e
    slice_target.extend(batch)
