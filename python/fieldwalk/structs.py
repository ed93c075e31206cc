"""
Walk the fields of structs (dataclasses and NamedTuples) with cached field info.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import reprlib
import threading
import types
import typing
from typing import Any, Callable, Mapping, Optional

from rich.text import Text
from rich.tree import Tree

from .convert import convert, make_sequence
from .errors import ConversionError, IterationError, MalformedTagError, ShapeError
from .tags import parse_tags
from .typing import (
    AnalyzedAnyType,
    AnalyzedRefType,
    AnalyzedSequenceType,
    AnalyzedStructType,
    AnalyzedTypeInfo,
    Ref,
    analyze_type_info,
    is_immutable_value,
    is_namedtuple_type,
    is_sequence_value,
    is_struct_type,
    is_value_struct,
    type_name,
    value_type_name,
)

_logger = logging.getLogger(__name__)


def is_exported_name(name: str) -> bool:
    """
    Whether a field is visible to the walkers.
    Names starting with a lowercase letter or an underscore are not.
    """
    return bool(name) and not (name[0].islower() or name[0] == "_")


@dataclasses.dataclass(frozen=True)
class FieldInfo:
    """
    Immutable info of a struct field, cached per struct type.
    """

    # Position among all declared fields, including the invisible ones.
    index: int
    name: str
    # The declared type without `Annotated` metadata.
    type: Any
    kind: str
    tags: Mapping[str, str]
    embedded: bool
    type_info: AnalyzedTypeInfo = dataclasses.field(repr=False, compare=False)


def nested_struct_type(type_info: AnalyzedTypeInfo) -> type | None:
    variant = type_info.variant
    if isinstance(variant, AnalyzedStructType):
        return variant.struct_type
    if isinstance(variant, AnalyzedRefType):
        pointee_variant = analyze_type_info(variant.pointee_type).variant
        if isinstance(pointee_variant, AnalyzedStructType):
            return pointee_variant.struct_type
    return None


@dataclasses.dataclass(frozen=True)
class StructInfo:
    """
    Snapshot of the visible fields of a struct type, in declaration order.
    """

    struct_type: type
    fields: tuple[FieldInfo, ...]

    def field(self, name: str) -> FieldInfo | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def render_tree(self, cache: StructInfoCache | None = None) -> Tree:
        """
        Render the struct info as a styled rich Tree, expanding nested struct fields.
        """
        if cache is None:
            cache = _default_struct_info_cache

        def build_tree(
            struct_type: type, fields: tuple[FieldInfo, ...], seen: frozenset[type]
        ) -> Tree:
            node = Tree(f"Struct: {type_name(struct_type)}", style="cyan")
            for f in fields:
                label = Text(f"{f.name}: {type_name(f.type)}", style="yellow")
                label.append(f" ({f.kind})", style="dim")
                if f.embedded:
                    label.append(" embedded", style="magenta")
                if f.tags:
                    label.append(
                        " "
                        + " ".join(f"{k}:{json.dumps(v)}" for k, v in f.tags.items()),
                        style="green",
                    )
                child_node = node.add(label)
                nested_type = nested_struct_type(f.type_info)
                if nested_type is not None and nested_type not in seen:
                    child_node.children = build_tree(
                        nested_type, cache.get(nested_type), seen | {nested_type}
                    ).children
            return node

        return build_tree(self.struct_type, self.fields, frozenset([self.struct_type]))


def _compute_fields(struct_type: type) -> tuple[FieldInfo, ...]:
    _logger.debug("Computing field info for struct %s", type_name(struct_type))

    try:
        hints = typing.get_type_hints(struct_type, include_extras=True)
    except NameError as e:
        error = ShapeError(
            f"cannot resolve field types of struct {type_name(struct_type)}: {e}"
        )
        error.add_note(
            f"Failed to resolve type annotations - {struct_type.__module__}.{struct_type.__qualname__}"
        )
        raise error from e
    declared: list[tuple[str, Any, str | None]]
    if dataclasses.is_dataclass(struct_type):
        declared = [
            (f.name, hints.get(f.name, f.type), f.metadata.get("tag"))
            for f in dataclasses.fields(struct_type)
        ]
    elif is_namedtuple_type(struct_type):
        declared = [(name, hints.get(name, Any), None) for name in struct_type._fields]
    else:
        raise ShapeError(f"Unsupported struct type: {struct_type}")

    fields = []
    for index, (name, annotation, metadata_tag) in enumerate(declared):
        if not is_exported_name(name):
            continue

        type_info = analyze_type_info(annotation)
        raw_tag = " ".join(t for t in (type_info.tag, metadata_tag) if t)
        try:
            tags = parse_tags(raw_tag)
        except MalformedTagError as e:
            e.add_note(f"Failed to parse tag of field - {struct_type.__name__}.{name}")
            raise

        fields.append(
            FieldInfo(
                index=index,
                name=name,
                type=(
                    Optional[type_info.core_type]
                    if type_info.nullable
                    else type_info.core_type
                ),
                kind=type_info.kind,
                tags=types.MappingProxyType(tags),
                embedded=type_info.embedded,
                type_info=type_info,
            )
        )
    return tuple(fields)


class StructInfoCache:
    """
    Thread-safe cache of field info per struct type.

    Entries are never evicted: the set of struct types in a program is finite.
    """

    _fields: dict[type, tuple[FieldInfo, ...]]
    _lock: threading.Lock

    def __init__(self) -> None:
        self._fields = {}
        self._lock = threading.Lock()

    def get(self, struct_type: type) -> tuple[FieldInfo, ...]:
        fields = self._fields.get(struct_type)
        if fields is not None:
            return fields

        # Computed outside of the lock. Concurrent callers may compute the same type
        # more than once, but all of them get the first stored result.
        fields = _compute_fields(struct_type)
        with self._lock:
            return self._fields.setdefault(struct_type, fields)

    def __contains__(self, struct_type: object) -> bool:
        return struct_type in self._fields

    def __len__(self) -> int:
        return len(self._fields)


_default_struct_info_cache = StructInfoCache()


def default_struct_info_cache() -> StructInfoCache:
    """Get the cache shared by all calls that don't pass one explicitly."""
    return _default_struct_info_cache


class _StructTarget:
    """
    Location of a struct instance being walked.

    Mutable instances are updated in place. NamedTuples and frozen dataclasses held by a
    `Ref` are replaced as a whole in the `Ref` on every write.
    """

    def __init__(self, instance: Any, ref: Ref[Any] | None = None):
        self._instance = instance
        self._ref = ref

    @property
    def instance(self) -> Any:
        return self._ref.value if self._ref is not None else self._instance

    def read(self, name: str) -> Any:
        return getattr(self.instance, name)

    def write(self, name: str, value: Any) -> None:
        if self._ref is None:
            setattr(self._instance, name, value)
            return
        current = self._ref.value
        if is_namedtuple_type(type(current)):
            self._ref.value = current._replace(**{name: value})
        else:
            self._ref.value = dataclasses.replace(current, **{name: value})


class FieldRef(Ref[Any]):
    """
    A `Ref` to the storage of a struct field. Reads and writes don't convert values.
    """

    def __init__(self, target: _StructTarget, info: FieldInfo):
        super().__init__(type=info.type)
        self._target = target
        self._info = info

    @property
    def value(self) -> Any:
        return self._target.read(self._info.name)

    @value.setter
    def value(self, value: Any) -> None:
        self._target.write(self._info.name, value)


class Field:
    """
    Handle to a single field of a struct instance, passed to the visitor of `for_each()`.
    It's only meant to be used during the visitor call.
    """

    _info: FieldInfo
    _target: _StructTarget

    def __init__(self, info: FieldInfo, target: _StructTarget):
        self._info = info
        self._target = target

    @property
    def info(self) -> FieldInfo:
        return self._info

    @property
    def index(self) -> int:
        return self._info.index

    @property
    def name(self) -> str:
        return self._info.name

    @property
    def type(self) -> Any:
        return self._info.type

    @property
    def kind(self) -> str:
        return self._info.kind

    @property
    def tags(self) -> Mapping[str, str]:
        return self._info.tags

    @property
    def embedded(self) -> bool:
        return self._info.embedded

    @property
    def value(self) -> Any:
        """The current value of the field."""
        return self._target.read(self._info.name)

    @property
    def ref(self) -> FieldRef:
        """A settable location of the field, e.g. to walk into it."""
        return FieldRef(self._target, self._info)

    def set(self, value: Any) -> None:
        """
        Convert the value to the declared type of the field and assign it.
        """
        type_info = self._info.type_info
        if isinstance(type_info.variant, AnalyzedSequenceType) and not (
            value is None and type_info.nullable
        ):
            converted = self._convert_sequence(value, type_info.variant)
        else:
            converted = convert(value, type_info)
        self._target.write(self._info.name, converted)

    def _convert_sequence(self, value: Any, variant: AnalyzedSequenceType) -> Any:
        seq = value.value if isinstance(value, Ref) else value
        if not is_sequence_value(seq):
            raise ConversionError(
                f"expected slice for field {type_name(type(self._target.instance))}.{self.name} "
                f"of type {type_name(self.type)} but got {reprlib.repr(seq)} "
                f"of type {value_type_name(seq)}"
            )

        elem_type_info = analyze_type_info(variant.elem_type)
        items = []
        for i, item in enumerate(seq):
            try:
                items.append(convert(item, elem_type_info))
            except ConversionError as e:
                raise ConversionError(f"error converting {self.name}[{i}]: {e}") from e
        return make_sequence(variant, items)

    def __repr__(self) -> str:
        return f"Field({self.name}: {type_name(self.type)}, tags={dict(self.tags)})"


def _resolve_struct_type(t: Any) -> type:
    type_info = analyze_type_info(t)
    if isinstance(type_info.variant, AnalyzedRefType):
        ref_type_name = type_name(type_info.core_type)
        type_info = analyze_type_info(type_info.variant.pointee_type)
    else:
        ref_type_name = f"Ref[{type_name(type_info.core_type)}]"

    if not isinstance(type_info.variant, AnalyzedStructType):
        raise ShapeError(
            f"can only get struct info from structs, but got: {ref_type_name}"
        )
    return type_info.variant.struct_type


def _resolve_struct_target(target: Any) -> tuple[type, _StructTarget]:
    if target is None:
        raise ShapeError("expected non-nil pointer to struct, but got: None")

    if isinstance(target, Ref):
        value = target.value
        if value is None:
            pointee_variant = analyze_type_info(target.pointee_type).variant
            if isinstance(pointee_variant, (AnalyzedStructType, AnalyzedAnyType)):
                raise ShapeError(
                    f"expected non-nil pointer to struct, but got: {target!r}"
                )
            raise ShapeError(
                f"can only get struct info from structs, but got: {value_type_name(target)}"
            )
        if not is_struct_type(type(value)):
            raise ShapeError(
                f"can only get struct info from structs, but got: Ref[{value_type_name(value)}]"
            )
        if is_value_struct(value):
            return type(value), _StructTarget(None, target)
        return type(value), _StructTarget(value)

    if is_struct_type(type(target)):
        if is_value_struct(target):
            raise ShapeError(
                f"expected struct pointer but got: {value_type_name(target)}"
            )
        return type(target), _StructTarget(target)

    if is_immutable_value(target):
        raise ShapeError(f"expected struct pointer but got: {value_type_name(target)}")
    raise ShapeError(
        f"can only get struct info from structs, but got: {value_type_name(target)}"
    )


def get_struct_info(target: Any, *, cache: StructInfoCache | None = None) -> StructInfo:
    """
    Get (and cache) the info of a struct type.

    Args:
        target: A struct type, `Ref[StructType]`, a struct instance that can be
            updated in place, or a `Ref` to a struct instance.
        cache: The cache to use. The default shared cache is used if not provided.
    """
    if isinstance(target, type) or typing.get_origin(target) is not None:
        struct_type = _resolve_struct_type(target)
    else:
        struct_type, _ = _resolve_struct_target(target)

    if cache is None:
        cache = _default_struct_info_cache
    return StructInfo(struct_type=struct_type, fields=cache.get(struct_type))


def for_each(
    target: Any,
    visit: Callable[[Field], Any],
    *,
    cache: StructInfoCache | None = None,
) -> None:
    """
    Call `visit` once for each visible field of a struct instance, in declaration order.

    Args:
        target: A struct instance that can be updated in place, or a `Ref` to a struct
            instance.
        visit: Called with a `Field` handle. Values assigned by `Field.set()` are
            written immediately. Any exception raised stops the iteration.
        cache: The cache to use. The default shared cache is used if not provided.

    Raises:
        ShapeError: If the target is not a non-nil pointer to a struct.
        IterationError: If `visit` raises, chained to the original exception.
    """
    struct_type, struct_target = _resolve_struct_target(target)
    if cache is None:
        cache = _default_struct_info_cache

    for info in cache.get(struct_type):
        try:
            visit(Field(info, struct_target))
        except Exception as e:
            raise IterationError(
                f"iteration error on field '{info.name}' of type '{type_name(info.type)}': {e}",
                info.name,
                info.type,
                e,
            ) from e
