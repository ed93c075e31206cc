"""
Walk the fields of structs and the items of sequences, assigning values with automatic
conversion to the declared types.
"""

from . import sequences
from .convert import Converter, convert
from .errors import (
    ConversionError,
    FieldWalkError,
    IterationError,
    MalformedTagError,
    ShapeError,
    find_cause,
)
from .loaders import load_from_env, load_from_mapping
from .sequences import Item, ItemRef, append
from .sequences import for_each as for_each_item
from .structs import (
    Field,
    FieldInfo,
    FieldRef,
    StructInfo,
    StructInfoCache,
    default_struct_info_cache,
    for_each,
    get_struct_info,
)
from .tags import parse_tags
from .typing import Embedded, Ref, Tag

__all__ = [
    # Structs
    "Field",
    "FieldInfo",
    "FieldRef",
    "StructInfo",
    "StructInfoCache",
    "default_struct_info_cache",
    "for_each",
    "get_struct_info",
    # Sequences
    "sequences",
    "Item",
    "ItemRef",
    "append",
    "for_each_item",
    # Conversion
    "Converter",
    "convert",
    # Tags and annotations
    "parse_tags",
    "Embedded",
    "Ref",
    "Tag",
    # Loaders
    "load_from_env",
    "load_from_mapping",
    # Errors
    "ConversionError",
    "FieldWalkError",
    "IterationError",
    "MalformedTagError",
    "ShapeError",
    "find_cause",
]
