import dataclasses
import json
from typing import Annotated

import fieldwalk
import numpy as np
from fieldwalk import Tag


@dataclasses.dataclass
class Output:
    NotASlice: int = 0
    EmptySlice: Annotated[list[np.uint32], Tag('tag:"s1"')] = dataclasses.field(
        default_factory=list
    )
    SliceWithValues: Annotated[list[str], Tag('tag:"s2"')] = dataclasses.field(
        default_factory=lambda: ["foo", "bar"]
    )


def main() -> None:
    output = Output()

    def visit(field: fieldwalk.Field) -> None:
        # Non slices are ignored here.
        if field.kind != "slice":
            return

        if field.tags.get("tag") == "s1":
            # 42 is an int and is converted to uint32.
            fieldwalk.append(field.ref, 42)
            return

        def add_index(item: fieldwalk.Item) -> None:
            item.set(f"{item.value}{item.index}")

        fieldwalk.for_each_item(field.ref, add_index)

    fieldwalk.for_each(output, visit)

    print(
        "modified struct with slices:",
        json.dumps(dataclasses.asdict(output), indent=2, default=int),
    )


if __name__ == "__main__":
    main()
