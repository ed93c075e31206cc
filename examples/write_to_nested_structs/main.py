import dataclasses
import json
from typing import Annotated, Any

import fieldwalk
from fieldwalk import Ref, Tag
from fieldwalk.structs import nested_struct_type


@dataclasses.dataclass
class OtherStruct:
    Attr2: Annotated[int, Tag('env:"attr2"')] = 0


@dataclasses.dataclass
class Output:
    Attr1: Annotated[int, Tag('env:"attr1"')] = 0
    Other: Ref[OtherStruct] | None = None


def to_json(value: Any) -> Any:
    if isinstance(value, Ref):
        return value.value
    if dataclasses.is_dataclass(value):
        return dataclasses.asdict(value)  # type: ignore[arg-type]
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def main() -> None:
    output = Output()

    def visit(field: fieldwalk.Field) -> None:
        struct_type = nested_struct_type(field.info.type_info)
        if field.kind == "ref" and struct_type is not None:
            sub_struct = Ref(struct_type(), struct_type)
            fieldwalk.for_each(sub_struct, lambda sub_field: sub_field.set(42))
            field.set(sub_struct)
            return

        field.set(64)

    fieldwalk.for_each(output, visit)

    print(
        "modified struct:",
        json.dumps(dataclasses.asdict(output), indent=2, default=to_json),
    )


if __name__ == "__main__":
    main()
