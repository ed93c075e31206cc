import dataclasses
import json
from typing import Annotated

import fieldwalk
from fieldwalk import Tag
from rich.console import Console


@dataclasses.dataclass
class Address:
    Street: Annotated[str, Tag('map:"street"')] = ""
    City: Annotated[str, Tag('map:"city"')] = ""


@dataclasses.dataclass
class User:
    Name: Annotated[str, Tag('map:"name"')] = ""
    HomeDir: Annotated[Address, Tag('map:"home"')] = dataclasses.field(
        default_factory=Address
    )


def main() -> None:
    info = fieldwalk.get_struct_info(User)

    for field in info.fields:
        print(f"Field {field.name!r} has tags {json.dumps(dict(field.tags))}")

        if field.kind == "struct":
            nested_info = fieldwalk.get_struct_info(field.type)
            print(f"Nested Field {field.name!r} has {len(nested_info.fields)} fields")

    Console().print(info.render_tree())


if __name__ == "__main__":
    main()
