import dataclasses
import json
from typing import Annotated, Any, Mapping

import fieldwalk
from fieldwalk import Tag


@dataclasses.dataclass
class Address:
    Street: Annotated[str, Tag('map:"street"')] = ""
    City: Annotated[str, Tag('map:"city"')] = ""
    Country: Annotated[str, Tag('map:"country"')] = ""


@dataclasses.dataclass
class User:
    ID: Annotated[int, Tag('map:"id"')] = 0
    Username: Annotated[str, Tag('map:"username"')] = ""
    HomeAddress: Annotated[Address, Tag('map:"address"')] = dataclasses.field(
        default_factory=Address
    )
    SomeSlice: Annotated[list[int], Tag('map:"some_slice"')] = dataclasses.field(
        default_factory=list
    )


def load_from_map(target: Any, data: Mapping[str, Any]) -> None:
    """
    A hand-written mapping loader: the same idea as `fieldwalk.load_from_mapping()`.
    """

    def visit(field: fieldwalk.Field) -> None:
        key = field.tags.get("map")
        if not key:
            return

        value = data.get(key)
        if field.kind == "struct" and isinstance(value, Mapping):
            load_from_map(field.ref, value)
            return

        field.set(value)

    fieldwalk.for_each(target, visit)


def main() -> None:
    user = User()
    load_from_map(
        user,
        {
            "id": 42,
            "username": "fakeUsername",
            "address": {
                "street": "fakeStreet",
                "city": "fakeCity",
                "country": "fakeCountry",
            },
            # Floats are converted to the declared item type of the list.
            "some_slice": [1.0, 2.0, 3.0],
        },
    )
    print("loaded user:", json.dumps(dataclasses.asdict(user), indent=2))


if __name__ == "__main__":
    main()
