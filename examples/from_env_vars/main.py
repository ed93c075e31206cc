import dataclasses
import json
import os
from typing import Annotated

import fieldwalk
from dotenv import load_dotenv
from fieldwalk import Tag


@dataclasses.dataclass
class Config:
    Home: Annotated[str, Tag('env:"HOME"')] = ""
    CurrentDir: Annotated[str, Tag('env:"PWD"')] = ""
    Shell: Annotated[str, Tag('env:"SHELL"')] = ""
    Workers: Annotated[int, Tag('env:"WORKERS"')] = 1
    Debug: Annotated[bool, Tag('env:"DEBUG"')] = False


def load_config_by_hand(config: Config) -> None:
    """
    Walk the fields directly: the raw environment string is assigned as-is, so this only
    works for string fields.
    """

    def visit(field: fieldwalk.Field) -> None:
        env_name = field.tags.get("env")
        if env_name and field.kind == "str":
            field.set(os.environ.get(env_name, ""))

    fieldwalk.for_each(config, visit)


def main() -> None:
    config = Config()
    load_config_by_hand(config)
    print("loaded string fields:", json.dumps(dataclasses.asdict(config), indent=2))

    # The loader also parses numbers, bools and comma separated lists.
    config = Config()
    fieldwalk.load_from_env(config)
    print("loaded config:", json.dumps(dataclasses.asdict(config), indent=2))


if __name__ == "__main__":
    load_dotenv()
    main()
