import pytest

from fieldwalk.structs import StructInfoCache


@pytest.fixture
def cache() -> StructInfoCache:
    """An isolated struct info cache, so tests don't observe each other's entries."""
    return StructInfoCache()
