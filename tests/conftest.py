import pytest

from viewcache import ViewCache

@pytest.fixture
def views():
    """A fresh ViewCache with the default engines and collections."""
    return ViewCache()

@pytest.fixture
def strict_views():
    return ViewCache(strict_errors=True)
