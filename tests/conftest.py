import pytest

from dicesim.parallel.pool import shutdown_pool


@pytest.fixture(autouse=True)
def fresh_pool():
    """Every test starts and ends with no process-wide sampling pool."""
    shutdown_pool()
    yield
    shutdown_pool()
