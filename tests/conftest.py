import pytest
from fastapi_cache import FastAPICache


@pytest.fixture(autouse=True)
def reset_fastapi_cache():
    # FastAPICache.init only takes effect once per process; reset it so each
    # test's app lifespan applies its own cache settings
    FastAPICache.reset()
    yield
    FastAPICache.reset()
