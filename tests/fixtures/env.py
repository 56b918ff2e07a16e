import os
import pytest


@pytest.fixture(autouse=True, scope="module")
def env():
    """Restore the process environment after each test module."""
    original_env = os.environ.copy()

    yield

    os.environ.clear()
    os.environ.update(original_env)
