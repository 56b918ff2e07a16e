import os

from fixtures.env import *  # noqa


def pytest_configure(config):
    """Set up environment variables before any modules are imported."""
    os.environ["ADMIN_USER"] = "admin"
    os.environ["ADMIN_PASS"] = "s3cret"
    os.environ["ALLOWED_SERVICES"] = "a.service,b.service"

    os.environ.setdefault("DEBUG", "false")
    os.environ.setdefault("LOG_JSON", "false")
    os.environ.setdefault("RATE_LIMIT_ENABLED", "false")


pytest_configure(None)

from fixtures.panel import *  # noqa
