import os

import pytest


@pytest.fixture(scope="session", autouse=True)
def set_test_environment():
    """
    Sets environment variables for the test session.
    - TESTING_MODE: DBService switches to TEST_DATABASE_URL.
    - TEST_DATABASE_URL: Database URL for tests (defaults to SQLite in-memory).
    """
    os.environ["TESTING_MODE"] = "true"
    if "TEST_DATABASE_URL" not in os.environ:
        os.environ["TEST_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

    yield

    if "TESTING_MODE" in os.environ:
        del os.environ["TESTING_MODE"]
