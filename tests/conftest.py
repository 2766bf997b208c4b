"""
PyTest configuration file for the document mapper.
Provides an isolated in-memory MongoDB for every test and common fixtures.

Version: 1.0
"""

# External imports with versions
import pytest  # pytest v7.3+
import mongomock  # mongomock v4.1+
import logging
import os

# Internal imports
from docmapper.config.settings import get_settings
from docmapper.core.logging import setup_logging
from docmapper.models.base import Model

# Global test constants
TEST_DB_NAME = "test_db"
TEST_LOG_LEVEL = "DEBUG"


def pytest_configure(config):
    """
    PyTest configuration hook for setting up the test environment.
    """
    # Set test environment variables before settings are first read
    os.environ["ENVIRONMENT"] = "test"
    os.environ["MONGODB_DB_NAME"] = TEST_DB_NAME
    get_settings.cache_clear()

    setup_logging()
    logger = logging.getLogger(__name__)
    logger.setLevel(TEST_LOG_LEVEL)

    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test"
    )

    logger.info("Test environment configured successfully")


@pytest.fixture
def mongodb():
    """
    Provides an isolated mongomock database bound to every model.
    """
    client = mongomock.MongoClient()
    db = client[TEST_DB_NAME]
    Model.set_database(db)

    yield db

    Model.set_database(None)
    client.close()
