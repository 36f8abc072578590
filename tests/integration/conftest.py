"""Shared fixtures for the SQLite backed integration tests."""

import random
import tempfile

import pytest

from dbaas.docstore_server.app import DocStoreApp
from dbaas.docstore_server.config import ServerConfig, StorageConfig


@pytest.fixture
def data_dir():
    """Create temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def app(data_dir):
    """Create an initialized app on a fresh store."""
    config = ServerConfig(storage=StorageConfig(data_dir=data_dir, wal_mode=False))
    app = DocStoreApp(config, rng=random.Random(42))
    app.initialize()
    return app


@pytest.fixture
def database(app):
    """Create an empty database and return its name."""
    app.create_database("db1")
    return "db1"
