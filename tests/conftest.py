"""
Shared fixtures.

Everything runs against the mock-mode adapters: an in-memory bucket and
the mock Snowflake connection, so no credentials are needed.
"""

from typing import Generator

import pytest
from fastapi.testclient import TestClient

from src.config.settings import Settings
from src.core.videos.service import VideoService
from src.infrastructure.snowflake.client import MockSnowflakeConnection
from src.infrastructure.snowflake.repositories.videos import VideoDocumentRepository
from src.infrastructure.storage.client import MockStorageClient
from src.main import create_app


@pytest.fixture
def mock_settings() -> Settings:
    """Settings with both stores mocked and no .env influence."""
    return Settings(
        _env_file=None,
        storage_mock_mode=True,
        snowflake_mock_mode=True,
    )


@pytest.fixture
def snowflake_connection() -> MockSnowflakeConnection:
    return MockSnowflakeConnection()


@pytest.fixture
def repository(snowflake_connection) -> VideoDocumentRepository:
    repo = VideoDocumentRepository(snowflake_connection)
    repo.create_if_absent()
    return repo


@pytest.fixture
def storage() -> MockStorageClient:
    return MockStorageClient()


@pytest.fixture
def service(storage, repository) -> VideoService:
    return VideoService(storage=storage, documents=repository)


@pytest.fixture
def client(mock_settings) -> Generator[TestClient, None, None]:
    """TestClient with the lifespan running (stores provisioned)."""
    app = create_app(mock_settings)
    with TestClient(app) as test_client:
        yield test_client
