"""Pytest configuration and fixtures."""

import os

import pytest

# Settings are read at import time by get_logger; set them before app modules load
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-key")
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ.setdefault("ATLAS_ENV", "test")

from tests.fakes.fake_db import (  # noqa: E402
    FakeClusterNameStore,
    FakeDocumentStore,
    FakeEmbeddingStore,
    FakeRefreshLog,
    FakeRefreshStateStore,
    make_settings,
)


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["SUPABASE_URL"] = "https://test.supabase.co"
    os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-key"
    os.environ["OPENAI_API_KEY"] = "test-openai-key"
    os.environ["ATLAS_ENV"] = "test"


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def document_store():
    return FakeDocumentStore()


@pytest.fixture
def embedding_store():
    return FakeEmbeddingStore()


@pytest.fixture
def cluster_name_store():
    return FakeClusterNameStore()


@pytest.fixture
def refresh_log():
    return FakeRefreshLog()


@pytest.fixture
def refresh_state():
    return FakeRefreshStateStore()
