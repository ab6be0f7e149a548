import os
import shutil
import sys
import tempfile
from unittest.mock import AsyncMock

import pytest

# Add project root and tests directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, os.path.dirname(__file__))

from table_client.config import Settings
from table_client.context import ClientContext
from table_client.services.api_client import RemoteStoreClient
from table_client.services.storage import InMemoryStore


@pytest.fixture
def test_settings():
    """Settings isolated from the environment, without ultimate polling timeout."""
    return Settings(
        api_base_url="http://test/api/v1/qr-menu",
        api_token="test-token",
        storage_url="sqlite:///:memory:",
        payment_max_wait_seconds=None,
    )


@pytest.fixture
def store():
    return InMemoryStore({"qr_menu_session_id": "session-test"})


@pytest.fixture
def mock_api():
    """Remote store client with every endpoint mocked."""
    return AsyncMock(spec=RemoteStoreClient)


@pytest.fixture
def context(test_settings, store, mock_api):
    return ClientContext(settings=test_settings, store=store, api=mock_api)


@pytest.fixture
def recorded_events(context):
    """Collects (event_type, payload) for every published state event."""
    events = []
    original_publish = context.events.publish

    async def publish(event_type, payload=None):
        events.append((event_type, payload or {}))
        return await original_publish(event_type, payload)

    context.events.publish = publish
    return events


@pytest.fixture
def temp_sqlite_url():
    temp_dir = tempfile.mkdtemp()
    yield f"sqlite:///{os.path.join(temp_dir, 'test_store.db')}"
    shutil.rmtree(temp_dir, ignore_errors=True)

