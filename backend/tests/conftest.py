"""
Shared test fixtures and configuration.
"""

import pytest
import os
from unittest.mock import AsyncMock, MagicMock

# Set test environment variables before importing app modules
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOCAL_STORAGE_PATH", "/tmp/whatsbi_test_data")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("LOG_API_REQUESTS", "false")

from whatsbi.storage import LocalStorage  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(str(tmp_path / "data"))


def mock_http_response(status_code=200, json_data=None, text=""):
    """An httpx-like response as the code under test reads it."""
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = json_data if json_data is not None else {}
    response.text = text
    response.raise_for_status = MagicMock()
    return response


def mock_async_client(mock_client, *responses):
    """Wire a patched httpx.AsyncClient to return ``responses`` in order."""
    mock_instance = AsyncMock()
    if len(responses) == 1:
        mock_instance.post.return_value = responses[0]
    else:
        mock_instance.post.side_effect = list(responses)
    mock_instance.__aenter__ = AsyncMock(return_value=mock_instance)
    mock_instance.__aexit__ = AsyncMock(return_value=False)
    mock_client.return_value = mock_instance
    return mock_instance
