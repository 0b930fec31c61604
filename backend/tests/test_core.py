"""
Tests for logging helpers, the request logging middleware, local storage and service wiring.
"""

import json
import logging

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from whatsbi.assistant import QueryAssistant
from whatsbi.config.settings import Settings
from whatsbi.core.logging_config import (
    CONSOLE_FORMAT,
    ColoredFormatter,
    JSONFormatter,
    LoggerAdapter,
    filter_sensitive_data,
    format_context,
    mask_phone,
    truncate_large_data,
)
from whatsbi.main import configure_services
from whatsbi.middleware import RequestLoggingMiddleware
from whatsbi.storage import JSONDocumentStore


class TestLoggingHelpers:

    def test_mask_phone(self):
        assert mask_phone("5511999990000") == "*********0000"
        assert mask_phone("123") == "***"
        assert mask_phone(None) == "-"

    def test_filter_sensitive_data(self):
        data = {
            "apikey": "evo-key",
            "client_secret": "s",
            "nested": [{"access_token": "t", "text": "olá"}],
        }
        filtered = filter_sensitive_data(data)
        assert filtered["apikey"] == "***FILTERED***"
        assert filtered["client_secret"] == "***FILTERED***"
        assert filtered["nested"][0]["access_token"] == "***FILTERED***"
        assert filtered["nested"][0]["text"] == "olá"

    def test_truncate_large_data(self):
        assert truncate_large_data("abc", max_length=10) == "abc"
        truncated = truncate_large_data("x" * 20, max_length=10)
        assert truncated.startswith("x" * 10)
        assert "total length: 20" in truncated

    def test_adapter_merges_extra_fields(self):
        adapter = LoggerAdapter(logging.getLogger("test"), {"phone": "****0000"})
        _, kwargs = adapter.process("msg", {"extra": {"extra_fields": {"intent": "saldo"}}})
        assert kwargs["extra"]["extra_fields"] == {"phone": "****0000", "intent": "saldo"}

    def test_json_formatter_includes_extra_fields(self):
        record = logging.LogRecord("whatsbi", logging.INFO, __file__, 1, "hello", None, None)
        record.extra_fields = {"dataset_id": "ds-1"}
        data = json.loads(JSONFormatter().format(record))
        assert data["message"] == "hello"
        assert data["dataset_id"] == "ds-1"
        assert data["level"] == "INFO"

    def test_console_line_carries_extra_fields(self):
        record = logging.LogRecord("whatsbi", logging.INFO, __file__, 1, "Session resolved", None, None)
        record.extra_fields = {"phone": "****0000", "dataset_id": "ds-1"}
        line = ColoredFormatter(CONSOLE_FORMAT).format(record)
        assert line.endswith("Session resolved | phone=****0000 dataset_id=ds-1")

    def test_colored_formatter_leaves_record_level_untouched(self):
        record = logging.LogRecord("whatsbi", logging.WARNING, __file__, 1, "slow", None, None)
        ColoredFormatter(CONSOLE_FORMAT).format(record)
        assert record.levelname == "WARNING"
        assert json.loads(JSONFormatter().format(record))["level"] == "WARNING"

    def test_format_context(self):
        assert format_context(None) == ""
        assert format_context({"a": 1}) == " | a=1"


def test_request_logging_middleware(caplog):
    app = FastAPI()
    app.add_middleware(RequestLoggingMiddleware)

    @app.post("/echo")
    async def echo(payload: dict):
        return {"received": payload.get("text")}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    with caplog.at_level(logging.INFO, logger="whatsbi.middleware.logging_middleware"):
        client = TestClient(app)
        response = client.post("/echo", json={"text": "oi", "apikey": "secret"})
        client.get("/health")

    assert response.json() == {"received": "oi"}
    messages = [r.getMessage() for r in caplog.records]
    assert any(m.startswith("Request completed: POST /echo - 200") for m in messages)
    assert not any("/health" in m for m in messages)


class TestLocalStorage:

    @pytest.mark.asyncio
    async def test_save_load_delete(self, storage):
        assert await storage.save("a/b.json", "{}")
        assert await storage.load("a/b.json") == b"{}"
        assert await storage.exists("a/b.json")
        assert await storage.list("a") == ["a/b.json"]
        assert await storage.delete("a/b.json")
        assert await storage.load("a/b.json") is None
        assert not await storage.delete("a/b.json")

    @pytest.mark.asyncio
    async def test_append(self, storage):
        await storage.append("log.jsonl", "1\n")
        await storage.append("log.jsonl", "2\n")
        assert await storage.load("log.jsonl") == b"1\n2\n"

    @pytest.mark.asyncio
    async def test_path_traversal_rejected(self, storage):
        assert not await storage.save("../outside.json", "{}")
        assert await storage.load("../../etc/passwd") is None


class TestJSONDocumentStore:

    @pytest.mark.asyncio
    async def test_round_trip_and_corrupt_document(self, storage):
        store = JSONDocumentStore(storage, "docs")
        await store.write_document("k", {"v": 1})
        assert await store.read_document("k") == {"v": 1}

        await storage.save("docs/bad.json", "{not json")
        assert await store.read_document("bad") is None

        assert await store.delete_document("k")
        assert await store.read_document("k") is None


class TestConfigureServices:

    def test_assistant_requires_llm_api_key(self, tmp_path):
        app = FastAPI()
        configure_services(app, Settings(local_storage_path=str(tmp_path), llm_api_key=None))
        assert app.state.assistant is None
        assert app.state.learning is not None

        configure_services(app, Settings(local_storage_path=str(tmp_path), llm_api_key="sk-ant"))
        assert isinstance(app.state.assistant, QueryAssistant)

    def test_settings_have_single_llm_key_and_storage_backend(self):
        fields = Settings.model_fields
        assert "llm_api_key" in fields
        assert "anthropic_api_key" not in fields
        assert "storage_type" not in fields
