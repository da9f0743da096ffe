"""Unit tests for best-effort event logging and persistence."""

from __future__ import annotations

import logging

import pytest

from image_engine.core.decision import resolve_decision
from image_engine.core.events import EventLogger, ResultPersister
from image_engine.core.models import FallbackInfo, GenerateFailure, Timings


class TestEventLogger:
    @pytest.mark.asyncio
    async def test_logs_event(self, record_store):
        await EventLogger(record_store).log_safe(
            "req-001", "generate_start", True, "Generation started", {"platform": "x"}
        )
        [event] = record_store.list_events("req-001")
        assert event.type == "generate_start"
        assert event.data == {"platform": "x"}

    @pytest.mark.asyncio
    async def test_store_failure_is_swallowed(self, broken_store, caplog):
        with caplog.at_level(logging.WARNING):
            await EventLogger(broken_store).log_safe("req-001", "generate_start", True)
        assert "Failed to log generate_start event for req-001" in caplog.text


class TestResultPersister:
    @pytest.mark.asyncio
    async def test_persists_result(self, record_store, make_request):
        decision = resolve_decision(make_request())
        result = GenerateFailure(
            request_id="req-001",
            decision=decision,
            fallback=FallbackInfo(reason="Provider returned no image"),
            timings_ms=Timings(),
        )
        await ResultPersister(record_store).persist_safe(result)
        assert record_store.get_request("req-001").status == "fallback"

    @pytest.mark.asyncio
    async def test_result_without_decision_skipped(self, record_store):
        result = GenerateFailure(
            request_id="req-001", fallback=FallbackInfo(reason="x"), timings_ms=Timings()
        )
        await ResultPersister(record_store).persist_safe(result)
        assert record_store.get_request("req-001") is None

    @pytest.mark.asyncio
    async def test_store_failure_is_swallowed(self, broken_store, make_request, caplog):
        decision = resolve_decision(make_request())
        persister = ResultPersister(broken_store)
        with caplog.at_level(logging.WARNING):
            await persister.persist_decision_safe(decision)
        assert "Failed to persist decision for req-001" in caplog.text
