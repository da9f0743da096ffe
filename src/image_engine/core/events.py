"""Best-effort event logging and result persistence.

The pipeline calls ``EventLogger.log_safe`` and ``ResultPersister.persist_safe``
unconditionally and never looks at the outcome.  Both run the synchronous
record store in a worker thread and catch every failure, logging it at
WARNING.  A broken database never changes a response.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from image_engine.core.models import Decision, ImageEngineResult, SafetyResult
from image_engine.core.records import (
    EngineEvent,
    EventType,
    RecordStore,
    record_from_decision,
    record_from_result,
)

logger = logging.getLogger(__name__)


class EventLogger:
    """Appends engine events to the record store, swallowing failures."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def log_safe(
        self,
        request_id: str,
        type: EventType,
        ok: bool,
        message_safe: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        try:
            event = EngineEvent(
                request_id=request_id, type=type, ok=ok, message_safe=message_safe, data=data
            )
            await asyncio.to_thread(self.store.log_event, event)
        except Exception as e:
            logger.warning(f"Failed to log {type} event for {request_id}: {e}")


class ResultPersister:
    """Upserts request records, swallowing failures."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def persist_safe(
        self,
        result: ImageEngineResult,
        storage_name: str | None = None,
        safety_result: SafetyResult | None = None,
    ) -> None:
        try:
            record = record_from_result(result, storage_name, safety_result)
            if record is None:
                logger.debug(f"No decision on result for {result.request_id}, not persisted")
                return
            await asyncio.to_thread(self.store.upsert_request, record)
        except Exception as e:
            logger.warning(f"Failed to persist result for {result.request_id}: {e}")

    async def persist_decision_safe(
        self, decision: Decision, safety_result: SafetyResult | None = None
    ) -> None:
        """Persist a freshly resolved decision as a ``queued`` record."""
        try:
            record = record_from_decision(decision, safety_result)
            await asyncio.to_thread(self.store.upsert_request, record)
        except Exception as e:
            logger.warning(f"Failed to persist decision for {decision.request_id}: {e}")
