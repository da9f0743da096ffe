"""SQLite record store for image requests and engine events.

Two tables:

``image_requests``
    One row per request id, upserted on every terminal outcome (last write
    wins).  Holds the outcome, image URL and a decision JSON snapshot.
``image_events``
    Append-only audit trail (``decision``, ``safety_decision``,
    ``generate_start``, ``provider_call``, ``storage_write``,
    ``generate_finish``).

Neither table ever holds prompt or negative prompt text: records are built
from the result union and the decision, and the prompt is not part of either.

The store is synchronous.  The pipeline reaches it through
:mod:`image_engine.core.events`, which runs calls in a worker thread and
swallows failures; calling the store directly propagates ``sqlite3.Error``.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal

from pydantic import ConfigDict

from image_engine.core.constants import SAFETY_BLOCKED
from image_engine.core.models import (
    CamelModel,
    Decision,
    GenerateSuccess,
    ImageEngineResult,
    SafetyResult,
)
from image_engine.core.sizing import resolve_size

logger = logging.getLogger(__name__)

RequestStatus = Literal["queued", "generated", "fallback", "failed", "skipped"]
EventType = Literal[
    "decision",
    "safety_decision",
    "generate_start",
    "provider_call",
    "storage_write",
    "generate_finish",
]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class RequestRecord(CamelModel):
    """Persisted request row."""

    model_config = ConfigDict(frozen=True)

    request_id: str
    status: RequestStatus
    platform: str
    category: str
    aspect: str
    width: int
    height: int
    provider: str | None = None
    storage: str | None = None
    image_url: str | None = None
    alt_text: str | None = None
    error_code: str | None = None
    error_message_safe: str | None = None
    fallback_reason: str | None = None
    decision_json: dict[str, Any] = {}
    created_at: str | None = None
    updated_at: str | None = None


class EngineEvent(CamelModel):
    """A single audit event.  ``message_safe`` and ``data`` never hold prompts."""

    model_config = ConfigDict(frozen=True)

    request_id: str
    type: EventType
    ok: bool
    message_safe: str | None = None
    data: dict[str, Any] | None = None
    created_at: str | None = None


def derive_status(result: ImageEngineResult) -> RequestStatus:
    """Map a pipeline result onto the persisted request status."""
    if isinstance(result, GenerateSuccess):
        return "generated"
    if result.error is not None and result.error.code == SAFETY_BLOCKED:
        return "skipped"
    if result.fallback.used:
        return "fallback"
    if result.error is not None:
        return "failed"
    return "queued"


def decision_snapshot(decision: Decision, safety_result: SafetyResult | None = None) -> dict:
    """Decision JSON for persistence: the wire decision plus safety rules."""
    snapshot = decision.model_dump(mode="json", by_alias=True)
    if safety_result is not None:
        snapshot["safetyRules"] = safety_result.model_dump(mode="json", by_alias=True)
    return snapshot


def record_from_decision(
    decision: Decision, safety_result: SafetyResult | None = None
) -> RequestRecord:
    """A ``queued`` record for a decision that has not been generated yet."""
    width, height = resolve_size(decision.platform, decision.aspect)
    return RequestRecord(
        request_id=decision.request_id,
        status="queued",
        platform=decision.platform,
        category=decision.category,
        aspect=decision.aspect,
        width=width,
        height=height,
        provider=decision.provider_plan.provider_id,
        fallback_reason="; ".join(decision.safety.reasons) or None,
        decision_json=decision_snapshot(decision, safety_result),
    )


def record_from_result(
    result: ImageEngineResult,
    storage_name: str | None = None,
    safety_result: SafetyResult | None = None,
) -> RequestRecord | None:
    """Build the request record for a terminal result.

    Returns ``None`` for a failure without a decision, since there is nothing
    to key platform, category and size on.
    """
    decision = result.decision
    if decision is None:
        return None

    width, height = resolve_size(decision.platform, decision.aspect)
    image = result.image if isinstance(result, GenerateSuccess) else None
    error = None if isinstance(result, GenerateSuccess) else result.error
    fallback = None if isinstance(result, GenerateSuccess) else result.fallback

    return RequestRecord(
        request_id=result.request_id,
        status=derive_status(result),
        platform=decision.platform,
        category=decision.category,
        aspect=decision.aspect,
        width=width,
        height=height,
        provider=decision.provider_plan.provider_id,
        storage=storage_name,
        image_url=image.url if image else None,
        alt_text=image.alt_text if image else None,
        error_code=error.code if error else None,
        error_message_safe=error.message if error else None,
        fallback_reason=fallback.reason if fallback else None,
        decision_json=decision_snapshot(decision, safety_result),
    )


class RecordStore:
    """SQLite-backed store for request records and engine events."""

    def __init__(self, db_path: Path):
        """Initialize the store and create the schema if needed.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_db()
        logger.info(f"Initialized record store at {self.db_path}")

    def _initialize_db(self) -> None:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS image_requests (
                    request_id TEXT PRIMARY KEY,
                    status TEXT NOT NULL,
                    platform TEXT NOT NULL,
                    category TEXT NOT NULL,
                    aspect TEXT NOT NULL,
                    width INTEGER NOT NULL,
                    height INTEGER NOT NULL,
                    provider TEXT,
                    storage TEXT,
                    image_url TEXT,
                    alt_text TEXT,
                    error_code TEXT,
                    error_message_safe TEXT,
                    fallback_reason TEXT,
                    decision_json TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS image_events (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    request_id TEXT NOT NULL,
                    type TEXT NOT NULL,
                    ok INTEGER NOT NULL,
                    message_safe TEXT,
                    data TEXT,
                    created_at TEXT NOT NULL
                )
                """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_image_events_request
                ON image_events(request_id, id)
                """)
            conn.commit()

    def upsert_request(self, record: RequestRecord) -> None:
        """Insert or update a request record.  ``created_at`` survives updates."""
        now = _now()
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO image_requests (
                    request_id, status, platform, category, aspect, width, height,
                    provider, storage, image_url, alt_text, error_code,
                    error_message_safe, fallback_reason, decision_json,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(request_id) DO UPDATE SET
                    status = excluded.status,
                    platform = excluded.platform,
                    category = excluded.category,
                    aspect = excluded.aspect,
                    width = excluded.width,
                    height = excluded.height,
                    provider = excluded.provider,
                    storage = excluded.storage,
                    image_url = excluded.image_url,
                    alt_text = excluded.alt_text,
                    error_code = excluded.error_code,
                    error_message_safe = excluded.error_message_safe,
                    fallback_reason = excluded.fallback_reason,
                    decision_json = excluded.decision_json,
                    updated_at = excluded.updated_at
                """,
                (
                    record.request_id,
                    record.status,
                    record.platform,
                    record.category,
                    record.aspect,
                    record.width,
                    record.height,
                    record.provider,
                    record.storage,
                    record.image_url,
                    record.alt_text,
                    record.error_code,
                    record.error_message_safe,
                    record.fallback_reason,
                    json.dumps(record.decision_json),
                    now,
                    now,
                ),
            )
            conn.commit()
        logger.debug(f"Upserted request record {record.request_id} ({record.status})")

    def get_request(self, request_id: str) -> RequestRecord | None:
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            row = conn.execute(
                "SELECT * FROM image_requests WHERE request_id = ?", (request_id,)
            ).fetchone()

        if row is None:
            return None

        values = dict(row)
        values["decision_json"] = json.loads(values["decision_json"])
        return RequestRecord(**values)

    def log_event(self, event: EngineEvent) -> None:
        """Append an event."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO image_events (request_id, type, ok, message_safe, data, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    event.request_id,
                    event.type,
                    int(event.ok),
                    event.message_safe,
                    json.dumps(event.data) if event.data is not None else None,
                    event.created_at or _now(),
                ),
            )
            conn.commit()

    def list_events(self, request_id: str) -> list[EngineEvent]:
        """All events for a request, oldest first."""
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(
                """
                SELECT request_id, type, ok, message_safe, data, created_at
                FROM image_events WHERE request_id = ? ORDER BY id
                """,
                (request_id,),
            ).fetchall()

        return [
            EngineEvent(
                request_id=row["request_id"],
                type=row["type"],
                ok=bool(row["ok"]),
                message_safe=row["message_safe"],
                data=json.loads(row["data"]) if row["data"] is not None else None,
                created_at=row["created_at"],
            )
            for row in rows
        ]
