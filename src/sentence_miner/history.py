"""Pipeline event recording and querying for sentence-miner."""

from __future__ import annotations

import json
import sqlite3

from sentence_miner.models import EventType, PipelineEvent


def record_event(
    conn: sqlite3.Connection,
    user_id: int,
    event: EventType,
    entity_id: int | None = None,
    detail: dict | None = None,
) -> None:
    """Record one pipeline event inside the caller's transaction."""
    conn.execute(
        "INSERT INTO pipeline_events (user_id, event, entity_id, detail) "
        "VALUES (?, ?, ?, ?)",
        (
            user_id,
            event.value,
            entity_id,
            json.dumps(detail, ensure_ascii=False) if detail else None,
        ),
    )


def query_events(
    conn: sqlite3.Connection,
    user_id: int,
    *,
    event: EventType | str | None = None,
    since: str | None = None,
) -> list[PipelineEvent]:
    """Query a user's pipeline events with optional filters."""
    clauses: list[str] = ["user_id = ?"]
    params: list[int | str] = [user_id]

    if event is not None:
        clauses.append("event = ?")
        params.append(EventType(event).value)
    if since is not None:
        clauses.append("timestamp > ?")
        params.append(since)

    where = " AND ".join(clauses)
    sql = (
        f"SELECT rowid, * FROM pipeline_events WHERE {where} "
        "ORDER BY timestamp ASC, rowid ASC"
    )

    rows = conn.execute(sql, params).fetchall()
    return [
        PipelineEvent(
            id=row["rowid"],
            user_id=row["user_id"],
            event=row["event"],
            entity_id=row["entity_id"],
            detail=row["detail"],
            timestamp=row["timestamp"],
        )
        for row in rows
    ]
