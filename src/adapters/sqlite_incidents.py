"""
SQLite adapter for IncidentRepository.

Use ":memory:" for tests, a file path for production.
"""

import json
import sqlite3
from datetime import datetime, timezone

from src.domain.drafts import ConversationDraft
from src.domain.incidents import (
    OPEN_STATUSES,
    Incident,
    IncidentRepository,
    IncidentUpdate,
    format_folio,
)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS incidents (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    folio           TEXT NOT NULL UNIQUE,
    description     TEXT NOT NULL,
    interpretation  TEXT NOT NULL DEFAULT '',
    place           TEXT NOT NULL,
    department      TEXT NOT NULL,
    departments     TEXT NOT NULL DEFAULT '[]',
    conversation_id TEXT NOT NULL,
    status          TEXT NOT NULL DEFAULT 'open',
    building        TEXT,
    floor           TEXT,
    room            TEXT,
    priority        TEXT,
    notes           TEXT NOT NULL DEFAULT '[]',
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS incident_updates (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    folio       TEXT NOT NULL REFERENCES incidents(folio),
    author      TEXT NOT NULL,
    text        TEXT NOT NULL,
    status      TEXT,
    created_at  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS folio_counters (
    department  TEXT PRIMARY KEY,
    last_number INTEGER NOT NULL
);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_dt(s: str) -> datetime:
    return datetime.fromisoformat(s)


class SqliteIncidentRepository(IncidentRepository):

    def __init__(self, db_path: str = "triage.db"):
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)

    def _next_folio(self, department: str) -> str:
        row = self._conn.execute(
            "SELECT last_number FROM folio_counters WHERE department = ?", (department,)
        ).fetchone()
        number = (row["last_number"] if row else 0) + 1
        self._conn.execute(
            "INSERT OR REPLACE INTO folio_counters (department, last_number) VALUES (?, ?)",
            (department, number),
        )
        return format_folio(department, number)

    async def create_incident(self, draft: ConversationDraft) -> Incident:
        if not draft.is_ready_for_preview():
            raise ValueError(f"draft for {draft.conversation_id} is not complete")
        now = _now()
        with self._conn:
            folio = self._next_folio(draft.department)
            self._conn.execute(
                "INSERT INTO incidents"
                " (folio, description, interpretation, place, department, departments,"
                "  conversation_id, building, floor, room, priority, notes, created_at, updated_at)"
                " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (folio, draft.description, draft.interpretation, draft.place.label,
                 draft.department, json.dumps(draft.departments), draft.conversation_id,
                 draft.building, draft.floor, draft.room, draft.priority,
                 json.dumps(draft.notes), now, now),
            )
        return await self.get_incident(folio)

    async def get_incident(self, folio: str) -> Incident | None:
        row = self._conn.execute(
            "SELECT * FROM incidents WHERE folio = ?", ((folio or "").upper(),)
        ).fetchone()
        if not row:
            return None
        return self._row_to_incident(row)

    async def list_open_incidents(self, conversation_id: str) -> list[Incident]:
        placeholders = ", ".join("?" for _ in OPEN_STATUSES)
        rows = self._conn.execute(
            f"SELECT * FROM incidents WHERE conversation_id = ? AND status IN ({placeholders})"
            " ORDER BY id",
            (conversation_id, *OPEN_STATUSES),
        ).fetchall()
        return [self._row_to_incident(r) for r in rows]

    async def append_update(
        self, folio: str, author: str, text: str, status: str | None = None
    ) -> Incident | None:
        folio = (folio or "").upper()
        row = self._conn.execute(
            "SELECT status FROM incidents WHERE folio = ?", (folio,)
        ).fetchone()
        if not row:
            return None
        changed = status if status and status != row["status"] else None
        now = _now()
        with self._conn:
            self._conn.execute(
                "INSERT INTO incident_updates (folio, author, text, status, created_at)"
                " VALUES (?, ?, ?, ?, ?)",
                (folio, author, text, changed, now),
            )
            self._conn.execute(
                "UPDATE incidents SET updated_at = ?, status = COALESCE(?, status) WHERE folio = ?",
                (now, changed, folio),
            )
        return await self.get_incident(folio)

    def _row_to_incident(self, row) -> Incident:
        updates = self._conn.execute(
            "SELECT * FROM incident_updates WHERE folio = ? ORDER BY id", (row["folio"],)
        ).fetchall()
        return Incident(
            id=row["id"],
            folio=row["folio"],
            description=row["description"],
            place=row["place"],
            department=row["department"],
            conversation_id=row["conversation_id"],
            status=row["status"],
            created_at=_parse_dt(row["created_at"]),
            updated_at=_parse_dt(row["updated_at"]),
            interpretation=row["interpretation"],
            departments=json.loads(row["departments"]),
            building=row["building"],
            floor=row["floor"],
            room=row["room"],
            priority=row["priority"],
            notes=json.loads(row["notes"]),
            updates=[
                IncidentUpdate(u["author"], u["text"], _parse_dt(u["created_at"]), u["status"])
                for u in updates
            ],
        )
