from __future__ import annotations

from datetime import datetime, timezone
import json
from pathlib import Path
import sqlite3
from typing import List, Optional, Protocol

from sanic.log import logger

from commitstatus.errors import AlreadyExistsError, ConflictError, NotFoundError
from commitstatus.metric import store_write_total
from commitstatus.model import PipelineActivity, StatusDetail, StatusRecord


SCHEMA = """
CREATE TABLE IF NOT EXISTS commit_statuses (
    name TEXT PRIMARY KEY,
    labels_json TEXT NOT NULL,
    items_json TEXT NOT NULL,
    resource_version INTEGER NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS pipeline_activities (
    name TEXT PRIMARY KEY,
    kind TEXT NOT NULL,
    uid TEXT NOT NULL,
    api_version TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class RecordStore(Protocol):
    def get(self, name: str) -> Optional[StatusRecord]: ...

    def create(self, record: StatusRecord) -> StatusRecord: ...

    def update(self, record: StatusRecord) -> StatusRecord: ...


class ActivityLookup(Protocol):
    def get_activity(self, name: str) -> Optional[PipelineActivity]: ...


class StatusStore:
    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)

    def initialize(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.executescript(SCHEMA)

    def get(self, name: str) -> Optional[StatusRecord]:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT name, labels_json, items_json, resource_version
                FROM commit_statuses
                WHERE name = ?
                """,
                (name,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_record(row)

    def list_records(self) -> List[StatusRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT name, labels_json, items_json, resource_version
                FROM commit_statuses
                ORDER BY name
                """
            ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def create(self, record: StatusRecord) -> StatusRecord:
        record.ensure_unique_shas()
        now = utcnow_iso()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO commit_statuses (
                    name,
                    labels_json,
                    items_json,
                    resource_version,
                    created_at,
                    updated_at
                ) VALUES (?, ?, ?, 1, ?, ?)
                ON CONFLICT(name) DO NOTHING
                """,
                (
                    record.name,
                    json.dumps(record.labels, sort_keys=True),
                    self._items_to_json(record.items),
                    now,
                    now,
                ),
            )
            if cursor.rowcount == 0:
                store_write_total.labels(op="create", result="exists").inc()
                raise AlreadyExistsError(record.name)
        store_write_total.labels(op="create", result="ok").inc()
        logger.debug("Created commit status %s", record.name)
        return record.model_copy(update={"resource_version": 1})

    def update(self, record: StatusRecord) -> StatusRecord:
        """Persist ``record`` if nobody wrote it since it was read.

        The stored version has to equal ``record.resource_version``,
        otherwise :class:`ConflictError` is raised and nothing is written.
        """
        record.ensure_unique_shas()
        expected = record.resource_version
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE commit_statuses
                SET labels_json = ?,
                    items_json = ?,
                    resource_version = resource_version + 1,
                    updated_at = ?
                WHERE name = ? AND resource_version = ?
                """,
                (
                    json.dumps(record.labels, sort_keys=True),
                    self._items_to_json(record.items),
                    utcnow_iso(),
                    record.name,
                    expected,
                ),
            )
            if cursor.rowcount == 0:
                row = conn.execute(
                    "SELECT resource_version FROM commit_statuses WHERE name = ?",
                    (record.name,),
                ).fetchone()
                if row is None:
                    store_write_total.labels(op="update", result="missing").inc()
                    raise NotFoundError(record.name)
                store_write_total.labels(op="update", result="conflict").inc()
                raise ConflictError(record.name, expected, row[0])
        store_write_total.labels(op="update", result="ok").inc()
        logger.debug("Updated commit status %s to version %d", record.name, expected + 1)
        return record.model_copy(update={"resource_version": expected + 1})

    def get_activity(self, name: str) -> Optional[PipelineActivity]:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT name, kind, uid, api_version
                FROM pipeline_activities
                WHERE name = ?
                """,
                (name,),
            ).fetchone()
        if row is None:
            return None
        return PipelineActivity(
            name=row[0], kind=row[1], uid=row[2], api_version=row[3]
        )

    def upsert_activity(self, activity: PipelineActivity) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO pipeline_activities (
                    name,
                    kind,
                    uid,
                    api_version,
                    updated_at
                ) VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    kind = excluded.kind,
                    uid = excluded.uid,
                    api_version = excluded.api_version,
                    updated_at = excluded.updated_at
                """,
                (
                    activity.name,
                    activity.kind,
                    activity.uid,
                    activity.api_version,
                    utcnow_iso(),
                ),
            )

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), timeout=10.0)
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA busy_timeout=10000")
        return conn

    @staticmethod
    def _items_to_json(items: List[StatusDetail]) -> str:
        return json.dumps(
            [item.model_dump(mode="json", by_alias=True) for item in items],
            separators=(",", ":"),
        )

    @staticmethod
    def _row_to_record(row: sqlite3.Row | tuple) -> StatusRecord:
        name, labels_json, items_json, resource_version = row
        # stored rows are not re-checked for duplicate shas, the reconciler
        # reports those as a data-integrity error
        return StatusRecord.model_construct(
            name=name,
            labels=json.loads(labels_json),
            items=[StatusDetail.model_validate(i) for i in json.loads(items_json)],
            resource_version=resource_version,
        )
