from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Generator, List, Optional, Sequence

from .models import PRIORITY_NORMAL, TaskEntity
from .repositories import SORT_FIELDS, ListQuery, Repository, utcnow
from .schemas import TaskCreate, TaskImport, TaskUpdate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Cols:
    table: str = "tasks"
    id: str = "id"
    title: str = "title"
    completed: str = "completed"
    created_at: str = "created_at"
    due_date: str = "due_date"
    priority: str = "priority"


_COLS = _Cols()


def _ts(value: datetime) -> str:
    # Uniform UTC text keeps ORDER BY created_at chronological
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


# SQLite INTEGER is a signed 64-bit value; larger ids cannot exist
MAX_ROW_ID = 2**63 - 1


def _lower(value: Optional[str]) -> Optional[str]:
    return value.lower() if value is not None else None


def _escape_like(s: str) -> str:
    return s.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SQLiteRepository(Repository):
    """
    Lightweight SQLite repository implementing the Repository interface.

    Every call opens its own connection and commits on success, so bulk
    statements are applied atomically and concurrent readers only ever
    see committed state.
    """

    def __init__(self, db_path: str, wal: bool = True) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._wal = wal
        self._init_db()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        # SQLite lower() only folds ASCII
        conn.create_function("py_lower", 1, _lower, deterministic=True)
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._conn() as conn:
            if self._wal:
                mode = conn.execute("PRAGMA journal_mode=WAL").fetchone()[0]
                logger.debug("SQLite journal mode: %s", mode)
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_COLS.table} (
                    {_COLS.id} INTEGER PRIMARY KEY AUTOINCREMENT,
                    {_COLS.title} TEXT NOT NULL,
                    {_COLS.completed} INTEGER NOT NULL DEFAULT 0,
                    {_COLS.created_at} TEXT NOT NULL,
                    {_COLS.due_date} TEXT NULL,
                    {_COLS.priority} INTEGER NOT NULL DEFAULT {PRIORITY_NORMAL}
                )
                """
            )
            self._upgrade_minimal_schema(conn)
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_completed ON {_COLS.table}({_COLS.completed})"
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_created_at ON {_COLS.table}({_COLS.created_at})"
            )

    def _upgrade_minimal_schema(self, conn: sqlite3.Connection) -> None:
        """
        Bring a database created without due_date/priority up to the current
        schema. Its created_at values were written as 'YYYY-MM-DD HH:MM:SS'
        and are rewritten to the ISO form used everywhere else.
        """
        existing = {row["name"] for row in conn.execute(f"PRAGMA table_info({_COLS.table})")}
        if _COLS.due_date not in existing:
            logger.info("Adding %s column to %s", _COLS.due_date, _COLS.table)
            conn.execute(f"ALTER TABLE {_COLS.table} ADD COLUMN {_COLS.due_date} TEXT NULL")
        if _COLS.priority not in existing:
            logger.info("Adding %s column to %s", _COLS.priority, _COLS.table)
            conn.execute(
                f"ALTER TABLE {_COLS.table} ADD COLUMN {_COLS.priority} INTEGER NOT NULL DEFAULT {PRIORITY_NORMAL}"
            )
        conn.execute(
            f"""
            UPDATE {_COLS.table}
            SET {_COLS.created_at} = strftime('%Y-%m-%dT%H:%M:%f', {_COLS.created_at}) || '000+00:00'
            WHERE {_COLS.created_at} NOT LIKE '%+00:00'
              AND strftime('%Y-%m-%dT%H:%M:%f', {_COLS.created_at}) IS NOT NULL
            """
        )

    def _row_to_entity(self, row: sqlite3.Row) -> TaskEntity:
        created_at = datetime.fromisoformat(row[_COLS.created_at])
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        due = row[_COLS.due_date]
        return {
            "id": int(row[_COLS.id]),
            "title": str(row[_COLS.title]),
            "completed": bool(row[_COLS.completed]),
            "created_at": created_at,
            "due_date": date.fromisoformat(due) if due else None,
            "priority": int(row[_COLS.priority]),
        }

    def _fetch(self, conn: sqlite3.Connection, task_id: int) -> Optional[sqlite3.Row]:
        if not 0 < task_id <= MAX_ROW_ID:
            return None
        return conn.execute(f"SELECT * FROM {_COLS.table} WHERE {_COLS.id} = ?", (task_id,)).fetchone()

    def _insert(self, conn: sqlite3.Connection, data: TaskCreate, created_at: datetime) -> int:
        cur = conn.execute(
            f"""
            INSERT INTO {_COLS.table} ({_COLS.title}, {_COLS.completed}, {_COLS.created_at},
                {_COLS.due_date}, {_COLS.priority})
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                data.title,
                1 if data.completed else 0,
                _ts(created_at),
                data.due_date.isoformat() if data.due_date else None,
                data.priority,
            ),
        )
        return int(cur.lastrowid)  # type: ignore[arg-type]

    def create(self, data: TaskCreate) -> TaskEntity:
        with self._conn() as conn:
            new_id = self._insert(conn, data, utcnow())
            row = self._fetch(conn, new_id)
            assert row is not None
            return self._row_to_entity(row)

    def get(self, task_id: int) -> Optional[TaskEntity]:
        with self._conn() as conn:
            row = self._fetch(conn, task_id)
            return self._row_to_entity(row) if row else None

    def update(self, task_id: int, data: TaskUpdate) -> Optional[TaskEntity]:
        with self._conn() as conn:
            row = self._fetch(conn, task_id)
            if not row:
                return None
            current = self._row_to_entity(row)

            title = data.title if data.title is not None else current["title"]
            completed = data.completed if data.completed is not None else current["completed"]
            priority = data.priority if data.priority is not None else current["priority"]
            due_date = data.due_date if "due_date" in data.model_fields_set else current["due_date"]
            conn.execute(
                f"""
                UPDATE {_COLS.table}
                SET {_COLS.title} = ?, {_COLS.completed} = ?, {_COLS.due_date} = ?, {_COLS.priority} = ?
                WHERE {_COLS.id} = ?
                """,
                (
                    title,
                    1 if completed else 0,
                    due_date.isoformat() if due_date else None,
                    priority,
                    task_id,
                ),
            )
            row2 = self._fetch(conn, task_id)
            assert row2 is not None
            return self._row_to_entity(row2)

    def delete(self, task_id: int) -> bool:
        if not 0 < task_id <= MAX_ROW_ID:
            return False
        with self._conn() as conn:
            cur = conn.execute(f"DELETE FROM {_COLS.table} WHERE {_COLS.id} = ?", (task_id,))
            return cur.rowcount > 0

    def list(self, query: Optional[ListQuery] = None) -> List[TaskEntity]:
        q = query or ListQuery()
        clauses = []
        params: list = []

        if q.status == "active":
            clauses.append(f"{_COLS.completed} = 0")
        elif q.status == "completed":
            clauses.append(f"{_COLS.completed} = 1")

        if q.search:
            clauses.append(f"py_lower({_COLS.title}) LIKE ? ESCAPE '\\'")
            params.append(f"%{_escape_like(q.search.lower())}%")

        where_sql = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        field = q.sort if q.sort in SORT_FIELDS else "created_at"
        direction = "DESC" if q.order == "desc" else "ASC"
        # Rows without a due date go last in either direction
        nulls_last = f"{_COLS.due_date} IS NULL, " if field == "due_date" else ""
        order_sql = f"ORDER BY {nulls_last}{field} {direction}, {_COLS.id} {direction}"

        with self._conn() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM {_COLS.table}
                {where_sql}
                {order_sql}
                """,
                params,
            ).fetchall()
            return [self._row_to_entity(r) for r in rows]

    def complete_all(self, value: bool) -> int:
        with self._conn() as conn:
            cur = conn.execute(f"UPDATE {_COLS.table} SET {_COLS.completed} = ?", (1 if value else 0,))
            return cur.rowcount

    def clear_completed(self) -> int:
        with self._conn() as conn:
            cur = conn.execute(f"DELETE FROM {_COLS.table} WHERE {_COLS.completed} = 1")
            return cur.rowcount

    def export(self) -> List[TaskEntity]:
        with self._conn() as conn:
            rows = conn.execute(f"SELECT * FROM {_COLS.table} ORDER BY {_COLS.id} ASC").fetchall()
            return [self._row_to_entity(r) for r in rows]

    def import_many(self, items: Sequence[TaskImport]) -> int:
        with self._conn() as conn:
            for item in items:
                self._insert(conn, item, item.created_at or utcnow())
            return len(items)
