from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, timezone
from threading import RLock
from typing import Any, Dict, List, Optional, Sequence, Tuple

from fastapi import Request

from .models import TaskEntity
from .schemas import TaskCreate, TaskImport, TaskUpdate
from .settings import Settings

logger = logging.getLogger(__name__)

STATUSES = ("all", "active", "completed")
SORT_FIELDS = ("created_at", "due_date", "priority")
ORDERS = ("asc", "desc")


@dataclass(frozen=True)
class ListQuery:
    """
    Query parameters for listing tasks.
    """
    status: str = "all"  # allowed: all, active, completed
    search: Optional[str] = None
    sort: str = "created_at"  # allowed: created_at, due_date, priority
    order: str = "desc"  # allowed: asc, desc


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# PUBLIC_INTERFACE
class Repository(ABC):
    """Abstract repository contract for task storage backends."""

    @abstractmethod
    def create(self, data: TaskCreate) -> TaskEntity:
        """Create and return a new TaskEntity."""

    @abstractmethod
    def get(self, task_id: int) -> Optional[TaskEntity]:
        """Return a TaskEntity by id, or None if not found."""

    @abstractmethod
    def update(self, task_id: int, data: TaskUpdate) -> Optional[TaskEntity]:
        """Update fields of an existing TaskEntity. Return updated entity or None if not found."""

    @abstractmethod
    def delete(self, task_id: int) -> bool:
        """Delete a TaskEntity by id. Return True if deleted, False if not found."""

    @abstractmethod
    def list(self, query: Optional[ListQuery] = None) -> List[TaskEntity]:
        """
        Return the TaskEntities matching the query.
        - Filter by status (all/active/completed)
        - Case-insensitive substring search on title
        - Sorting by created_at/due_date/priority (asc/desc), ties broken by id;
          tasks without a due date sort last
        """

    @abstractmethod
    def complete_all(self, value: bool) -> int:
        """Set completed=value on every task atomically. Return the number of rows touched."""

    @abstractmethod
    def clear_completed(self) -> int:
        """Delete every completed task atomically. Return the number removed."""

    @abstractmethod
    def import_many(self, items: Sequence[TaskImport]) -> int:
        """Insert validated tasks in one step with fresh ids. Return the number inserted."""

    def export(self) -> List[TaskEntity]:
        """Return every task ordered by id ascending."""
        items = self.list(ListQuery())
        return sorted(items, key=lambda t: t["id"])


def sort_key(field: str, reverse: bool):
    """
    Build a key function for sorted() that keeps missing due dates last
    whichever direction is requested.
    """
    def key(t: TaskEntity) -> Tuple[Any, ...]:
        value = t[field]  # type: ignore[literal-required]
        if field == "due_date":
            missing = value is None
            # sorted(reverse=True) flips the missing flag too
            return (not missing if reverse else missing, value or date.min, t["id"])
        return (value, t["id"])

    return key


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory repository suitable for testing.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: Dict[int, TaskEntity] = {}
        self._next_id = 1

    def _allocate_id(self) -> int:
        with self._lock:
            i = self._next_id
            self._next_id += 1
            return i

    def _insert(self, data: TaskCreate, created_at: datetime) -> TaskEntity:
        entity: TaskEntity = {
            "id": self._allocate_id(),
            "title": data.title,
            "completed": data.completed,
            "created_at": created_at,
            "due_date": data.due_date,
            "priority": data.priority,
        }
        self._items[entity["id"]] = entity
        return entity.copy()  # type: ignore[return-value]

    def create(self, data: TaskCreate) -> TaskEntity:
        with self._lock:
            return self._insert(data, utcnow())

    def get(self, task_id: int) -> Optional[TaskEntity]:
        with self._lock:
            item = self._items.get(task_id)
            return None if item is None else item.copy()  # type: ignore[return-value]

    def update(self, task_id: int, data: TaskUpdate) -> Optional[TaskEntity]:
        with self._lock:
            existing = self._items.get(task_id)
            if existing is None:
                return None

            # Update only provided fields
            updated = existing.copy()
            if data.title is not None:
                updated["title"] = data.title
            if data.completed is not None:
                updated["completed"] = data.completed
            if data.priority is not None:
                updated["priority"] = data.priority
            if "due_date" in data.model_fields_set:
                # Respect explicit nulling of due_date
                updated["due_date"] = data.due_date

            self._items[task_id] = updated  # type: ignore[assignment]
            return updated.copy()  # type: ignore[return-value]

    def delete(self, task_id: int) -> bool:
        with self._lock:
            return self._items.pop(task_id, None) is not None

    def list(self, query: Optional[ListQuery] = None) -> List[TaskEntity]:
        q = query or ListQuery()
        with self._lock:
            items: List[TaskEntity] = list(self._items.values())

            # Filtering
            if q.status == "active":
                items = [t for t in items if not t["completed"]]
            elif q.status == "completed":
                items = [t for t in items if t["completed"]]

            if q.search:
                s = q.search.lower()
                items = [t for t in items if s in t["title"].lower()]

            # Sorting
            field = q.sort if q.sort in SORT_FIELDS else "created_at"
            reverse = q.order == "desc"
            items_sorted = sorted(items, key=sort_key(field, reverse), reverse=reverse)

            # Return copies to avoid external mutation
            return [t.copy() for t in items_sorted]  # type: ignore[misc]

    def complete_all(self, value: bool) -> int:
        with self._lock:
            for item in self._items.values():
                item["completed"] = value
            return len(self._items)

    def clear_completed(self) -> int:
        with self._lock:
            done = [i for i, t in self._items.items() if t["completed"]]
            for i in done:
                del self._items[i]
            return len(done)

    def import_many(self, items: Sequence[TaskImport]) -> int:
        with self._lock:
            for item in items:
                self._insert(item, item.created_at or utcnow())
            return len(items)


# PUBLIC_INTERFACE
def build_repository(settings: Settings) -> Repository:
    """
    Factory to return the configured repository based on settings.
    - sqlite: SQLiteRepository (default)
    - memory: InMemoryRepository
    """
    if settings.persistence_backend == "memory":
        logger.info("Using in-memory task store")
        return InMemoryRepository()

    from .db import SQLiteRepository

    logger.info("Using SQLite task store at %s", settings.sqlite_db_path)
    return SQLiteRepository(settings.sqlite_db_path, wal=settings.sqlite_wal)


# PUBLIC_INTERFACE
def get_repository(request: Request) -> Repository:
    """FastAPI dependency returning the repository built at application startup."""
    return request.app.state.repository
