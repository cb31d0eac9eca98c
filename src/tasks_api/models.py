from __future__ import annotations

from datetime import date, datetime
from typing import Optional, TypedDict

# Priority levels accepted by the API
PRIORITY_LOW = 0
PRIORITY_NORMAL = 1
PRIORITY_HIGH = 2


# PUBLIC_INTERFACE
class TaskEntity(TypedDict):
    """
    A lightweight domain model representing a Task row, shared by every
    storage backend.

    Fields:
    - id: Unique integer identifier assigned by the store
    - title: Short title (1..200 chars, trimmed on input via schemas)
    - completed: Boolean completion flag
    - created_at: UTC creation timestamp, never changed after insert
    - due_date: Optional due date
    - priority: 0 (low), 1 (normal) or 2 (high)
    """

    id: int
    title: str
    completed: bool
    created_at: datetime
    due_date: Optional[date]
    priority: int
