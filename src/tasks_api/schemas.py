from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import PRIORITY_HIGH, PRIORITY_LOW, PRIORITY_NORMAL

# Shared type for incoming due_date which can be a date, datetime, or ISO8601 string
DueDateInput = Union[date, datetime, str]

TITLE_MAX_LENGTH = 200


def _parse_due_date(value: Optional[DueDateInput]) -> Optional[date]:
    """
    Internal helper to normalize due_date input into a calendar date.
    - None and blank strings mean "no due date".
    - A datetime is truncated to its date.
    - A string is parsed as an ISO date first, then as an ISO datetime.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        try:
            return date.fromisoformat(s)
        except ValueError:
            try:
                return datetime.fromisoformat(s).date()
            except ValueError as e:
                raise ValueError(
                    "Invalid due_date format. Use an ISO8601 date (e.g., '2025-01-31')."
                ) from e

    raise ValueError("Invalid type for due_date; expected date, datetime, or ISO8601 string.")


def _clean_title(v: Optional[str]) -> str:
    if v is None:
        raise ValueError("title is required")
    if not isinstance(v, str):
        raise ValueError("title must be a string")
    s = v.strip()
    if not s:
        raise ValueError("title is required")
    if len(s) > TITLE_MAX_LENGTH:
        raise ValueError(f"title must be at most {TITLE_MAX_LENGTH} characters")
    return s


# PUBLIC_INTERFACE
class TaskCreate(BaseModel):
    """
    Schema for creating a new Task.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy groceries",
                "due_date": "2025-02-01",
                "priority": 1,
            }
        }
    )

    title: str = Field(..., description="Short title for the task; trimmed, must not be blank")
    completed: bool = Field(default=False, description="Completion status flag")
    due_date: Optional[date] = Field(default=None, description="Optional due date (ISO8601 date)")
    priority: int = Field(
        default=PRIORITY_NORMAL,
        ge=PRIORITY_LOW,
        le=PRIORITY_HIGH,
        description="0 = low, 1 = normal, 2 = high",
    )

    @field_validator("title", mode="before")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> str:
        """
        Strip whitespace and reject blank titles.
        """
        return _clean_title(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[date]:
        return _parse_due_date(v)


# PUBLIC_INTERFACE
class TaskUpdate(BaseModel):
    """
    Schema for partially updating an existing Task.
    Only fields present in the request body are applied; sending
    `"due_date": null` clears the due date.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy groceries and supplies",
                "completed": True,
            }
        }
    )

    title: Optional[str] = Field(default=None, description="New title; trimmed, must not be blank")
    completed: Optional[bool] = Field(default=None, description="Completion status flag")
    due_date: Optional[date] = Field(default=None, description="New due date, or null to clear it")
    priority: Optional[int] = Field(default=None, ge=PRIORITY_LOW, le=PRIORITY_HIGH)

    @field_validator("title", mode="before")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        """
        If title is provided, strip whitespace and reject blank titles.
        """
        if v is None:
            return v
        return _clean_title(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[date]:
        return _parse_due_date(v)


# PUBLIC_INTERFACE
class TaskImport(TaskCreate):
    """
    One element of an import payload. Mirrors the export format; the `id`
    of the exported row is ignored and a fresh one is assigned.
    """

    model_config = ConfigDict(extra="ignore")

    created_at: Optional[datetime] = Field(
        default=None, description="Original creation timestamp; defaults to now"
    )

    @field_validator("created_at")
    @classmethod
    def normalize_created_at(cls, v: Optional[datetime]) -> Optional[datetime]:
        """
        Naive timestamps are taken to be UTC; aware ones are converted to UTC.
        """
        if v is None:
            return v
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        try:
            return v.astimezone(timezone.utc)
        except OverflowError as e:
            raise ValueError("created_at is out of range once converted to UTC") from e


# PUBLIC_INTERFACE
class CompleteAllRequest(BaseModel):
    """Body of the bulk complete endpoint."""

    value: bool = Field(default=True, description="Completion flag applied to every task")


# PUBLIC_INTERFACE
class TaskOut(BaseModel):
    """
    Schema returned by the API for a Task.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 123,
                "title": "Buy groceries",
                "completed": False,
                "created_at": "2025-01-25T10:15:30.123456Z",
                "due_date": "2025-02-01",
                "priority": 1,
            }
        }
    )

    id: int = Field(..., description="Unique identifier of the task")
    title: str = Field(..., description="Short title for the task")
    completed: bool = Field(..., description="Completion status flag")
    created_at: datetime = Field(..., description="Creation timestamp (UTC)")
    due_date: Optional[date] = Field(default=None, description="Due date, if any")
    priority: int = Field(..., description="0 = low, 1 = normal, 2 = high")


# PUBLIC_INTERFACE
class ImportResult(BaseModel):
    """Outcome of a bulk import."""

    imported: int = Field(..., description="Number of tasks inserted")
    skipped: int = Field(..., description="Number of malformed entries ignored")


# PUBLIC_INTERFACE
class ClearResult(BaseModel):
    """Outcome of clearing completed tasks."""

    deleted: int = Field(..., description="Number of completed tasks removed")


class HealthOut(BaseModel):
    status: str = Field(..., description="Always 'ok' when the process is serving requests")


class VersionOut(BaseModel):
    version: str
    service: str
