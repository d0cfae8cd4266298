from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime, timezone
from typing import Optional


class TaskIn(BaseModel):
    """Request body for creating or replacing a task.

    Title rules are enforced by the store, not here, so that a missing title
    surfaces as a store validation error rather than a malformed body.
    """
    model_config = ConfigDict(strict=True)

    title: str = Field(default="", description="Task title")
    description: Optional[str] = Field(default="", description="Task description")
    completed: bool = Field(default=False, description="Task completion status")

    @field_validator('description')
    @classmethod
    def description_null_as_empty(cls, v: Optional[str]) -> str:
        return v or ""


class Task(BaseModel):
    """A task record as stored and returned by the API"""
    id: int = 0
    title: str = ""
    description: str = ""
    completed: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator('description', mode='before')
    @classmethod
    def description_null_as_empty(cls, v):
        return "" if v is None else v

    @field_validator('created_at', 'updated_at')
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """SQLite drops the offset; stored timestamps are always UTC"""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class ErrorResponse(BaseModel):
    """Shape of every error body"""
    error: str
