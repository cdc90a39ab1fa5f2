"""Reminder status models."""
from pydantic import BaseModel
from typing import Literal, Optional

ReminderType = Literal["walk", "hydration", "metrics", "mindfulness"]


class ReminderStatus(BaseModel):
    """A seeded reminder with its due/completed state at request time."""

    id: int
    type: ReminderType
    time: str
    description: Optional[str] = None
    due: bool
    completed: bool
