"""Snapshot exchange models."""
from pydantic import BaseModel, Field, ConfigDict
from typing import Any, Optional


class SnapshotEnvelope(BaseModel):
    """Stored snapshot as returned to clients. ``data`` is null when no row exists."""

    model_config = ConfigDict(populate_by_name=True)

    updated_at: str = Field(default="", alias="updatedAt")
    data: Optional[dict[str, Any]] = None


class SnapshotWrite(BaseModel):
    """Body of a snapshot upload. The whole payload replaces the stored row."""

    model_config = ConfigDict(populate_by_name=True)

    updated_at: Optional[str] = Field(default=None, alias="updatedAt")
    data: Optional[dict[str, Any]] = None


class SnapshotWriteResult(BaseModel):
    """Stamp under which an uploaded snapshot was stored."""

    model_config = ConfigDict(populate_by_name=True)

    updated_at: str = Field(alias="updatedAt")
