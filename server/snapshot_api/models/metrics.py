"""Biometric reading models."""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional


def to_camel(string: str) -> str:
    """Convert snake_case to camelCase."""
    components = string.split("_")
    return components[0] + "".join(x.title() for x in components[1:])


class MetricsEntryIn(BaseModel):
    """A single reading appended to the metrics log. Values are numeric strings."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    recorded_at: Optional[str] = None
    systolic: Optional[str] = None
    diastolic: Optional[str] = None
    heart_rate: Optional[str] = None
    weight: Optional[str] = None
    respiratory_rate: Optional[str] = None


class MetricsRecord(BaseModel):
    """Stored metrics row."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    recorded_at: str = Field(serialization_alias="recordedAt")
    systolic: Optional[str] = None
    diastolic: Optional[str] = None
    heart_rate: Optional[str] = Field(default=None, serialization_alias="heartRate")
    weight: Optional[str] = None
    respiratory_rate: Optional[str] = Field(
        default=None, serialization_alias="respiratoryRate"
    )
