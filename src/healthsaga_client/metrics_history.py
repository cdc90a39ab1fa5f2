"""
Metrics History and trend aggregation.

Biometric readings are kept newest-first under a single store key and
capped at ``HISTORY_LIMIT`` entries; the oldest reading is evicted on
overflow. Trend statistics are computed on demand over a time window.
"""

import logging
import math
from dataclasses import dataclass, fields
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, Union

from .store import LocalStore, METRICS_DRAFT_KEY, METRICS_HISTORY_KEY
from .timeutil import Clock, local_now, parse_stamp, utc_stamp

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 50

MEASUREMENT_FIELDS = ("systolic", "diastolic", "heart_rate", "weight", "respiratory_rate")

_WIRE_NAMES = {
    "recorded_at": "recordedAt",
    "systolic": "systolic",
    "diastolic": "diastolic",
    "heart_rate": "heartRate",
    "weight": "weight",
    "respiratory_rate": "respiratoryRate",
}

TrendRange = Literal["week", "month", "all"]
TREND_RANGE_DAYS = {"week": 7, "month": 30}
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class Trend(str, Enum):
    """Direction from the oldest to the newest value in a window."""

    INCREASING = "increasing"
    DECREASING = "decreasing"
    FLAT = "flat"


@dataclass(frozen=True)
class MetricsEntry:
    """A single biometric reading. Measurements are numeric strings or None."""

    recorded_at: str
    systolic: Optional[str] = None
    diastolic: Optional[str] = None
    heart_rate: Optional[str] = None
    weight: Optional[str] = None
    respiratory_rate: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return all(getattr(self, name) is None for name in MEASUREMENT_FIELDS)

    @classmethod
    def create(cls, recorded_at: str, **measurements: Any) -> "MetricsEntry":
        """Build an entry from raw form values, trimming blanks to None."""
        cleaned = {}
        for name in MEASUREMENT_FIELDS:
            value = measurements.get(name)
            if value is None:
                continue
            text = str(value).strip()
            if text:
                cleaned[name] = text
        return cls(recorded_at=recorded_at, **cleaned)

    def to_dict(self) -> dict:
        """Wire form (camelCase keys), absent measurements omitted."""
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                result[_WIRE_NAMES[f.name]] = value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MetricsEntry":
        values = {
            name: data.get(wire) for name, wire in _WIRE_NAMES.items() if data.get(wire) is not None
        }
        values.setdefault("recorded_at", "")
        return cls(**{k: str(v) for k, v in values.items()})


@dataclass(frozen=True)
class TrendStats:
    """
    Summary of one metric over a window.

    With no data in the window ``count`` is 0 and every other field is None.
    """

    count: int = 0
    latest: Optional[float] = None
    avg: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    trend: Optional[Trend] = None

    def to_dict(self) -> dict:
        return {
            "latest": self.latest,
            "avg": self.avg,
            "min": self.min,
            "max": self.max,
            "count": self.count,
            "trend": self.trend.value if self.trend else None,
        }


MetricSelector = Union[str, Callable[[MetricsEntry], Optional[str]]]


def _selector(metric: MetricSelector) -> Callable[[MetricsEntry], Optional[str]]:
    if callable(metric):
        return metric
    if metric not in MEASUREMENT_FIELDS:
        raise ValueError(f"Unknown metric: {metric}")
    return lambda entry: getattr(entry, metric)


def _to_number(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _round_half_up(value: float, digits: int = 1) -> float:
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def window_start(range_name: TrendRange, now: Optional[datetime] = None) -> datetime:
    """Start of a named trend window: ``week`` (7 days), ``month`` (30 days) or ``all``."""
    if range_name == "all":
        return EPOCH
    if range_name not in TREND_RANGE_DAYS:
        raise ValueError(f"Unknown trend range: {range_name}")
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.astimezone()
    return now - timedelta(days=TREND_RANGE_DAYS[range_name])


def entries_in_window(history: List[MetricsEntry], start: datetime) -> List[MetricsEntry]:
    """Entries recorded at or after ``start``, in history order (newest first)."""
    if start.tzinfo is None:
        start = start.astimezone()
    selected = []
    for entry in history:
        recorded = parse_stamp(entry.recorded_at)
        if recorded is not None and recorded >= start:
            selected.append(entry)
    return selected


def trend_stats(
    history: List[MetricsEntry],
    metric: MetricSelector,
    start: datetime,
) -> TrendStats:
    """
    Aggregate one metric over entries recorded at or after ``start``.

    Args:
        history: Entries ordered newest first
        metric: Measurement field name or a callable returning the raw value
        start: Inclusive window start

    Returns:
        TrendStats; ``count == 0`` when nothing in the window carries the metric
    """
    select = _selector(metric)
    values = [
        number
        for number in (_to_number(select(entry)) for entry in entries_in_window(history, start))
        if number is not None
    ]
    if not values:
        return TrendStats()

    latest, oldest = values[0], values[-1]
    if latest > oldest:
        trend = Trend.INCREASING
    elif latest < oldest:
        trend = Trend.DECREASING
    else:
        trend = Trend.FLAT

    return TrendStats(
        count=len(values),
        latest=latest,
        avg=_round_half_up(sum(values) / len(values)),
        min=min(values),
        max=max(values),
        trend=trend,
    )


def chart_series(history: List[MetricsEntry], start: datetime) -> List[dict]:
    """Oldest-first points for charting, one per entry in the window."""
    points = []
    for entry in reversed(entries_in_window(history, start)):
        point: Dict[str, Any] = {"recordedAt": entry.recorded_at}
        for name in MEASUREMENT_FIELDS:
            point[_WIRE_NAMES[name]] = _to_number(getattr(entry, name))
        points.append(point)
    return points


class MetricsHistory:
    """Capped, newest-first history persisted under its own store key."""

    def __init__(self, store: LocalStore, limit: int = HISTORY_LIMIT):
        self.store = store
        self.limit = limit

    def entries(self) -> List[MetricsEntry]:
        raw = self.store.get(METRICS_HISTORY_KEY, [])
        if not isinstance(raw, list):
            return []
        return [MetricsEntry.from_dict(item) for item in raw if isinstance(item, dict)]

    def append(self, entry: MetricsEntry) -> bool:
        """
        Prepend an entry, evicting the oldest beyond the cap.

        Returns:
            False (and leaves history untouched) if the entry has no measurements
        """
        if entry.is_empty:
            logger.debug("[METRICS] Ignoring empty entry")
            return False

        entries = [entry] + self.entries()
        self.store.set(
            METRICS_HISTORY_KEY, [e.to_dict() for e in entries[: self.limit]]
        )
        return True

    def stats(self, metric: MetricSelector, range_name: TrendRange = "week",
              now: Optional[datetime] = None) -> TrendStats:
        return trend_stats(self.entries(), metric, window_start(range_name, now))


MetricPusher = Callable[[MetricsEntry], Awaitable[bool]]

EMPTY_DRAFT = {name: "" for name in MEASUREMENT_FIELDS}


class MetricsRecorder:
    """
    Metrics form workflow: an in-progress draft persisted under its own key,
    saved into history and pushed best-effort to the remote log.
    """

    def __init__(
        self,
        store: LocalStore,
        history: MetricsHistory,
        push: Optional[MetricPusher] = None,
        clock: Clock = local_now,
    ):
        self.store = store
        self.history = history
        self.push = push
        self.clock = clock

    def draft(self) -> Dict[str, str]:
        raw = self.store.get(METRICS_DRAFT_KEY)
        draft = dict(EMPTY_DRAFT)
        if isinstance(raw, dict):
            draft.update({k: str(v) for k, v in raw.items() if k in EMPTY_DRAFT and v is not None})
        return draft

    def update_draft(self, **values: str) -> Dict[str, str]:
        unknown = set(values) - set(EMPTY_DRAFT)
        if unknown:
            raise ValueError(f"Unknown metric fields: {sorted(unknown)}")
        draft = self.draft()
        draft.update(values)
        self.store.set(METRICS_DRAFT_KEY, draft)
        return draft

    async def save(self) -> Optional[MetricsEntry]:
        """
        Turn the draft into a history entry and clear the draft.

        Returns:
            The saved entry, or None if the draft had no values
        """
        entry = MetricsEntry.create(utc_stamp(self.clock()), **self.draft())
        saved = self.history.append(entry)
        self.store.set(METRICS_DRAFT_KEY, dict(EMPTY_DRAFT))

        if not saved:
            return None
        if self.push is not None:
            await self.push(entry)
        return entry
