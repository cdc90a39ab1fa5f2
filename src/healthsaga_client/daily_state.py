"""
Daily State Manager.

Scopes the day's wellness checklist to the current local calendar date.
A stored record for any other date is discarded on load and replaced by a
fresh default; nothing is carried over or archived.
"""

import copy
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Optional

from .store import LocalStore, TODAY_KEY
from .timeutil import Clock, local_now, local_date_key

logger = logging.getLogger(__name__)

HYDRATION_STEP_OZ = 8
HYDRATION_MAX_OZ = 60
DEFAULT_WALK_DURATION = "10 min"

DEFAULT_SUPPLEMENTS = {
    "breakfast": {"multivitamin": False, "vitaminD": False},
    "dinner": {"omega3": False, "magnesium": False},
}
DEFAULT_MEALS = {"breakfast": False, "lunch": False, "dinner": False}


@dataclass(frozen=True)
class Walk:
    """A logged walk."""

    time: str
    duration: str = DEFAULT_WALK_DURATION

    def to_dict(self) -> dict:
        return {"time": self.time, "duration": self.duration}


@dataclass(frozen=True)
class DailyRecord:
    """Checklist state for a single calendar date."""

    date: str
    supplement_checks: Dict[str, Dict[str, bool]] = field(
        default_factory=lambda: copy.deepcopy(DEFAULT_SUPPLEMENTS)
    )
    hydration_ounces: int = 0
    meals: Dict[str, bool] = field(default_factory=lambda: dict(DEFAULT_MEALS))
    walks: tuple = ()
    morning_ritual_done: bool = False
    meditation_count: int = 0
    reminder_completion: Dict[str, bool] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to the persisted/wire form."""
        return {
            "date": self.date,
            "supplementChecks": copy.deepcopy(self.supplement_checks),
            "hydrationOunces": self.hydration_ounces,
            "meals": dict(self.meals),
            "walks": [w.to_dict() for w in self.walks],
            "morningRitualDone": self.morning_ritual_done,
            "meditationCount": self.meditation_count,
            "reminderCompletion": dict(self.reminder_completion),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DailyRecord":
        """Build a record from its persisted form, filling gaps with defaults."""
        default = cls(date=data.get("date", ""))
        walks = tuple(
            Walk(time=str(w.get("time", "")), duration=str(w.get("duration", DEFAULT_WALK_DURATION)))
            for w in data.get("walks") or []
            if isinstance(w, dict)
        )
        meditation = data.get("meditationCount", 0)
        return cls(
            date=default.date,
            supplement_checks=data.get("supplementChecks") or default.supplement_checks,
            hydration_ounces=min(int(data.get("hydrationOunces", 0) or 0), HYDRATION_MAX_OZ),
            meals=data.get("meals") or default.meals,
            walks=walks,
            morning_ritual_done=bool(data.get("morningRitualDone", False)),
            meditation_count=max(int(meditation or 0), 0),
            reminder_completion={
                str(k): bool(v) for k, v in (data.get("reminderCompletion") or {}).items()
            },
        )


Mutator = Callable[[DailyRecord], DailyRecord]


# Pure transformations

def toggle_supplement(record: DailyRecord, slot: str, supplement_id: str) -> DailyRecord:
    checks = copy.deepcopy(record.supplement_checks)
    slot_checks = checks.setdefault(slot, {})
    slot_checks[supplement_id] = not slot_checks.get(supplement_id, False)
    return replace(record, supplement_checks=checks)


def add_hydration(record: DailyRecord, ounces: int = HYDRATION_STEP_OZ) -> DailyRecord:
    if ounces <= 0:
        raise ValueError("Hydration can only be increased")
    return replace(
        record, hydration_ounces=min(record.hydration_ounces + ounces, HYDRATION_MAX_OZ)
    )


def toggle_meal(record: DailyRecord, meal: str) -> DailyRecord:
    meals = dict(record.meals)
    meals[meal] = not meals.get(meal, False)
    return replace(record, meals=meals)


def add_walk(record: DailyRecord, time: str, duration: str = DEFAULT_WALK_DURATION) -> DailyRecord:
    return replace(record, walks=record.walks + (Walk(time=time, duration=duration),))


def toggle_morning_ritual(record: DailyRecord) -> DailyRecord:
    return replace(record, morning_ritual_done=not record.morning_ritual_done)


def increment_meditation(record: DailyRecord) -> DailyRecord:
    return replace(record, meditation_count=record.meditation_count + 1)


def decrement_meditation(record: DailyRecord) -> DailyRecord:
    return replace(record, meditation_count=max(0, record.meditation_count - 1))


def set_reminder_completion(record: DailyRecord, reminder_id: int | str, done: bool) -> DailyRecord:
    completion = dict(record.reminder_completion)
    completion[str(reminder_id)] = done
    return replace(record, reminder_completion=completion)


class DailyStateManager:
    """
    Wraps the daily-record store key.

    All operations are synchronous against the local store. Writes go
    through ``LocalStore.set`` so change observers see every mutation.
    """

    def __init__(self, store: LocalStore, clock: Clock = local_now):
        self.store = store
        self.clock = clock

    def today(self) -> str:
        return local_date_key(self.clock())

    def load(self) -> DailyRecord:
        """Return today's stored record, or a fresh default if none matches today."""
        today = self.today()
        stored = self.store.get(TODAY_KEY)

        if isinstance(stored, dict) and stored.get("date") == today:
            try:
                return DailyRecord.from_dict(stored)
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning(f"[DAILY] Stored record for {today} is malformed: {e}")
        elif isinstance(stored, dict) and stored.get("date"):
            logger.info(f"[DAILY] Dropping record for {stored.get('date')}, today is {today}")

        return DailyRecord(date=today)

    def update(self, mutator: Mutator) -> DailyRecord:
        """Apply ``mutator`` to today's record, persist and return the result."""
        current = self.load()
        updated = replace(mutator(current), date=current.date)
        self.store.set(TODAY_KEY, updated.to_dict())
        return updated

    # Convenience actions

    def toggle_supplement(self, slot: str, supplement_id: str) -> DailyRecord:
        return self.update(lambda r: toggle_supplement(r, slot, supplement_id))

    def add_hydration(self, ounces: int = HYDRATION_STEP_OZ) -> DailyRecord:
        return self.update(lambda r: add_hydration(r, ounces))

    def toggle_meal(self, meal: str) -> DailyRecord:
        return self.update(lambda r: toggle_meal(r, meal))

    def add_walk(self, duration: str = DEFAULT_WALK_DURATION, time: Optional[str] = None) -> DailyRecord:
        stamp = time or self.clock().strftime("%I:%M %p")
        return self.update(lambda r: add_walk(r, stamp, duration))

    def toggle_morning_ritual(self) -> DailyRecord:
        return self.update(toggle_morning_ritual)

    def increment_meditation(self) -> DailyRecord:
        return self.update(increment_meditation)

    def decrement_meditation(self) -> DailyRecord:
        return self.update(decrement_meditation)

    def set_reminder_completion(self, reminder_id: int | str, done: bool = True) -> DailyRecord:
        return self.update(lambda r: set_reminder_completion(r, reminder_id, done))
