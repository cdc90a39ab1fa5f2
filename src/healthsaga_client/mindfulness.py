"""
Mindfulness Sequencer.

Presents meditation exercises for the current time-of-day slot without
repeating one until every exercise in the slot's pool has been shown.
The queue is a Fisher-Yates permutation drawn from an explicit random
source, so sequencing is reproducible when the source is seeded.
"""

import json
import logging
import random
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import List, Literal, Optional, Sequence, Tuple

from .store import LocalStore, MINDFULNESS_KEY
from .timeutil import Clock, local_now, local_date_key

logger = logging.getLogger(__name__)

Slot = Literal["morning", "evening"]

ANYTIME = "anytime"
MORNING_START_HOUR = 5
MORNING_END_HOUR = 12

EXERCISES_PATH = Path(__file__).parent / "data" / "meditation_exercises.json"


@dataclass(frozen=True)
class MeditationExercise:
    """A mindfulness exercise from the content catalog."""

    id: str
    name: str
    time_of_day: Tuple[str, ...] = (ANYTIME,)
    tradition: str = ""
    duration: int = 0
    difficulty: str = ""
    goals: Tuple[str, ...] = ()
    primary_benefit: str = ""
    instructions: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict) -> "MeditationExercise":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            time_of_day=tuple(data.get("timeOfDay") or (ANYTIME,)),
            tradition=data.get("tradition", ""),
            duration=int(data.get("duration", 0)),
            difficulty=data.get("difficulty", ""),
            goals=tuple(data.get("goals") or ()),
            primary_benefit=data.get("primaryBenefit", ""),
            instructions=tuple(data.get("instructions") or ()),
        )


@dataclass(frozen=True)
class MindfulnessState:
    """Persisted sequencing state for one slot of one day."""

    date: str
    slot: Slot
    remaining_ids: Tuple[str, ...] = field(default_factory=tuple)
    current_id: str = ""

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "slot": self.slot,
            "remainingIds": list(self.remaining_ids),
            "currentId": self.current_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MindfulnessState":
        return cls(
            date=str(data.get("date", "")),
            slot=data.get("slot", "evening"),
            remaining_ids=tuple(str(i) for i in data.get("remainingIds") or ()),
            current_id=str(data.get("currentId") or ""),
        )


def load_exercises(path: Path = EXERCISES_PATH) -> List[MeditationExercise]:
    """Load the bundled exercise catalog."""
    with open(path, "r", encoding="utf-8") as f:
        payload = json.load(f)
    return [MeditationExercise.from_dict(item) for item in payload["exercises"]]


def slot_for(now: datetime) -> Slot:
    """Morning is 05:00-11:59 local time; every other hour is evening."""
    if MORNING_START_HOUR <= now.hour < MORNING_END_HOUR:
        return "morning"
    return "evening"


def pool_for(items: Sequence[MeditationExercise], slot: Slot) -> List[MeditationExercise]:
    """Exercises tagged for ``slot`` or anytime; the full set if none match."""
    matches = [
        item for item in items
        if slot in item.time_of_day or ANYTIME in item.time_of_day
    ]
    return matches if matches else list(items)


def refresh_queue(
    pool: Sequence[MeditationExercise], rng: random.Random
) -> Tuple[str, Tuple[str, ...]]:
    """
    Draw a uniformly random order over the pool.

    Returns:
        ``(current_id, remaining_ids)``, the head of the permutation and the rest.
        ``current_id`` is empty for an empty pool.
    """
    ids = [item.id for item in pool]
    for i in range(len(ids) - 1, 0, -1):
        j = rng.randint(0, i)
        ids[i], ids[j] = ids[j], ids[i]

    if not ids:
        return "", ()
    return ids[0], tuple(ids[1:])


def advance(state: MindfulnessState) -> MindfulnessState:
    """Move to the next queued id. No-op when the queue is exhausted."""
    if not state.remaining_ids:
        return state
    next_id, *rest = state.remaining_ids
    return replace(state, current_id=next_id, remaining_ids=tuple(rest))


def needs_regeneration(
    state: Optional[MindfulnessState],
    today: str,
    slot: Slot,
    pool: Sequence[MeditationExercise],
) -> bool:
    """True if stored state is for another day or slot, or its current id left the pool."""
    if state is None:
        return True
    if state.date != today or state.slot != slot:
        return True
    return not any(item.id == state.current_id for item in pool)


class MindfulnessSequencer:
    """
    Persisted mindfulness suggestion queue.

    State lives under its own store key. Stale state (another date or
    slot, or a current id no longer in the pool) is regenerated silently
    before use.
    """

    def __init__(
        self,
        store: LocalStore,
        exercises: Optional[Sequence[MeditationExercise]] = None,
        clock: Clock = local_now,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.exercises = list(exercises) if exercises is not None else load_exercises()
        self.clock = clock
        self.rng = rng or random.Random()

    def _stored_state(self) -> Optional[MindfulnessState]:
        raw = self.store.get(MINDFULNESS_KEY)
        if not isinstance(raw, dict):
            return None
        return MindfulnessState.from_dict(raw)

    def _save(self, state: MindfulnessState, quiet: bool = False) -> MindfulnessState:
        # Self-healing regeneration is not a user change and must not mark
        # local state as newer than the remote copy.
        if quiet:
            self.store.commit({MINDFULNESS_KEY: state.to_dict()})
        else:
            self.store.set(MINDFULNESS_KEY, state.to_dict())
        return state

    def state(self) -> MindfulnessState:
        """Current state, regenerated first if stale."""
        now = self.clock()
        today, slot = local_date_key(now), slot_for(now)
        pool = pool_for(self.exercises, slot)
        stored = self._stored_state()

        if needs_regeneration(stored, today, slot, pool):
            logger.info(f"[MINDFULNESS] Regenerating queue for {today} {slot}")
            return self._new_round(today, slot, pool, quiet=True)
        return stored

    def _new_round(
        self, today: str, slot: Slot, pool: Sequence[MeditationExercise], quiet: bool = False
    ) -> MindfulnessState:
        current_id, remaining = refresh_queue(pool, self.rng)
        return self._save(
            MindfulnessState(date=today, slot=slot, remaining_ids=remaining, current_id=current_id),
            quiet=quiet,
        )

    def suggestion(self) -> Optional[MeditationExercise]:
        """The exercise to present now."""
        state = self.state()
        pool = pool_for(self.exercises, state.slot)
        for item in pool:
            if item.id == state.current_id:
                return item
        return pool[0] if pool else None

    def has_more(self) -> bool:
        return bool(self.state().remaining_ids)

    def next_suggestion(self) -> MindfulnessState:
        """Advance to the next exercise. Exhaustion leaves the state unchanged."""
        state = self.state()
        advanced = advance(state)
        if advanced is state:
            return state
        return self._save(advanced)

    def reshuffle(self) -> MindfulnessState:
        """Start a new round over the current slot's pool."""
        now = self.clock()
        slot = slot_for(now)
        return self._new_round(local_date_key(now), slot, pool_for(self.exercises, slot))
