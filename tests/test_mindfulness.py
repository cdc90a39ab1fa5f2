"""
Unit tests for the Mindfulness Sequencer.

Usage:
    pytest tests/test_mindfulness.py -v
"""
import random
import pytest
from datetime import datetime

from healthsaga_client.mindfulness import (
    MindfulnessSequencer,
    MindfulnessState,
    MeditationExercise,
    advance,
    load_exercises,
    pool_for,
    refresh_queue,
    slot_for,
)
from healthsaga_client.store import MINDFULNESS_KEY


class TestSlotAndPool:
    """Time-of-day slot and pool selection."""

    @pytest.mark.parametrize("hour,slot", [
        (0, "evening"), (4, "evening"), (5, "morning"), (11, "morning"),
        (12, "evening"), (18, "evening"), (23, "evening"),
    ])
    def test_slot_boundaries(self, hour, slot):
        assert slot_for(datetime(2024, 1, 2, hour, 59)) == slot

    def test_pool_includes_slot_and_anytime(self, exercises):
        assert [e.id for e in pool_for(exercises, "morning")] == ["m1", "m2", "a1"]
        assert [e.id for e in pool_for(exercises, "evening")] == ["e1", "e2", "a1"]

    def test_pool_falls_back_to_everything(self):
        items = [MeditationExercise(id="x", name="X", time_of_day=("afternoon",))]

        assert pool_for(items, "morning") == items

    def test_bundled_catalog_covers_both_slots(self):
        items = load_exercises()

        assert pool_for(items, "morning")
        assert pool_for(items, "evening")
        assert len({e.id for e in items}) == len(items)


class TestQueue:
    """Permutation and advancing."""

    def test_refresh_queue_is_a_permutation(self, exercises):
        current, remaining = refresh_queue(exercises, random.Random(7))

        assert sorted([current, *remaining]) == sorted(e.id for e in exercises)

    def test_refresh_queue_is_reproducible_with_seed(self, exercises):
        assert refresh_queue(exercises, random.Random(42)) == refresh_queue(exercises, random.Random(42))

    def test_refresh_queue_empty_pool(self):
        assert refresh_queue([], random.Random(1)) == ("", ())

    def test_advance_pops_next(self):
        state = MindfulnessState(date="2024-01-02", slot="morning", remaining_ids=("b", "c"), current_id="a")

        advanced = advance(state)

        assert advanced.current_id == "b"
        assert advanced.remaining_ids == ("c",)

    def test_advance_on_exhausted_queue_is_noop(self):
        state = MindfulnessState(date="2024-01-02", slot="morning", remaining_ids=(), current_id="a")

        assert advance(state) is state


class TestSequencer:
    """Persisted sequencing with stale-state regeneration."""

    def test_each_item_shown_once_per_round(self, store, clock, rng, exercises):
        sequencer = MindfulnessSequencer(store, exercises, clock, rng)

        shown = [sequencer.state().current_id]
        while sequencer.has_more():
            shown.append(sequencer.next_suggestion().current_id)

        assert sorted(shown) == ["a1", "m1", "m2"]

    def test_next_on_exhausted_queue_keeps_current(self, store, clock, rng, exercises):
        sequencer = MindfulnessSequencer(store, exercises, clock, rng)
        while sequencer.has_more():
            sequencer.next_suggestion()
        last = sequencer.state()

        assert sequencer.next_suggestion() == last

    def test_state_survives_reload(self, store, clock, exercises):
        first = MindfulnessSequencer(store, exercises, clock, random.Random(3))
        first.next_suggestion()
        saved = first.state()

        second = MindfulnessSequencer(store, exercises, clock, random.Random(99))

        assert second.state() == saved

    def test_regenerates_on_slot_change(self, store, clock, rng, exercises):
        sequencer = MindfulnessSequencer(store, exercises, clock, rng)
        assert sequencer.state().slot == "morning"

        clock.now = datetime(2024, 1, 2, 19, 0)
        state = sequencer.state()

        assert state.slot == "evening"
        assert state.current_id in {"e1", "e2", "a1"}

    def test_regenerates_on_date_change(self, store, clock, rng, exercises):
        sequencer = MindfulnessSequencer(store, exercises, clock, rng)
        sequencer.state()

        clock.now = datetime(2024, 1, 3, 9, 0)

        assert sequencer.state().date == "2024-01-03"

    def test_regenerates_when_current_id_left_pool(self, store, clock, rng, exercises):
        store.set(MINDFULNESS_KEY, {
            "date": "2024-01-02", "slot": "morning", "remainingIds": [], "currentId": "retired",
        })

        state = MindfulnessSequencer(store, exercises, clock, rng).state()

        assert state.current_id in {"m1", "m2", "a1"}
        assert len(state.remaining_ids) == 2

    def test_regeneration_does_not_notify_observers(self, store, clock, rng, exercises):
        seen = []
        store.subscribe(seen.append)

        MindfulnessSequencer(store, exercises, clock, rng).state()

        assert seen == []
        assert store.get(MINDFULNESS_KEY)["date"] == "2024-01-02"

    def test_advancing_notifies_observers(self, store, clock, rng, exercises):
        sequencer = MindfulnessSequencer(store, exercises, clock, rng)
        sequencer.state()
        seen = []
        store.subscribe(seen.append)

        sequencer.next_suggestion()

        assert seen == [MINDFULNESS_KEY]

    def test_suggestion_resolves_current_exercise(self, store, clock, rng, exercises):
        sequencer = MindfulnessSequencer(store, exercises, clock, rng)

        assert sequencer.suggestion().id == sequencer.state().current_id

    def test_suggestion_uses_slot_of_its_state_at_boundary(self, store, rng):
        catalog = [
            MeditationExercise(id="m1", name="Morning One", time_of_day=("morning",)),
            MeditationExercise(id="m2", name="Morning Two", time_of_day=("morning",)),
            MeditationExercise(id="e1", name="Evening One", time_of_day=("evening",)),
        ]
        readings = iter([datetime(2024, 1, 2, 11, 59, 59)])

        def ticking_clock():
            return next(readings, datetime(2024, 1, 2, 12, 0, 0))

        sequencer = MindfulnessSequencer(store, catalog, ticking_clock, rng)

        suggestion = sequencer.suggestion()

        stored = MindfulnessState.from_dict(store.get(MINDFULNESS_KEY))
        assert stored.slot == "morning"
        assert suggestion.id == stored.current_id

    def test_reshuffle_starts_new_round(self, store, clock, rng, exercises):
        sequencer = MindfulnessSequencer(store, exercises, clock, rng)
        while sequencer.has_more():
            sequencer.next_suggestion()

        state = sequencer.reshuffle()

        assert len(state.remaining_ids) == 2
