import random

from ai_diagnostician.questions import BASE_ARCHETYPES, Archetype
from ai_diagnostician.scheduler import ArchetypeScheduler
from ai_diagnostician.session_store import SessionStore


def test_six_question_quiz_covers_every_base_archetype_then_free_text():
    store = SessionStore()
    scheduler = ArchetypeScheduler(store, rng=random.Random(0))

    sequence = [scheduler.archetype_for("s1", i, 6) for i in range(6)]

    assert set(sequence[:4]) == set(BASE_ARCHETYPES)
    assert sequence[4] in BASE_ARCHETYPES
    assert sequence[5] == Archetype.FREE_TEXT


def test_sequence_is_stable_once_generated():
    store = SessionStore()
    scheduler = ArchetypeScheduler(store, rng=random.Random(42))

    first = [scheduler.archetype_for("s1", i, 6) for i in range(5)]
    again = [scheduler.archetype_for("s1", i, 6) for i in reversed(range(5))]

    assert first == list(reversed(again))
    assert store.archetype_sequence("s1") == first


def test_sessions_get_independent_sequences():
    store = SessionStore()
    scheduler = ArchetypeScheduler(store, rng=random.Random(3))

    scheduler.archetype_for("a", 0, 6)
    scheduler.archetype_for("b", 0, 6)

    assert store.archetype_sequence("a") is not store.archetype_sequence("b")


def test_index_beyond_sequence_returns_a_base_archetype():
    store = SessionStore()
    scheduler = ArchetypeScheduler(store, rng=random.Random(5))

    scheduler.archetype_for("s1", 0, 6)

    assert scheduler.archetype_for("s1", 20, 30) in BASE_ARCHETYPES


def test_single_question_quiz_is_free_text():
    scheduler = ArchetypeScheduler(SessionStore(), rng=random.Random(1))

    assert scheduler.archetype_for("s1", 0, 1) == Archetype.FREE_TEXT


def test_teardown_drops_the_cached_sequence():
    store = SessionStore()
    scheduler = ArchetypeScheduler(store, rng=random.Random(9))
    scheduler.archetype_for("s1", 0, 6)

    store.teardown("s1")

    assert store.archetype_sequence("s1") is None
