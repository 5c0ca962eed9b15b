import asyncio
import logging

from ai_diagnostician.errors import GenerationError
from ai_diagnostician.prefetch import PrefetchCoordinator

from conftest import make_question


def test_concurrent_triggers_start_one_generation(store, identity):
    calls = []

    async def generate(index):
        calls.append(index)
        await asyncio.sleep(0.01)
        return make_question("bucket")

    async def scenario():
        session = store.create(identity, total_questions=6)
        session.questions.append(make_question("match"))
        coordinator = PrefetchCoordinator()

        async def fire():
            return coordinator.trigger(session, 1, generate)

        first, second = await asyncio.gather(fire(), fire())
        await first
        return session, first, second

    session, first, second = asyncio.run(scenario())

    assert first is second
    assert calls == [1]
    assert session.prefetch_slot is not None
    assert session.prefetch_index == 1


def test_no_trigger_when_slot_full_or_all_generated(store, identity):
    async def generate(index):
        return make_question("bucket")

    async def scenario():
        coordinator = PrefetchCoordinator()
        full = store.create(identity, total_questions=3)
        full.questions.append(make_question("match"))
        full.prefetch_slot = make_question("bucket")
        done = store.create(identity, total_questions=1)
        done.questions.append(make_question("free_text"))
        return coordinator.trigger(full, 1, generate), coordinator.trigger(done, 1, generate)

    assert asyncio.run(scenario()) == (None, None)


def test_stale_result_is_discarded(store, identity, caplog):
    async def scenario():
        session = store.create(identity, total_questions=6)
        session.questions.append(make_question("match"))

        async def generate(index):
            # the synchronous path moved on while this was generating
            session.questions.append(make_question("true_false"))
            return make_question("bucket")

        task = PrefetchCoordinator().trigger(session, 1, generate)
        await task
        return session

    with caplog.at_level(logging.INFO, logger="ai_diagnostician.prefetch"):
        session = asyncio.run(scenario())

    assert session.prefetch_slot is None
    assert "discarded" in caplog.text


def test_failure_leaves_slot_empty(store, identity, caplog):
    async def generate(index):
        raise GenerationError("LLM down")

    async def scenario():
        session = store.create(identity, total_questions=6)
        session.questions.append(make_question("match"))
        await PrefetchCoordinator().trigger(session, 1, generate)
        return session

    with caplog.at_level(logging.WARNING, logger="ai_diagnostician.prefetch"):
        session = asyncio.run(scenario())

    assert session.prefetch_slot is None
    assert "Prefetch failed" in caplog.text


def test_unexpected_error_is_logged_and_swallowed(store, identity, caplog):
    async def generate(index):
        raise KeyError("boom")

    async def scenario():
        session = store.create(identity, total_questions=6)
        session.questions.append(make_question("match"))
        await PrefetchCoordinator().ensure_prefetch(session, 1, generate)
        return session

    with caplog.at_level(logging.ERROR, logger="ai_diagnostician.prefetch"):
        session = asyncio.run(scenario())

    assert session.prefetch_slot is None
    assert "Prefetch crashed" in caplog.text
