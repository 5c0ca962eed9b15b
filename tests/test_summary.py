import asyncio
import json
import random

import pytest

from ai_diagnostician.errors import GenerationError, OutOfSequence, SummaryIncomplete
from ai_diagnostician.feedback import FeedbackWriter
from ai_diagnostician.gemini_client import GroundedText, TransientLLMError, TruncatedResponseError
from ai_diagnostician.mastery import MasteryAggregator
from ai_diagnostician.questions import Archetype, QuestionResult, Verdict
from ai_diagnostician.resources import ResourceLibrary
from ai_diagnostician.settings import DEFAULT_RESOURCE_LIBRARY
from ai_diagnostician.summary import SummaryBuilder

from conftest import GOOD_SUMMARY, FakeLLM, make_question, quiz_responder


def _session(store, identity, verdicts):
    session = store.create(identity, total_questions=len(verdicts))
    for i, verdict in enumerate(verdicts):
        archetype = "free_text" if i == len(verdicts) - 1 else "true_false"
        question = make_question(archetype, concept_id="RAG" if i % 2 else "LLM")
        session.questions.append(question)
        session.record_result(
            QuestionResult(
                question_index=i,
                concept_id=question.concept_id,
                archetype=Archetype(archetype),
                verdict=verdict,
                user_answer={"answer": "Protect privacy and review output"} if archetype == "free_text" else {"answer": True},
                correct_answer={"answer": True},
            )
        )
    return session


def _builder(llm):
    return SummaryBuilder(
        llm,
        MasteryAggregator(llm),
        ResourceLibrary(DEFAULT_RESOURCE_LIBRARY, rng=random.Random(0)),
        feedback=FeedbackWriter(llm),
        min_analysis_chars=200,
    )


def test_builds_report_with_library_resources(store, identity):
    session = _session(store, identity, [Verdict.CORRECT, Verdict.INCORRECT, Verdict.PARTIAL])
    llm = FakeLLM(responder=quiz_responder)

    report = asyncio.run(_builder(llm).build(session))

    assert report.overall.startswith("Solid grasp")
    assert report.radar.categories == ["LLM", "RAG"]
    assert report.citations == ["https://example.org/rag"]
    assert report.self_rating == 3
    assert 1 <= report.overall_level <= 5
    assert 0 < len(report.learning_resources) <= 3
    assert report.answered == 3
    # the missing free-text judgement was filled in before summarising
    assert session.judgements == {2: Verdict.PARTIAL}


def test_short_analysis_is_a_hard_failure(store, identity):
    session = _session(store, identity, [Verdict.CORRECT, Verdict.PARTIAL])
    short = dict(GOOD_SUMMARY, detailed_analysis="Too short.")
    llm = FakeLLM(grounded=[json.dumps(short)], responder=quiz_responder)

    with pytest.raises(SummaryIncomplete):
        asyncio.run(_builder(llm).build(session))


@pytest.mark.parametrize("field, value", [("overall", ""), ("highlights", []), ("blindspots", None)])
def test_missing_required_fields(store, identity, field, value):
    session = _session(store, identity, [Verdict.CORRECT, Verdict.PARTIAL])
    bad = dict(GOOD_SUMMARY, **{field: value})
    llm = FakeLLM(grounded=[json.dumps(bad)], responder=quiz_responder)

    with pytest.raises(SummaryIncomplete):
        asyncio.run(_builder(llm).build(session))


def test_non_json_narrative_is_incomplete(store, identity):
    session = _session(store, identity, [Verdict.CORRECT, Verdict.PARTIAL])
    llm = FakeLLM(grounded=["I could not write a report."], responder=quiz_responder)

    with pytest.raises(SummaryIncomplete):
        asyncio.run(_builder(llm).build(session))


def test_transport_failure_is_generation_error(store, identity):
    session = _session(store, identity, [Verdict.CORRECT, Verdict.PARTIAL])
    llm = FakeLLM(grounded=[TransientLLMError("503")], responder=quiz_responder)

    with pytest.raises(GenerationError):
        asyncio.run(_builder(llm).build(session))


def test_truncated_narrative_retries_with_more_tokens(store, identity):
    session = _session(store, identity, [Verdict.CORRECT, Verdict.PARTIAL])
    llm = FakeLLM(
        grounded=[TruncatedResponseError("cut"), GroundedText(text=json.dumps(GOOD_SUMMARY), citations=[])],
        responder=quiz_responder,
    )

    report = asyncio.run(_builder(llm).build(session))

    grounded_calls = [c for c in llm.calls if c.get("max_tokens") in (4096, 8192)]
    assert [c["max_tokens"] for c in grounded_calls] == [4096, 8192]
    assert report.citations == []


def test_invalid_radar_falls_back_to_breakdown(store, identity):
    session = _session(store, identity, [Verdict.CORRECT, Verdict.INCORRECT, Verdict.CORRECT])
    odd = dict(GOOD_SUMMARY, radar_data={"categories": ["A", "B"], "scores": [1]})
    llm = FakeLLM(grounded=[json.dumps(odd)], responder=quiz_responder)

    report = asyncio.run(_builder(llm).build(session))

    assert set(report.radar.categories) == {"LLM", "RAG"}
    assert len(report.radar.scores) == len(report.radar.categories)


def test_all_correct_recommends_nothing(store, identity):
    session = _session(store, identity, [Verdict.CORRECT, Verdict.CORRECT])
    session.judgements[1] = Verdict.CORRECT
    llm = FakeLLM(responder=quiz_responder)

    report = asyncio.run(_builder(llm).build(session))

    assert report.learning_resources == []
    assert report.overall_level == 5


def test_no_results_is_out_of_sequence(store, identity):
    session = store.create(identity, total_questions=3)

    with pytest.raises(OutOfSequence):
        asyncio.run(_builder(FakeLLM()).build(session))


def test_filled_judgement_is_reused_on_the_next_report(store, identity):
    session = _session(store, identity, [Verdict.CORRECT, Verdict.PARTIAL])
    llm = FakeLLM(responder=quiz_responder)
    builder = _builder(llm)

    asyncio.run(builder.build(session))
    asyncio.run(builder.build(session))

    judge_prompts = [p for p in llm.prompts if "Evaluate the user's answer" in p]
    assert len(judge_prompts) == 1
    assert session.judgements == {1: Verdict.PARTIAL}
    assert [r.verdict for r in session.results] == [Verdict.CORRECT, Verdict.PARTIAL]
