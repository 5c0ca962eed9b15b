import asyncio
import logging

import pytest

from ai_diagnostician.mastery import MasteryAggregator, level_for
from ai_diagnostician.questions import Archetype, QuestionResult, Verdict

from conftest import FakeLLM, make_question


def _results(verdicts, concepts=None):
    concepts = concepts or ["LLM"] * len(verdicts)
    return [
        QuestionResult(
            question_index=i,
            concept_id=c,
            archetype=Archetype.TRUE_FALSE,
            verdict=v,
            user_answer={"answer": True},
            correct_answer={"answer": True},
        )
        for i, (v, c) in enumerate(zip(verdicts, concepts))
    ]


def _questions(n):
    return [make_question("true_false") for _ in range(n)]


@pytest.mark.parametrize(
    "score, level",
    [(0, 1), (20, 1), (20.5, 2), (40, 2), (65, 3), (66, 4), (85, 4), (85.1, 5), (100, 5)],
)
def test_level_thresholds(score, level):
    assert level_for(score) == level


def test_all_correct_is_level_five_even_with_rule_scores():
    aggregator = MasteryAggregator(FakeLLM())

    profile = asyncio.run(aggregator.aggregate(_results([Verdict.CORRECT] * 6), _questions(6), {}, 2))

    assert profile.mastery_score == 80
    assert profile.overall_level == 5
    assert profile.self_rating == 2


def test_all_incorrect_is_level_one_even_with_generous_scores():
    aggregator = MasteryAggregator(FakeLLM(responses=['{"scores": [60, 60, 60]}']))

    profile = asyncio.run(aggregator.aggregate(_results([Verdict.INCORRECT] * 3), _questions(3), {}, 4))

    assert profile.overall_level == 1


def test_batch_scores_drive_the_level():
    llm = FakeLLM(responses=['{"scores": [90, 50, 40]}'])
    aggregator = MasteryAggregator(llm)
    results = _results([Verdict.CORRECT, Verdict.PARTIAL, Verdict.INCORRECT])

    profile = asyncio.run(aggregator.aggregate(results, _questions(3), {}, 3))

    assert profile.mastery_score == 60
    assert profile.overall_level == 3
    assert len(llm.prompts) == 1


def test_mismatched_batch_falls_back_to_per_item(caplog):
    llm = FakeLLM(responses=['{"scores": [90]}', '{"score": 100}', '{"score": 0}'])
    aggregator = MasteryAggregator(llm)
    results = _results([Verdict.CORRECT, Verdict.INCORRECT])

    with caplog.at_level(logging.WARNING, logger="ai_diagnostician.mastery"):
        profile = asyncio.run(aggregator.aggregate(results, _questions(2), {}, 3))

    assert profile.mastery_score == 50
    assert len(llm.prompts) == 3
    assert "Batch mastery scoring failed" in caplog.text


def test_failed_item_uses_rule_score(caplog):
    llm = FakeLLM(responses=["not json", '{"score": 100}'])
    aggregator = MasteryAggregator(llm)
    results = _results([Verdict.CORRECT, Verdict.PARTIAL])

    with caplog.at_level(logging.WARNING, logger="ai_diagnostician.mastery"):
        profile = asyncio.run(aggregator.aggregate(results, _questions(2), {}, 3))

    # item 1 scored 100, item 2 has no scripted reply and gets the partial rule score
    assert profile.mastery_score == 75
    assert "using rule score" in caplog.text


def test_judgement_overrides_recorded_verdict():
    aggregator = MasteryAggregator(FakeLLM())
    results = _results([Verdict.PARTIAL])

    profile = asyncio.run(aggregator.aggregate(results, _questions(1), {0: Verdict.CORRECT}, 3))

    assert profile.overall_level == 5
    assert profile.category_scores == [100]


def test_category_breakdown_orders_by_attempts_then_score_and_caps_at_six():
    concepts = ["a", "b", "b", "c", "d", "e", "f", "g"]
    verdicts = [Verdict.CORRECT, Verdict.PARTIAL, Verdict.CORRECT, Verdict.INCORRECT] + [Verdict.CORRECT] * 4
    aggregator = MasteryAggregator(FakeLLM())

    categories, scores = aggregator.category_breakdown(_results(verdicts, concepts), {})

    assert len(categories) == 6
    assert categories[0] == "b"
    assert scores[0] == 75
    assert "c" not in categories
