from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from .gemini_client import LLMError, extract_json_object, generate_text
from .prompts import batch_scoring_prompt, item_scoring_prompt
from .questions import Question, QuestionResult, Verdict

logger = logging.getLogger(__name__)

MAX_CATEGORIES = 6

CATEGORY_POINTS: Dict[Verdict, int] = {Verdict.CORRECT: 100, Verdict.PARTIAL: 50, Verdict.INCORRECT: 0}
RULE_SCORES: Dict[Verdict, int] = {Verdict.CORRECT: 80, Verdict.PARTIAL: 50, Verdict.INCORRECT: 20}

# (upper bound of the mean score, level)
LEVEL_THRESHOLDS: Tuple[Tuple[float, int], ...] = ((20, 1), (40, 2), (65, 3), (85, 4))


class MasteryProfile(BaseModel):
    categories: List[str] = Field(default_factory=list)
    category_scores: List[int] = Field(default_factory=list)
    mastery_score: float = 0.0
    overall_level: int = Field(ge=1, le=5)
    self_rating: Optional[int] = None


def level_for(score: float) -> int:
    for bound, level in LEVEL_THRESHOLDS:
        if score <= bound:
            return level
    return 5


def _clamp_score(value: Any) -> int:
    score = float(value)
    if score != score:
        raise ValueError("score is NaN")
    return int(round(max(0.0, min(100.0, score))))


def effective_verdicts(results: Sequence[QuestionResult], judgements: Mapping[int, Verdict]) -> List[Verdict]:
    return [judgements.get(r.question_index, r.verdict) for r in results]


class MasteryAggregator:
    """Turns a session's results into radar categories and a 1-5 mastery level.

    Scoring degrades in rings: one batched LLM call, then one call per question, then the
    fixed rule score for any question whose call still fails.
    """

    def __init__(self, llm: Any) -> None:
        self.llm = llm

    def category_breakdown(
        self, results: Sequence[QuestionResult], judgements: Mapping[int, Verdict]
    ) -> Tuple[List[str], List[int]]:
        buckets: "OrderedDict[str, List[int]]" = OrderedDict()
        for result, verdict in zip(results, effective_verdicts(results, judgements)):
            buckets.setdefault(result.concept_id, []).append(CATEGORY_POINTS[verdict])
        ranked = sorted(
            ((concept, len(points), sum(points) / len(points)) for concept, points in buckets.items()),
            key=lambda item: (item[1], item[2]),
            reverse=True,
        )[:MAX_CATEGORIES]
        return [c for c, _, _ in ranked], [int(round(s)) for _, _, s in ranked]

    async def aggregate(
        self,
        results: Sequence[QuestionResult],
        questions: Sequence[Question],
        judgements: Mapping[int, Verdict],
        self_rating: Optional[int] = None,
    ) -> MasteryProfile:
        categories, category_scores = self.category_breakdown(results, judgements)
        verdicts = effective_verdicts(results, judgements)
        if not results:
            return MasteryProfile(overall_level=1, self_rating=self_rating)

        items = [(questions[r.question_index], r, v) for r, v in zip(results, verdicts)]
        scores = await self._score(items, self_rating)
        mean = sum(scores) / len(scores)

        if all(v == Verdict.CORRECT for v in verdicts):
            level = 5
        elif all(v == Verdict.INCORRECT for v in verdicts):
            level = 1
        else:
            level = level_for(mean)

        return MasteryProfile(
            categories=categories,
            category_scores=category_scores,
            mastery_score=round(mean, 1),
            overall_level=level,
            self_rating=self_rating,
        )

    async def _score(self, items: Sequence[tuple], self_rating: Optional[int]) -> List[int]:
        try:
            text = await generate_text(
                self.llm, batch_scoring_prompt(items, self_rating), temperature=0.2, max_tokens=1024
            )
            raw = extract_json_object(text).get("scores")
            if not isinstance(raw, list) or len(raw) != len(items):
                raise ValueError(f"expected {len(items)} scores, got {raw!r}")
            return [_clamp_score(s) for s in raw]
        except (LLMError, ValueError, TypeError) as exc:
            logger.warning("Batch mastery scoring failed, scoring per question: %s", exc)

        scores: List[int] = []
        for question, result, verdict in items:
            try:
                text = await generate_text(
                    self.llm, item_scoring_prompt(question, result, verdict), temperature=0.2, max_tokens=256
                )
                scores.append(_clamp_score(extract_json_object(text)["score"]))
            except (LLMError, ValueError, TypeError, KeyError) as exc:
                logger.warning(
                    "Scoring question %d failed, using rule score for %s: %s", result.question_index, verdict.value, exc
                )
                scores.append(RULE_SCORES[verdict])
        return scores
