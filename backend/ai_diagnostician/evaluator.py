"""Pure scoring of answers against a question's answer key."""

from __future__ import annotations

import re
from typing import Any, Mapping, Set, Union

from .questions import (
    BucketQuestion,
    FreeTextQuestion,
    MatchQuestion,
    Question,
    SingleSelectQuestion,
    TrueFalseQuestion,
    UserAnswer,
    Verdict,
    parse_answer,
)

MIN_FREE_TEXT_CHARS = 20

_SPLIT = re.compile(r"[\s,.;:!?()\"'/]+")

# Function words never count as covering a key point
_STOPWORDS = frozenset(
    "a an and are as at be but by can for from has have how in into is it its may more no not "
    "of on or so than that the their them then there these they this to use used was what when "
    "which while who why will with you your".split()
)


def evaluate(question: Question, answer: Union[UserAnswer, Mapping[str, Any]]) -> Verdict:
    """Score ``answer`` against ``question``.

    Free text gets the quick keyword heuristic here; the LLM judgement lives in ``feedback``.
    Raises InvalidAnswer for a payload of the wrong shape.
    """
    answer = parse_answer(question, answer)

    if isinstance(question, MatchQuestion):
        key = set(question.correct_pairs)
        hits = len(set(answer.matches) & key)
        if hits == len(key) and len(answer.matches) == len(key):
            return Verdict.CORRECT
        return Verdict.PARTIAL if hits > 0 else Verdict.INCORRECT

    if isinstance(question, BucketQuestion):
        hits = sum(1 for card, bucket in question.correct_assignment.items() if answer.assignments.get(card) == bucket)
        if hits == question.total:
            return Verdict.CORRECT
        return Verdict.PARTIAL if hits > 0 else Verdict.INCORRECT

    if isinstance(question, SingleSelectQuestion):
        same = len(answer.selected) == len(question.correct_option_ids) and set(answer.selected) == set(
            question.correct_option_ids
        )
        return Verdict.CORRECT if same else Verdict.INCORRECT

    if isinstance(question, TrueFalseQuestion):
        return Verdict.CORRECT if answer.answer == question.correct_answer else Verdict.INCORRECT

    if isinstance(question, FreeTextQuestion):
        return quick_heuristic_verdict(question, answer.answer)

    raise TypeError(f"Unsupported question type: {type(question).__name__}")


def _content_words(text: str) -> Set[str]:
    words = set()
    for word in _SPLIT.split(text.lower()):
        if len(word) < 3 or word in _STOPWORDS:
            continue
        # plural and singular count as the same word
        words.add(word[:-1] if len(word) > 3 and word.endswith("s") else word)
    return words


def quick_heuristic_verdict(question: FreeTextQuestion, answer_text: str) -> Verdict:
    """Whole-word overlap between the answer and each key point's content words."""
    text = (answer_text or "").strip()
    if len(text) < MIN_FREE_TEXT_CHARS:
        return Verdict.INCORRECT
    said = _content_words(text)
    covered = [p for p in question.key_points if _content_words(p) & said]
    if len(covered) == len(question.key_points):
        return Verdict.CORRECT
    return Verdict.PARTIAL
