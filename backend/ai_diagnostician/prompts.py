"""Prompt templates for question generation, feedback, judging, scoring and the summary."""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .catalog import Concept
from .questions import (
    ARCHETYPE_LABELS,
    Archetype,
    BucketQuestion,
    FreeTextQuestion,
    Identity,
    MatchQuestion,
    Question,
    QuestionResult,
    SingleSelectQuestion,
    TrueFalseQuestion,
    Verdict,
    archetype_of,
)

KNOWLEDGE_SCOPE = """
Knowledge Scope:
- AI / Machine Learning / Deep Learning: hierarchical relationships in plain language
- Neural Networks: networks of many connected parameters that learn patterns from data
- LLM (Large Language Models): text prediction models pre-trained on large amounts of text, not conscious brains
- Pre-training: learning general patterns on large-scale general data
- Fine-tuning / instruction tuning: continued training or alignment on specific tasks or styles
- Prompt: instructions and context given to the model, not magic spells
- Tasks suitable for AI: drafting, rewriting, summarizing, organizing information
- Tasks not suitable for AI alone: final decisions, emotional support, sensitive compliance judgments
"""

OUTPUT_REQUIREMENTS = """
Output Requirements:
1. Output STRICTLY as one JSON object, without markdown code fences
2. Each question tests exactly one core concept
3. Use plain English, avoid formulas and jargon stacking
4. No word traps and no one-to-many mappings
5. Provide "explanation": 1-2 sentences used as feedback when the answer is wrong
6. All content must be in English
"""

DIFFICULTY_GUIDANCE: Dict[int, str] = {
    1: "Self-assessment 1/5 (beginner): very simple language, explain fundamental terms, no multi-step reasoning.",
    2: "Self-assessment 2/5 (novice): plain language with light technical vocabulary, linear reasoning, common misunderstandings.",
    3: "Self-assessment 3/5 (intermediate): balanced technical language, real-world scenarios, trade-offs between alternatives.",
    4: "Self-assessment 4/5 (advanced): professional terminology, multi-step scenarios, nuanced edge cases.",
    5: "Self-assessment 5/5 (expert): expert vocabulary, ambiguous situations requiring judgment, architectural and ethical depth.",
}

ROLE_SCENARIOS: Dict[str, str] = {
    "student": "Set every scenario in a college or high-school setting: essays, research papers, exams, group projects. Never use workplace scenarios.",
    "professional": "Set every scenario in a workplace: emails, reports, client communication, project management. Never use school scenarios.",
    "educator": "Set every scenario in teaching: lesson plans, grading, curriculum development, student questions.",
    "researcher": "Set every scenario in research: writing papers, running experiments, analyzing data, peer review, grant proposals.",
    "entrepreneur": "Set every scenario in a startup: pitch decks, fundraising, MVPs, market analysis, hiring.",
    "other": "Use everyday-life and general professional scenarios.",
}

_FORMATS: Dict[Archetype, str] = {
    Archetype.MATCH: """
Generate a matching question:
- Left side: 3-4 terms; right side: one concise explanation per term
- Strictly one-to-one

JSON format:
{
  "archetype": "match",
  "prompt_text": "Match the terms on the left with the explanations on the right",
  "left_items": [{"id": "A", "text": "Term 1"}, ...],
  "right_items": [{"id": "1", "text": "Explanation 1"}, ...],
  "correct_pairs": [["A", "1"], ["B", "2"], ...],
  "explanation": "...",
  "concept_id": "%(concept)s"
}
""",
    Archetype.BUCKET: """
Generate a categorization question:
- 4-6 task cards and two buckets: "Suitable for AI" and "Better for humans"
- Include 1-2 counter-intuitive but important boundary cases; avoid controversial gray areas

JSON format:
{
  "archetype": "bucket",
  "prompt_text": "Sort the following tasks into the appropriate buckets",
  "cards": [{"id": "card1", "text": "Task 1"}, ...],
  "buckets": [{"id": "ai_ok", "text": "Suitable for AI"}, {"id": "human_better", "text": "Better for humans"}],
  "correct_assignment": {"card1": "ai_ok", "card2": "human_better", ...},
  "explanation": "...",
  "concept_id": "%(concept)s"
}
""",
    Archetype.SINGLE_SELECT: """
Generate a multiple-choice question:
- Target a typical misconception
- 3-4 options with exactly one correct answer; no calculations or trivia

JSON format:
{
  "archetype": "single_select",
  "prompt_text": "Question text",
  "options": [{"id": "A", "text": "Option A"}, ...],
  "correct_option_ids": ["A"],
  "explanation": "...",
  "concept_id": "%(concept)s"
}
""",
    Archetype.TRUE_FALSE: """
Generate a true/false question:
- A single statement targeting a typical misconception

JSON format:
{
  "archetype": "true_false",
  "prompt_text": "Decide whether the following statement is correct",
  "statement": "Statement to judge",
  "correct_answer": true,
  "explanation": "...",
  "concept_id": "%(concept)s"
}
""",
    Archetype.FREE_TEXT: """
Generate a short-answer question:
- A concrete, vivid scenario that asks the user to apply the concept
- 2-4 key points a good answer covers; expected length 50-150 words

JSON format:
{
  "archetype": "free_text",
  "prompt_text": "Answer the question based on the following scenario",
  "scenario": "Scenario description",
  "key_points": ["Key point 1", "Key point 2", "Key point 3"],
  "expected_length_hint": "50-150 words",
  "explanation": "...",
  "concept_id": "%(concept)s"
}
""",
}


def question_prompt(archetype: Archetype, concept: Concept, identity: Optional[Identity] = None) -> str:
    label = ARCHETYPE_LABELS[archetype]
    if identity is not None:
        framing = ROLE_SCENARIOS.get(identity.role, ROLE_SCENARIOS["other"])
        rating = max(1, min(5, int(identity.self_rating)))
        framing = f"{framing}\n{DIFFICULTY_GUIDANCE[rating]}"
    else:
        framing = ROLE_SCENARIOS["other"]
    return (
        f"You are an AI literacy education expert. Generate a {label} question testing the "
        f'user\'s understanding of the "{concept.id}" concept.\n\n'
        f"Concept description: {concept.description}\n"
        f"{KNOWLEDGE_SCOPE}\n{OUTPUT_REQUIREMENTS}\n"
        f"Scenario requirements:\n{framing}\n\n"
        "Make the question novel and avoid the most common textbook examples.\n"
        + _FORMATS[archetype] % {"concept": concept.id}
    )


def _text_for(items: Iterable[Any], item_id: str) -> str:
    for item in items:
        if item.id == item_id:
            return item.text
    return item_id


def _answer_details(question: Question, user_answer: Dict[str, Any]) -> str:
    if isinstance(question, MatchQuestion):
        key = dict(question.correct_pairs)
        right, wrong = [], []
        for pair in user_answer.get("matches", []):
            left_id, right_id = pair[0], pair[1]
            shown = f"{_text_for(question.left_items, left_id)} <-> {_text_for(question.right_items, right_id)}"
            if key.get(left_id) == right_id:
                right.append(shown)
            else:
                expected = _text_for(question.right_items, key.get(left_id, ""))
                wrong.append(f"{shown} (should be: {expected})")
        return f"Correct matches: {', '.join(right) or 'none'}\nIncorrect matches: {', '.join(wrong) or 'none'}"
    if isinstance(question, BucketQuestion):
        right, wrong = [], []
        for card_id, bucket_id in user_answer.get("assignments", {}).items():
            card = _text_for(question.cards, card_id)
            shown = f"{card} -> {_text_for(question.buckets, bucket_id)}"
            expected = question.correct_assignment.get(card_id)
            if bucket_id == expected:
                right.append(shown)
            else:
                wrong.append(f"{shown} (should be: {_text_for(question.buckets, expected or '')})")
        return f"Correct placements: {', '.join(right) or 'none'}\nIncorrect placements: {', '.join(wrong) or 'none'}"
    if isinstance(question, SingleSelectQuestion):
        chosen = [_text_for(question.options, i) for i in user_answer.get("selected", [])]
        correct = [_text_for(question.options, i) for i in question.correct_option_ids]
        return f"User selected: {', '.join(chosen) or 'nothing'}\nCorrect answer: {', '.join(correct)}"
    if isinstance(question, TrueFalseQuestion):
        return f"User judged: {user_answer.get('answer')}\nCorrect answer: {question.correct_answer}"
    if isinstance(question, FreeTextQuestion):
        return (
            f"User's answer: {user_answer.get('answer', '')}\n"
            f"Key points: {'; '.join(question.key_points)}\n"
            f"Expected length: {question.expected_length_hint}"
        )
    raise TypeError(f"Unsupported question type: {type(question).__name__}")


_VERDICT_TEXT = {
    Verdict.CORRECT: "Completely correct",
    Verdict.PARTIAL: "Partially correct",
    Verdict.INCORRECT: "Needs improvement",
}


def feedback_prompt(question: Question, verdict: Verdict, user_answer: Dict[str, Any]) -> str:
    label = ARCHETYPE_LABELS[archetype_of(question)]
    context = question.scenario if isinstance(question, FreeTextQuestion) else question.prompt_text
    if isinstance(question, FreeTextQuestion):
        asks = (
            "Write 3-5 sentences of personalized feedback. Quote the user's own words, say which key points "
            "they covered and which they missed, and suggest how to improve."
        )
    else:
        asks = (
            "Write 2-4 sentences of personalized feedback. List which parts were right and which were wrong, "
            "state the correct answer for each mistake, and mention one specific knowledge point."
        )
    return (
        f'The user just answered a {label} question on the concept "{question.concept_id}".\n\n'
        f"Question: {context}\n\n"
        f"{_answer_details(question, user_answer)}\n\n"
        f"Result: {_VERDICT_TEXT[verdict]}\n"
        f"Reference explanation: {question.explanation}\n\n"
        f"{asks} Use a friendly, professional tone and English only. Output plain text, not JSON."
    )


def judgement_prompt(question: FreeTextQuestion, answer_text: str) -> str:
    points = "\n".join(f"{i}. {p}" for i, p in enumerate(question.key_points, start=1))
    return (
        "You are an AI literacy education expert. Evaluate the user's answer to a short-answer question.\n\n"
        f"Scenario: {question.scenario}\n\n"
        f"Key points that should be covered:\n{points}\n\n"
        f'User\'s answer: "{answer_text}"\n\n'
        "Base the evaluation only on what the user actually wrote.\n"
        "- correct: covers all key points with accurate understanding\n"
        "- partial: covers some points, or is incomplete or slightly off\n"
        "- incorrect: misses the key points or shows serious misunderstanding\n\n"
        'Output only JSON: {"result": "correct" | "partial" | "incorrect", "reason": "1-2 sentences"}'
    )


def _describe(question: Question, result: QuestionResult, verdict: Verdict) -> str:
    return (
        f"- concept: {result.concept_id}; type: {ARCHETYPE_LABELS[result.archetype]}; verdict: {verdict.value}\n"
        f"  question: {question.prompt_text}\n"
        f"  user answer: {json.dumps(result.user_answer, ensure_ascii=False)}\n"
        f"  correct answer: {json.dumps(result.correct_answer, ensure_ascii=False)}"
    )


def batch_scoring_prompt(items: Sequence[tuple], self_rating: Optional[int]) -> str:
    """``items`` is a sequence of ``(question, result, effective_verdict)``."""
    lines = "\n".join(f"Question {i}:\n{_describe(q, r, v)}" for i, (q, r, v) in enumerate(items, start=1))
    return (
        "You are grading an AI literacy assessment. Score each answered question from 0 to 100 for how well "
        "the answer demonstrates mastery of its concept, taking question difficulty into account.\n"
        f"The user rated themselves {self_rating if self_rating is not None else 'unknown'}/5.\n\n"
        f"{lines}\n\n"
        f'Output only JSON with exactly {len(items)} integers in question order: {{"scores": [n, ...]}}'
    )


def item_scoring_prompt(question: Question, result: QuestionResult, verdict: Verdict) -> str:
    return (
        "You are grading one answer from an AI literacy assessment. Score it from 0 to 100 for how well it "
        "demonstrates mastery of its concept.\n\n"
        f"{_describe(question, result, verdict)}\n\n"
        'Output only JSON: {"score": n}'
    )


def summary_prompt(rows: Sequence[tuple]) -> str:
    """``rows`` is a sequence of ``(result, effective_verdict)``."""
    correct = [r.concept_id for r, v in rows if v == Verdict.CORRECT]
    partial = [r.concept_id for r, v in rows if v == Verdict.PARTIAL]
    incorrect = [r.concept_id for r, v in rows if v == Verdict.INCORRECT]
    records: List[str] = []
    for i, (r, v) in enumerate(rows, start=1):
        records.append(
            f"Question {i}: concept {r.concept_id}, type {ARCHETYPE_LABELS[r.archetype]}, result {v.value}\n"
            f"  user answer: {json.dumps(r.user_answer, ensure_ascii=False)}\n"
            f"  correct answer: {json.dumps(r.correct_answer, ensure_ascii=False)}"
        )
    return (
        "You are an AI literacy education expert. Analyse the user's quiz performance and write a diagnostic "
        "report grounded in what they actually answered.\n\n"
        + "\n\n".join(records)
        + "\n\n"
        f"Well-mastered concepts: {', '.join(correct) or 'none'}\n"
        f"Partially mastered concepts: {', '.join(partial) or 'none'}\n"
        f"Misunderstood concepts: {', '.join(incorrect) or 'none'}\n\n"
        "Explain why the user struggled where they did, what the correct understanding is, and how to close "
        "each gap. English only. Output only JSON:\n"
        "{\n"
        '  "overall": "150-200 character overall assessment",\n'
        '  "highlights": ["specific strength", "..."],\n'
        '  "blindspots": ["specific weakness with the correct understanding", "..."],\n'
        '  "suggestions": ["specific, actionable next step", "..."],\n'
        '  "detailed_analysis": "700-900 characters: level with evidence, core weak points, improvement roadmap",\n'
        '  "radar_data": {"categories": ["4-6 concept areas"], "scores": [0-100 per category]}\n'
        "}"
    )
