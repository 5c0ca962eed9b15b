"""Static questions served when the LLM quota is exhausted."""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from .questions import Archetype, Question, parse_question

logger = logging.getLogger(__name__)


FALLBACK_QUESTIONS: Dict[Archetype, List[Dict[str, Any]]] = {
    Archetype.MATCH: [
        {
            "archetype": "match",
            "prompt_text": "Match the terms on the left with the explanations on the right",
            "left_items": [
                {"id": "A", "text": "LLM"},
                {"id": "B", "text": "Pre-training"},
                {"id": "C", "text": "Prompt"},
            ],
            "right_items": [
                {"id": "1", "text": "Language model pre-trained on large amounts of text"},
                {"id": "2", "text": "Learning general patterns on large-scale data"},
                {"id": "3", "text": "Instructions or context given to the model"},
            ],
            "correct_pairs": [["A", "1"], ["B", "2"], ["C", "3"]],
            "explanation": "An LLM is a large language model, pre-training is how it learns, and a prompt is the input instruction.",
            "concept_id": "LLM",
        },
        {
            "archetype": "match",
            "prompt_text": "Match the AI-related concepts on the left with the explanations on the right",
            "left_items": [
                {"id": "A", "text": "AI"},
                {"id": "B", "text": "Machine Learning"},
                {"id": "C", "text": "Deep Learning"},
            ],
            "right_items": [
                {"id": "1", "text": "Technology that allows computers to learn from data"},
                {"id": "2", "text": "Learning method using multi-layer neural networks"},
                {"id": "3", "text": "Field of making machines simulate human intelligence"},
            ],
            "correct_pairs": [["A", "3"], ["B", "1"], ["C", "2"]],
            "explanation": "AI is the umbrella term, machine learning is a subset of AI, and deep learning is a subset of machine learning.",
            "concept_id": "AI_ML_DL_relation",
        },
    ],
    Archetype.BUCKET: [
        {
            "archetype": "bucket",
            "prompt_text": "Sort the following tasks into the appropriate buckets",
            "cards": [
                {"id": "card1", "text": "Write product introduction copy"},
                {"id": "card2", "text": "Make important business decisions"},
                {"id": "card3", "text": "Summarize meeting notes"},
                {"id": "card4", "text": "Comfort a friend who is feeling down"},
            ],
            "buckets": [
                {"id": "ai_ok", "text": "Suitable for AI"},
                {"id": "human_better", "text": "Better for humans"},
            ],
            "correct_assignment": {
                "card1": "ai_ok",
                "card2": "human_better",
                "card3": "ai_ok",
                "card4": "human_better",
            },
            "explanation": "AI suits text generation and summarization, but not high-stakes decisions or emotional support.",
            "concept_id": "LLM_application",
        },
    ],
    Archetype.SINGLE_SELECT: [
        {
            "archetype": "single_select",
            "prompt_text": "Which statement about LLMs is closest to the truth?",
            "options": [
                {"id": "A", "text": "LLMs are conscious artificial intelligence"},
                {"id": "B", "text": "LLMs are prediction models trained on large amounts of text"},
                {"id": "C", "text": "LLMs can completely replace human thinking"},
                {"id": "D", "text": "LLMs work without training"},
            ],
            "correct_option_ids": ["B"],
            "explanation": "LLMs are prediction models pre-trained on large amounts of text, not conscious beings.",
            "concept_id": "LLM",
        },
        {
            "archetype": "single_select",
            "prompt_text": "What is the main difference between pre-training and fine-tuning?",
            "options": [
                {"id": "A", "text": "Pre-training uses big data, fine-tuning uses small data"},
                {"id": "B", "text": "Pre-training learns general capabilities, fine-tuning targets specific tasks"},
                {"id": "C", "text": "Pre-training doesn't need data, fine-tuning needs data"},
                {"id": "D", "text": "There is no difference"},
            ],
            "correct_option_ids": ["B"],
            "explanation": "Pre-training learns from large general corpora; fine-tuning continues training on task-specific data.",
            "concept_id": "finetuning",
        },
    ],
    Archetype.TRUE_FALSE: [
        {
            "archetype": "true_false",
            "prompt_text": "Decide whether the following statement is correct",
            "statement": "LLMs develop consciousness after training",
            "correct_answer": False,
            "explanation": "LLMs are prediction models built on statistical patterns and do not develop consciousness.",
            "concept_id": "LLM",
        },
        {
            "archetype": "true_false",
            "prompt_text": "Decide whether the following statement is correct",
            "statement": "The more complex and mystical the prompt, the better the AI performs",
            "correct_answer": False,
            "explanation": "Good prompts are clear, concrete instructions; complexity for its own sake does not help.",
            "concept_id": "prompt",
        },
    ],
    Archetype.FREE_TEXT: [
        {
            "archetype": "free_text",
            "prompt_text": "Answer the question based on the following scenario",
            "scenario": (
                "You are a product manager explaining to the engineering team why a feature is a good fit for AI. "
                "The feature must extract key issues and suggestions from a large volume of user feedback.\n\n"
                "Briefly explain: 1) Why is this task suitable for AI? 2) What should be watched when using AI?"
            ),
            "key_points": [
                "AI excels at processing large amounts of text data and extracting patterns",
                "Human review of AI-extracted results is needed",
                "Pay attention to data privacy and compliance",
            ],
            "expected_length_hint": "50-150 words",
            "explanation": "AI handles large volumes of text well, but results need human review and attention to privacy.",
            "concept_id": "LLM_application",
        },
        {
            "archetype": "free_text",
            "prompt_text": "Answer the question based on the following scenario",
            "scenario": (
                "You are a student who wants AI help with an essay on the history of artificial intelligence.\n\n"
                "Explain: 1) How can AI properly assist with this task? 2) Which parts should you do yourself?"
            ),
            "key_points": [
                "AI can help collect information and organize thoughts",
                "Core viewpoints and arguments should be your own",
                "AI-generated content must be fact-checked",
            ],
            "expected_length_hint": "50-150 words",
            "explanation": "AI can assist with research, but the core argument is yours and its output needs fact-checking.",
            "concept_id": "responsible_AI",
        },
    ],
}


class FallbackBank:
    def __init__(self, pools: Optional[Mapping[Archetype, List[Dict[str, Any]]]] = None) -> None:
        self.pools: Mapping[Archetype, List[Dict[str, Any]]] = FALLBACK_QUESTIONS if pools is None else pools

    def fallback_question(self, archetype: Archetype, question_index: int) -> Optional[Question]:
        """Pick a static question for ``archetype``, cycling through its pool by index.

        When the pool for ``archetype`` is empty, entries from the other pools are tried with
        the archetype pinned to the requested one; only an entry that still validates is used.
        """
        pool = self.pools.get(archetype) or []
        if pool:
            raw = copy.deepcopy(pool[question_index % len(pool)])
            raw["archetype"] = archetype.value
            return parse_question(raw)

        for other in Archetype:
            candidates = self.pools.get(other) or []
            if other == archetype or not candidates:
                continue
            raw = copy.deepcopy(candidates[question_index % len(candidates)])
            raw["archetype"] = archetype.value
            try:
                question = parse_question(raw)
            except ValidationError:
                logger.debug("Fallback entry from %s pool does not fit %s", other.value, archetype.value)
                continue
            logger.info("Borrowed fallback question from %s pool for %s", other.value, archetype.value)
            return question
        return None
