import copy
import json
import random
import re

import pytest

from ai_diagnostician.fallback_bank import FallbackBank
from ai_diagnostician.feedback import FeedbackWriter
from ai_diagnostician.gemini_client import GroundedText, LLMError
from ai_diagnostician.generator import QuestionGenerator
from ai_diagnostician.mastery import MasteryAggregator
from ai_diagnostician.orchestrator import QuizOrchestrator
from ai_diagnostician.prefetch import PrefetchCoordinator
from ai_diagnostician.questions import Identity, parse_question
from ai_diagnostician.resources import ResourceLibrary
from ai_diagnostician.scheduler import ArchetypeScheduler
from ai_diagnostician.session_store import SessionStore
from ai_diagnostician.settings import DEFAULT_RESOURCE_LIBRARY
from ai_diagnostician.summary import SummaryBuilder


RAW_QUESTIONS = {
    "match": {
        "archetype": "match",
        "prompt_text": "Match each term with its meaning",
        "left_items": [{"id": "A", "text": "Token"}, {"id": "B", "text": "Embedding"}],
        "right_items": [{"id": "1", "text": "A unit of text"}, {"id": "2", "text": "A vector for meaning"}],
        "correct_pairs": [["A", "1"], ["B", "2"]],
        "explanation": "Tokens are text units; embeddings are vectors.",
    },
    "bucket": {
        "archetype": "bucket",
        "prompt_text": "Sort the tasks",
        "cards": [{"id": "c1", "text": "Draft an email"}, {"id": "c2", "text": "Fire an employee"}],
        "buckets": [{"id": "ai", "text": "Suitable for AI"}, {"id": "human", "text": "Better for humans"}],
        "correct_assignment": {"c1": "ai", "c2": "human"},
        "explanation": "Drafting suits AI; high-stakes decisions stay with people.",
    },
    "single_select": {
        "archetype": "single_select",
        "prompt_text": "What does an LLM do?",
        "options": [{"id": "A", "text": "Predicts text"}, {"id": "B", "text": "Thinks consciously"}],
        "correct_option_ids": ["A"],
        "explanation": "LLMs predict the next token.",
    },
    "true_false": {
        "archetype": "true_false",
        "prompt_text": "True or false?",
        "statement": "RAG retrieves documents before generating.",
        "correct_answer": True,
        "explanation": "Retrieval happens first.",
    },
    "free_text": {
        "archetype": "free_text",
        "prompt_text": "Answer based on the scenario",
        "scenario": "Your manager wants to paste customer records into a public chatbot.",
        "key_points": ["privacy of customer data", "human review of output"],
        "expected_length_hint": "50-150 words",
        "explanation": "Protect data and review outputs.",
    },
}

GOOD_SUMMARY = {
    "overall": "Solid grasp of LLM basics with gaps in retrieval.",
    "highlights": ["Understands tokens"],
    "blindspots": ["Confuses RAG with fine-tuning"],
    "suggestions": ["Build a small RAG demo"],
    "detailed_analysis": "x" * 260,
    "radar_data": {"categories": ["LLM", "RAG"], "scores": [90, 40]},
}


def raw_question(archetype, concept_id="LLM"):
    raw = copy.deepcopy(RAW_QUESTIONS[archetype])
    raw["concept_id"] = concept_id
    return raw


def make_question(archetype, concept_id="LLM"):
    return parse_question(raw_question(archetype, concept_id))


class FakeLLM:
    """Scripted stand-in for GeminiClient.

    ``responses`` are consumed in order (an Exception instance is raised). When they run out,
    ``responder(prompt)`` answers if given, otherwise the call fails with LLMError.
    """

    def __init__(self, responses=None, grounded=None, responder=None):
        self.responses = list(responses or [])
        self.grounded = list(grounded or [])
        self.responder = responder
        self.prompts = []
        self.calls = []

    async def generate(self, prompt, **kwargs):
        self.prompts.append(prompt)
        self.calls.append(kwargs)
        if self.responses:
            item = self.responses.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        if self.responder is not None:
            return self.responder(prompt)
        raise LLMError("no scripted response")

    async def generate_with_grounding(self, prompt, **kwargs):
        self.prompts.append(prompt)
        self.calls.append(kwargs)
        if self.grounded:
            item = self.grounded.pop(0)
        else:
            item = json.dumps(GOOD_SUMMARY)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, GroundedText):
            return item
        return GroundedText(text=item, citations=["https://example.org/rag"])


_ARCHETYPE_IN_PROMPT = re.compile(r'"archetype": "(\w+)"')
_BATCH_COUNT = re.compile(r"exactly (\d+) integers")


def quiz_responder(prompt):
    """Answers every prompt kind the services send, by recognising the prompt."""
    found = _ARCHETYPE_IN_PROMPT.search(prompt)
    if found:
        raw = copy.deepcopy(RAW_QUESTIONS[found.group(1)])
        return json.dumps(raw)
    if "Evaluate the user's answer" in prompt:
        return '{"result": "partial", "reason": "Mentions privacy only."}'
    batch = _BATCH_COUNT.search(prompt)
    if batch:
        return json.dumps({"scores": [70] * int(batch.group(1))})
    if '{"score": n}' in prompt:
        return '{"score": 70}'
    return "Good effort. You matched tokens correctly; remember embeddings encode meaning."


@pytest.fixture
def identity():
    return Identity(age=30, role="professional", self_rating=3)


@pytest.fixture
def store():
    return SessionStore(idle_timeout_seconds=60)


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def fake_llm():
    return FakeLLM(responder=quiz_responder)


def build_services(llm, store, rng, total_questions=6):
    scheduler = ArchetypeScheduler(store, rng=rng)
    generator = QuestionGenerator(llm, store, scheduler, FallbackBank(), rng=rng)
    feedback = FeedbackWriter(llm)
    summary = SummaryBuilder(
        llm,
        MasteryAggregator(llm),
        ResourceLibrary(DEFAULT_RESOURCE_LIBRARY, rng=random.Random(7)),
        feedback=feedback,
        min_analysis_chars=200,
    )
    return QuizOrchestrator(store, generator, PrefetchCoordinator(), feedback, summary, total_questions=total_questions)


@pytest.fixture
def orchestrator(fake_llm, store, rng):
    return build_services(fake_llm, store, rng)
