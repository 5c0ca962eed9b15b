from __future__ import annotations

import logging
import random
from typing import Any, Optional

from pydantic import ValidationError

from .catalog import CONCEPTS, Concept, ad_hoc_concept, concepts_for, get_concept
from .errors import GenerationError, MalformedGeneration
from .fallback_bank import FallbackBank
from .gemini_client import LLMError, QuotaExceededError, extract_json_object, generate_text
from .prompts import question_prompt
from .questions import BASE_ARCHETYPES, Archetype, Identity, Question, parse_question
from .scheduler import ArchetypeScheduler
from .session_store import SessionStore

logger = logging.getLogger(__name__)


class QuestionGenerator:
    def __init__(
        self,
        llm: Any,
        store: SessionStore,
        scheduler: ArchetypeScheduler,
        fallback_bank: Optional[FallbackBank] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.llm = llm
        self.store = store
        self.scheduler = scheduler
        self.fallback_bank = fallback_bank or FallbackBank()
        self.rng = rng or random.Random()

    def resolve_archetype(
        self,
        archetype: Optional[Archetype],
        question_index: Optional[int],
        total_questions: Optional[int],
        session_id: Optional[str],
    ) -> Archetype:
        if archetype is not None:
            return Archetype(archetype)
        if session_id is not None and question_index is not None and total_questions is not None:
            return self.scheduler.archetype_for(session_id, question_index, total_questions)
        return self.rng.choice(BASE_ARCHETYPES)

    def resolve_concept(self, concept_id: Optional[str], archetype: Archetype, session_id: Optional[str]) -> Concept:
        if concept_id:
            return get_concept(concept_id) or ad_hoc_concept(concept_id)
        candidates = concepts_for(archetype) or list(CONCEPTS)
        if session_id is not None:
            used = self.store.used_concepts(session_id)
            unused = [c for c in candidates if c.id not in used]
            if unused:
                candidates = unused
        return self.rng.choice(candidates)

    def _mark_used(self, session_id: Optional[str], concept_id: str) -> None:
        if session_id is not None:
            self.store.used_concepts(session_id).add(concept_id)

    async def generate(
        self,
        concept_id: Optional[str] = None,
        archetype: Optional[Archetype] = None,
        question_index: Optional[int] = None,
        total_questions: Optional[int] = None,
        session_id: Optional[str] = None,
        identity: Optional[Identity] = None,
    ) -> Question:
        """Produce one validated question.

        Falls back to the static bank only on quota exhaustion; every other LLM failure raises
        GenerationError, and unusable content raises MalformedGeneration.
        """
        chosen = self.resolve_archetype(archetype, question_index, total_questions, session_id)
        concept = self.resolve_concept(concept_id, chosen, session_id)
        self._mark_used(session_id, concept.id)

        role = f"{identity.role}-L{identity.self_rating}" if identity else "n/a"
        logger.info(
            "Generating question session=%s index=%s archetype=%s concept=%s user=%s",
            session_id, question_index, chosen.value, concept.id, role,
        )

        prompt = question_prompt(chosen, concept, identity)
        try:
            text = await generate_text(self.llm, prompt, temperature=0.8, max_tokens=4096, thinking_budget=0)
        except QuotaExceededError as exc:
            return self._fallback(chosen, question_index, session_id, exc)
        except LLMError as exc:
            logger.error("Question generation failed session=%s index=%s: %s", session_id, question_index, exc)
            raise GenerationError(f"Failed to generate question: {exc}", session_id=session_id) from exc

        try:
            raw = extract_json_object(text)
        except ValueError as exc:
            logger.error("Unparseable question JSON session=%s index=%s: %s", session_id, question_index, text[:200])
            raise MalformedGeneration("LLM returned a question that is not valid JSON", session_id=session_id) from exc

        returned = raw.get("archetype")
        if returned is not None and returned != chosen.value:
            logger.error(
                "Archetype mismatch session=%s index=%s: asked %s, got %s", session_id, question_index, chosen.value, returned
            )
            raise MalformedGeneration(
                f"LLM returned a {returned} question where {chosen.value} was requested", session_id=session_id
            )
        raw["archetype"] = chosen.value
        if not raw.get("concept_id"):
            raw["concept_id"] = concept.id

        try:
            return parse_question(raw)
        except ValidationError as exc:
            logger.error(
                "Question failed validation session=%s index=%s: %s", session_id, question_index, exc.errors()[:3]
            )
            raise MalformedGeneration(f"LLM returned an invalid {chosen.value} question", session_id=session_id) from exc

    def _fallback(
        self,
        archetype: Archetype,
        question_index: Optional[int],
        session_id: Optional[str],
        cause: Exception,
    ) -> Question:
        question = self.fallback_bank.fallback_question(archetype, question_index or 0)
        if question is None:
            logger.error("Quota exceeded and no fallback for %s (session=%s)", archetype.value, session_id)
            raise GenerationError(f"Failed to generate question: {cause}", session_id=session_id) from cause
        logger.warning(
            "Quota exceeded, serving fallback question session=%s index=%s archetype=%s concept=%s",
            session_id, question_index, archetype.value, question.concept_id,
        )
        self._mark_used(session_id, question.concept_id)
        return question
