from __future__ import annotations

import logging
from typing import Any, Dict

from .errors import GenerationError
from .gemini_client import LLMError, extract_json_object, generate_text
from .prompts import feedback_prompt, judgement_prompt
from .questions import FreeTextQuestion, Question, Verdict

logger = logging.getLogger(__name__)


class FeedbackWriter:
    """LLM-backed judgement of free-text answers and narrative feedback.

    Both operations must succeed; there is no canned fallback text.
    """

    def __init__(self, llm: Any) -> None:
        self.llm = llm

    async def judged_verdict(self, question: FreeTextQuestion, answer_text: str) -> Verdict:
        prompt = judgement_prompt(question, answer_text)
        try:
            text = await generate_text(self.llm, prompt, temperature=0.3, max_tokens=1024)
        except LLMError as exc:
            logger.error("Free-text judgement failed for concept %s: %s", question.concept_id, exc)
            raise GenerationError(f"Failed to evaluate short answer: {exc}") from exc
        try:
            data = extract_json_object(text)
            verdict = Verdict(str(data.get("result", "")).strip().lower())
        except ValueError as exc:
            logger.error("Unusable free-text judgement: %s", text[:200])
            raise GenerationError("Failed to evaluate short answer: judge returned no verdict") from exc
        logger.info("Judged free-text answer for %s as %s (%s)", question.concept_id, verdict.value, data.get("reason", ""))
        return verdict

    async def narrate(self, question: Question, verdict: Verdict, user_answer: Dict[str, Any]) -> str:
        prompt = feedback_prompt(question, verdict, user_answer)
        try:
            text = await generate_text(self.llm, prompt, temperature=0.7, max_tokens=1024)
        except LLMError as exc:
            logger.error("Feedback generation failed for concept %s: %s", question.concept_id, exc)
            raise GenerationError(f"Failed to generate feedback: {exc}") from exc
        text = text.strip()
        if not text:
            raise GenerationError("Failed to generate feedback: empty response")
        return text
