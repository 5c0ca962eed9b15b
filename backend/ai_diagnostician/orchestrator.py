from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import DiagnosticianError, OutOfSequence
from .evaluator import evaluate
from .feedback import FeedbackWriter
from .generator import QuestionGenerator
from .prefetch import PrefetchCoordinator
from .questions import (
    Feedback,
    FreeTextQuestion,
    Identity,
    Question,
    QuestionResult,
    Verdict,
    archetype_of,
    correct_answer_payload,
    parse_answer,
)
from .session_store import Session, SessionStore

logger = logging.getLogger(__name__)


@dataclass
class StartOutcome:
    session_id: str
    question: Question
    question_number: int
    total_questions: int


@dataclass
class SubmitOutcome:
    verdict: Verdict
    judged_verdict: Optional[Verdict]
    feedback: Feedback
    complete: bool
    answered: int
    total_questions: int
    correct_answer: Dict[str, Any]
    explanation: str


class QuizOrchestrator:
    """Drives a session through created -> in_progress -> completed.

    Every public operation on a session holds that session's lock. The background prefetch
    does not; it only writes through ``Session.commit_prefetch``.
    """

    def __init__(
        self,
        store: SessionStore,
        generator: QuestionGenerator,
        prefetch: PrefetchCoordinator,
        feedback: FeedbackWriter,
        summary_builder: Any,
        total_questions: int = 6,
    ) -> None:
        if total_questions < 1:
            raise ValueError("total_questions must be at least 1")
        self.store = store
        self.generator = generator
        self.prefetch = prefetch
        self.feedback = feedback
        self.summary_builder = summary_builder
        self.total_questions = total_questions

    def _generate_for(self, session: Session):
        async def generate(index: int) -> Question:
            return await self.generator.generate(
                question_index=index,
                total_questions=session.total_questions,
                session_id=session.session_id,
                identity=session.identity,
            )

        return generate

    def _arm_prefetch(self, session: Session) -> Optional[asyncio.Task]:
        if session.is_complete:
            return None
        return self.prefetch.trigger(session, len(session.questions), self._generate_for(session))

    async def start(self, identity: Identity) -> StartOutcome:
        session = self.store.create(identity, self.total_questions)
        logger.info("Session %s started (role=%s, self_rating=%d)", session.session_id, identity.role, identity.self_rating)
        try:
            async with session.lock:
                question = await self._generate_for(session)(0)
                session.questions.append(question)
                session.touch()
                self._arm_prefetch(session)
        except DiagnosticianError:
            logger.error("First question failed, tearing down session %s", session.session_id)
            self.store.teardown(session.session_id)
            raise
        return StartOutcome(
            session_id=session.session_id,
            question=question,
            question_number=1,
            total_questions=session.total_questions,
        )

    async def next_question(self, session_id: str) -> Optional[Question]:
        """Question at ``len(results)``, or None once the quiz is complete."""
        session = self.store.get(session_id)
        async with session.lock:
            session.touch()
            index = session.next_index
            if index >= session.total_questions:
                return None
            if index < len(session.questions):
                return session.questions[index]

            question = session.take_prefetch(index)
            if question is None:
                pending = self.prefetch.in_flight_for(session, index)
                if pending is not None:
                    logger.debug("Waiting on in-flight prefetch session=%s index=%d", session_id, index)
                    await asyncio.shield(pending)
                    question = session.take_prefetch(index)
            if question is None:
                logger.info("Generating inline session=%s index=%d", session_id, index)
                question = await self._generate_for(session)(index)

            session.questions.append(question)
            self._arm_prefetch(session)
            return question

    async def submit_answer(self, session_id: str, answer: Any) -> SubmitOutcome:
        session = self.store.get(session_id)
        async with session.lock:
            session.touch()
            if session.is_complete:
                raise OutOfSequence("Quiz already completed", session_id=session_id)
            index = session.next_index
            if index >= len(session.questions):
                raise OutOfSequence(f"Question {index + 1} has not been served yet", session_id=session_id)
            question = session.questions[index]
            parsed = parse_answer(question, answer)

            verdict = evaluate(question, parsed)
            user_answer = parsed.model_dump(mode="json")
            session.record_result(
                QuestionResult(
                    question_index=index,
                    concept_id=question.concept_id,
                    archetype=archetype_of(question),
                    verdict=verdict,
                    user_answer=user_answer,
                    correct_answer=correct_answer_payload(question),
                )
            )
            logger.info(
                "Answer recorded session=%s index=%d concept=%s verdict=%s",
                session_id, index, question.concept_id, verdict.value,
            )
            self._arm_prefetch(session)

            judged: Optional[Verdict] = None
            if isinstance(question, FreeTextQuestion):
                judged = await self.feedback.judged_verdict(question, user_answer.get("answer", ""))
                session.judgements[index] = judged
            message = await self.feedback.narrate(question, judged or verdict, user_answer)

            return SubmitOutcome(
                verdict=verdict,
                judged_verdict=judged,
                feedback=Feedback(message=message, is_correct=(judged or verdict) == Verdict.CORRECT),
                complete=session.is_complete,
                answered=len(session.results),
                total_questions=session.total_questions,
                correct_answer=correct_answer_payload(question),
                explanation=question.explanation,
            )

    async def summary(self, session_id: str):
        session = self.store.get(session_id)
        async with session.lock:
            session.touch()
            if not session.results:
                raise OutOfSequence("No answers recorded yet", session_id=session_id)
            return await self.summary_builder.build(session)

    def session_state(self, session_id: str) -> Dict[str, Any]:
        session = self.store.get(session_id)
        return {
            "session_id": session.session_id,
            "state": session.state.value,
            "answered": len(session.results),
            "generated": len(session.questions),
            "total_questions": session.total_questions,
            "prefetch_ready": session.prefetch_slot is not None,
            "prefetch_in_flight": session.prefetch_task is not None and not session.prefetch_task.done(),
            "started_at": session.started_at.isoformat(),
            "completed_at": session.completed_at.isoformat() if session.completed_at else None,
        }
