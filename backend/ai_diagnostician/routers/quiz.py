from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from ..orchestrator import QuizOrchestrator
from ..questions import Feedback, Identity, Verdict, public_view


router = APIRouter(prefix="/api", tags=["quiz"])


def get_orchestrator(request: Request) -> QuizOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Quiz service is not configured (missing GEMINI_API_KEY)")
    return orchestrator


class StartRequest(Identity):
    pass


class StartResponse(BaseModel):
    session_id: str
    question: Dict[str, Any]
    question_number: int
    total_questions: int


class SessionRequest(BaseModel):
    session_id: str = Field(min_length=1)


class NextQuestionResponse(BaseModel):
    question: Optional[Dict[str, Any]] = None
    question_number: Optional[int] = None
    complete: bool = False


class SubmitRequest(BaseModel):
    session_id: str = Field(min_length=1)
    answer: Dict[str, Any]


class SubmitResponse(BaseModel):
    verdict: Verdict
    judged_verdict: Optional[Verdict] = None
    feedback: Feedback
    complete: bool
    answered: int
    total_questions: int
    correct_answer: Dict[str, Any]
    explanation: str


@router.post("/start", response_model=StartResponse)
async def start(req: StartRequest, orchestrator: QuizOrchestrator = Depends(get_orchestrator)) -> StartResponse:
    identity = Identity(age=req.age, role=req.role, self_rating=req.self_rating)
    outcome = await orchestrator.start(identity)
    return StartResponse(
        session_id=outcome.session_id,
        question=public_view(outcome.question),
        question_number=outcome.question_number,
        total_questions=outcome.total_questions,
    )


@router.post("/next-question", response_model=NextQuestionResponse)
async def next_question(
    req: SessionRequest, orchestrator: QuizOrchestrator = Depends(get_orchestrator)
) -> NextQuestionResponse:
    question = await orchestrator.next_question(req.session_id)
    if question is None:
        return NextQuestionResponse(question=None, complete=True)
    answered = orchestrator.session_state(req.session_id)["answered"]
    return NextQuestionResponse(question=public_view(question), question_number=answered + 1)


@router.post("/submit-answer", response_model=SubmitResponse)
async def submit_answer(req: SubmitRequest, orchestrator: QuizOrchestrator = Depends(get_orchestrator)) -> SubmitResponse:
    outcome = await orchestrator.submit_answer(req.session_id, req.answer)
    return SubmitResponse(
        verdict=outcome.verdict,
        judged_verdict=outcome.judged_verdict,
        feedback=outcome.feedback,
        complete=outcome.complete,
        answered=outcome.answered,
        total_questions=outcome.total_questions,
        correct_answer=outcome.correct_answer,
        explanation=outcome.explanation,
    )


@router.post("/summary")
async def summary(req: SessionRequest, orchestrator: QuizOrchestrator = Depends(get_orchestrator)) -> Dict[str, Any]:
    report = await orchestrator.summary(req.session_id)
    return {"summary": report.model_dump(mode="json")}


@router.get("/session/{session_id}")
async def session_state(session_id: str, orchestrator: QuizOrchestrator = Depends(get_orchestrator)) -> Dict[str, Any]:
    return orchestrator.session_state(session_id)
