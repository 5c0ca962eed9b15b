from __future__ import annotations
import asyncio
import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .cleanup import purge_idle_sessions
from .errors import DiagnosticianError, MalformedGeneration
from .fallback_bank import FallbackBank
from .feedback import FeedbackWriter
from .gemini_client import GeminiClient
from .generator import QuestionGenerator
from .mastery import MasteryAggregator
from .orchestrator import QuizOrchestrator
from .prefetch import PrefetchCoordinator
from .resources import ResourceLibrary
from .routers import health, quiz
from .scheduler import ArchetypeScheduler
from .session_store import SessionStore
from .settings import settings
from .summary import SummaryBuilder

logger = logging.getLogger(__name__)

app = FastAPI(title="AI Literacy Diagnostician API")
app.add_middleware(
	CORSMiddleware,
	allow_origins=[settings.cors_origin],
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)
app.include_router(health.router)
app.include_router(quiz.router)

app.state.store = SessionStore(settings.session_idle_timeout_seconds)
app.state.orchestrator = None
app.state.llm_clients = []
app.state.cleanup_task = None


def configure_logging() -> None:
	logging.basicConfig(
		level=settings.log_level.upper(),
		format="%(asctime)s %(levelname)s %(name)s: %(message)s",
	)
	logging.getLogger("httpx").setLevel(logging.WARNING)


def build_orchestrator(llm: Any, store: SessionStore, summary_llm: Optional[Any] = None) -> QuizOrchestrator:
	scheduler = ArchetypeScheduler(store)
	generator = QuestionGenerator(llm, store, scheduler, FallbackBank())
	feedback = FeedbackWriter(llm)
	summary_builder = SummaryBuilder(
		summary_llm or llm,
		MasteryAggregator(llm),
		ResourceLibrary(settings.resource_library_path),
		feedback=feedback,
		min_analysis_chars=settings.summary_min_analysis_chars,
	)
	return QuizOrchestrator(
		store,
		generator,
		PrefetchCoordinator(),
		feedback,
		summary_builder,
		total_questions=settings.total_questions,
	)


@app.exception_handler(DiagnosticianError)
async def diagnostician_error_handler(request: Request, exc: DiagnosticianError):
	if isinstance(exc, MalformedGeneration):
		logger.error("Malformed generation on %s (session=%s): %s", request.url.path, exc.session_id, exc.message)
	elif exc.status_code >= 500:
		logger.error("%s on %s (session=%s): %s", type(exc).__name__, request.url.path, exc.session_id, exc.message)
	return JSONResponse(status_code=exc.status_code, content={"error": type(exc).__name__, "detail": exc.message})


@app.get("/info")
def info():
	return {
		"status": "ok",
		"gemini_configured": bool(settings.gemini_api_key),
		"model": settings.gemini_model,
		"total_questions": settings.total_questions,
		"active_sessions": len(app.state.store),
	}


async def _cleanup_watcher():
	# First pass runs in startup_event
	while True:
		await asyncio.sleep(settings.session_cleanup_interval_seconds)
		try:
			purge_idle_sessions(app.state.store)
		except Exception:
			logger.exception("Idle session cleanup failed")


@app.on_event("startup")
async def startup_event():
	configure_logging()
	if settings.gemini_api_key:
		llm = GeminiClient()
		summary_llm = GeminiClient(model=settings.gemini_summary_model) if settings.gemini_summary_model else None
		app.state.llm_clients = [c for c in (llm, summary_llm) if c is not None]
		app.state.orchestrator = build_orchestrator(llm, app.state.store, summary_llm)
		logger.info("Quiz service ready (model=%s, %d questions)", settings.gemini_model, settings.total_questions)
	else:
		logger.warning("GEMINI_API_KEY is not configured; quiz endpoints will answer 503")
	purge_idle_sessions(app.state.store)
	app.state.cleanup_task = asyncio.create_task(_cleanup_watcher())


@app.on_event("shutdown")
async def shutdown_event():
	if app.state.cleanup_task is not None:
		app.state.cleanup_task.cancel()
	for client in app.state.llm_clients:
		await client.aclose()
	app.state.llm_clients = []
