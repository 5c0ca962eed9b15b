from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .errors import DiagnosticianError
from .questions import Question
from .session_store import Session

logger = logging.getLogger(__name__)

GenerateThunk = Callable[[int], Awaitable[Question]]


class PrefetchCoordinator:
    """Keeps at most one look-ahead question generating in the background per session.

    The background task never takes the session lock. Its result is committed with a
    synchronous compare-and-swap on the session's slot, so a stale question is dropped instead
    of overwriting newer state.
    """

    def trigger(self, session: Session, index: int, generate: GenerateThunk) -> Optional[asyncio.Task]:
        if session.prefetch_task is not None and not session.prefetch_task.done():
            return session.prefetch_task
        if session.prefetch_slot is not None or len(session.questions) >= session.total_questions:
            return None
        if index != len(session.questions):
            return None
        task = asyncio.create_task(self.ensure_prefetch(session, index, generate))
        session.prefetch_task = task
        session.prefetch_target = index
        logger.debug("Prefetch started session=%s index=%d", session.session_id, index)
        return task

    async def ensure_prefetch(self, session: Session, index: int, generate: GenerateThunk) -> None:
        try:
            question = await generate(index)
        except DiagnosticianError as exc:
            logger.warning("Prefetch failed session=%s index=%d: %s", session.session_id, index, exc.message)
            return
        except Exception:
            # Nobody awaits this task; the next request regenerates inline
            logger.exception("Prefetch crashed session=%s index=%d", session.session_id, index)
            return
        if session.commit_prefetch(question, index):
            logger.info("Prefetch ready session=%s index=%d", session.session_id, index)
        else:
            logger.info("Prefetched question discarded session=%s index=%d", session.session_id, index)

    def in_flight_for(self, session: Session, index: int) -> Optional[asyncio.Task]:
        task = session.prefetch_task
        if task is not None and not task.done() and session.prefetch_target == index:
            return task
        return None
