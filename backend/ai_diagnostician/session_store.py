from __future__ import annotations

import asyncio
import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterator, List, Optional, Set

from .errors import SessionNotFound
from .questions import Archetype, Identity, Question, QuestionResult, Verdict


class SessionState(str, Enum):
    CREATED = "created"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class Session:
    """In-memory quiz session.

    ``len(results)`` is the index of the next question to serve. ``questions`` leads it by at
    most one, and ``prefetch_slot`` holds a look-ahead question not yet committed.
    """

    def __init__(self, identity: Identity, total_questions: int) -> None:
        self.session_id: str = uuid.uuid4().hex
        self.identity: Identity = identity
        self.total_questions: int = total_questions
        self.questions: List[Question] = []
        self.results: List[QuestionResult] = []
        self.prefetch_slot: Optional[Question] = None
        self.prefetch_index: Optional[int] = None
        self.prefetch_task: Optional[asyncio.Task] = None
        self.prefetch_target: Optional[int] = None
        self.judgements: Dict[int, Verdict] = {}
        self.started_at: datetime = datetime.now(timezone.utc)
        self.completed_at: Optional[datetime] = None
        self.last_activity_at: float = time.monotonic()
        self.lock: asyncio.Lock = asyncio.Lock()

    @property
    def next_index(self) -> int:
        return len(self.results)

    @property
    def is_complete(self) -> bool:
        return len(self.results) >= self.total_questions

    @property
    def state(self) -> SessionState:
        if self.is_complete:
            return SessionState.COMPLETED
        if not self.questions:
            return SessionState.CREATED
        return SessionState.IN_PROGRESS

    def touch(self) -> None:
        self.last_activity_at = time.monotonic()

    def record_result(self, result: QuestionResult) -> None:
        if result.question_index != len(self.results):
            raise ValueError(f"result for index {result.question_index} recorded at position {len(self.results)}")
        self.results.append(result)
        if self.is_complete and self.completed_at is None:
            self.completed_at = datetime.now(timezone.utc)

    def commit_prefetch(self, question: Question, index: int) -> bool:
        """Place a prefetched question in the slot if it is still wanted.

        Runs without awaiting, so the check and the write happen atomically on the event loop.
        """
        if self.prefetch_slot is not None:
            return False
        if index != len(self.questions) or index >= self.total_questions:
            return False
        self.prefetch_slot = question
        self.prefetch_index = index
        return True

    def take_prefetch(self, index: int) -> Optional[Question]:
        """Pop the slot if it holds the question for ``index``; a stale slot is dropped."""
        question, slot_index = self.prefetch_slot, self.prefetch_index
        self.prefetch_slot = None
        self.prefetch_index = None
        if question is None or slot_index != index:
            return None
        return question

    def effective_verdict(self, index: int) -> Verdict:
        return self.judgements.get(index, self.results[index].verdict)


class SessionStore:
    """Owns every per-session map; ``teardown`` clears them together."""

    def __init__(self, idle_timeout_seconds: float = 3600) -> None:
        self.idle_timeout_seconds = idle_timeout_seconds
        self._sessions: Dict[str, Session] = {}
        self._sequences: Dict[str, List[Archetype]] = {}
        self._used_concepts: Dict[str, Set[str]] = {}

    def create(self, identity: Identity, total_questions: int) -> Session:
        session = Session(identity, total_questions)
        self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def archetype_sequence(self, session_id: str) -> Optional[List[Archetype]]:
        return self._sequences.get(session_id)

    def set_archetype_sequence(self, session_id: str, sequence: List[Archetype]) -> None:
        self._sequences[session_id] = sequence

    def used_concepts(self, session_id: str) -> Set[str]:
        return self._used_concepts.setdefault(session_id, set())

    def teardown(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        self._sequences.pop(session_id, None)
        self._used_concepts.pop(session_id, None)
        if session is not None and session.prefetch_task is not None and not session.prefetch_task.done():
            session.prefetch_task.cancel()

    def purge_idle(self, now: Optional[float] = None) -> int:
        now = time.monotonic() if now is None else now
        stale = [sid for sid, s in self._sessions.items() if now - s.last_activity_at > self.idle_timeout_seconds]
        for sid in stale:
            self.teardown(sid)
        return len(stale)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))
