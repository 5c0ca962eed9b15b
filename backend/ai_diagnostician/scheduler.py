from __future__ import annotations

import logging
import random
from typing import List, Optional

from .questions import BASE_ARCHETYPES, Archetype
from .session_store import SessionStore

logger = logging.getLogger(__name__)


class ArchetypeScheduler:
    """Decides which archetype each question index of a session gets.

    The last question is always free text. The others come from a per-session sequence that
    starts with every base archetype in shuffled order, so any quiz longer than four questions
    covers all of them up front.
    """

    def __init__(self, store: SessionStore, rng: Optional[random.Random] = None) -> None:
        self.store = store
        self.rng = rng or random.Random()

    def archetype_for(self, session_id: str, question_index: int, total_questions: int) -> Archetype:
        if question_index == total_questions - 1:
            return Archetype.FREE_TEXT

        sequence = self.store.archetype_sequence(session_id)
        if sequence is None:
            sequence = self._build_sequence(total_questions)
            self.store.set_archetype_sequence(session_id, sequence)
            logger.debug("Archetype sequence for %s: %s", session_id, [a.value for a in sequence])

        if 0 <= question_index < len(sequence):
            return sequence[question_index]
        return self.rng.choice(BASE_ARCHETYPES)

    def _build_sequence(self, total_questions: int) -> List[Archetype]:
        sequence = list(BASE_ARCHETYPES)
        self.rng.shuffle(sequence)
        while len(sequence) < total_questions - 1:
            sequence.append(self.rng.choice(BASE_ARCHETYPES))
        return sequence
