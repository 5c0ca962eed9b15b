from __future__ import annotations
import logging

from .session_store import SessionStore

logger = logging.getLogger(__name__)


def purge_idle_sessions(store: SessionStore) -> int:
	# Sessions are memory-only; anything idle past the timeout is dropped with its sequence and concepts
	removed = store.purge_idle()
	if removed:
		logger.info("Purged %d idle sessions (%d remaining)", removed, len(store))
	return removed
