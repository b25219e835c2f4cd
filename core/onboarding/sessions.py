"""
Wizard Session Repository - In-Memory Wizards Keyed by Session ID

Each browser session owns exactly one FormWizard. Partial form data is
never persisted: wizards live in process memory and are dropped when the
session is reset or has been idle for too long.
"""

from __future__ import annotations

import logging
import secrets
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from core.onboarding.wizard import FormWizard


logger = logging.getLogger(__name__)


DEFAULT_IDLE_MINUTES = 120
DEFAULT_PRUNE_INTERVAL_SECONDS = 60


def generate_session_id() -> str:
    """Generate a random, URL-safe session ID."""
    return secrets.token_urlsafe(24)


@dataclass
class WizardSession:
    """A wizard plus the bookkeeping needed for idle expiry."""

    session_id: str
    wizard: FormWizard
    created_at: datetime = field(default_factory=datetime.utcnow)
    last_seen_at: datetime = field(default_factory=datetime.utcnow)

    def touch(self) -> None:
        self.last_seen_at = datetime.utcnow()

    def is_idle(self, max_idle: timedelta, now: Optional[datetime] = None) -> bool:
        now = now or datetime.utcnow()
        return now - self.last_seen_at > max_idle


class WizardSessionRepository:
    """
    Repository for per-session wizards.

    Provides get-or-create, reset and idle pruning. Idle sessions that are
    never revisited are swept by get_or_create(), at most once per prune
    interval.
    """

    def __init__(
        self,
        idle_minutes: int = DEFAULT_IDLE_MINUTES,
        prune_interval_seconds: float = DEFAULT_PRUNE_INTERVAL_SECONDS,
    ):
        self._sessions: dict[str, WizardSession] = {}
        self._max_idle = timedelta(minutes=idle_minutes)
        self._prune_interval = timedelta(seconds=prune_interval_seconds)
        self._last_pruned_at = datetime.utcnow()
        self._lock = threading.Lock()

    def get(self, session_id: str) -> Optional[WizardSession]:
        """Get a live session, or None if unknown or expired."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if session.is_idle(self._max_idle):
                del self._sessions[session_id]
                logger.info("Discarded idle wizard session %s", session_id[:8])
                return None
            session.touch()
            return session

    def get_or_create(self, session_id: Optional[str]) -> WizardSession:
        """
        Get the session's wizard, creating a fresh one if needed.

        A new session ID is generated when none is given.
        """
        self._prune_if_due()
        if session_id:
            session = self.get(session_id)
            if session is not None:
                return session

        session = WizardSession(
            session_id=session_id or generate_session_id(),
            wizard=FormWizard(),
        )
        with self._lock:
            self._sessions[session.session_id] = session
        return session

    def discard(self, session_id: str) -> bool:
        """
        Drop a session's wizard.

        Returns:
            True if a session was removed
        """
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def prune(self, now: Optional[datetime] = None) -> int:
        """Remove idle sessions. Returns the number removed."""
        with self._lock:
            idle = [
                sid for sid, s in self._sessions.items()
                if s.is_idle(self._max_idle, now)
            ]
            for sid in idle:
                del self._sessions[sid]
            self._last_pruned_at = now or datetime.utcnow()
        if idle:
            logger.info("Pruned %d idle wizard sessions", len(idle))
        return len(idle)

    def _prune_if_due(self) -> None:
        if datetime.utcnow() - self._last_pruned_at >= self._prune_interval:
            self.prune()

    def count(self) -> int:
        return len(self._sessions)


# =============================================================================
# Singleton Instance
# =============================================================================

_repository_instance: Optional[WizardSessionRepository] = None


def get_session_repository(idle_minutes: Optional[int] = None) -> WizardSessionRepository:
    """
    Get the wizard session repository singleton.

    Args:
        idle_minutes: Idle expiry (only used on first call)
    """
    global _repository_instance
    if _repository_instance is None:
        _repository_instance = WizardSessionRepository(
            idle_minutes or DEFAULT_IDLE_MINUTES
        )
    return _repository_instance


def reset_session_repository() -> None:
    """Reset the singleton instance (for testing)."""
    global _repository_instance
    _repository_instance = None
