"""
Progression Session - per-user wiring

Builds the session store, coordinator, and notifier for one authenticated
user and cold-loads remote progress. The presentation layer keeps the
returned session for as long as the user is signed in.
"""

from dataclasses import dataclass, field
from typing import Optional
import logging

from soulpet.config import PET_TIMEZONE, EvolutionConfig
from soulpet.gamification.notifier import EvolutionNotifier
from soulpet.gamification.progress_store import ProgressStore
from soulpet.gamification.progression import ProgressionCoordinator

logger = logging.getLogger(__name__)


@dataclass
class ProgressionSession:
    """
    Everything the presentation layer needs for one signed-in user.

    The coordinator is lazy-loaded on first access.
    """

    user_id: str
    gateway: object  # PersistenceGateway
    config: Optional[EvolutionConfig] = None
    timezone: str = PET_TIMEZONE

    _store: Optional[ProgressStore] = field(default=None, init=False, repr=False)
    _coordinator: Optional[ProgressionCoordinator] = field(default=None, init=False, repr=False)

    @property
    def store(self) -> ProgressStore:
        if self._store is None:
            self._store = ProgressStore(self.user_id)
        return self._store

    @property
    def coordinator(self) -> ProgressionCoordinator:
        """Get ProgressionCoordinator instance (lazy-loaded)"""
        if self._coordinator is None:
            self._coordinator = ProgressionCoordinator(
                self.store,
                self.gateway,
                config=self.config,
                timezone=self.timezone,
            )
            logger.debug(f"ProgressionCoordinator instantiated for user {self.user_id}")
        return self._coordinator

    @property
    def notifier(self) -> EvolutionNotifier:
        return self.coordinator.notifier


async def open_session(
    user_id: str,
    gateway,
    config: Optional[EvolutionConfig] = None,
    timezone: str = PET_TIMEZONE,
) -> ProgressionSession:
    """
    Create a session for a signed-in user and load remote progress

    A failed remote load leaves the session on local defaults; the next
    load_session call reconciles.
    """
    session = ProgressionSession(user_id=user_id, gateway=gateway, config=config, timezone=timezone)
    loaded = await session.coordinator.load_session(user_id)
    if not loaded:
        logger.warning(f"Session for user {user_id} started without remote progress")
    return session


async def close_session(session: ProgressionSession) -> None:
    """Stop background work for a signing-out user; unsent writes are logged"""
    if session._coordinator is None:
        return
    pending = len(session.coordinator.outbox)
    await session.coordinator.close()
    if pending:
        logger.warning(f"Session for user {session.user_id} closed with {pending} unsent writes")
