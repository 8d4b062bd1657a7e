"""
Evolution notifications

One-shot stream of EvolutionEvents for the presentation layer. Each event
stays pending until acknowledged, so it is shown exactly once.
"""

import logging
from collections import deque
from typing import Callable, Deque, List, Optional

from soulpet.models.pet import EvolutionEvent

logger = logging.getLogger(__name__)

EvolutionListener = Callable[[EvolutionEvent], None]


class EvolutionNotifier:
    """Queue of unacknowledged evolution events plus push listeners"""

    def __init__(self):
        self._pending: Deque[EvolutionEvent] = deque()
        self._listeners: List[EvolutionListener] = []

    def subscribe(self, listener: EvolutionListener) -> Callable[[], None]:
        """
        Register a listener called on every published event

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def publish(self, event: EvolutionEvent) -> None:
        self._pending.append(event)
        logger.info(
            f"Evolution: {event.companion_type.value} {event.from_stage.value} -> "
            f"{event.to_stage.value} ({event.reason})"
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                # Listener failures never affect recorded progress
                logger.error(f"Evolution listener failed: {e}", exc_info=True)

    def pending(self) -> Optional[EvolutionEvent]:
        """Oldest event not yet acknowledged, if any"""
        return self._pending[0] if self._pending else None

    def acknowledge(self) -> Optional[EvolutionEvent]:
        """Mark the oldest pending event as shown and return it"""
        if not self._pending:
            return None
        return self._pending.popleft()

    def drain(self) -> List[EvolutionEvent]:
        """Acknowledge and return every pending event"""
        events = list(self._pending)
        self._pending.clear()
        return events

    def __len__(self) -> int:
        return len(self._pending)
