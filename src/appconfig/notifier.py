"""Configuration update notifier."""

from __future__ import annotations

import logging
from collections.abc import Callable

ChangeHandler = Callable[[], None]

logger = logging.getLogger(__name__)


class ChangeNotifier:
    """Observer list for the "configuration updated" event."""

    def __init__(self) -> None:
        self._handlers: list[ChangeHandler] = []

    def subscribe(self, handler: ChangeHandler) -> None:
        """Register a handler. Handlers are called in registration order."""
        self._handlers.append(handler)

    def unsubscribe(self, handler: ChangeHandler) -> bool:
        """Remove a handler. Returns True if it was registered."""
        try:
            self._handlers.remove(handler)
        except ValueError:
            return False
        return True

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    def publish(self) -> None:
        """Deliver the event synchronously to every current subscriber."""
        for handler in list(self._handlers):
            try:
                handler()
            except Exception as e:
                logger.error("Configuration update handler failed", extra={"error": str(e)})
