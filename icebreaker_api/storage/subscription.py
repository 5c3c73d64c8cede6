"""Cancellation handle returned by every store watch."""

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)


class Subscription:
    """Handle for a live document or query subscription.

    Callers own the handle and must cancel it once when they lose interest
    (view teardown, navigation). Cancelling twice is harmless.
    """

    def __init__(self, description: str, on_cancel: Callable[[], None] | None = None):
        self.description = description
        self._on_cancel = on_cancel
        self._active = True

    @property
    def active(self) -> bool:
        """Whether the subscription still delivers snapshots."""
        return self._active

    def cancel(self) -> None:
        """Stop delivery and release the underlying listener."""
        if not self._active:
            logger.debug(f"Subscription already cancelled: {self.description}")
            return

        self._active = False
        if self._on_cancel is not None:
            self._on_cancel()
            self._on_cancel = None
        logger.debug(f"Subscription cancelled: {self.description}")

    def __repr__(self) -> str:
        state = "active" if self._active else "cancelled"
        return f"<Subscription {self.description} ({state})>"
