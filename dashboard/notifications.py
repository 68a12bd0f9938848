"""Transient user notifications."""

import time
from typing import Callable, Optional

from config import settings_conf

class Notifier:
    """Holds at most one message, which disappears after `dismiss_after` seconds."""

    def __init__(self, dismiss_after: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.dismiss_after = dismiss_after or settings_conf['notification_dismiss_seconds']
        self._clock = clock
        self._message: Optional[str] = None
        self._shown_at = 0.0

    def show(self, message: str) -> None:
        """Show a message, replacing any current one."""
        self._message = message
        self._shown_at = self._clock()

    def dismiss(self) -> None:
        self._message = None

    @property
    def current(self) -> Optional[str]:
        if self._message is not None and self._clock() - self._shown_at >= self.dismiss_after:
            self._message = None
        return self._message
