"""Record identifier generation."""

import re
import time
from typing import Callable, Optional

class MonotonicIdGenerator:
    """Generates `<prefix>-<milliseconds>` identifiers that strictly increase.

    Two calls in the same millisecond (or a clock that steps backwards) still
    get distinct, increasing identifiers: the numeric part is bumped past the
    last one handed out.
    """

    def __init__(self, prefix: str, clock: Optional[Callable[[], float]] = None):
        self.prefix = prefix
        self._clock = clock or time.time
        self._last = 0

    def next_value(self) -> int:
        now_ms = int(self._clock() * 1000)
        self._last = max(now_ms, self._last + 1)
        return self._last

    def __call__(self) -> str:
        return f"{self.prefix}-{self.next_value()}"

def slugify(value: str) -> str:
    slug = re.sub(r'[^a-z0-9]+', '-', value.lower()).strip('-')
    return slug or 'dataset'
