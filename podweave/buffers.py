"""
Bounded buffers for the aggregated log view.

Key Components:
- DisplayBuffer: Fixed-capacity FIFO of displayed lines
- PauseController: Live/paused switch that holds lines back while paused

Both buffers are plain deques with a ``maxlen``, so appending beyond capacity
drops the oldest line. Order is always receipt order; timestamps are never
consulted because they are not monotonic across pods.

Example:
    ```python
    display = DisplayBuffer(capacity=1000)
    controller = PauseController(display)
    controller.pause()
    controller.route(line)      # held back
    controller.resume()         # flushed into display
    ```
"""

import logging
from collections import deque
from typing import Any, Deque, Iterator, Optional, Tuple

from .constants import DEFAULT_BUFFER_CAPACITY
from .models import DisplayLine
from .validation import validate_capacity

log = logging.getLogger('podweave.buffers')

# Pending capacity default: same bound as the display buffer
SAME_AS_DISPLAY: Any = object()


class DisplayBuffer:
    """
    Ordered, fixed-capacity collection of displayed lines.

    Appending past ``capacity`` evicts from the head until the buffer holds
    exactly ``capacity`` lines. No line is favoured by pod or content.
    Evicted and cleared lines cannot be recovered.
    """

    def __init__(self, capacity: int = DEFAULT_BUFFER_CAPACITY):
        self.capacity = validate_capacity(capacity)
        self._lines: Deque[DisplayLine] = deque(maxlen=self.capacity)

    def append(self, line: DisplayLine) -> None:
        self._lines.append(line)

    def clear(self) -> None:
        self._lines.clear()

    def snapshot(self) -> Tuple[DisplayLine, ...]:
        return tuple(self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self) -> Iterator[DisplayLine]:
        return iter(self._lines)


class PauseController:
    """
    Routes incoming lines to the display or, while paused, to a pending buffer.

    The pending buffer is bounded by ``pending_capacity`` (the display
    capacity unless told otherwise). During a long pause on a busy stream the
    oldest pending lines are dropped; ``dropped_count`` tells how many. Pass
    ``pending_capacity=None`` to keep every pending line regardless of memory.

    Resuming replays the pending lines through ``DisplayBuffer.append`` in
    receipt order, so the display ends up exactly as if the lines had arrived
    live.

    Attributes:
        display: Buffer receiving live lines
        is_paused: Current state, False (live) initially
        dropped_count: Pending lines discarded during the current pause
    """

    def __init__(self, display: DisplayBuffer, pending_capacity: Optional[int] = SAME_AS_DISPLAY):
        self.display = display
        if pending_capacity is SAME_AS_DISPLAY:
            pending_capacity = display.capacity
        elif pending_capacity is not None:
            pending_capacity = validate_capacity(pending_capacity)
        self.pending_capacity = pending_capacity
        self._pending: Deque[DisplayLine] = deque(maxlen=pending_capacity)
        self.is_paused = False
        self.dropped_count = 0

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def pause(self) -> None:
        if self.is_paused:
            return
        self.is_paused = True
        self.dropped_count = 0

    def resume(self) -> int:
        """
        Return to live mode and flush pending lines into the display.

        Returns:
            int: Number of lines flushed
        """
        if not self.is_paused:
            return 0
        self.is_paused = False
        flushed = len(self._pending)
        for line in self._pending:
            self.display.append(line)
        self._pending.clear()
        if self.dropped_count:
            log.info(f"[buffers] resumed: flushed {flushed} pending lines, {self.dropped_count} dropped while paused")
        self.dropped_count = 0
        return flushed

    def route(self, line: DisplayLine) -> None:
        if not self.is_paused:
            self.display.append(line)
            return
        if self.pending_capacity is not None and len(self._pending) == self.pending_capacity:
            self.dropped_count += 1
        self._pending.append(line)

    def clear_pending(self) -> None:
        self._pending.clear()
        self.dropped_count = 0
