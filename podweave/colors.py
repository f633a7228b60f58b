"""
Stable pod-to-color assignment.

Pods receive palette colors in the order they are first seen: the first pod
gets slot 0, the second slot 1, and so on, wrapping around once the palette
is exhausted. An assignment never changes until ``reset`` is called, which
the stream consumer does whenever it starts a new connection.
"""

from typing import Dict, Sequence

from .constants import DEFAULT_PALETTE
from .exceptions import ConfigurationError


class PodColorAssigner:
    """
    Lazily built mapping from pod name to palette color.

    Example:
        ```python
        colors = PodColorAssigner()
        colors.color_for("web-1")  # "blue"
        colors.color_for("web-2")  # "purple"
        colors.color_for("web-1")  # "blue" again
        ```
    """

    def __init__(self, palette: Sequence[str] = DEFAULT_PALETTE):
        if not palette:
            raise ConfigurationError("Color palette cannot be empty")
        self.palette = tuple(palette)
        self._slots: Dict[str, int] = {}

    def color_for(self, pod: str) -> str:
        slot = self._slots.get(pod)
        if slot is None:
            slot = len(self._slots) % len(self.palette)
            self._slots[pod] = slot
        return self.palette[slot]

    def assignments(self) -> Dict[str, str]:
        """Copy of the current pod -> color mapping, in first-seen order."""
        return {pod: self.palette[slot] for pod, slot in self._slots.items()}

    def reset(self) -> None:
        self._slots.clear()

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, pod: object) -> bool:
        return pod in self._slots
