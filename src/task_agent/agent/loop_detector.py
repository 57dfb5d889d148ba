"""
Loop detection over a sliding window of action signatures.
"""

import json
from collections import Counter, deque
from typing import Any, Iterable

# Utility actions that are naturally repeated; never counted
DEFAULT_LOOP_EXEMPT_TOOLS = frozenset({
    "recall",
    "list_memories",
    "status_update",
    "ask_user",
    "wait",
    "fetch_url",
    "get_page_state",
    "screenshot",
    "scroll",
    "go_back",
    "reload",
})

LOOP_DETECTED_ERROR = (
    "Loop detected: you have been repeating the same action with the same arguments. "
    "Change your approach or call done()."
)


def action_signature(name: str, arguments: dict[str, Any]) -> str:
    """Canonical ``name:args`` signature, independent of argument order."""
    canonical = json.dumps(arguments, sort_keys=True, separators=(",", ":"), default=str)
    return f"{name}:{canonical}"


class LoopDetector:
    """Flags a probable livelock when one signature dominates the recent window."""

    def __init__(
        self,
        window: int = 20,
        threshold: int = 5,
        exempt: Iterable[str] | None = None,
    ):
        if window < 1 or threshold < 1:
            raise ValueError("window and threshold must be at least 1")
        self.window = window
        self.threshold = threshold
        self.exempt = frozenset(DEFAULT_LOOP_EXEMPT_TOOLS if exempt is None else exempt)
        self._recent: deque[str] = deque(maxlen=window)

    def record(self, name: str, arguments: dict[str, Any]) -> bool:
        """Push a signature into the window. Returns False for exempt actions."""
        if name in self.exempt:
            return False
        self._recent.append(action_signature(name, arguments))
        return True

    def is_looping(self) -> bool:
        counts = Counter(self._recent)
        return any(count >= self.threshold for count in counts.values())

    def check(self, name: str, arguments: dict[str, Any]) -> bool:
        """Record an action and report whether the window now looks like a loop."""
        if not self.record(name, arguments):
            return False
        return self.is_looping()

    def reset(self) -> None:
        self._recent.clear()

    def __len__(self) -> int:
        return len(self._recent)
