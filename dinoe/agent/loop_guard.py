"""
Loop Guard
==========

Stops a model that keeps issuing the same tool call.

Each call is reduced to (tool name, fingerprint of its arguments). The
guard counts how often each pair has been seen during the current user
turn; once a pair's count exceeds the threshold the call is reported as
looping and the agent answers it with a failure result instead of running
the tool again.

With the default threshold of 3, the first three identical calls run and
the fourth is short-circuited.

Counts live for one turn only (`reset()` at every user message) and at
most MAX_TRACKED_PAIRS pairs are kept, oldest evicted first.
"""

import hashlib
import json
from collections import OrderedDict
from typing import Any

from dinoe.providers.types import ToolCall
from dinoe.utils.logger import Logger

logger = Logger("LoopGuard")

DEFAULT_THRESHOLD = 3
MAX_TRACKED_PAIRS = 256


def fingerprint_arguments(arguments: Any) -> str:
    """
    Stable SHA-256 of an argument mapping.

    Key order and whitespace do not matter: {"a": 1, "b": 2} and
    {"b":2,"a":1} share a fingerprint.
    """
    canonical = json.dumps(arguments, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def fingerprint_call(call: ToolCall) -> str:
    """Fingerprint a call; unparseable arguments are hashed as raw text."""
    if call.error is not None:
        return hashlib.sha256(call.raw_arguments.encode("utf-8")).hexdigest()
    return fingerprint_arguments(call.arguments)


class LoopGuard:
    """
    Per-turn repeat counter for (tool name, argument fingerprint) pairs.

    Example:
        guard = LoopGuard(threshold=3)
        fp = fingerprint_arguments({"path": "a.txt"})
        guard.observe("file_read", fp)   # False (1)
        guard.observe("file_read", fp)   # False (2)
        guard.observe("file_read", fp)   # False (3)
        guard.observe("file_read", fp)   # True  (4 > 3)
    """

    def __init__(self, threshold: int = DEFAULT_THRESHOLD, max_pairs: int = MAX_TRACKED_PAIRS):
        if threshold < 1:
            raise ValueError("threshold must be >= 1")
        self.threshold = threshold
        self.max_pairs = max_pairs
        self._counts: OrderedDict[tuple[str, str], int] = OrderedDict()

    def observe(self, name: str, fingerprint: str) -> bool:
        """Record one call; True if it should be short-circuited."""
        key = (name, fingerprint)
        count = self._counts.pop(key, 0) + 1
        self._counts[key] = count

        while len(self._counts) > self.max_pairs:
            self._counts.popitem(last=False)

        if count > self.threshold:
            logger.warning(f"Loop detected: {name} called {count} times with identical arguments")
            return True
        return False

    def observe_call(self, call: ToolCall) -> bool:
        return self.observe(call.name, fingerprint_call(call))

    def count(self, name: str, fingerprint: str) -> int:
        return self._counts.get((name, fingerprint), 0)

    def reset(self) -> None:
        self._counts.clear()

    def __len__(self) -> int:
        return len(self._counts)
