# app/services/post_commit.py
"""
Side effects that run after a mutation's transaction has committed.

Scheduling, notification fan-out and stream publishing are best-effort:
a failing hook is logged and the remaining hooks still run. The committed
business state is never rolled back because of them.
"""

import logging
from typing import Any, Callable, List, Tuple

logger = logging.getLogger(__name__)


class PostCommitHooks:
    def __init__(self):
        self._hooks: List[Tuple[str, Callable[..., Any], tuple, dict]] = []

    def add(self, label: str, func: Callable[..., Any], *args, **kwargs) -> None:
        self._hooks.append((label, func, args, kwargs))

    def __len__(self) -> int:
        return len(self._hooks)

    def run(self) -> int:
        """Run every hook in registration order; returns the number that failed."""
        failures = 0
        hooks, self._hooks = self._hooks, []
        for label, func, args, kwargs in hooks:
            try:
                func(*args, **kwargs)
            except Exception:
                failures += 1
                logger.exception("Post-commit hook '%s' failed", label)
        return failures
