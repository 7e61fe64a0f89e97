"""
Post-commit hooks.

Side effects that must only happen once the local transaction is durable
(provider sends, blob cleanup) are queued here and run after commit. Each
hook is independently fallible and logged; one failing hook never stops the
others and never touches committed state.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class HookOutcome:
    name: str
    ok: bool
    result: Any = None
    error: str | None = None


class PostCommitHooks:
    def __init__(self) -> None:
        self._hooks: list[tuple[str, Callable[..., Awaitable[Any]], tuple, dict]] = []

    def add(self, name: str, fn: Callable[..., Awaitable[Any]], /, *args: Any, **kwargs: Any) -> None:
        self._hooks.append((name, fn, args, kwargs))

    def __len__(self) -> int:
        return len(self._hooks)

    async def run(self) -> list[HookOutcome]:
        hooks, self._hooks = self._hooks, []
        outcomes = []
        for name, fn, args, kwargs in hooks:
            try:
                result = await fn(*args, **kwargs)
            except Exception as e:
                logger.error("Post-commit hook %s failed: %s", name, e, exc_info=True)
                outcomes.append(HookOutcome(name=name, ok=False, error=str(e)))
                continue
            logger.debug("Post-commit hook %s completed", name)
            outcomes.append(HookOutcome(name=name, ok=True, result=result))
        return outcomes
