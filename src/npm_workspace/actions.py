"""
Actions - Units of per-package work run by the ActionPipeline.

An action is either a SyncAction (plain callable) or an AsyncAction
(coroutine function). Both expose the same awaitable ``invoke`` contract,
so the pipeline never inspects a callable to decide how to call it.

A ConditionableAction pairs an action with an optional predicate; the
action only runs for packages the predicate accepts.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Union


# (descriptor, package path) -> bool
Predicate = Callable[[Any, Path], bool]


@dataclass(frozen=True)
class SyncAction:
    """Action backed by a regular callable ``func(descriptor, path)``."""
    func: Callable[[Any, Path], Any]
    name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.name or getattr(self.func, "__name__", repr(self.func))

    async def invoke(self, descriptor: Any, path: Path) -> Any:
        return self.func(descriptor, path)


@dataclass(frozen=True)
class AsyncAction:
    """Action backed by a coroutine function ``await func(descriptor, path)``."""
    func: Callable[[Any, Path], Awaitable[Any]]
    name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.name or getattr(self.func, "__name__", repr(self.func))

    async def invoke(self, descriptor: Any, path: Path) -> Any:
        return await self.func(descriptor, path)


Action = Union[SyncAction, AsyncAction]


@dataclass(frozen=True)
class ConditionableAction:
    """
    An action gated by an optional predicate.

    Usage:
        ConditionableAction.of_sync(write_marker)
        ConditionableAction.of_sync(link_bin, condition=lambda d, p: d.bin is not None)
        ConditionableAction.of_async(notify, name="notify")
    """
    action: Action
    condition: Optional[Predicate] = None

    @classmethod
    def of_sync(
        cls,
        func: Callable[[Any, Path], Any],
        condition: Optional[Predicate] = None,
        name: Optional[str] = None,
    ) -> "ConditionableAction":
        return cls(SyncAction(func, name), condition)

    @classmethod
    def of_async(
        cls,
        func: Callable[[Any, Path], Awaitable[Any]],
        condition: Optional[Predicate] = None,
        name: Optional[str] = None,
    ) -> "ConditionableAction":
        return cls(AsyncAction(func, name), condition)

    @property
    def label(self) -> str:
        return self.action.label

    def should_run(self, descriptor: Any, path: Path) -> bool:
        """Evaluate the predicate; no predicate means always run."""
        if self.condition is None:
            return True
        return bool(self.condition(descriptor, path))

    async def invoke(self, descriptor: Any, path: Path) -> Any:
        return await self.action.invoke(descriptor, path)


__all__ = [
    "Action",
    "AsyncAction",
    "ConditionableAction",
    "Predicate",
    "SyncAction",
]
