# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

# An action is called with no arguments. It may return an awaitable, which
# the runner awaits; anything else counts as immediate completion.
Action = Callable[[], Union[Awaitable[Any], Any]]


@dataclass(frozen=True)
class Task:
    """
    A named unit of build work.

    `needs` lists tasks that must complete before this one.
    `outputs` are the paths announced to live-reload clients after success.
    """
    name: str
    action: Action
    needs: tuple[str, ...] = ()
    outputs: tuple[str, ...] = ()
    description: str = ""


@dataclass(frozen=True)
class WatchRule:
    """Glob patterns (relative to the project root) and the tasks they trigger."""
    patterns: tuple[str, ...]
    tasks: tuple[str, ...]


class Outcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class BuildResult:
    task: str
    outcome: Outcome
    message: str = ""
    origin: Optional[str] = None  # task whose action failed

    @classmethod
    def success(cls, task: str, message: str = "") -> "BuildResult":
        return cls(task=task, outcome=Outcome.SUCCESS, message=message)

    @classmethod
    def failure(cls, task: str, message: str, *, origin: str | None = None) -> "BuildResult":
        return cls(task=task, outcome=Outcome.FAILURE, message=message, origin=origin or task)

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.SUCCESS


@dataclass
class Pipeline:
    """What a pipeline-construction function returns."""
    tasks: list[Task] = field(default_factory=list)
    watch_rules: list[WatchRule] = field(default_factory=list)
