# src/assetflow/dsl.py
from __future__ import annotations

from typing import Iterable, List, Optional, Union

from .model import Action, Pipeline, Task, WatchRule


def _noop() -> None:
    return None


# ---------------------------------------------------------------------
# Task helper
# ---------------------------------------------------------------------

def task(
    name: str,
    action: Optional[Action] = None,
    *,
    needs: Optional[Iterable[str]] = None,
    outputs: Optional[Iterable[str]] = None,
    description: str = "",
) -> Task:
    """
    Create a task. Without an action the task is a composite: it only
    exists to run its `needs`.
    """
    if not name:
        raise ValueError("task() needs a name")
    if action is not None and not callable(action):
        raise TypeError(f"task({name!r}) action must be callable")

    return Task(
        name=name,
        action=action or _noop,
        needs=tuple(needs or ()),
        outputs=tuple(outputs or ()),
        description=description,
    )


# ---------------------------------------------------------------------
# Watch helper
# ---------------------------------------------------------------------

def watch(*patterns: str, tasks: Union[str, Iterable[str]]) -> WatchRule:
    """watch("src/**/*.less", tasks="css")"""
    if not patterns:
        raise ValueError("watch() needs at least one pattern")
    names = (tasks,) if isinstance(tasks, str) else tuple(tasks)
    if not names:
        raise ValueError(f"watch({', '.join(patterns)}) triggers no tasks")
    return WatchRule(patterns=tuple(patterns), tasks=names)


# ---------------------------------------------------------------------
# Pipeline helper (single-file story)
# ---------------------------------------------------------------------

def pipeline_of(*items: Union[Task, WatchRule]) -> Pipeline:
    """
    Collect tasks and watch rules. Users can write:

        from assetflow import pipeline_of, task, watch

        def pipeline(config):
            return pipeline_of(
                task("css", ...),
                watch("src/**/*.less", tasks="css"),
            )
    """
    tasks: List[Task] = []
    rules: List[WatchRule] = []
    for item in items:
        if isinstance(item, Task):
            tasks.append(item)
        elif isinstance(item, WatchRule):
            rules.append(item)
        else:
            raise TypeError(f"pipeline_of() accepts Task and WatchRule, got {type(item).__name__}")
    return Pipeline(tasks=tasks, watch_rules=rules)
