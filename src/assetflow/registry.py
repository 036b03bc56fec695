# registry.py
from __future__ import annotations

from collections import deque
from typing import Dict, Iterable, Iterator, List, Optional, Set

from .errors import CyclicDependencyError, DuplicateTaskError, RegistryFrozenError, UnknownTaskError
from .model import Action, Task


class TaskRegistry:
    """
    Named tasks for one build process.

    Owned by the entry point that builds the pipeline, never process-wide.
    Registration happens during startup; `freeze()` closes that phase.
    """

    def __init__(self, tasks: Optional[Iterable[Task]] = None):
        self._tasks: Dict[str, Task] = {}
        self._frozen = False
        for t in tasks or []:
            self.register(t)

    def register(
        self,
        task: Task | str,
        action: Optional[Action] = None,
        needs: Iterable[str] = (),
        **kwargs,
    ) -> Task:
        if isinstance(task, str):
            if action is None:
                raise ValueError(f"register({task!r}) needs an action")
            task = Task(name=task, action=action, needs=tuple(needs), **kwargs)

        if self._frozen:
            raise RegistryFrozenError(task.name)
        if task.name in self._tasks:
            raise DuplicateTaskError(task.name)

        self._tasks[task.name] = task
        return task

    def resolve(self, name: str) -> Task:
        try:
            return self._tasks[name]
        except KeyError:
            raise UnknownTaskError(name, known=list(self._tasks)) from None

    def names(self) -> List[str]:
        return list(self._tasks)

    def __contains__(self, name: object) -> bool:
        return name in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self) -> Iterator[Task]:
        return iter(self._tasks.values())

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    # ------------------------------------------------------------------
    # Startup validation
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """
        Fail fast on references to missing tasks and on dependency cycles.
        """
        adj: Dict[str, Set[str]] = {n: set() for n in self._tasks}   # dep -> dependents
        indeg: Dict[str, int] = {n: 0 for n in self._tasks}

        for task in self._tasks.values():
            for dep in task.needs:
                if dep not in self._tasks:
                    raise UnknownTaskError(dep, known=list(self._tasks), referrer=task.name)
                if task.name not in adj[dep]:
                    adj[dep].add(task.name)
                    indeg[task.name] += 1

        # Kahn's algorithm; anything left over sits on a cycle.
        q = deque(n for n, d in indeg.items() if d == 0)
        processed = 0
        while q:
            node = q.popleft()
            processed += 1
            for child in adj[node]:
                indeg[child] -= 1
                if indeg[child] == 0:
                    q.append(child)

        if processed != len(indeg):
            raise CyclicDependencyError(sorted(n for n, d in indeg.items() if d > 0))

    def order(self, name: str) -> List[str]:
        """Depth-first execution order for `name` and its dependencies."""
        seen: Set[str] = set()
        out: List[str] = []

        def visit(n: str) -> None:
            if n in seen:
                return
            seen.add(n)
            for dep in self.resolve(n).needs:
                visit(dep)
            out.append(n)

        visit(name)
        return out
