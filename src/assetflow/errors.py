# errors.py
from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class BuildError(Exception):
    """
    Structured build error with enough context for:
      - clean CLI output
      - notifier messages
      - debugging without full tracebacks
    """
    kind: str
    task: str
    message: str
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}"]
        if self.task:
            lines.append(f"task={self.task}")
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


# ----------------------------------------------------------------------
# Startup-time (fatal)
# ----------------------------------------------------------------------

class UnknownTaskError(BuildError):
    def __init__(self, name: str, *, known: list[str] | None = None, referrer: str | None = None):
        details: dict = {}
        if referrer:
            details["referenced_by"] = referrer
        if known is not None:
            details["known"] = ", ".join(sorted(known))
        super().__init__(kind="unknown_task", task=name, message=f"no task named '{name}'", details=details)


class DuplicateTaskError(BuildError):
    def __init__(self, name: str):
        super().__init__(kind="duplicate_task", task=name, message=f"task '{name}' is already registered")


class CyclicDependencyError(BuildError):
    def __init__(self, stuck: list[str]):
        super().__init__(
            kind="dependency_cycle",
            task="",
            message="task dependencies contain a cycle",
            details={"stuck": ", ".join(stuck)},
        )


class RegistryFrozenError(BuildError):
    def __init__(self, name: str):
        super().__init__(
            kind="registry_frozen",
            task=name,
            message=f"cannot register '{name}' after startup",
        )


# ----------------------------------------------------------------------
# Task-level (reported, never fatal)
# ----------------------------------------------------------------------

class CompileError(BuildError):
    def __init__(self, task: str, message: str, **details):
        super().__init__(kind="compile_error", task=task, message=message, details=details)


class AssetIOError(BuildError):
    def __init__(self, task: str, message: str, **details):
        super().__init__(kind="io_error", task=task, message=message, details=details)
