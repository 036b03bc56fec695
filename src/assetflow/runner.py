# runner.py
from __future__ import annotations

import asyncio
import inspect
import logging
import runpy
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol

from .config import BuildConfig
from .errors import BuildError, CyclicDependencyError, UnknownTaskError
from .model import BuildResult, Pipeline, Task, WatchRule
from .notifier import Notifier
from .registry import TaskRegistry
from .ui.console import get_console

logger = logging.getLogger(__name__)

DEFAULT_PIPELINE_FILE = "assetflow_pipeline.py"


class OutputAnnouncer(Protocol):
    async def announce(self, path: str) -> int: ...


# ----------------------------------------------------------------------
# Pipeline loading (local file)
# ----------------------------------------------------------------------

def load_pipeline_file(path: str | Path) -> Dict[str, Any]:
    """
    Execute a pipeline file and return its globals.

    The file must define either:
      - pipeline(config) -> Pipeline
      - PIPELINE = Pipeline(...)
    and may define CONFIG = BuildConfig(...).
    """
    pf = Path(path).expanduser().resolve()
    if not pf.exists():
        raise FileNotFoundError(f"Pipeline file not found: {pf}")
    if pf.suffix != ".py":
        raise ValueError(f"Pipeline must be a .py file, got: {pf.name}")

    return runpy.run_path(str(pf), run_name=f"assetflow_pipeline_{pf.stem}")


def config_from_globals(globals_dict: Dict[str, Any], default: BuildConfig) -> BuildConfig:
    cfg = globals_dict.get("CONFIG")
    if cfg is None:
        return default
    if not isinstance(cfg, BuildConfig):
        raise TypeError(f"CONFIG must be a BuildConfig, got {type(cfg).__name__}")
    return cfg


def pipeline_from_globals(globals_dict: Dict[str, Any], config: BuildConfig) -> Pipeline:
    if "pipeline" in globals_dict and callable(globals_dict["pipeline"]):
        result = globals_dict["pipeline"](config)
    elif "PIPELINE" in globals_dict:
        result = globals_dict["PIPELINE"]
    else:
        result = None

    if not isinstance(result, Pipeline):
        raise TypeError(
            "Pipeline file must return/define a Pipeline. "
            "Define pipeline(config) -> Pipeline or PIPELINE = Pipeline(...)."
        )
    return result


def load_pipeline(path: str | Path, config: BuildConfig) -> Pipeline:
    return pipeline_from_globals(load_pipeline_file(path), config)


def prepare_registry(pipeline: Pipeline) -> TaskRegistry:
    """
    Register every task, check dependencies and watch rules, then freeze.
    Unresolved names and cycles raise here, before anything runs.
    """
    registry = TaskRegistry(pipeline.tasks)
    registry.validate()
    for rule in pipeline.watch_rules:
        check_watch_rule(registry, rule)
    registry.freeze()
    return registry


def check_watch_rule(registry: TaskRegistry, rule: WatchRule) -> None:
    for name in rule.tasks:
        if name not in registry:
            raise UnknownTaskError(name, known=registry.names(), referrer=f"watch {list(rule.patterns)}")


# ----------------------------------------------------------------------
# Runner
# ----------------------------------------------------------------------

class PipelineRunner:
    """
    Runs a named task after its dependencies.

    Dependencies run depth-first in declared order, each at most once per
    `run` call. Failures are caught at the action boundary and returned as
    BuildResult failures; they never propagate out of `run`.
    """

    def __init__(
        self,
        registry: TaskRegistry,
        *,
        notifier: Optional[Notifier] = None,
        emitter: Optional[OutputAnnouncer] = None,
        fail_fast: bool = True,
    ):
        self.registry = registry
        self.notifier = notifier or Notifier()
        self.emitter = emitter
        self.fail_fast = fail_fast
        self._locks: Dict[str, asyncio.Lock] = {}

    async def run(self, name: str) -> BuildResult:
        self.registry.resolve(name)
        memo: Dict[str, BuildResult] = {}
        return await self._run(name, memo, ())

    async def run_many(self, names: Iterable[str]) -> List[BuildResult]:
        return [await self.run(n) for n in names]

    async def _run(self, name: str, memo: Dict[str, BuildResult], stack: tuple[str, ...]) -> BuildResult:
        if name in memo:
            return memo[name]
        if name in stack:
            raise CyclicDependencyError(list(stack) + [name])

        task = self.registry.resolve(name)

        failed: Optional[BuildResult] = None
        for dep in task.needs:
            r = await self._run(dep, memo, stack + (name,))
            if not r.ok:
                failed = failed or r
                if self.fail_fast:
                    break

        if failed is not None:
            # the originating task has already been reported
            result = BuildResult.failure(name, failed.message, origin=failed.origin)
            logger.info("skipping %s: dependency %s failed", name, failed.origin)
        else:
            result = await self._execute(task)
            self.notifier.report(result)
            if result.ok:
                await self._announce(task)

        memo[name] = result
        return result

    def _lock(self, name: str) -> asyncio.Lock:
        lock = self._locks.get(name)
        if lock is None:
            lock = self._locks[name] = asyncio.Lock()
        return lock

    async def _execute(self, task: Task) -> BuildResult:
        # overlapping runs of one task queue up behind each other
        async with self._lock(task.name):
            get_console().print_task_start(task.name)
            logger.debug("running task %s", task.name)
            try:
                value = task.action()
                if inspect.isawaitable(value):
                    value = await value
            except BuildError as e:
                return BuildResult.failure(task.name, str(e))
            except OSError as e:
                return BuildResult.failure(task.name, f"io_error: {e}")
            except Exception as e:
                logger.exception("task %s raised", task.name)
                return BuildResult.failure(task.name, f"{type(e).__name__}: {e}")

        return BuildResult.success(task.name, value if isinstance(value, str) else "")

    async def _announce(self, task: Task) -> None:
        if self.emitter is None:
            return
        for path in task.outputs:
            try:
                await self.emitter.announce(path)
            except Exception:
                logger.exception("live reload announce failed for %s", path)
