# watcher.py
from __future__ import annotations

import asyncio
import logging
import os
import re
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .globs import glob_to_regex, static_base
from .model import WatchRule
from .registry import TaskRegistry
from .runner import PipelineRunner, check_watch_rule

logger = logging.getLogger(__name__)

_IGNORED_EVENTS = {"opened", "closed_no_write"}


class WatchState(str, Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    DISPATCHING = "dispatching"


class _EventBridge(FileSystemEventHandler):
    """Hands observer-thread events to the controller's event loop."""

    def __init__(self, controller: "WatchController"):
        self.controller = controller

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type in _IGNORED_EVENTS:
            return
        paths = [event.src_path]
        dest = getattr(event, "dest_path", "")
        if dest:
            paths.append(dest)
        for p in paths:
            self.controller.notify_threadsafe(os.fsdecode(p))


class WatchController:
    """
    Maps filesystem changes to task runs.

    Idle -> Debouncing -> Dispatching -> Idle. Events during the debounce
    window are coalesced; events during dispatch are queued for another
    window. Each distinct task triggered in a window runs once.
    """

    def __init__(
        self,
        registry: TaskRegistry,
        runner: PipelineRunner,
        *,
        root: str | Path = ".",
        debounce_seconds: float = 0.2,
        observer_factory: Callable[[], Observer] = Observer,
    ):
        self.registry = registry
        self.runner = runner
        self.root = Path(root).resolve()
        self.debounce_seconds = debounce_seconds
        self.rules: List[WatchRule] = []
        self.state = WatchState.IDLE

        self._matchers: Dict[str, re.Pattern] = {}
        self._observer_factory = observer_factory
        self._observer: Optional[Observer] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pending: Dict[str, None] = {}  # ordered set
        self._worker: Optional[asyncio.Task] = None
        self._idle = asyncio.Event()
        self._idle.set()

    def watch(self, rule: WatchRule) -> None:
        if self._observer is not None:
            raise RuntimeError("watch rules must be added before start()")
        check_watch_rule(self.registry, rule)
        self.rules.append(rule)
        for p in rule.patterns:
            if p not in self._matchers:
                self._matchers[p] = glob_to_regex(p)

    @property
    def patterns(self) -> List[str]:
        return list(self._matchers)

    def matching_tasks(self, rel_path: str) -> List[str]:
        out: Dict[str, None] = {}
        for rule in self.rules:
            if any(self._matchers[p].match(rel_path) for p in rule.patterns):
                for name in rule.tasks:
                    out.setdefault(name, None)
        return list(out)

    def _relative(self, path: str) -> str:
        p = Path(path)
        if p.is_absolute():
            try:
                p = p.resolve().relative_to(self.root)
            except ValueError:
                return p.as_posix()
        return p.as_posix()

    # ------------------------------------------------------------------
    # Event entry points
    # ------------------------------------------------------------------

    def notify(self, path: str) -> None:
        """Record a change to `path`. Must be called on the event loop thread."""
        rel = self._relative(path)
        tasks = self.matching_tasks(rel)
        if not tasks:
            return
        logger.debug("change %s -> %s (state=%s)", rel, tasks, self.state.value)

        for name in tasks:
            self._pending.setdefault(name, None)

        if self.state is WatchState.IDLE:
            self.state = WatchState.DEBOUNCING
            self._idle.clear()
            self._worker = asyncio.get_running_loop().create_task(self._cycle())

    def notify_threadsafe(self, path: str) -> None:
        if self._loop is None:
            return
        self._loop.call_soon_threadsafe(self.notify, path)

    async def _cycle(self) -> None:
        try:
            while self._pending:
                self.state = WatchState.DEBOUNCING
                await asyncio.sleep(self.debounce_seconds)

                self.state = WatchState.DISPATCHING
                batch = list(self._pending)
                self._pending.clear()
                for name in batch:
                    try:
                        await self.runner.run(name)
                    except Exception:
                        logger.exception("watch dispatch of %s failed", name)
        finally:
            self.state = WatchState.IDLE
            self._idle.set()

    async def drain(self) -> None:
        """Wait until every pending trigger has been dispatched."""
        await self._idle.wait()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Subscribe once per unique pattern. Call from inside the event loop."""
        self._loop = asyncio.get_running_loop()
        observer = self._observer_factory()
        bridge = _EventBridge(self)
        for pattern in self._matchers:
            base = self._existing_dir(self.root / static_base(pattern))
            observer.schedule(bridge, str(base), recursive=True)
            logger.debug("watching %s under %s", pattern, base)
        observer.start()
        self._observer = observer

    def _existing_dir(self, path: Path) -> Path:
        while not path.is_dir() and path != self.root and path.parent != path:
            path = path.parent
        return path

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join()
        self._observer = None

    async def run_forever(self) -> None:
        self.start()
        try:
            await asyncio.Event().wait()
        finally:
            self.stop()
