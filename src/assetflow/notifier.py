# notifier.py
from __future__ import annotations

import asyncio
import logging
import platform
import shutil
import subprocess
from functools import partial
from typing import Callable, List, Optional, Set

from .model import BuildResult
from .ui.console import Console, get_console

logger = logging.getLogger(__name__)

Sink = Callable[[BuildResult], None]


def console_sink(console: Optional[Console] = None) -> Sink:
    def _sink(result: BuildResult) -> None:
        c = console or get_console()
        if result.ok:
            c.print_success(result.task, result.message)
        else:
            c.print_failure(result.task, result.message, origin=result.origin)

    return _sink


def desktop_sink(title: str = "assetflow") -> Sink:
    """
    Toast via notify-send (Linux) or osascript (macOS).
    Raises when neither is available; the notifier logs and carries on.
    """
    def _sink(result: BuildResult) -> None:
        if result.ok:
            text = f"{result.task}: {result.message or 'done'}"
        else:
            text = f"{result.task} failed: {result.message.splitlines()[0] if result.message else 'error'}"

        if platform.system() == "Darwin":
            script = f'display notification {_applescript_str(text)} with title {_applescript_str(title)}'
            cmd = ["osascript", "-e", script]
        else:
            if shutil.which("notify-send") is None:
                raise FileNotFoundError("notify-send is not available")
            cmd = ["notify-send", title, text]

        subprocess.run(cmd, check=True, capture_output=True, timeout=5)

    # runs in a worker thread when a loop is active
    _sink.blocking = True
    return _sink


def _applescript_str(s: str) -> str:
    return '"' + s.replace("\\", "\\\\").replace('"', '\\"') + '"'


class Notifier:
    """
    Surfaces one BuildResult per executed task.

    `report` never raises: a broken sink is logged and skipped so that
    notification problems cannot fail a build or stop the watch loop.
    Sinks marked `blocking` (desktop toasts) run in a worker thread while an
    event loop is running; `drain()` waits for them.
    """

    def __init__(self, sinks: Optional[List[Sink]] = None):
        self.sinks: List[Sink] = list(sinks) if sinks is not None else [console_sink()]
        self._pending: Set[asyncio.Future] = set()

    def report(self, result: BuildResult) -> None:
        if result.ok:
            logger.info("task %s succeeded", result.task)
        else:
            logger.warning("task %s failed (origin=%s): %s", result.task, result.origin, result.message)

        for sink in self.sinks:
            if getattr(sink, "blocking", False) and self._offload(sink, result):
                continue
            try:
                sink(result)
            except Exception:
                logger.exception("notification sink %r failed for task %s", sink, result.task)

    def _offload(self, sink: Sink, result: BuildResult) -> bool:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return False
        fut = loop.run_in_executor(None, sink, result)
        self._pending.add(fut)
        fut.add_done_callback(partial(self._sink_done, sink, result.task))
        return True

    def _sink_done(self, sink: Sink, task: str, fut: asyncio.Future) -> None:
        self._pending.discard(fut)
        if fut.cancelled():
            return
        exc = fut.exception()
        if exc is not None:
            logger.error("notification sink %r failed for task %s", sink, task, exc_info=exc)

    async def drain(self) -> None:
        """Wait for notifications still running in worker threads."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def build_notifier(*, desktop: bool = False, console: Optional[Console] = None) -> Notifier:
    sinks: List[Sink] = [console_sink(console)]
    if desktop:
        sinks.append(desktop_sink())
    return Notifier(sinks)
