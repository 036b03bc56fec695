# tests/test_defaults.py

from __future__ import annotations

import dataclasses
from pathlib import Path

import pytest

from assetflow import defaults
from assetflow.runner import PipelineRunner, prepare_registry

from .fakes import CAT_TOOL, FakeEmitter, make_tool


def _write(path: Path, text: str = "x") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def test_stock_tasks_and_dependencies(config) -> None:
    registry = prepare_registry(defaults.pipeline(config))

    assert registry.names() == ["css", "js", "images", "fonts", "clean", "default"]
    assert registry.resolve("default").needs == ("css", "js", "images")
    assert registry.order("default") == ["css", "js", "images", "default"]


def test_outputs_are_project_relative(config) -> None:
    registry = prepare_registry(defaults.pipeline(config))

    assert registry.resolve("css").outputs == ("out/css/style.css",)
    assert registry.resolve("js").outputs == ("out/js/script.js",)
    assert registry.resolve("images").outputs == ("out/img",)


def test_watch_rules_follow_source_dir(config) -> None:
    p = defaults.pipeline(config)

    assert [(r.patterns, r.tasks) for r in p.watch_rules] == [
        (("src/less/**/*.less",), ("css",)),
        (("src/img/**/*",), ("images",)),
        (("src/js/**/*",), ("js",)),
    ]


@pytest.mark.asyncio
async def test_default_builds_everything(tmp_path: Path, config, notifier) -> None:
    src = config.source_path
    _write(src / "less" / "style.less", "a { b: c; }")
    _write(src / "js" / "libs" / "lib.js", "var lib;")
    _write(src / "js" / "app.js", "var app;")
    _write(src / "img" / "logo.png", "png")
    cfg = dataclasses.replace(config, less_command=make_tool(tmp_path, "lessc", CAT_TOOL))
    emitter = FakeEmitter()

    runner = PipelineRunner(prepare_registry(defaults.pipeline(cfg)), notifier=notifier, emitter=emitter)
    result = await runner.run("default")

    dest = cfg.dest_path
    assert result.ok
    assert (dest / "css" / "style.css").read_text() == "a { b: c; }"
    # sorted glob expansion
    assert (dest / "js" / "script.js").read_text() == "var app;\nvar lib;"
    assert (dest / "img" / "logo.png").read_text() == "png"
    assert [r.task for r in notifier.results] == ["css", "js", "images", "default"]
    assert emitter.announced == ["out/css/style.css", "out/js/script.js", "out/img"]


@pytest.mark.asyncio
async def test_explicit_script_order(config, notifier) -> None:
    src = config.source_path
    _write(src / "js" / "libs" / "lib.js", "var lib;")
    _write(src / "js" / "app.js", "var app;")

    p = defaults.pipeline(config, scripts=["js/libs/lib.js", "js/app.js"])
    result = await PipelineRunner(prepare_registry(p), notifier=notifier).run("js")

    assert result.ok
    assert (config.dest_path / "js" / "script.js").read_text() == "var lib;\nvar app;"


@pytest.mark.asyncio
async def test_clean_after_build(config, notifier) -> None:
    _write(config.dest_path / "css" / "style.css")
    _write(config.dest_path / "img" / "logo.png")

    result = await PipelineRunner(prepare_registry(defaults.pipeline(config)), notifier=notifier).run("clean")

    assert result.ok
    assert result.message == "removed 2 path(s)"
    assert config.source_path.exists()
