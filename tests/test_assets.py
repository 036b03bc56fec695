# tests/test_assets.py

from __future__ import annotations

import dataclasses
from pathlib import Path

import pytest

from assetflow import assets
from assetflow.assets import clean_outputs, compile_styles, concat_scripts, copy_assets, run_tool
from assetflow.config import BuildConfig
from assetflow.errors import AssetIOError, BuildError, CompileError

from .fakes import CAT_TOOL, FAIL_TOOL, SQUASH_TOOL, make_tool


def _write(path: Path, text: str = "x") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


# ----------------------------------------------------------------------
# copy_assets
# ----------------------------------------------------------------------

@pytest.mark.asyncio
async def test_copy_assets_keeps_structure(config) -> None:
    src = config.source_path
    _write(src / "img" / "logo.png", "png")
    _write(src / "img" / "icons" / "x.svg", "<svg/>")
    dest = config.dest_path / "img"

    msg = await copy_assets("images", "img/**/*", dest, base=src)

    assert msg == "copied 2 file(s)"
    assert (dest / "logo.png").read_text() == "png"
    assert (dest / "icons" / "x.svg").read_text() == "<svg/>"
    assert not list(dest.rglob("*.tmp"))


@pytest.mark.asyncio
async def test_copy_assets_without_matches(config) -> None:
    msg = await copy_assets("fonts", "less/font-awesome/fonts/**/*", config.dest_path / "fonts", base=config.source_path)

    assert msg == "copied 0 file(s)"


@pytest.mark.asyncio
async def test_failed_copy_leaves_no_temp_file(config, monkeypatch) -> None:
    src = config.source_path
    _write(src / "img" / "logo.png", "png")
    dest = config.dest_path / "img"

    def half_copy(a, b):
        Path(b).write_text("pn", encoding="utf-8")
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(assets.shutil, "copy2", half_copy)

    with pytest.raises(OSError):
        await copy_assets("images", "img/**/*", dest, base=src)

    assert not list(dest.rglob("*"))


# ----------------------------------------------------------------------
# concat_scripts
# ----------------------------------------------------------------------

@pytest.mark.asyncio
async def test_concat_keeps_declared_order_and_drops_repeats(config) -> None:
    src = config.source_path
    _write(src / "js" / "libs" / "jquery.js", "var jq;")
    _write(src / "js" / "app.js", "var app;")
    _write(src / "js" / "widgets.js", "var w;")
    dest = config.dest_path / "js" / "script.js"

    msg = await concat_scripts(
        "js",
        ["js/libs/jquery.js", "js/*.js", "js/app.js"],
        dest,
        base=src,
        config=config,
    )

    assert msg == "bundled 3 script(s)"
    assert dest.read_text() == "var jq;\nvar app;\nvar w;"


@pytest.mark.asyncio
async def test_concat_missing_file_is_an_error(config) -> None:
    dest = config.dest_path / "js" / "script.js"

    with pytest.raises(AssetIOError) as exc:
        await concat_scripts("js", ["js/missing.js"], dest, base=config.source_path, config=config)

    assert exc.value.kind == "io_error"
    assert "js/missing.js" in exc.value.message
    assert not dest.exists()


@pytest.mark.asyncio
async def test_concat_rejects_non_utf8_source(config) -> None:
    bad = config.source_path / "js" / "legacy.js"
    bad.parent.mkdir(parents=True)
    bad.write_bytes(b"var s = '\xff\xfe';")

    with pytest.raises(AssetIOError) as exc:
        await concat_scripts("js", ["js/legacy.js"], config.dest_path / "s.js", base=config.source_path, config=config)

    assert "legacy.js" in exc.value.message
    assert not (config.dest_path / "s.js").exists()


@pytest.mark.asyncio
async def test_concat_with_nothing_matched(config) -> None:
    with pytest.raises(AssetIOError):
        await concat_scripts("js", ["js/**/*.js"], config.dest_path / "s.js", base=config.source_path, config=config)


@pytest.mark.asyncio
async def test_concat_minifies_then_appends_snippet(tmp_path: Path, config) -> None:
    _write(config.source_path / "js" / "a.js", "var  a =\n  1;")
    cfg = dataclasses.replace(
        config,
        minify=True,
        append_livereload_script=True,
        livereload_port=35730,
        js_minify_command=make_tool(tmp_path, "squash", SQUASH_TOOL),
    )
    dest = cfg.dest_path / "js" / "script.js"

    await concat_scripts("js", ["js/*.js"], dest, base=cfg.source_path, config=cfg)

    text = dest.read_text()
    assert text.startswith("var a = 1;\n")
    assert ":35730/livereload.js?snipver=1" in text


# ----------------------------------------------------------------------
# compile_styles
# ----------------------------------------------------------------------

@pytest.mark.asyncio
async def test_compile_styles_writes_output(tmp_path: Path, config) -> None:
    entry = _write(config.source_path / "less" / "style.less", "body { color: red; }")
    cfg = dataclasses.replace(config, less_command=make_tool(tmp_path, "lessc", CAT_TOOL))
    dest = cfg.dest_path / "css" / "style.css"

    msg = await compile_styles("css", entry, dest, config=cfg)

    assert msg == "compiled style.less"
    assert dest.read_text() == "body { color: red; }"


@pytest.mark.asyncio
async def test_compile_styles_minifies(tmp_path: Path, config) -> None:
    entry = _write(config.source_path / "less" / "style.less", "body {\n  color: red;\n}\n")
    cfg = dataclasses.replace(
        config,
        minify=True,
        less_command=make_tool(tmp_path, "lessc", CAT_TOOL),
        css_minify_command=make_tool(tmp_path, "cleancss", SQUASH_TOOL),
    )
    dest = cfg.dest_path / "css" / "style.css"

    await compile_styles("css", entry, dest, config=cfg)

    assert dest.read_text() == "body { color: red; }"


@pytest.mark.asyncio
async def test_compile_error_leaves_no_output(tmp_path: Path, config) -> None:
    entry = _write(config.source_path / "less" / "style.less", "body { color: ")
    cfg = dataclasses.replace(config, less_command=make_tool(tmp_path, "lessc", FAIL_TOOL))
    dest = cfg.dest_path / "css" / "style.css"

    with pytest.raises(CompileError) as exc:
        await compile_styles("css", entry, dest, config=cfg)

    assert exc.value.kind == "compile_error"
    assert exc.value.details["exit_code"] == 2
    assert "line 3" in exc.value.message
    assert not dest.exists()


@pytest.mark.asyncio
async def test_missing_tool_is_reported(config) -> None:
    entry = _write(config.source_path / "less" / "style.less", "body {}")
    cfg = dataclasses.replace(config, less_command=("assetflow-no-such-lessc",))

    with pytest.raises(BuildError) as exc:
        await compile_styles("css", entry, cfg.dest_path / "css" / "style.css", config=cfg)

    assert exc.value.kind == "tool_unavailable"
    assert exc.value.details["tool"] == "assetflow-no-such-lessc"


@pytest.mark.asyncio
async def test_missing_style_entry(config) -> None:
    with pytest.raises(AssetIOError):
        await compile_styles("css", config.source_path / "less" / "style.less", config.dest_path / "style.css", config=config)


@pytest.mark.asyncio
async def test_missing_eslint_gets_a_hint(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("PATH", str(tmp_path))

    with pytest.raises(BuildError) as exc:
        await run_tool("lint", ["eslint", "js/app.js"])

    assert exc.value.kind == "tool_unavailable"
    assert "npm install -g eslint" in exc.value.details["hint"]


@pytest.mark.asyncio
async def test_run_tool_returns_stdout(tmp_path: Path) -> None:
    out = await run_tool("js", make_tool(tmp_path, "squash", SQUASH_TOOL), input_text="a\n\n  b")
    assert out == "a b"


# ----------------------------------------------------------------------
# clean_outputs
# ----------------------------------------------------------------------

@pytest.mark.asyncio
async def test_clean_removes_outputs(config) -> None:
    _write(config.dest_path / "css" / "style.css")
    _write(config.dest_path / "js" / "script.js")

    msg = await clean_outputs("clean", ["out/css", "out/js", "out/img"], config=config)

    assert msg == "removed 2 path(s)"
    assert not (config.dest_path / "css").exists()
    assert not (config.dest_path / "js").exists()
    assert config.source_path.exists()


@pytest.mark.asyncio
@pytest.mark.parametrize("target", ["src", "..", "."])
async def test_clean_refuses_paths_outside_dest(config, target: str) -> None:
    keep = _write(config.dest_path / "css" / "style.css")

    with pytest.raises(AssetIOError):
        await clean_outputs("clean", ["out/css", target], config=config)

    # nothing removed when any target is rejected
    assert keep.exists()


@pytest.mark.asyncio
async def test_clean_refuses_dest_containing_sources(tmp_path: Path) -> None:
    cfg = BuildConfig(project_root=tmp_path, source_dir="template/dist/src", dest_dir="template/dist")
    _write(cfg.source_path / "less" / "style.less")

    with pytest.raises(AssetIOError):
        await clean_outputs("clean", ["template/dist"], config=cfg)

    assert (cfg.source_path / "less" / "style.less").exists()
