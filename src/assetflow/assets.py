# assets.py
from __future__ import annotations

import asyncio
import shutil
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .config import BuildConfig
from .errors import AssetIOError, BuildError, CompileError
from .globs import expand, has_magic, static_base
from .livereload import livereload_snippet

TOOL_HINTS = {
    "lessc": "Install less (e.g., npm install -g less) or fix PATH.",
    "cleancss": "Install clean-css-cli (e.g., npm install -g clean-css-cli) or disable minify.",
    "uglifyjs": "Install uglify-js (e.g., npm install -g uglify-js) or disable minify.",
    "node": "Install Node.js or fix PATH.",
    "eslint": "Install eslint (e.g., npm install -g eslint) or fix PATH.",
}


# ---------------------------------------------------------------------
# External tools
# ---------------------------------------------------------------------

async def run_tool(
    task: str,
    argv: Sequence[str],
    *,
    input_text: Optional[str] = None,
    cwd: str | Path | None = None,
) -> str:
    """Run a tool, feeding `input_text` on stdin; return its stdout."""
    tool = Path(argv[0]).name
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.PIPE if input_text is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd) if cwd is not None else None,
        )
    except FileNotFoundError:
        raise BuildError(
            kind="tool_unavailable",
            task=task,
            message=f"{tool} is not available",
            details={"hint": TOOL_HINTS.get(tool, f"Install {tool} or fix PATH."), "tool": tool},
        ) from None

    stdout, stderr = await proc.communicate(input_text.encode("utf-8") if input_text is not None else None)
    if proc.returncode != 0:
        err = stderr.decode("utf-8", errors="replace").strip()
        first = err.splitlines()[0] if err else "no error output"
        raise CompileError(
            task,
            f"{tool} failed (exit={proc.returncode}): {first}",
            exit_code=proc.returncode,
            stderr=err[-4000:],
        )
    return stdout.decode("utf-8")


# ---------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------

def write_atomic(dest: Path, text: str) -> None:
    dest.parent.mkdir(parents=True, exist_ok=True)
    tmp = dest.with_name(dest.name + ".tmp")
    try:
        tmp.write_text(text, encoding="utf-8")
        tmp.replace(dest)
    finally:
        if tmp.exists():
            tmp.unlink(missing_ok=True)


def expand_sources(task: str, sources: Iterable[str], base: Path) -> List[Path]:
    """
    Expand files and globs in the order given, dropping repeats.
    A plain file path that does not exist is an error; an empty glob is not.
    """
    out: List[Path] = []
    seen = set()
    for src in sources:
        if has_magic(src):
            matches = expand(base, src)
        else:
            p = base / src
            if not p.is_file():
                raise AssetIOError(task, f"source not found: {src}", path=str(p))
            matches = [p]
        for m in matches:
            key = m.resolve()
            if key not in seen:
                seen.add(key)
                out.append(m)
    return out


# ---------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------

async def compile_styles(task: str, entry: Path, dest: Path, *, config: BuildConfig) -> str:
    if not entry.is_file():
        raise AssetIOError(task, f"style entry not found: {entry}", path=str(entry))

    css = await run_tool(task, [*config.less_command, str(entry)], cwd=entry.parent)
    if config.minify:
        css = await run_tool(task, list(config.css_minify_command), input_text=css)

    write_atomic(dest, css)
    return f"compiled {entry.name}"


async def concat_scripts(task: str, sources: Sequence[str], dest: Path, *, base: Path, config: BuildConfig) -> str:
    files = expand_sources(task, sources, base)
    if not files:
        raise AssetIOError(task, "no scripts matched", sources=", ".join(sources))

    parts = []
    for f in files:
        try:
            parts.append(f.read_text(encoding="utf-8"))
        except UnicodeDecodeError as e:
            raise AssetIOError(task, f"script is not valid UTF-8: {f.name}", path=str(f), reason=str(e)) from None
    bundle = "\n".join(parts)
    if config.minify:
        bundle = await run_tool(task, list(config.js_minify_command), input_text=bundle)
    if config.append_livereload_script:
        bundle = bundle.rstrip("\n") + "\n" + livereload_snippet(config.livereload_port)

    write_atomic(dest, bundle)
    return f"bundled {len(files)} script(s)"


def _copy_matches(pattern: str, dest_dir: Path, base: Path) -> int:
    root = base / static_base(pattern)
    count = 0
    for src in expand(base, pattern):
        target = dest_dir / src.relative_to(root)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(target.name + ".tmp")
        try:
            shutil.copy2(src, tmp)
            tmp.replace(target)
        finally:
            tmp.unlink(missing_ok=True)
        count += 1
    return count


async def copy_assets(task: str, pattern: str, dest_dir: Path, *, base: Path) -> str:
    count = await asyncio.to_thread(_copy_matches, pattern, dest_dir, base)
    return f"copied {count} file(s)"


def _check_clean_target(task: str, path: Path, config: BuildConfig) -> None:
    dest = config.dest_path
    source = config.source_path
    if not path.is_relative_to(dest):
        raise AssetIOError(task, f"refusing to clean outside {config.dest_dir}: {path}", path=str(path))
    if source.is_relative_to(path):
        raise AssetIOError(task, f"refusing to clean the source tree: {path}", path=str(path))


async def clean_outputs(task: str, paths: Iterable[str], *, config: BuildConfig) -> str:
    targets = [(Path(config.project_root) / p).resolve() for p in paths]
    # check everything before deleting anything
    for t in targets:
        _check_clean_target(task, t, config)

    removed = 0
    for t in targets:
        if t.is_dir():
            await asyncio.to_thread(shutil.rmtree, t)
            removed += 1
        elif t.exists():
            t.unlink()
            removed += 1
    return f"removed {removed} path(s)"
