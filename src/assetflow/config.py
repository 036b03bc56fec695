# config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Mapping, Optional

ENV_PREFIX = "ASSETFLOW_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class BuildConfig:
    """
    Options for one build process.

    Passed explicitly to the pipeline-construction function; nothing reads a
    module-level config.
    """
    project_root: Path = field(default_factory=Path.cwd)
    source_dir: str = "template"
    dest_dir: str = "template/dist"

    # Should CSS & JS be compressed?
    minify: bool = True
    # Append the live-reload client loader to the script bundle, for browsers
    # without the live-reload extension.
    append_livereload_script: bool = False

    livereload_host: str = "127.0.0.1"
    livereload_port: int = 35729

    debounce_seconds: float = 0.2
    fail_fast: bool = True
    desktop_notifications: bool = False

    less_command: tuple[str, ...] = ("lessc",)
    css_minify_command: tuple[str, ...] = ("cleancss",)
    js_minify_command: tuple[str, ...] = ("uglifyjs", "--compress", "--mangle")

    @property
    def source_path(self) -> Path:
        return (Path(self.project_root) / self.source_dir).resolve()

    @property
    def dest_path(self) -> Path:
        return (Path(self.project_root) / self.dest_dir).resolve()

    def with_overrides(self, **overrides) -> "BuildConfig":
        """Return a copy with every non-None override applied."""
        values = {k: v for k, v in overrides.items() if v is not None}
        if "project_root" in values:
            values["project_root"] = Path(values["project_root"])
        return replace(self, **values)

    def with_env(self, environ: Optional[Mapping[str, str]] = None) -> "BuildConfig":
        """
        Apply ASSETFLOW_* environment variables, e.g. ASSETFLOW_MINIFY=0 or
        ASSETFLOW_LIVERELOAD_PORT=35730. Tool commands are split on spaces.
        """
        environ = os.environ if environ is None else environ
        overrides: dict = {}
        for f in fields(self):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            overrides[f.name] = _coerce(f.name, raw, getattr(self, f.name))
        return self.with_overrides(**overrides)


def _coerce(name: str, raw: str, current):
    if isinstance(current, bool):
        v = raw.strip().lower()
        if v in _TRUE:
            return True
        if v in _FALSE:
            return False
        raise ValueError(f"{ENV_PREFIX}{name.upper()} must be a boolean, got {raw!r}")
    if isinstance(current, int):
        return int(raw)
    if isinstance(current, float):
        return float(raw)
    if isinstance(current, tuple):
        return tuple(raw.split())
    if isinstance(current, Path):
        return Path(raw)
    return raw
