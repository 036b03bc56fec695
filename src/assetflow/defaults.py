# defaults.py
# The stock front-end pipeline: LESS -> CSS, scripts -> one bundle, images
# and fonts copied, all from `source_dir` into `dest_dir`.
from __future__ import annotations

from functools import partial
from pathlib import Path
from typing import Optional, Sequence

from .assets import clean_outputs, compile_styles, concat_scripts, copy_assets
from .config import BuildConfig
from .dsl import pipeline_of, task, watch
from .model import Pipeline

STYLE_ENTRY = "less/style.less"
DEFAULT_SCRIPTS = ("js/**/*.js",)
IMAGES = "img/**/*"
FONTS = "less/font-awesome/fonts/**/*"

DEFAULT_TASKS = ("css", "js", "images")


def pipeline(config: BuildConfig, scripts: Optional[Sequence[str]] = None) -> Pipeline:
    """
    Build the default pipeline for `config`.

    `scripts` lists bundle sources (files or globs relative to the source
    dir) in concatenation order.
    """
    root = Path(config.project_root)
    src = config.source_path
    dest = config.dest_path

    def out(*parts: str) -> str:
        # project-relative, as announced to live-reload clients
        return Path(config.dest_dir, *parts).as_posix()

    def watched(pattern: str) -> str:
        return Path(config.source_dir, pattern).as_posix()

    css_out = out("css", "style.css")
    js_out = out("js", "script.js")

    return pipeline_of(
        task(
            "css",
            partial(compile_styles, "css", src / STYLE_ENTRY, root / css_out, config=config),
            outputs=[css_out],
            description="Compile LESS",
        ),
        task(
            "js",
            partial(concat_scripts, "js", list(scripts or DEFAULT_SCRIPTS), root / js_out, base=src, config=config),
            outputs=[js_out],
            description="Concatenate JavaScript",
        ),
        task(
            "images",
            partial(copy_assets, "images", IMAGES, dest / "img", base=src),
            outputs=[out("img")],
            description="Copy images",
        ),
        task(
            "fonts",
            partial(copy_assets, "fonts", FONTS, dest / "fonts", base=src),
            outputs=[out("fonts")],
            description="Copy fonts",
        ),
        task(
            "clean",
            partial(clean_outputs, "clean", [out("css"), out("js"), out("img"), out("fonts")], config=config),
            description="Remove generated files",
        ),
        # css, js and images are independent leaves, run in this order
        task("default", needs=DEFAULT_TASKS, description="Build everything"),

        watch(watched("less/**/*.less"), tasks="css"),
        watch(watched("img/**/*"), tasks="images"),
        watch(watched("js/**/*"), tasks="js"),
    )
