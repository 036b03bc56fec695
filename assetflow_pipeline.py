# assetflow_pipeline.py
# Pipeline for the bundled template: the stock tasks plus a lint gate on the
# script bundle.
from __future__ import annotations

from functools import partial

from assetflow import BuildConfig, defaults, pipeline_of, task
from assetflow.assets import run_tool

CONFIG = BuildConfig(
    source_dir="template",
    dest_dir="template/dist",
    minify=True,
    # If you do not have the live reload extension installed, set this to
    # True and the loader is appended to the bundle.
    append_livereload_script=False,
)

SCRIPTS = [
    "js/GlobalFunction.js",
    "js/scripts.js",
    "js/libs/bootstrap.min.js",
    "js/libs/FitVids.js-master/jquery.fitvids.js",
    "js/fitvid.js",
    "js/inner-plan.js",
]


def pipeline(config: BuildConfig):
    stock = defaults.pipeline(config, scripts=SCRIPTS)
    lint = task(
        "lint",
        partial(
            run_tool,
            "lint",
            ["eslint", str(config.source_path / "js" / "inner-plan.js")],
            cwd=config.project_root,
        ),
        description="Lint page scripts",
    )
    tasks = [lint] + [
        # rebuild js only after lint passes
        t if t.name != "js" else task(t.name, t.action, needs=["lint"], outputs=t.outputs, description=t.description)
        for t in stock.tasks
    ]
    return pipeline_of(*tasks, *stock.watch_rules)
