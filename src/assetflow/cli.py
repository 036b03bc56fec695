# cli.py
from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import click

from assetflow import defaults
from assetflow.config import BuildConfig
from assetflow.errors import BuildError
from assetflow.livereload import LiveReloadEmitter
from assetflow.logging_setup import setup_logging
from assetflow.model import Pipeline
from assetflow.notifier import build_notifier
from assetflow.registry import TaskRegistry
from assetflow.runner import (
    DEFAULT_PIPELINE_FILE,
    PipelineRunner,
    config_from_globals,
    load_pipeline_file,
    pipeline_from_globals,
    prepare_registry,
)
from assetflow.ui.console import Console, get_console, set_console
from assetflow.watcher import WatchController


@dataclass
class Project:
    config: BuildConfig
    pipeline: Pipeline
    registry: TaskRegistry
    source: str  # pipeline file name, or "built-in"


def discover_pipeline(pipeline_arg: str | None, root: Path) -> Optional[Path]:
    """
    Pipeline file from argument, else assetflow_pipeline.py in the project
    root, else None (use the built-in pipeline).
    """
    console = get_console()

    if pipeline_arg:
        path = Path(pipeline_arg)
        if not path.exists() and path.suffix != ".py":
            path = Path(str(path) + ".py")
        if not path.exists():
            console.print_error(
                "Pipeline file not found",
                f"Could not find pipeline file: {pipeline_arg}",
                suggestion=f"Create {DEFAULT_PIPELINE_FILE} or specify a different path:\n  assetflow run --pipeline my_pipeline.py",
            )
            sys.exit(1)
        return path

    default = root / DEFAULT_PIPELINE_FILE
    return default if default.exists() else None


def load_project(
    pipeline_arg: str | None,
    root: str | None,
    **overrides,
) -> Project:
    console = get_console()
    root_path = Path(root).resolve() if root else Path.cwd()
    base = BuildConfig(project_root=root_path)
    path = discover_pipeline(pipeline_arg, root_path)

    try:
        globals_dict = load_pipeline_file(path) if path else None
        config = config_from_globals(globals_dict, base) if globals_dict is not None else base
        config = config.with_env().with_overrides(project_root=root_path if root else None, **overrides)
        console.print_debug(f"config: {config}")

        if globals_dict is not None:
            pipeline = pipeline_from_globals(globals_dict, config)
        else:
            pipeline = defaults.pipeline(config)
    except BuildError as e:
        console.print_error("Invalid pipeline", str(e))
        sys.exit(1)
    except Exception as e:
        console.print_error(
            "Failed to load pipeline",
            f"Could not load pipeline from {path or 'built-in defaults'}",
            details=[str(e)],
        )
        if console.debug:
            import traceback
            traceback.print_exc()
        sys.exit(1)

    try:
        registry = prepare_registry(pipeline)
    except BuildError as e:
        console.print_error("Invalid pipeline", str(e))
        sys.exit(1)

    return Project(config=config, pipeline=pipeline, registry=registry, source=path.name if path else "built-in")


def pipeline_options(f):
    """Options shared by every command that loads a pipeline."""
    options = [
        click.option(
            "--pipeline",
            "pipeline_arg",
            default=None,
            help=f"Pipeline file path (defaults to {DEFAULT_PIPELINE_FILE} if present, else the built-in pipeline)",
        ),
        click.option("--root", default=None, help="Project root (defaults to the current directory)"),
        click.option("--minify/--no-minify", default=None, help="Compress CSS & JS output"),
        click.option(
            "--append-livereload/--no-append-livereload",
            "append_livereload_script",
            default=None,
            help="Append the live reload client loader to the script bundle",
        ),
        click.option("--fail-fast/--no-fail-fast", default=None, help="Stop starting dependencies after the first failure"),
    ]
    for option in reversed(options):
        f = option(f)
    return f


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.option("--log-dir", default=None, help="Also write a full debug log to DIR/assetflow.log")
@click.pass_context
def cli(ctx, debug, log_dir):
    """assetflow: front-end asset build, watch and live reload."""
    console = Console(debug=debug)
    set_console(console)
    setup_logging(debug=debug, log_dir=log_dir)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


def _run_tasks(ctx, names: tuple[str, ...], pipeline_arg, root, **overrides) -> None:
    console = get_console()
    project = load_project(pipeline_arg, root, **overrides)

    for name in names:
        if name not in project.registry:
            console.print_error(
                "Unknown task",
                f"No task named '{name}'",
                details=[f"Known tasks: {', '.join(project.registry.names())}"],
            )
            sys.exit(1)

    console.print_run_started(
        project=Path(project.config.project_root).name,
        pipeline=project.source,
        task_count=len(project.registry),
    )

    notifier = build_notifier(desktop=project.config.desktop_notifications)
    runner = PipelineRunner(project.registry, notifier=notifier, fail_fast=project.config.fail_fast)

    async def main():
        results = await runner.run_many(names)
        await notifier.drain()
        return results

    try:
        results = asyncio.run(main())
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)

    console.print_results({r.task: r.outcome.value for r in results})
    if not all(r.ok for r in results):
        sys.exit(1)


@cli.command()
@click.argument("tasks", nargs=-1)
@pipeline_options
@click.pass_context
def run(ctx, tasks, pipeline_arg, root, **overrides):
    """Run the named tasks (default: the 'default' task)."""
    _run_tasks(ctx, tuple(tasks) or ("default",), pipeline_arg, root, **overrides)


@cli.command()
@pipeline_options
@click.pass_context
def build(ctx, pipeline_arg, root, **overrides):
    """Build everything (the 'default' task)."""
    _run_tasks(ctx, ("default",), pipeline_arg, root, **overrides)


@cli.command()
@pipeline_options
@click.pass_context
def clean(ctx, pipeline_arg, root, **overrides):
    """Remove generated outputs (the 'clean' task)."""
    _run_tasks(ctx, ("clean",), pipeline_arg, root, **overrides)


@cli.command()
@pipeline_options
@click.option("--port", "livereload_port", default=None, type=int, help="Live reload port (default 35729)")
@click.option("--build-first/--no-build-first", default=False, help="Run the 'default' task before watching")
@click.pass_context
def watch(ctx, pipeline_arg, root, build_first, **overrides):
    """Watch sources, rebuild on change and live-reload browsers."""
    console = get_console()
    project = load_project(pipeline_arg, root, **overrides)
    config = project.config

    if not project.pipeline.watch_rules:
        console.print_error("Nothing to watch", f"{project.source} defines no watch rules.")
        sys.exit(1)

    async def main() -> None:
        emitter = LiveReloadEmitter(config.livereload_host, config.livereload_port)
        async with emitter:
            runner = PipelineRunner(
                project.registry,
                notifier=build_notifier(desktop=config.desktop_notifications),
                emitter=emitter,
                fail_fast=config.fail_fast,
            )
            controller = WatchController(
                project.registry,
                runner,
                root=config.project_root,
                debounce_seconds=config.debounce_seconds,
            )
            for rule in project.pipeline.watch_rules:
                controller.watch(rule)

            if build_first and "default" in project.registry:
                await runner.run("default")

            console.print_watch_started(controller.patterns, emitter.script_url)
            await controller.run_forever()

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        console.print_info("\nStopped watching")
        sys.exit(130)
    except OSError as e:
        console.print_error(
            "Live reload unavailable",
            f"Could not listen on {config.livereload_host}:{config.livereload_port}",
            details=[str(e)],
            suggestion="Pick another port:\n  assetflow watch --port 35730",
        )
        sys.exit(1)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)


@cli.command(name="list")
@pipeline_options
@click.pass_context
def list_tasks(ctx, pipeline_arg, root, **overrides):
    """List tasks, their dependencies and watch rules."""
    console = get_console()
    project = load_project(pipeline_arg, root, **overrides)

    console.print_info(f"Pipeline: {project.source}")
    console.print_info("\nTasks:")
    for t in project.registry:
        needs = f" (needs: {', '.join(t.needs)})" if t.needs else ""
        desc = f" - {t.description}" if t.description else ""
        console.print_info(f"  {t.name}{needs}{desc}")
        if t.needs:
            console.print_info(f"      order: {' -> '.join(project.registry.order(t.name))}")
        for o in t.outputs:
            console.print_info(f"      -> {o}")

    if project.pipeline.watch_rules:
        console.print_info("\nWatch:")
        for rule in project.pipeline.watch_rules:
            console.print_info(f"  {', '.join(rule.patterns)} -> {', '.join(rule.tasks)}")


if __name__ == "__main__":
    cli()
