from .config import BuildConfig
from .dsl import pipeline_of, task, watch
from .model import BuildResult, Outcome, Pipeline, Task, WatchRule
from .registry import TaskRegistry
from .runner import PipelineRunner, load_pipeline

__all__ = [
    "BuildConfig",
    "pipeline_of",
    "task",
    "watch",
    "BuildResult",
    "Outcome",
    "Pipeline",
    "Task",
    "WatchRule",
    "TaskRegistry",
    "PipelineRunner",
    "load_pipeline",
]
