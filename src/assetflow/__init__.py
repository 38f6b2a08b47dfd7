from .dsl import batch, clean, graph, pipe, sequence, sync
from .model import BuildResult, Composite, SourceFile, Task, TaskReport, TransformedFiles
from .paths import AssetGroup, PathConfig, default_paths
from .pipeline import pipeline
from .runner import TaskGraph, load_pipeline

__all__ = [
    "pipe", "sync", "clean", "sequence", "batch", "graph",
    "BuildResult", "Composite", "SourceFile", "Task", "TaskReport", "TransformedFiles",
    "AssetGroup", "PathConfig", "default_paths",
    "pipeline", "TaskGraph", "load_pipeline",
]
