"""Pipeline driver for streaming dump exports."""

from .driver import CancellationToken, ExportPipeline, PipelineStats

__all__ = ["CancellationToken", "ExportPipeline", "PipelineStats"]
