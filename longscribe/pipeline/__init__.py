from .planner import plan_windows
from .base import TranscriptionPipeline, PipelineResult
