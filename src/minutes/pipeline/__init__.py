"""
Transcription orchestration: ordered, failure-isolated external calls over a frozen session.
"""

from minutes.pipeline.runner import (
  UNAVAILABLE_MARKER,
  PipelineResult,
  TranscriptionPipeline,
  assemble_transcript,
)
from minutes.pipeline.stages import StageOutcome, StageTask, run_stage, run_task

__all__ = [
  "UNAVAILABLE_MARKER",
  "PipelineResult",
  "StageOutcome",
  "StageTask",
  "TranscriptionPipeline",
  "assemble_transcript",
  "run_stage",
  "run_task",
]
