"""
Transcription pipeline.

Turns the frozen chunk sequence of one session into transcript fragments, assembles the
transcript in capture-offset order, then summarizes it. A failed chunk becomes an unavailable
fragment and the run continues; a failed summary fails the whole run.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from minutes.config import PipelineConfig
from minutes.errors import ChunkTranscriptionFailed, PipelineFailed
from minutes.logs import get_logger
from minutes.pipeline.stages import StageTask, run_stage, run_task
from minutes.providers.interfaces import Summarizer, Transcriber
from minutes.sessions.models import AudioChunk, ChunkGap, FrozenEntry, TranscriptFragment

UNAVAILABLE_MARKER = "[Transcription failed]"
MISSING_CHUNK_REASON = "chunk never arrived"


@dataclass(frozen=True)
class PipelineResult:
  session_id: str
  fragments: tuple[TranscriptFragment, ...]
  transcript: str
  summary: str

  @property
  def unavailable_count(self) -> int:
    return sum(1 for fragment in self.fragments if not fragment.available)


def format_offset(capture_offset_ms: int) -> str:
  return f"[{capture_offset_ms // 1000}s]"


def assemble_transcript(fragments: Sequence[TranscriptFragment]) -> str:
  """
  Join fragments into transcript text, one line per fragment in capture-offset order.

  Unavailable fragments are kept as explicit markers so lost audio stays visible.
  """
  ordered = sorted(fragments, key=lambda f: (f.capture_offset_ms, f.index))
  lines = [
    f"{format_offset(f.capture_offset_ms)} {f.text if f.available else UNAVAILABLE_MARKER}"
    for f in ordered
  ]
  return "\n".join(lines)


class TranscriptionPipeline:
  """
  Runs the transcription and summary stages for one session at a time.

  Instances are stateless between runs and can be shared by every session; each session's run is
  its own task and never waits on another's.
  """

  def __init__(
    self, transcriber: Transcriber, summarizer: Summarizer, config: PipelineConfig
  ) -> None:
    self.transcriber = transcriber
    self.summarizer = summarizer
    self.config = config

  async def run(self, session_id: str, entries: Sequence[FrozenEntry]) -> PipelineResult:
    """
    Process a frozen chunk sequence.

    :raises PipelineFailed: there was nothing usable to summarize, or summarization failed.
        The exception carries the transcript assembled so far.
    """
    logger = get_logger("pipe/run", session_id=session_id)
    logger.info("Pipeline started", entries=len(entries))

    fragments = await self.transcribe_entries(session_id, entries)
    transcript = assemble_transcript(fragments)
    available = sum(1 for fragment in fragments if fragment.available)
    logger.info(
      "Transcription stage finished",
      fragments=len(fragments),
      unavailable=len(fragments) - available,
    )

    if available == 0:
      raise PipelineFailed("No transcribable audio was captured", transcript)

    outcome = await run_task(
      StageTask(
        name="summary",
        run=lambda: self.summarizer.summarize(transcript),
        timeout=self.config.summary_timeout,
      )
    )
    if not outcome.ok:
      logger.error("Summarization failed", error=outcome.error)
      raise PipelineFailed(f"Summarization failed: {outcome.error}", transcript)

    logger.info("Pipeline finished")
    return PipelineResult(
      session_id=session_id,
      fragments=tuple(fragments),
      transcript=transcript,
      summary=str(outcome.value).strip(),
    )

  async def transcribe_entries(
    self, session_id: str, entries: Sequence[FrozenEntry]
  ) -> list[TranscriptFragment]:
    """Produce exactly one fragment per entry, in entry order."""
    logger = get_logger("pipe/run", session_id=session_id)
    chunks = [entry for entry in entries if isinstance(entry, AudioChunk)]
    tasks = [
      StageTask(
        name=f"chunk-{chunk.index}",
        run=self._transcribe_call(chunk),
        timeout=self.config.chunk_timeout,
      )
      for chunk in chunks
    ]
    outcomes = await run_stage(tasks, self.config.max_in_flight)
    by_index = dict(zip((chunk.index for chunk in chunks), outcomes, strict=True))

    fragments: list[TranscriptFragment] = []
    for entry in entries:
      if isinstance(entry, ChunkGap):
        failure = ChunkTranscriptionFailed(entry.index, MISSING_CHUNK_REASON)
      else:
        outcome = by_index[entry.index]
        if outcome.ok:
          fragments.append(
            TranscriptFragment(
              index=entry.index,
              capture_offset_ms=entry.capture_offset_ms,
              text=str(outcome.value).strip(),
            )
          )
          continue
        failure = ChunkTranscriptionFailed(entry.index, outcome.error or "unknown error")

      logger.warning("Chunk unavailable", index=failure.index, reason=failure.reason)
      fragments.append(
        TranscriptFragment.unavailable(entry.index, entry.capture_offset_ms, failure.reason)
      )
    return fragments

  def _transcribe_call(self, chunk: AudioChunk):
    return lambda: self.transcriber.transcribe(chunk.payload)
