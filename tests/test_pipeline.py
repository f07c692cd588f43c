"""Tests for the pipeline stage runner and the transcription pipeline."""

import asyncio

import pytest
from conftest import FakeProvider

from minutes.config import PipelineConfig
from minutes.errors import PipelineFailed
from minutes.pipeline import (
  UNAVAILABLE_MARKER,
  StageTask,
  TranscriptionPipeline,
  assemble_transcript,
  run_stage,
)
from minutes.sessions import AudioChunk, ChunkGap, TranscriptFragment


def chunk(index: int, text: str) -> AudioChunk:
  return AudioChunk(index=index, payload=text.encode(), capture_offset_ms=index * 1000)


class TestRunStage:
  @pytest.mark.asyncio
  async def test_outcomes_in_task_order_despite_completion_order(self):
    async def after(delay: float, value: str) -> str:
      await asyncio.sleep(delay)
      return value

    tasks = [
      StageTask(name="slow", run=lambda: after(0.05, "a"), timeout=1),
      StageTask(name="fast", run=lambda: after(0.0, "b"), timeout=1),
    ]

    outcomes = await run_stage(tasks, max_in_flight=2)

    assert [o.value for o in outcomes] == ["a", "b"]

  @pytest.mark.asyncio
  async def test_failures_and_timeouts_are_isolated(self):
    async def boom() -> str:
      raise RuntimeError("provider down")

    async def hang() -> str:
      await asyncio.sleep(5)
      return "late"

    async def fine() -> str:
      return "ok"

    outcomes = await run_stage(
      [
        StageTask(name="boom", run=boom, timeout=1),
        StageTask(name="hang", run=hang, timeout=0.05),
        StageTask(name="fine", run=fine, timeout=1),
      ]
    )

    assert outcomes[0].error == "provider down"
    assert outcomes[1].error.startswith("timed out")
    assert outcomes[2].ok and outcomes[2].value == "ok"

  @pytest.mark.asyncio
  async def test_rejects_zero_concurrency(self):
    with pytest.raises(ValueError):
      await run_stage([], max_in_flight=0)


class TestAssembleTranscript:
  def test_fragments_ordered_by_capture_offset(self):
    fragments = [
      TranscriptFragment(index=2, capture_offset_ms=2500, text="world"),
      TranscriptFragment.unavailable(1, 1200, "timed out"),
      TranscriptFragment(index=0, capture_offset_ms=0, text="hello"),
    ]

    assert assemble_transcript(fragments) == (
      f"[0s] hello\n[1s] {UNAVAILABLE_MARKER}\n[2s] world"
    )


class TestTranscriptionPipeline:
  @pytest.mark.asyncio
  async def test_partial_failure_still_completes(self, pipeline_config):
    provider = FakeProvider(failing={b"b", b"d"}, summary="short")
    pipeline = TranscriptionPipeline(provider, provider, pipeline_config)
    entries = [chunk(i, text) for i, text in enumerate(["a", "b", "c", "d", "e"])]

    result = await pipeline.run("s1", entries)

    assert len(result.fragments) == 5
    assert result.unavailable_count == 2
    assert [f.available for f in result.fragments] == [True, False, True, False, True]
    assert [f.capture_offset_ms for f in result.fragments] == [0, 1000, 2000, 3000, 4000]
    assert result.summary == "short"
    assert provider.summarized == [result.transcript]

  @pytest.mark.asyncio
  async def test_gap_becomes_unavailable_without_a_call(self, provider, pipeline):
    entries = [chunk(0, "hello"), ChunkGap(index=1, capture_offset_ms=1000), chunk(2, "world")]

    result = await pipeline.run("s1", entries)

    assert provider.transcribed == [b"hello", b"world"]
    assert result.fragments[1].failure == "chunk never arrived"
    assert result.transcript.splitlines() == [
      "[0s] hello",
      f"[1s] {UNAVAILABLE_MARKER}",
      "[2s] world",
    ]

  @pytest.mark.asyncio
  async def test_chunk_timeout_is_a_chunk_failure(self, pipeline_config):
    provider = FakeProvider(slow={b"stuck"})
    pipeline = TranscriptionPipeline(provider, provider, pipeline_config)

    result = await pipeline.run("s1", [chunk(0, "stuck"), chunk(1, "fine")])

    assert not result.fragments[0].available
    assert "timed out" in result.fragments[0].failure
    assert result.fragments[1].text == "fine"

  @pytest.mark.asyncio
  async def test_calls_are_sequential_by_default(self, pipeline_config):
    provider = FakeProvider(delay=0.01)
    pipeline = TranscriptionPipeline(provider, provider, pipeline_config)

    await pipeline.run("s1", [chunk(i, str(i)) for i in range(4)])

    assert provider.max_in_flight == 1
    assert provider.transcribed == [b"0", b"1", b"2", b"3"]

  @pytest.mark.asyncio
  async def test_bounded_concurrency_keeps_order(self):
    provider = FakeProvider(delay=0.01)
    config = PipelineConfig(chunk_timeout=1, summary_timeout=1, max_in_flight=3)
    pipeline = TranscriptionPipeline(provider, provider, config)

    result = await pipeline.run("s1", [chunk(i, str(i)) for i in range(6)])

    assert 1 < provider.max_in_flight <= 3
    assert [f.text for f in result.fragments] == ["0", "1", "2", "3", "4", "5"]

  @pytest.mark.asyncio
  async def test_summary_failure_is_fatal_and_keeps_transcript(self, pipeline_config):
    provider = FakeProvider(summary_error="quota exceeded")
    pipeline = TranscriptionPipeline(provider, provider, pipeline_config)

    with pytest.raises(PipelineFailed) as excinfo:
      await pipeline.run("s1", [chunk(0, "hello")])

    assert "quota exceeded" in excinfo.value.reason
    assert excinfo.value.transcript == "[0s] hello"

  @pytest.mark.asyncio
  async def test_nothing_usable_fails_without_summarizing(self, pipeline_config):
    provider = FakeProvider(failing={b"x"})
    pipeline = TranscriptionPipeline(provider, provider, pipeline_config)

    with pytest.raises(PipelineFailed, match="No transcribable audio"):
      await pipeline.run("s1", [chunk(0, "x")])

    assert provider.summarized == []

  @pytest.mark.asyncio
  async def test_empty_recording_fails(self, provider, pipeline):
    with pytest.raises(PipelineFailed) as excinfo:
      await pipeline.run("s1", [])

    assert excinfo.value.transcript == ""
