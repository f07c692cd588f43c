"""Shared fixtures and test doubles for the relay tests."""

import asyncio
import base64

import pytest

from minutes.config import BufferConfig, PipelineConfig, ServerConfig
from minutes.errors import SummarizationFailed, TranscriptionFailed
from minutes.pipeline import TranscriptionPipeline
from minutes.relay import RelayHandler
from minutes.sessions import SessionStore
from minutes.wire import BaseMessage


@pytest.fixture
def fake_filesystem(fs):
  """Variable name 'fs' causes a pylint warning. Provide a longer name
  acceptable to pylint for use in tests.
  """
  yield fs


@pytest.fixture(autouse=True)
def gemini_api_key(monkeypatch):
  """Default provider settings need a key; never let a real one leak into tests."""
  monkeypatch.setenv("GEMINI_API_KEY", "test-key")


class FakeProvider:
  """
  Transcriber and summarizer double.

  Payloads decode to their own text (b"hello" -> "hello"). Payloads listed in ``failing`` raise,
  payloads listed in ``slow`` sleep past any short timeout.
  """

  def __init__(
    self,
    failing: set[bytes] | None = None,
    slow: set[bytes] | None = None,
    summary: str = "summary",
    summary_error: str | None = None,
    delay: float = 0.0,
  ):
    self.failing = failing or set()
    self.slow = slow or set()
    self.summary = summary
    self.summary_error = summary_error
    self.delay = delay
    self.transcribed: list[bytes] = []
    self.summarized: list[str] = []
    self.in_flight = 0
    self.max_in_flight = 0
    self.release = asyncio.Event()
    self.release.set()

  async def transcribe(self, payload: bytes) -> str:
    self.in_flight += 1
    self.max_in_flight = max(self.max_in_flight, self.in_flight)
    try:
      await self.release.wait()
      if payload in self.slow:
        await asyncio.sleep(10)
      if self.delay:
        await asyncio.sleep(self.delay)
      self.transcribed.append(payload)
      if payload in self.failing:
        raise TranscriptionFailed(f"cannot transcribe {payload!r}")
      return payload.decode()
    finally:
      self.in_flight -= 1

  async def summarize(self, text: str) -> str:
    self.summarized.append(text)
    if self.summary_error:
      raise SummarizationFailed(self.summary_error)
    return self.summary

  async def close(self) -> None:
    pass


class RecordingPeer:
  """Peer that keeps every event it is sent."""

  def __init__(self, peer_id: str, connected: bool = True):
    self._id = peer_id
    self.connected = connected
    self.messages: list[BaseMessage] = []

  @property
  def id(self) -> str:
    return self._id

  async def send(self, message: BaseMessage) -> bool:
    if not self.connected:
      return False
    self.messages.append(message)
    return True

  def of_type(self, event: str) -> list:
    return [m for m in self.messages if m.type == event]

  def types(self) -> list[str]:
    return [m.type for m in self.messages]


def b64(text: str) -> str:
  return base64.b64encode(text.encode()).decode()


@pytest.fixture
def pipeline_config() -> PipelineConfig:
  return PipelineConfig(chunk_timeout=0.2, summary_timeout=0.2)


@pytest.fixture
def provider() -> FakeProvider:
  return FakeProvider(summary="greeting exchange")


@pytest.fixture
def store() -> SessionStore:
  return SessionStore(chunk_duration_ms=1000)


@pytest.fixture
def pipeline(provider, pipeline_config) -> TranscriptionPipeline:
  return TranscriptionPipeline(provider, provider, pipeline_config)


@pytest.fixture
def handler(store, pipeline) -> RelayHandler:
  return RelayHandler(store, pipeline, buffer_config=BufferConfig(), server_config=ServerConfig())


@pytest.fixture
def grace_handler(store, pipeline) -> RelayHandler:
  return RelayHandler(
    store,
    pipeline,
    buffer_config=BufferConfig(),
    server_config=ServerConfig(reattach_grace_seconds=0.2),
  )
