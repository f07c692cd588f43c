"""
Data model for recording sessions.

A :class:`Session` is owned by the session store. Its chunk buffer is mutable until frozen, after
which the pipeline works from an immutable tuple of :class:`AudioChunk` and :class:`ChunkGap`.
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, TypeAlias

if TYPE_CHECKING:
  from minutes.sessions.buffer import ChunkBuffer


class SessionState(StrEnum):
  """Lifecycle state of a recording session."""

  IDLE = "idle"
  RECORDING = "recording"
  PAUSED = "paused"
  PROCESSING = "processing"
  COMPLETED = "completed"
  ERROR = "error"

  @property
  def is_terminal(self) -> bool:
    return self in (SessionState.COMPLETED, SessionState.ERROR)


@dataclass(frozen=True)
class AudioChunk:
  """One unit of captured audio."""

  index: int
  """Producer assigned sequence index."""

  payload: bytes
  """Raw, still-encoded audio bytes."""

  capture_offset_ms: int
  """Milliseconds since recording start."""

  received_at_ms: int = 0
  """Milliseconds since session creation at which the relay received the chunk."""


@dataclass(frozen=True)
class ChunkGap:
  """Placeholder for a sequence index that never arrived."""

  index: int
  capture_offset_ms: int


FrozenEntry: TypeAlias = AudioChunk | ChunkGap


@dataclass(frozen=True)
class TranscriptFragment:
  """The transcription of one chunk, or an explicit marker that it is unavailable."""

  index: int
  capture_offset_ms: int
  text: str | None
  failure: str | None = None

  @property
  def available(self) -> bool:
    return self.text is not None

  @classmethod
  def unavailable(cls, index: int, capture_offset_ms: int, reason: str) -> "TranscriptFragment":
    return cls(index=index, capture_offset_ms=capture_offset_ms, text=None, failure=reason)


@dataclass
class Session:
  """
  One recording-to-transcript lifecycle.

  The session id is stable for the recording's lifetime. The connection id is the transport that
  currently owns it and may change when a client reattaches.
  """

  session_id: str
  connection_id: str | None
  buffer: "ChunkBuffer"
  user_id: str | None = None
  state: SessionState = SessionState.IDLE
  created_at: float = field(default_factory=time.time)
  created_monotonic: float = field(default_factory=time.monotonic)
  subscribers: set[str] = field(default_factory=set)
  fragments: tuple[TranscriptFragment, ...] = ()
  transcript: str | None = None
  summary: str | None = None
  lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

  def elapsed_ms(self) -> int:
    """Milliseconds since the session was created."""
    return int((time.monotonic() - self.created_monotonic) * 1000)
