"""
Recording sessions: data model, chunk buffer, state machine and the live-session registry.
"""

from minutes.sessions.buffer import BufferFrozen, ChunkBuffer
from minutes.sessions.models import (
  AudioChunk,
  ChunkGap,
  FrozenEntry,
  Session,
  SessionState,
  TranscriptFragment,
)
from minutes.sessions.state import Command, allowed_commands, next_state
from minutes.sessions.store import SessionStore

__all__ = [
  "AudioChunk",
  "BufferFrozen",
  "ChunkBuffer",
  "ChunkGap",
  "Command",
  "FrozenEntry",
  "Session",
  "SessionState",
  "SessionStore",
  "TranscriptFragment",
  "allowed_commands",
  "next_state",
]
