"""
Wire protocol for the relay.

Message types exchanged between recording clients and the relay server.
"""

from .codec import deserialize_message, serialize_message
from .messages import (
  AudioChunkMessage,
  BaseMessage,
  ChunkReceivedMessage,
  ChunkStatus,
  ErrorMessage,
  EventType,
  InboundMessage,
  OutboundMessage,
  PauseRecordingMessage,
  RecordingStartedMessage,
  ResumeRecordingMessage,
  SessionStatusMessage,
  StartRecordingMessage,
  StopRecordingMessage,
  TranscriptionCompleteMessage,
  TranscriptionErrorMessage,
)

__all__ = [
  "AudioChunkMessage",
  "BaseMessage",
  "ChunkReceivedMessage",
  "ChunkStatus",
  "ErrorMessage",
  "EventType",
  "InboundMessage",
  "OutboundMessage",
  "PauseRecordingMessage",
  "RecordingStartedMessage",
  "ResumeRecordingMessage",
  "SessionStatusMessage",
  "StartRecordingMessage",
  "StopRecordingMessage",
  "TranscriptionCompleteMessage",
  "TranscriptionErrorMessage",
  "deserialize_message",
  "serialize_message",
]
