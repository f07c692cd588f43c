"""
Pydantic message protocol models for websocket communication.

Every frame is a JSON object whose ``type`` field names the event. Field names are camelCase on
the wire and snake_case in Python.
"""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EventType(StrEnum):
  """Event names carried in the ``type`` field."""

  START_RECORDING = "start_recording"
  AUDIO_CHUNK = "audio_chunk"
  PAUSE_RECORDING = "pause_recording"
  RESUME_RECORDING = "resume_recording"
  STOP_RECORDING = "stop_recording"

  RECORDING_STARTED = "recording_started"
  CHUNK_RECEIVED = "chunk_received"
  SESSION_STATUS = "session_status"
  TRANSCRIPTION_COMPLETE = "transcription_complete"
  TRANSCRIPTION_ERROR = "transcription_error"
  ERROR = "error"


class ChunkStatus(StrEnum):
  """Acknowledgement status for a received chunk."""

  QUEUED = "queued"
  REJECTED = "rejected"


class BaseMessage(BaseModel):
  """Base for all frames: camelCase aliases, snake_case attributes."""

  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# Client -> server


class StartRecordingMessage(BaseMessage):
  type: Literal["start_recording"] = "start_recording"
  session_id: str = Field(min_length=1, description="Opaque id issued by the client")
  user_id: str | None = Field(default=None, description="Id of the recording user")


class AudioChunkMessage(BaseMessage):
  type: Literal["audio_chunk"] = "audio_chunk"
  session_id: str = Field(min_length=1)
  audio_data: str = Field(description="Base64 encoded raw chunk payload")
  chunk_index: int = Field(ge=0, description="Producer assigned sequence index")
  capture_offset: int | None = Field(
    default=None, ge=0, description="Milliseconds since recording start, if the client knows it"
  )


class PauseRecordingMessage(BaseMessage):
  type: Literal["pause_recording"] = "pause_recording"


class ResumeRecordingMessage(BaseMessage):
  type: Literal["resume_recording"] = "resume_recording"


class StopRecordingMessage(BaseMessage):
  type: Literal["stop_recording"] = "stop_recording"
  session_id: str | None = Field(
    default=None, description="Must match the connection's session when present"
  )


# Server -> client


class RecordingStartedMessage(BaseMessage):
  type: Literal["recording_started"] = "recording_started"
  session_id: str
  timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ChunkReceivedMessage(BaseMessage):
  type: Literal["chunk_received"] = "chunk_received"
  chunk_index: int
  status: ChunkStatus = ChunkStatus.QUEUED


class SessionStatusMessage(BaseMessage):
  type: Literal["session_status"] = "session_status"
  session_id: str
  status: str = Field(description="Current SessionState value")
  transcript: str | None = None
  summary: str | None = None
  error: str | None = None


class TranscriptionCompleteMessage(BaseMessage):
  type: Literal["transcription_complete"] = "transcription_complete"
  session_id: str
  transcript: str
  summary: str


class TranscriptionErrorMessage(BaseMessage):
  type: Literal["transcription_error"] = "transcription_error"
  session_id: str
  error: str
  transcript: str | None = Field(
    default=None, description="Partial transcript assembled before the failure, when non-empty"
  )


class ErrorMessage(BaseMessage):
  """Sent only for frames that could not be decoded."""

  type: Literal["error"] = "error"
  message: str


InboundMessage = Annotated[
  StartRecordingMessage
  | AudioChunkMessage
  | PauseRecordingMessage
  | ResumeRecordingMessage
  | StopRecordingMessage,
  Field(discriminator="type"),
]

OutboundMessage = Annotated[
  RecordingStartedMessage
  | ChunkReceivedMessage
  | SessionStatusMessage
  | TranscriptionCompleteMessage
  | TranscriptionErrorMessage
  | ErrorMessage,
  Field(discriminator="type"),
]
