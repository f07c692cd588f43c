"""
Exception hierarchy for the relay.

Every error the relay raises on purpose derives from :class:`RelayError`, so connection loops can
separate expected rejections from genuine faults.
"""


class RelayError(Exception):
  """Base class for all relay errors."""


class ProtocolError(RelayError):
  """A frame from the client could not be decoded into a known event."""


class SessionNotFound(RelayError):
  """A command referenced a session that is unknown, expired, or owned by someone else."""

  def __init__(self, key: str) -> None:
    super().__init__(f"No live session for {key}")
    self.key = key


class AlreadyExists(RelayError):
  """A session is already live for the given connection or session id."""

  def __init__(self, key: str) -> None:
    super().__init__(f"A live session already exists for {key}")
    self.key = key


class InvalidTransition(RelayError):
  """A command is not legal in the session's current state."""

  def __init__(self, state: str, command: str) -> None:
    super().__init__(f"Command '{command}' is not allowed while session is '{state}'")
    self.state = state
    self.command = command


class TranscriptionFailed(RelayError):
  """The transcription provider could not transcribe a chunk."""


class ChunkTranscriptionFailed(RelayError):
  """A single chunk produced no text. Recovered locally as an unavailable fragment."""

  def __init__(self, index: int, reason: str) -> None:
    super().__init__(f"Chunk {index}: {reason}")
    self.index = index
    self.reason = reason


class SummarizationFailed(RelayError):
  """The summarization provider failed, or there was nothing to summarize."""


class PipelineFailed(RelayError):
  """
  The pipeline could not produce a result.

  Carries whatever transcript was assembled before the failure so it can still be reported.
  """

  def __init__(self, reason: str, transcript: str = "") -> None:
    super().__init__(reason)
    self.reason = reason
    self.transcript = transcript


class ConnectionLost(RelayError):
  """The owning connection went away while the session was still live."""

  def __init__(self, session_id: str, state: str) -> None:
    super().__init__(f"Connection lost while session {session_id} was '{state}'")
    self.session_id = session_id
    self.state = state
