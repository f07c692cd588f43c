"""
Session state machine.

Transitions are a total function of (state, command): every pair not listed in
:data:`TRANSITIONS` is rejected with :class:`InvalidTransition` and the state is left as is.
"""

from enum import StrEnum

from minutes.errors import InvalidTransition
from minutes.sessions.models import SessionState


class Command(StrEnum):
  """Inputs that drive a session between states."""

  START_RECORDING = "start_recording"
  AUDIO_CHUNK = "audio_chunk"
  PAUSE_RECORDING = "pause_recording"
  RESUME_RECORDING = "resume_recording"
  STOP_RECORDING = "stop_recording"
  PIPELINE_SUCCEEDED = "pipeline_succeeded"
  PIPELINE_FAILED = "pipeline_failed"


TRANSITIONS: dict[tuple[SessionState, Command], SessionState] = {
  (SessionState.IDLE, Command.START_RECORDING): SessionState.RECORDING,
  (SessionState.RECORDING, Command.AUDIO_CHUNK): SessionState.RECORDING,
  (SessionState.RECORDING, Command.PAUSE_RECORDING): SessionState.PAUSED,
  (SessionState.PAUSED, Command.RESUME_RECORDING): SessionState.RECORDING,
  (SessionState.RECORDING, Command.STOP_RECORDING): SessionState.PROCESSING,
  (SessionState.PAUSED, Command.STOP_RECORDING): SessionState.PROCESSING,
  (SessionState.PROCESSING, Command.PIPELINE_SUCCEEDED): SessionState.COMPLETED,
  (SessionState.PROCESSING, Command.PIPELINE_FAILED): SessionState.ERROR,
}


def next_state(state: SessionState, command: Command) -> SessionState:
  """
  Resolve the state reached by applying ``command`` in ``state``.

  :raises InvalidTransition: the command is not legal in ``state``.
  """
  try:
    return TRANSITIONS[(state, command)]
  except KeyError:
    raise InvalidTransition(state, command) from None


def allowed_commands(state: SessionState) -> set[Command]:
  """Commands that ``state`` accepts."""
  return {command for (source, command) in TRANSITIONS if source == state}
