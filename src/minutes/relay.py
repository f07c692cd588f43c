"""
Relay protocol handler.

Receives client events, drives the session state machine and chunk buffer, launches pipeline
runs, and sends status and results back to the session's subscribers.
"""

import asyncio
import base64
import binascii
from collections.abc import Sequence
from datetime import UTC, datetime

from minutes.config import BufferConfig, ServerConfig
from minutes.errors import (
  AlreadyExists,
  ConnectionLost,
  InvalidTransition,
  PipelineFailed,
  ProtocolError,
  RelayError,
  SessionNotFound,
)
from minutes.logs import get_logger
from minutes.peers import Peer
from minutes.pipeline import PipelineResult, TranscriptionPipeline
from minutes.sessions import (
  AudioChunk,
  Command,
  FrozenEntry,
  Session,
  SessionState,
  SessionStore,
  next_state,
)
from minutes.wire import (
  AudioChunkMessage,
  ChunkReceivedMessage,
  ChunkStatus,
  ErrorMessage,
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
  deserialize_message,
)


class RelayHandler:
  """
  Per-process dispatcher shared by every connection.

  Each connection's frames are handled by that connection's own task; pipeline runs are separate
  tasks owned here. Only the session store and the sessions' buffers are shared, and each
  session's mutations are serialized by its own lock, so one session never waits on another.
  """

  def __init__(
    self,
    store: SessionStore,
    pipeline: TranscriptionPipeline,
    buffer_config: BufferConfig | None = None,
    server_config: ServerConfig | None = None,
  ) -> None:
    self.store = store
    self.pipeline = pipeline
    self.buffer_config = buffer_config or BufferConfig()
    self.reattach_grace = server_config.reattach_grace_seconds if server_config else 0.0
    self.peers: dict[str, Peer] = {}
    self.pipeline_tasks: set[asyncio.Task] = set()
    self._expiry_timers: dict[str, asyncio.TimerHandle] = {}
    self.logger = get_logger("relay/handler")

  # Connection lifecycle

  def connect(self, peer: Peer) -> None:
    self.peers[peer.id] = peer
    self.logger.info("Client connected", connection=peer.id, clients=len(self.peers))

  async def disconnect(self, connection_id: str) -> None:
    """
    Forget a connection and release its session.

    Without a reattach grace period the session is removed at once. An in-flight pipeline keeps
    running and its result is dropped when it finds the session gone.
    """
    self.peers.pop(connection_id, None)
    session = self.store.find(connection_id)
    if session is None:
      self.logger.info("Client disconnected", connection=connection_id)
      return

    if self.reattach_grace > 0 and not session.state.is_terminal:
      self.store.detach(connection_id)
      self._schedule_expiry(session)
      self.logger.warning(
        "Client disconnected with live session, holding for reattach",
        session_id=session.session_id,
        state=session.state,
        grace=f"{self.reattach_grace:.1f}s",
      )
      return

    self._log_termination(session)
    self.store.remove(connection_id)

  async def close(self) -> None:
    """Cancel outstanding pipeline runs and expiry timers."""
    for handle in self._expiry_timers.values():
      handle.cancel()
    self._expiry_timers.clear()

    tasks = list(self.pipeline_tasks)
    for task in tasks:
      task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)

  async def drain(self) -> None:
    """Wait for every pipeline run that has been started to finish."""
    while self.pipeline_tasks:
      await asyncio.gather(*list(self.pipeline_tasks), return_exceptions=True)

  # Inbound events

  async def handle_frame(self, connection_id: str, frame: str | bytes) -> None:
    """Decode and dispatch one raw frame. Undecodable frames get an error event."""
    try:
      message = deserialize_message(frame)
    except ProtocolError as e:
      self.logger.warning("Rejected frame", connection=connection_id, error=str(e))
      await self._send(connection_id, ErrorMessage(message=str(e)))
      return

    await self.dispatch(connection_id, message)

  async def dispatch(self, connection_id: str, message: InboundMessage) -> None:
    """
    Route a decoded event to its command.

    Rejections are logged and otherwise ignored, so the connection stays usable.
    """
    try:
      match message:
        case StartRecordingMessage():
          await self.start_recording(connection_id, message)
        case AudioChunkMessage():
          await self.audio_chunk(connection_id, message)
        case PauseRecordingMessage():
          await self.pause_recording(connection_id)
        case ResumeRecordingMessage():
          await self.resume_recording(connection_id)
        case StopRecordingMessage():
          await self.stop_recording(connection_id, message)
    except (InvalidTransition, SessionNotFound, AlreadyExists) as e:
      self.logger.warning(
        "Command rejected", connection=connection_id, command=message.type, reason=str(e)
      )
    except RelayError:
      self.logger.exception("Command failed", connection=connection_id, command=message.type)

  async def start_recording(self, connection_id: str, message: StartRecordingMessage) -> None:
    if message.session_id in self.store:
      await self._reattach(connection_id, message.session_id)
      return

    session = self.store.create(message.session_id, connection_id, message.user_id)
    async with session.lock:
      self._apply(session, Command.START_RECORDING)

    await self._send(
      connection_id,
      RecordingStartedMessage(
        session_id=session.session_id,
        timestamp=datetime.fromtimestamp(session.created_at, UTC),
      ),
    )
    await self._publish_status(session)

  async def audio_chunk(self, connection_id: str, message: AudioChunkMessage) -> None:
    session = self.store.get_owned(connection_id, message.session_id)

    if message.chunk_index >= self.buffer_config.max_chunks:
      self.logger.warning(
        "Chunk index out of range",
        session_id=session.session_id,
        index=message.chunk_index,
        max_chunks=self.buffer_config.max_chunks,
      )
      await self._ack_chunk(connection_id, message.chunk_index, ChunkStatus.REJECTED)
      return

    payload = self._decode_payload(session, message)
    if payload is None:
      await self._ack_chunk(connection_id, message.chunk_index, ChunkStatus.REJECTED)
      return

    async with session.lock:
      try:
        self._apply(session, Command.AUDIO_CHUNK)
      except InvalidTransition:
        self.logger.debug(
          "Chunk outside recording",
          session_id=session.session_id,
          index=message.chunk_index,
          state=session.state,
        )
        chunk = None
      else:
        # Derived offsets count recorded time only. Paused wall time shows up in received_at_ms.
        offset = message.capture_offset
        if offset is None:
          offset = message.chunk_index * self.buffer_config.chunk_duration_ms
        chunk = AudioChunk(
          index=message.chunk_index,
          payload=payload,
          capture_offset_ms=offset,
          received_at_ms=session.elapsed_ms(),
        )
        session.buffer.put(chunk)

    if chunk is None:
      await self._ack_chunk(connection_id, message.chunk_index, ChunkStatus.REJECTED)
      return

    self.logger.debug(
      "Chunk buffered",
      session_id=session.session_id,
      index=chunk.index,
      offset_ms=chunk.capture_offset_ms,
      received_at_ms=chunk.received_at_ms,
    )
    await self._ack_chunk(connection_id, chunk.index, ChunkStatus.QUEUED)

  async def pause_recording(self, connection_id: str) -> None:
    session = self.store.get(connection_id)
    async with session.lock:
      self._apply(session, Command.PAUSE_RECORDING)
    await self._publish_status(session)

  async def resume_recording(self, connection_id: str) -> None:
    session = self.store.get(connection_id)
    async with session.lock:
      self._apply(session, Command.RESUME_RECORDING)
    await self._publish_status(session)

  async def stop_recording(self, connection_id: str, message: StopRecordingMessage) -> None:
    if message.session_id is not None:
      session = self.store.get_owned(connection_id, message.session_id)
    else:
      session = self.store.get(connection_id)

    async with session.lock:
      self._apply(session, Command.STOP_RECORDING)
      entries = session.buffer.freeze()

    await self._publish_status(session)
    self._start_pipeline(session, entries)

  # Pipeline

  def _start_pipeline(self, session: Session, entries: Sequence[FrozenEntry]) -> None:
    task = asyncio.create_task(self._run_pipeline(session, entries))
    task.set_name(f"pipeline_{session.session_id}")
    self.pipeline_tasks.add(task)
    task.add_done_callback(self.pipeline_tasks.discard)

  async def _run_pipeline(self, session: Session, entries: Sequence[FrozenEntry]) -> None:
    try:
      result = await self.pipeline.run(session.session_id, entries)
    except PipelineFailed as e:
      await self._finish_failure(session, e.reason, e.transcript)
    except Exception:
      self.logger.exception("Pipeline crashed", session_id=session.session_id)
      await self._finish_failure(session, "Internal error during transcription", "")
    else:
      await self._finish_success(session, result)

  async def _finish_success(self, session: Session, result: PipelineResult) -> None:
    async with session.lock:
      if not self._still_live(session):
        return
      self._apply(session, Command.PIPELINE_SUCCEEDED)
      session.fragments = result.fragments
      session.transcript = result.transcript
      session.summary = result.summary
      owner = session.connection_id
      self.store.remove_session(session)

    self.logger.info(
      "Transcription complete",
      session_id=session.session_id,
      fragments=len(result.fragments),
      unavailable=result.unavailable_count,
      duration=f"{session.elapsed_ms() / 1000:.1f}s",
    )
    if owner is not None:
      await self._send(
        owner,
        TranscriptionCompleteMessage(
          session_id=session.session_id, transcript=result.transcript, summary=result.summary
        ),
      )
    await self._publish_status(session, transcript=result.transcript, summary=result.summary)

  async def _finish_failure(self, session: Session, reason: str, transcript: str) -> None:
    async with session.lock:
      if not self._still_live(session):
        return
      self._apply(session, Command.PIPELINE_FAILED)
      session.transcript = transcript or None
      owner = session.connection_id
      self.store.remove_session(session)

    self.logger.error("Transcription failed", session_id=session.session_id, reason=reason)
    if owner is not None:
      await self._send(
        owner,
        TranscriptionErrorMessage(
          session_id=session.session_id, error=reason, transcript=transcript or None
        ),
      )
    await self._publish_status(session, error=reason)

  def _still_live(self, session: Session) -> bool:
    """False when the session was torn down (or replaced) while the pipeline ran."""
    try:
      live = self.store.get_by_session_id(session.session_id)
    except SessionNotFound:
      live = None

    if live is not session:
      self.logger.debug("Discarding result for removed session", session_id=session.session_id)
      return False
    return True

  # Helpers

  def _apply(self, session: Session, command: Command) -> SessionState:
    previous = session.state
    session.state = next_state(previous, command)
    if session.state != previous:
      self.logger.info(
        "Session transition",
        session_id=session.session_id,
        command=command,
        previous=previous,
        state=session.state,
      )
    return session.state

  def _decode_payload(self, session: Session, message: AudioChunkMessage) -> bytes | None:
    try:
      payload = base64.b64decode(message.audio_data, validate=True)
    except (binascii.Error, ValueError):
      self.logger.warning(
        "Chunk payload is not valid base64",
        session_id=session.session_id,
        index=message.chunk_index,
      )
      return None

    if len(payload) > self.buffer_config.max_chunk_bytes:
      self.logger.warning(
        "Chunk payload too large",
        session_id=session.session_id,
        index=message.chunk_index,
        size=len(payload),
      )
      return None
    return payload

  async def _reattach(self, connection_id: str, session_id: str) -> None:
    if self.reattach_grace <= 0:
      raise AlreadyExists(f"session {session_id}")

    session = self.store.rebind(session_id, connection_id)
    handle = self._expiry_timers.pop(session_id, None)
    if handle is not None:
      handle.cancel()
    await self._send(connection_id, self._status_message(session))

  def _schedule_expiry(self, session: Session) -> None:
    loop = asyncio.get_running_loop()
    previous = self._expiry_timers.pop(session.session_id, None)
    if previous is not None:
      previous.cancel()
    self._expiry_timers[session.session_id] = loop.call_later(
      self.reattach_grace, self._expire, session
    )

  def _expire(self, session: Session) -> None:
    self._expiry_timers.pop(session.session_id, None)
    try:
      live = self.store.get_by_session_id(session.session_id)
    except SessionNotFound:
      return
    if live is not session or session.connection_id is not None:
      return

    self._log_termination(session)
    self.store.remove_session(session)

  def _log_termination(self, session: Session) -> None:
    if session.state.is_terminal:
      return

    lost = ConnectionLost(session.session_id, session.state)
    if session.state == SessionState.PROCESSING:
      self.logger.warning(
        "Owner left during processing, result will be discarded",
        session_id=session.session_id,
        reason=str(lost),
      )
    else:
      self.logger.warning(
        "Recording terminated abnormally, no transcript will be produced",
        session_id=session.session_id,
        reason=str(lost),
        chunks=len(session.buffer),
      )

  def _status_message(self, session: Session, **extra: str | None) -> SessionStatusMessage:
    return SessionStatusMessage(session_id=session.session_id, status=session.state, **extra)

  async def _publish_status(self, session: Session, **extra: str | None) -> None:
    """Unicast the session's status to each of its subscribers."""
    message = self._status_message(session, **extra)
    for connection_id in list(session.subscribers):
      await self._send(connection_id, message)

  async def _ack_chunk(self, connection_id: str, index: int, status: ChunkStatus) -> None:
    await self._send(connection_id, ChunkReceivedMessage(chunk_index=index, status=status))

  async def _send(self, connection_id: str, message: OutboundMessage) -> bool:
    peer = self.peers.get(connection_id)
    if peer is None:
      return False
    return await peer.send(message)
