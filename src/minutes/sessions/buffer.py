"""
Per-session chunk buffer.

Chunks may arrive out of order, late, or more than once. The buffer keeps the last write for
each sequence index and, on freeze, produces an ordered snapshot where every missing index
between zero and the highest seen index is represented by a :class:`ChunkGap`.
"""

from minutes.errors import RelayError
from minutes.logs import get_logger
from minutes.sessions.models import AudioChunk, ChunkGap, FrozenEntry


class BufferFrozen(RelayError):
  """Raised when writing to a buffer whose snapshot has already been taken."""


class ChunkBuffer:
  """
  Ordered collection of audio chunks for one session.

  Writes never suspend, so within the event loop each :meth:`put` is atomic. The session lock
  orders writes against freeze for callers that interleave them with awaits.
  """

  def __init__(self, session_id: str, chunk_duration_ms: int = 1000) -> None:
    self.session_id = session_id
    self.chunk_duration_ms = chunk_duration_ms
    self._chunks: dict[int, AudioChunk] = {}
    self._frozen: tuple[FrozenEntry, ...] | None = None
    self.logger = get_logger("sess/buf", session_id=session_id)

  def put(self, chunk: AudioChunk) -> int:
    """
    Store a chunk, replacing any earlier chunk with the same index.

    :returns: The accepted sequence index.
    :raises BufferFrozen: the buffer has already been frozen.
    """
    if self._frozen is not None:
      raise BufferFrozen(f"Buffer for session {self.session_id} is frozen")

    if chunk.index in self._chunks:
      self.logger.debug("Overwriting duplicate chunk", index=chunk.index)
    self._chunks[chunk.index] = chunk
    return chunk.index

  def freeze(self) -> tuple[FrozenEntry, ...]:
    """
    Take the one-time ordered snapshot of the buffer.

    Idempotent: later calls return the same tuple.
    """
    if self._frozen is None:
      self._frozen = self._build_snapshot()
      gaps = sum(1 for entry in self._frozen if isinstance(entry, ChunkGap))
      self.logger.info("Buffer frozen", chunks=len(self._chunks), gaps=gaps)
    return self._frozen

  @property
  def frozen(self) -> bool:
    return self._frozen is not None

  def __len__(self) -> int:
    return len(self._chunks)

  def _build_snapshot(self) -> tuple[FrozenEntry, ...]:
    if not self._chunks:
      return ()

    entries: list[FrozenEntry] = []
    previous: FrozenEntry | None = None
    for index in range(max(self._chunks) + 1):
      entry = self._chunks.get(index)
      if entry is None:
        entry = ChunkGap(index=index, capture_offset_ms=self._estimate_offset(index, previous))
      entries.append(entry)
      previous = entry
    return tuple(entries)

  def _estimate_offset(self, index: int, previous: FrozenEntry | None) -> int:
    if previous is None:
      return index * self.chunk_duration_ms
    return previous.capture_offset_ms + (index - previous.index) * self.chunk_duration_ms
