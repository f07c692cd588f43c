"""
In-memory registry of live sessions.

Sessions are keyed by their application-level session id. The owning connection is a separate,
rebindable index so a session can outlive the transport it was created on.
"""

from minutes.errors import AlreadyExists, SessionNotFound
from minutes.logs import get_logger
from minutes.sessions.buffer import ChunkBuffer
from minutes.sessions.models import Session


class SessionStore:
  """
  Process-lifetime registry mapping connections to sessions.

  None of the methods suspend, so each call is atomic on the event loop and no store-wide lock
  is needed. Mutations of a single session's contents are serialized with ``Session.lock``.
  Removal only drops the registry's reference: a pipeline already working from a frozen snapshot
  keeps running and simply finds the session gone when it reports back.
  """

  def __init__(self, chunk_duration_ms: int = 1000) -> None:
    self.chunk_duration_ms = chunk_duration_ms
    self._sessions: dict[str, Session] = {}
    self._by_connection: dict[str, str] = {}
    self.logger = get_logger("sess/store")

  def create(self, session_id: str, connection_id: str, user_id: str | None = None) -> Session:
    """
    Register a new idle session owned by ``connection_id``.

    :raises AlreadyExists: the connection already owns a live session, or the id is taken.
    """
    if connection_id in self._by_connection:
      raise AlreadyExists(f"connection {connection_id}")
    if session_id in self._sessions:
      raise AlreadyExists(f"session {session_id}")

    session = Session(
      session_id=session_id,
      connection_id=connection_id,
      user_id=user_id,
      buffer=ChunkBuffer(session_id, self.chunk_duration_ms),
      subscribers={connection_id},
    )
    self._sessions[session_id] = session
    self._by_connection[connection_id] = session_id
    self.logger.info(
      "Session created", session_id=session_id, connection=connection_id, live=len(self)
    )
    return session

  def get(self, connection_id: str) -> Session:
    """
    Return the session owned by ``connection_id``.

    :raises SessionNotFound: the connection owns no live session.
    """
    session = self.find(connection_id)
    if session is None:
      raise SessionNotFound(f"connection {connection_id}")
    return session

  def find(self, connection_id: str) -> Session | None:
    session_id = self._by_connection.get(connection_id)
    if session_id is None:
      return None
    return self._sessions.get(session_id)

  def get_by_session_id(self, session_id: str) -> Session:
    """
    :raises SessionNotFound: no live session has this id.
    """
    try:
      return self._sessions[session_id]
    except KeyError:
      raise SessionNotFound(f"session {session_id}") from None

  def get_owned(self, connection_id: str, session_id: str) -> Session:
    """
    Return ``session_id`` only if ``connection_id`` owns it.

    Every mutating command that names a session goes through here, so one connection can never
    reach into another connection's session.

    :raises SessionNotFound: the session is unknown or owned by another connection.
    """
    session = self.find(connection_id)
    if session is None or session.session_id != session_id:
      raise SessionNotFound(f"session {session_id} on connection {connection_id}")
    return session

  def remove(self, connection_id: str) -> Session | None:
    """Remove the session owned by ``connection_id``. Safe to call more than once."""
    session_id = self._by_connection.pop(connection_id, None)
    if session_id is None:
      return None
    return self._drop(session_id)

  def remove_session(self, session: Session) -> bool:
    """
    Remove this exact session, attached or not. Safe to call more than once.

    A newer session that has since taken the same id is left alone.

    :returns: True if the session was live and is now gone.
    """
    if self._sessions.get(session.session_id) is not session:
      return False
    if session.connection_id is not None:
      self._by_connection.pop(session.connection_id, None)
    self._drop(session.session_id)
    return True

  def detach(self, connection_id: str) -> Session | None:
    """Unbind a connection from its session, leaving the session live but ownerless."""
    session_id = self._by_connection.pop(connection_id, None)
    if session_id is None:
      return None
    session = self._sessions[session_id]
    session.connection_id = None
    session.subscribers.discard(connection_id)
    self.logger.info("Session detached", session_id=session_id, connection=connection_id)
    return session

  def rebind(self, session_id: str, connection_id: str) -> Session:
    """
    Attach a detached session to a new connection.

    :raises SessionNotFound: no live session has this id.
    :raises AlreadyExists: the session is still attached, or the connection owns another session.
    """
    session = self.get_by_session_id(session_id)
    if session.connection_id is not None:
      raise AlreadyExists(f"session {session_id}")
    if connection_id in self._by_connection:
      raise AlreadyExists(f"connection {connection_id}")

    session.connection_id = connection_id
    session.subscribers.add(connection_id)
    self._by_connection[connection_id] = session_id
    self.logger.info("Session reattached", session_id=session_id, connection=connection_id)
    return session

  def __len__(self) -> int:
    return len(self._sessions)

  def __contains__(self, session_id: object) -> bool:
    return session_id in self._sessions

  def _drop(self, session_id: str) -> Session | None:
    session = self._sessions.pop(session_id, None)
    if session is not None:
      self.logger.info(
        "Session removed", session_id=session_id, state=session.state, live=len(self)
      )
    return session
