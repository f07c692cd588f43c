"""
Outbound event sinks for connected clients.

The relay handler only sees :class:`Peer` objects; :class:`WebSocketPeer` adapts a websockets
server connection to that interface.
"""

from typing import Protocol

from websockets.asyncio.server import ServerConnection

from minutes.logs import get_logger
from minutes.wire import OutboundMessage, serialize_message


class Peer(Protocol):
  """A connected client that can receive events."""

  @property
  def id(self) -> str:
    """Stable identity of this connection for its lifetime."""
    ...

  async def send(self, message: OutboundMessage) -> bool:
    """
    Deliver one event.

    :returns: True if the event was handed to the transport, False if the peer is gone.
    """
    ...


class WebSocketPeer:
  """
  Websocket implementation of :class:`Peer`.

  Send failures are logged and reported through the return value rather than raised, so a client
  that vanished mid-pipeline never breaks the code delivering results to it.
  """

  def __init__(self, websocket: ServerConnection) -> None:
    self.websocket = websocket
    self._id = str(websocket.id)
    self._closed = False
    self.logger = get_logger("ws/peer", connection=self._id)

  @property
  def id(self) -> str:
    return self._id

  async def send(self, message: OutboundMessage) -> bool:
    if self._closed:
      return False

    try:
      await self.websocket.send(serialize_message(message))
      self.logger.debug("Sent event", event=message.type)
      return True
    except Exception as e:
      self.logger.warning("Failed to send event", error=str(e))
      return False

  def close(self) -> None:
    self._closed = True
