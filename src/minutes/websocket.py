import asyncio
from collections.abc import Awaitable, Callable

from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed, InvalidMessage
from websockets.typing import Origin

from minutes.logs import get_logger


class WebSocketServer:
  """Wrapper around the websockets server that handles connection errors gracefully"""

  def __init__(
    self,
    handler: Callable[[ServerConnection], Awaitable[None]],
    host: str,
    port: int,
    allowed_origins: list[str] | None = None,
    **kwargs,
  ):
    self.handler = handler
    self.host = host
    self.port = port
    self.origins = [Origin(origin) for origin in allowed_origins] if allowed_origins else None
    self.kwargs = kwargs
    self.logger = get_logger("ws/server")

  async def start(self, stop: asyncio.Future | None = None) -> None:
    """Serve until ``stop`` resolves, or forever when it is not given."""
    self.logger.info(
      f"Starting WebSocket server on {self.host}:{self.port}", origins=self.origins or "any"
    )
    async with serve(
      self.error_handling_wrapper,
      self.host,
      self.port,
      origins=self.origins,
      **self.kwargs,
    ):
      await (stop if stop is not None else asyncio.Future())

  async def error_handling_wrapper(self, websocket: ServerConnection) -> None:
    """Wrapper that catches and logs connection errors without crashing"""
    addr = websocket.remote_address

    try:
      self.logger.info("Connection begin", address=addr, websocket_id=str(websocket.id))
      await self.handler(websocket)
    except (EOFError, InvalidMessage):
      self.logger.debug(
        "Connection from failed handshake (likely port scan/health check)",
        websocket_id=str(websocket.id),
      )
    except ConnectionClosed as e:
      self.logger.debug("Connection closed", error=str(e), websocket_id=str(websocket.id))
    except Exception:
      self.logger.exception("Connection unexpected error", websocket_id=str(websocket.id))
