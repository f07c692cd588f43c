import asyncio

from websockets.asyncio.server import ServerConnection
from websockets.exceptions import ConnectionClosed

from minutes.config import RelayConfig
from minutes.logs import get_logger
from minutes.peers import WebSocketPeer
from minutes.pipeline import TranscriptionPipeline
from minutes.providers import Provider, create_provider
from minutes.relay import RelayHandler
from minutes.sessions import SessionStore
from minutes.websocket import WebSocketServer


class RelayServer:
  """
  Wires the relay together and serves it over websockets.

  One task per connection reads frames and hands them to the shared :class:`RelayHandler`;
  pipeline runs live in their own tasks and outlast the connection that started them.
  """

  def __init__(self, config: RelayConfig, provider: Provider | None = None) -> None:
    self.config = config
    self.provider = provider or create_provider(config.provider)
    self.store = SessionStore(chunk_duration_ms=config.buffer.chunk_duration_ms)
    self.pipeline = TranscriptionPipeline(self.provider, self.provider, config.pipeline)
    self.handler = RelayHandler(
      self.store,
      self.pipeline,
      buffer_config=config.buffer,
      server_config=config.server,
    )
    self.logger = get_logger("server")

  async def handle_connection(self, websocket: ServerConnection) -> None:
    """Pump one client's frames into the handler until the connection closes."""
    peer = WebSocketPeer(websocket)
    self.handler.connect(peer)

    try:
      async for frame in websocket:
        await self.handler.handle_frame(peer.id, frame)
    except ConnectionClosed:
      self.logger.info("Connection closed by client", connection=peer.id)
    finally:
      peer.close()
      await self.handler.disconnect(peer.id)

  async def run(self, stop: asyncio.Future | None = None) -> None:
    """Run the relay until ``stop`` resolves or the task is cancelled."""
    server_config = self.config.server
    websocket_server = WebSocketServer(
      self.handle_connection,
      server_config.host,
      server_config.port,
      allowed_origins=server_config.allowed_origins,
    )

    try:
      await websocket_server.start(stop)
    finally:
      self.logger.info(
        "Shutting down relay",
        live_sessions=len(self.store),
        pending_pipelines=len(self.handler.pipeline_tasks),
      )
      await self.handler.close()
      await self.provider.close()
