import os
from enum import StrEnum

import yaml
from pydantic import BaseModel, Field, model_validator, validate_call
from pydantic.types import FilePath

from minutes.logs import get_logger

logger = get_logger("cfg")

DEFAULT_APP_ORIGIN = "http://localhost:3000"

DEFAULT_TRANSCRIPTION_PROMPT = (
  "Transcribe this audio. If there are multiple speakers, indicate who is speaking. "
  "Format: [Speaker]: transcription"
)

DEFAULT_SUMMARY_PROMPT = (
  "Summarize this meeting transcript. Include key points, action items, and decisions:"
)


class ServerConfig(BaseModel):
  """Websocket listener settings."""

  host: str = "0.0.0.0"
  """Interface to bind."""

  port: int = Field(default_factory=lambda: get_env_int("SOCKET_PORT", 3001), gt=0, lt=65536)
  """Listening port."""

  allowed_origins: list[str] = Field(
    default_factory=lambda: [os.getenv("NEXT_PUBLIC_APP_URL", DEFAULT_APP_ORIGIN)]
  )
  """Origins accepted during the websocket handshake. Empty list accepts any origin."""

  reattach_grace_seconds: float = Field(default=0.0, ge=0.0)
  """
  How long a live session survives its connection closing. Zero removes it at once; a positive
  value lets a reconnecting client reclaim the session by repeating start_recording.
  """


class BufferConfig(BaseModel):
  """Per-session chunk buffer settings."""

  chunk_duration_ms: int = Field(default=1000, gt=0)
  """Nominal duration of one chunk, used to estimate capture offsets the client did not send."""

  max_chunk_bytes: int = Field(default=10 * 1024 * 1024, gt=0)
  """Decoded payloads larger than this are rejected."""

  max_chunks: int = Field(default=4 * 60 * 60, gt=0)
  """Chunk indices at or above this are rejected. The default covers four hours at 1s chunks."""


class PipelineConfig(BaseModel):
  """Transcription pipeline settings."""

  chunk_timeout: float = Field(default=30.0, gt=0.0)
  """Seconds allowed for one chunk transcription call."""

  summary_timeout: float = Field(default=60.0, gt=0.0)
  """Seconds allowed for the summarization call."""

  max_in_flight: int = Field(default=1, ge=1)
  """External calls in flight per session. One keeps the calls strictly sequential."""


class ProviderKind(StrEnum):
  GEMINI = "gemini"
  ECHO = "echo"


class ProviderConfig(BaseModel):
  """External transcription and summarization provider."""

  kind: ProviderKind = ProviderKind.GEMINI

  model: str = "gemini-2.0-flash"

  api_key: str | None = Field(default_factory=lambda: os.getenv("GEMINI_API_KEY"), repr=False)
  """API key. Defaults to the GEMINI_API_KEY environment variable."""

  base_url: str = "https://generativelanguage.googleapis.com"

  mime_type: str = "audio/webm"
  """Mime type declared for the raw chunk payloads."""

  transcription_prompt: str = DEFAULT_TRANSCRIPTION_PROMPT
  summary_prompt: str = DEFAULT_SUMMARY_PROMPT

  @model_validator(mode="after")
  def require_api_key(self) -> "ProviderConfig":
    """The Gemini provider cannot run without a key."""
    if self.kind == ProviderKind.GEMINI and not self.api_key:
      raise ValueError(
        "provider.api_key is required for the gemini provider. "
        "Set it in the configuration file or via the GEMINI_API_KEY environment variable, "
        "or use 'kind: echo' for offline development."
      )
    return self


class RelayConfig(BaseModel):
  """Top-level relay configuration."""

  server: ServerConfig = Field(default_factory=ServerConfig)
  buffer: BufferConfig = Field(default_factory=BufferConfig)
  pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
  provider: ProviderConfig = Field(default_factory=ProviderConfig)

  def pretty_print(self) -> None:
    """Log every configuration value at INFO level, defaults included."""
    logger.info("=" * 60)
    logger.info("MINUTES RELAY CONFIGURATION")
    logger.info("=" * 60)

    logger.info("SERVER SETTINGS:")
    logger.info(f"  Host: {self.server.host}")
    logger.info(f"  Port: {self.server.port}")
    logger.info(f"  Allowed Origins: {self.server.allowed_origins or 'any'}")
    logger.info(f"  Reattach Grace: {self.server.reattach_grace_seconds:.1f}s")

    logger.info("BUFFER SETTINGS:")
    logger.info(f"  Chunk Duration: {self.buffer.chunk_duration_ms}ms")
    logger.info(f"  Max Chunk Bytes: {self.buffer.max_chunk_bytes}")
    logger.info(f"  Max Chunks: {self.buffer.max_chunks}")

    logger.info("PIPELINE SETTINGS:")
    logger.info(f"  Chunk Timeout: {self.pipeline.chunk_timeout:.1f}s")
    logger.info(f"  Summary Timeout: {self.pipeline.summary_timeout:.1f}s")
    logger.info(f"  Max In Flight: {self.pipeline.max_in_flight}")

    logger.info("PROVIDER SETTINGS:")
    logger.info(f"  Kind: {self.provider.kind}")
    logger.info(f"  Model: {self.provider.model}")
    logger.info(f"  Base URL: {self.provider.base_url}")
    logger.info(f"  Mime Type: {self.provider.mime_type}")
    logger.info(f"  API Key: {'set' if self.provider.api_key else 'unset'}")

    logger.info("=" * 60)


@validate_call
def load_config_from_file(config_path: FilePath) -> RelayConfig:
  """Load and validate relay configuration from a YAML file."""

  logger.info("Loading relay configuration", path=str(config_path))

  try:
    with open(config_path, "r", encoding="utf-8") as file:
      config_data = yaml.safe_load(file)

  except yaml.YAMLError as e:
    raise ValueError(f"Invalid YAML in configuration file: {e}") from e
  except Exception as e:
    raise ValueError(f"Error reading configuration file: {e}") from e

  if config_data is None:
    raise ValueError("Configuration file is empty")

  if not isinstance(config_data, dict):
    raise ValueError("Configuration file must contain a YAML dictionary")

  config = RelayConfig.model_validate(config_data)
  config.pretty_print()

  return config


def get_env_int(key: str, default: int) -> int:
  """Get an int from an environment variable, falling back on unparseable values."""
  try:
    return int(os.getenv(key, str(default)))
  except ValueError:
    return default
