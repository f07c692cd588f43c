"""
External transcription and summarization providers.
"""

from minutes.config import ProviderConfig, ProviderKind
from minutes.providers.echo import EchoProvider
from minutes.providers.gemini import GeminiClient
from minutes.providers.interfaces import Provider, Summarizer, Transcriber


def create_provider(config: ProviderConfig) -> Provider:
  """Build the provider selected by ``config.kind``."""
  match config.kind:
    case ProviderKind.GEMINI:
      return GeminiClient(config)
    case ProviderKind.ECHO:
      return EchoProvider()


__all__ = [
  "EchoProvider",
  "GeminiClient",
  "Provider",
  "Summarizer",
  "Transcriber",
  "create_provider",
]
