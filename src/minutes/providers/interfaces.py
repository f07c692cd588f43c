"""
Protocol interfaces for the external model provider.

The relay treats transcription and summarization as opaque capabilities. Implementations are
injected into the pipeline, so tests can substitute doubles without touching global state.
"""

from typing import Protocol


class Transcriber(Protocol):
  """Turns one raw chunk payload into text."""

  async def transcribe(self, payload: bytes) -> str:
    """
    Transcribe a single encoded audio chunk.

    :raises TranscriptionFailed: the provider could not produce text.
    """
    ...


class Summarizer(Protocol):
  """Condenses a full transcript into a summary."""

  async def summarize(self, text: str) -> str:
    """
    Summarize a transcript.

    :raises SummarizationFailed: the provider could not produce a summary.
    """
    ...


class Provider(Transcriber, Summarizer, Protocol):
  """A single backend offering both capabilities."""

  async def close(self) -> None:
    """Release any network resources."""
    ...
