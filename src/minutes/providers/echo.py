"""Offline provider for local development without network access."""

import re

from minutes.errors import SummarizationFailed

_SENTENCE_END = re.compile(r"(?<=[.!?])\s")


class EchoProvider:
  """
  Stand-in provider that never leaves the process.

  Each chunk "transcribes" to a note about its size, and the summary is the first sentence of the
  transcript. Useful for exercising the relay end to end from a browser.
  """

  async def transcribe(self, payload: bytes) -> str:
    return f"<{len(payload)} bytes of audio>"

  async def summarize(self, text: str) -> str:
    text = text.strip()
    if not text:
      raise SummarizationFailed("Nothing to summarize")
    return _SENTENCE_END.split(text, maxsplit=1)[0]

  async def close(self) -> None:
    pass
