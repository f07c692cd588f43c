"""
Gemini provider over the ``generateContent`` REST endpoint.

Audio chunks are sent inline as base64 alongside the transcription prompt. The summary request
is a single text prompt followed by the transcript.
"""

import base64
from typing import Any

import aiohttp

from minutes.config import ProviderConfig
from minutes.errors import RelayError, SummarizationFailed, TranscriptionFailed
from minutes.logs import get_logger


class GeminiError(RelayError):
  """The Gemini API returned an unusable response."""


class GeminiClient:
  """
  Transcriber and summarizer backed by a Gemini model.

  One client is shared by every session. It holds no per-call state beyond the pooled HTTP
  session, which is opened lazily on the running event loop.
  """

  def __init__(self, config: ProviderConfig, session: aiohttp.ClientSession | None = None) -> None:
    if not config.api_key:
      raise ValueError("Gemini provider requires an API key")
    self.config = config
    self._session = session
    self._owns_session = session is None
    self.logger = get_logger("prov/gemini", model=config.model)

  @property
  def endpoint(self) -> str:
    model = self.config.model
    if not model.startswith("models/"):
      model = f"models/{model}"
    return f"{self.config.base_url.rstrip('/')}/v1beta/{model}:generateContent"

  async def transcribe(self, payload: bytes) -> str:
    parts = [
      {
        "inlineData": {
          "mimeType": self.config.mime_type,
          "data": base64.b64encode(payload).decode("ascii"),
        }
      },
      {"text": self.config.transcription_prompt},
    ]
    try:
      return await self._generate(parts)
    except (aiohttp.ClientError, GeminiError) as e:
      raise TranscriptionFailed(str(e)) from e

  async def summarize(self, text: str) -> str:
    parts = [{"text": f"{self.config.summary_prompt}\n\n{text}"}]
    try:
      return await self._generate(parts)
    except (aiohttp.ClientError, GeminiError) as e:
      raise SummarizationFailed(str(e)) from e

  async def close(self) -> None:
    if self._session is not None and self._owns_session:
      await self._session.close()
    self._session = None

  async def _generate(self, parts: list[dict[str, Any]]) -> str:
    session = self._get_session()
    body = {"contents": [{"parts": parts}]}
    headers = {"x-goog-api-key": self.config.api_key or ""}

    async with session.post(self.endpoint, json=body, headers=headers) as response:
      if response.status != 200:
        detail = (await response.text())[:500]
        self.logger.error("Gemini request failed", status=response.status, detail=detail)
        raise GeminiError(f"Gemini error: {response.status}")
      data = await response.json()

    return extract_text(data)

  def _get_session(self) -> aiohttp.ClientSession:
    if self._session is None or self._session.closed:
      self._session = aiohttp.ClientSession()
      self._owns_session = True
    return self._session


def extract_text(data: dict[str, Any]) -> str:
  """
  Pull the generated text out of a ``generateContent`` response.

  :raises GeminiError: the response has no candidate text.
  """
  candidates = data.get("candidates") or []
  if not candidates:
    reason = (data.get("promptFeedback") or {}).get("blockReason")
    raise GeminiError(f"Gemini response had no candidates (block reason: {reason})")

  parts = (candidates[0].get("content") or {}).get("parts") or []
  text = "".join(part.get("text", "") for part in parts).strip()
  if not text:
    raise GeminiError("Gemini response contained no text")
  return text
