"""Tests for the external provider implementations."""

import base64

import aiohttp
import pytest

from minutes.config import ProviderConfig
from minutes.errors import SummarizationFailed, TranscriptionFailed
from minutes.providers import EchoProvider, GeminiClient, create_provider
from minutes.providers.gemini import GeminiError, extract_text


def gemini_reply(text: str) -> dict:
  return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class FakeResponse:
  def __init__(self, status: int, body: dict | None = None, text: str = ""):
    self.status = status
    self._body = body or {}
    self._text = text

  async def json(self) -> dict:
    return self._body

  async def text(self) -> str:
    return self._text

  async def __aenter__(self) -> "FakeResponse":
    return self

  async def __aexit__(self, *exc) -> None:
    return None


class FakeSession:
  """Stands in for aiohttp.ClientSession, recording each request."""

  def __init__(self, response: FakeResponse | None = None, error: Exception | None = None):
    self.response = response
    self.error = error
    self.requests: list[dict] = []
    self.closed = False

  def post(self, url: str, json: dict, headers: dict) -> FakeResponse:
    self.requests.append({"url": url, "json": json, "headers": headers})
    if self.error:
      raise self.error
    assert self.response is not None
    return self.response

  async def close(self) -> None:
    self.closed = True


@pytest.fixture
def provider_config() -> ProviderConfig:
  return ProviderConfig(api_key="secret", model="gemini-2.0-flash")


class TestExtractText:
  def test_joins_parts(self):
    data = {"candidates": [{"content": {"parts": [{"text": "Hello "}, {"text": "there "}]}}]}
    assert extract_text(data) == "Hello there"

  def test_blocked_prompt(self):
    with pytest.raises(GeminiError, match="SAFETY"):
      extract_text({"promptFeedback": {"blockReason": "SAFETY"}})

  def test_empty_text(self):
    with pytest.raises(GeminiError, match="no text"):
      extract_text(gemini_reply("   "))


class TestGeminiClient:
  def test_endpoint(self, provider_config):
    client = GeminiClient(provider_config, session=FakeSession())
    assert client.endpoint == (
      "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.0-flash:generateContent"
    )

  @pytest.mark.asyncio
  async def test_transcribe_sends_inline_audio(self, provider_config):
    session = FakeSession(FakeResponse(200, gemini_reply("[Speaker 1]: hi")))
    client = GeminiClient(provider_config, session=session)

    text = await client.transcribe(b"\x1a\x45\xdf\xa3")

    assert text == "[Speaker 1]: hi"
    [request] = session.requests
    assert request["headers"] == {"x-goog-api-key": "secret"}
    inline, prompt = request["json"]["contents"][0]["parts"]
    assert inline["inlineData"]["mimeType"] == "audio/webm"
    assert base64.b64decode(inline["inlineData"]["data"]) == b"\x1a\x45\xdf\xa3"
    assert prompt["text"].startswith("Transcribe this audio")

  @pytest.mark.asyncio
  async def test_summarize_prompt_includes_transcript(self, provider_config):
    session = FakeSession(FakeResponse(200, gemini_reply("Key points: greetings")))
    client = GeminiClient(provider_config, session=session)

    summary = await client.summarize("[0s] hello")

    assert summary == "Key points: greetings"
    [part] = session.requests[0]["json"]["contents"][0]["parts"]
    assert part["text"].endswith("\n\n[0s] hello")
    assert "action items" in part["text"]

  @pytest.mark.asyncio
  async def test_http_error_becomes_transcription_failed(self, provider_config):
    session = FakeSession(FakeResponse(429, text="quota"))
    client = GeminiClient(provider_config, session=session)

    with pytest.raises(TranscriptionFailed, match="429"):
      await client.transcribe(b"audio")

  @pytest.mark.asyncio
  async def test_network_error_becomes_summarization_failed(self, provider_config):
    session = FakeSession(error=aiohttp.ClientConnectionError("refused"))
    client = GeminiClient(provider_config, session=session)

    with pytest.raises(SummarizationFailed, match="refused"):
      await client.summarize("text")

  @pytest.mark.asyncio
  async def test_borrowed_session_left_open(self, provider_config):
    session = FakeSession()
    client = GeminiClient(provider_config, session=session)

    await client.close()

    assert session.closed is False


class TestEchoProvider:
  @pytest.mark.asyncio
  async def test_transcribe_reports_size(self):
    assert await EchoProvider().transcribe(b"abcd") == "<4 bytes of audio>"

  @pytest.mark.asyncio
  async def test_summary_is_first_sentence(self):
    summary = await EchoProvider().summarize("We met. We talked. We left.")
    assert summary == "We met."

  @pytest.mark.asyncio
  async def test_empty_summary_fails(self):
    with pytest.raises(SummarizationFailed):
      await EchoProvider().summarize("  ")


def test_create_provider_selects_kind(provider_config):
  assert isinstance(create_provider(provider_config), GeminiClient)
  assert isinstance(create_provider(ProviderConfig(kind="echo")), EchoProvider)
