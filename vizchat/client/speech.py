"""
Read-aloud support.

Speech is synthesized as raw 16-bit mono PCM at 24 kHz, either through the
OpenAI audio API or, for the SSE proxy transport, through the proxy's
/api/speech endpoint (base64 in a JSON body). Playback goes through an
AudioPlayer so the renderers and the CLI never touch an audio device.
"""

import base64
import logging
import re
import wave
from pathlib import Path
from typing import Optional

import openai
import requests

from ..errors import VizchatError
from .config import ChatConfig

logger = logging.getLogger(__name__)

SAMPLE_RATE = 24000
SAMPLE_WIDTH = 2
CHANNELS = 1
MAX_SPEECH_CHARS = 2000

_MARKUP_RE = re.compile(r"[#*`_~]")


def speech_text(content: str) -> str:
    """Strip Markdown markers and cap the length sent for synthesis."""
    return _MARKUP_RE.sub("", content)[:MAX_SPEECH_CHARS]


class NullAudioPlayer:
    """Discards audio. Used when no output is configured."""

    def play(self, audio: bytes) -> None:
        logger.debug("Discarding %d bytes of audio", len(audio))

    def stop(self) -> None:
        pass


class FileAudioPlayer:
    """Writes each utterance as a WAV file instead of playing it."""

    def __init__(self, path: str):
        self.path = Path(path)
        self.last_written: Optional[Path] = None

    def play(self, audio: bytes) -> None:
        if not audio:
            return
        # Odd trailing byte would split a sample
        usable = audio[:len(audio) - len(audio) % SAMPLE_WIDTH]
        with wave.open(str(self.path), "wb") as out:
            out.setnchannels(CHANNELS)
            out.setsampwidth(SAMPLE_WIDTH)
            out.setframerate(SAMPLE_RATE)
            out.writeframes(usable)
        self.last_written = self.path
        logger.info("Wrote %d samples to %s", len(usable) // SAMPLE_WIDTH, self.path)

    def stop(self) -> None:
        pass


class SpeechService:
    """Turns text into PCM audio using the configured transport."""

    def __init__(self, config: ChatConfig, openai_client: Optional[openai.OpenAI] = None,
                 session: Optional[requests.Session] = None):
        self.config = config
        self.openai_client = openai_client
        self.session = session or requests.Session()

    def synthesize(self, text: str) -> bytes:
        text = speech_text(text)
        if not text.strip():
            raise VizchatError("Nothing to read aloud")

        if self.config.transport == "sse":
            return self._synthesize_via_proxy(text)
        if self.openai_client is None:
            raise VizchatError("Speech needs an OpenAI-compatible client")

        try:
            response = self.openai_client.audio.speech.create(
                model=self.config.speech_model,
                voice=self.config.speech_voice,
                input=text,
                response_format="pcm",
            )
        except openai.OpenAIError as e:
            raise VizchatError(f"Speech generation failed: {e}") from e
        return response.content

    def _synthesize_via_proxy(self, text: str) -> bytes:
        try:
            response = self.session.post(
                f"{self.config.base_url}/api/speech",
                json={"text": text},
                timeout=self.config.timeout,
            )
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise VizchatError(f"Speech generation failed: {e}") from e

        if not isinstance(data, dict):
            raise VizchatError("Speech generation failed: unexpected response")
        if data.get("error"):
            raise VizchatError(f"Speech generation failed: {data['error']}")
        encoded = data.get("data") or ""
        if "," in encoded:
            # data URL
            encoded = encoded.split(",", 1)[1]
        try:
            return base64.b64decode(encoded)
        except ValueError as e:
            raise VizchatError(f"Speech payload is not base64: {e}") from e
