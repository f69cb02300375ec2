"""Tests for speech synthesis and WAV output."""

import base64
import wave
from types import SimpleNamespace
from unittest.mock import Mock

import openai
import pytest
import requests

from vizchat.client.config import ChatConfig
from vizchat.client.speech import (
    MAX_SPEECH_CHARS,
    SAMPLE_RATE,
    FileAudioPlayer,
    NullAudioPlayer,
    SpeechService,
    speech_text,
)
from vizchat.errors import VizchatError

PCM = b"\x00\x01" * 240


class TestSpeechText:

    def test_markdown_markers_removed(self):
        assert speech_text("## **Bold** `code` _it_ ~x~") == " Bold code it x"

    def test_length_capped(self):
        assert len(speech_text("a" * (MAX_SPEECH_CHARS + 50))) == MAX_SPEECH_CHARS


class TestAudioPlayers:

    def test_file_player_writes_wav(self, tmp_path):
        path = tmp_path / "answer.wav"
        player = FileAudioPlayer(str(path))

        player.play(PCM + b"\x07")

        assert player.last_written == path
        with wave.open(str(path), "rb") as wav:
            assert wav.getnchannels() == 1
            assert wav.getsampwidth() == 2
            assert wav.getframerate() == SAMPLE_RATE
            assert wav.getnframes() == len(PCM) // 2

    def test_file_player_ignores_empty_audio(self, tmp_path):
        player = FileAudioPlayer(str(tmp_path / "none.wav"))

        player.play(b"")

        assert player.last_written is None
        assert not (tmp_path / "none.wav").exists()

    def test_null_player(self):
        player = NullAudioPlayer()

        player.play(PCM)
        player.stop()


class TestProxySpeech:

    def service(self, body=None, error=None):
        session = Mock()
        if error is not None:
            session.post.side_effect = error
        else:
            session.post.return_value = Mock(json=Mock(return_value=body))
        return SpeechService(ChatConfig(transport="sse"), session=session), session

    def test_base64_payload(self):
        service, session = self.service({"data": base64.b64encode(PCM).decode()})

        assert service.synthesize("**Hello**") == PCM
        assert session.post.call_args[0][0] == "http://localhost:8000/api/speech"
        assert session.post.call_args[1]["json"] == {"text": "Hello"}

    def test_data_url_payload(self):
        service, _ = self.service({"data": "data:audio/pcm;base64," + base64.b64encode(PCM).decode()})

        assert service.synthesize("Hello") == PCM

    def test_error_body(self):
        service, _ = self.service({"error": "TTS unavailable"})

        with pytest.raises(VizchatError, match="TTS unavailable"):
            service.synthesize("Hello")

    def test_network_error(self):
        service, _ = self.service(error=requests.exceptions.ConnectionError("refused"))

        with pytest.raises(VizchatError, match="Speech generation failed"):
            service.synthesize("Hello")

    def test_nothing_to_read(self):
        service, session = self.service({})

        with pytest.raises(VizchatError, match="Nothing to read aloud"):
            service.synthesize("** __ **")
        session.post.assert_not_called()


class TestOpenAISpeech:

    def test_pcm_request(self):
        client = Mock()
        client.audio.speech.create.return_value = SimpleNamespace(content=PCM)
        service = SpeechService(ChatConfig(speech_voice="nova"), openai_client=client)

        assert service.synthesize("Hello") == PCM
        client.audio.speech.create.assert_called_once_with(
            model="tts-1", voice="nova", input="Hello", response_format="pcm"
        )

    def test_api_error(self):
        client = Mock()
        client.audio.speech.create.side_effect = openai.OpenAIError("no tts model")
        service = SpeechService(ChatConfig(), openai_client=client)

        with pytest.raises(VizchatError, match="no tts model"):
            service.synthesize("Hello")

    def test_missing_client(self):
        with pytest.raises(VizchatError, match="OpenAI-compatible client"):
            SpeechService(ChatConfig(), openai_client=None).synthesize("Hello")
