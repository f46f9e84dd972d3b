"""Tests for request building and the transient audio file lifecycle."""

import os
import random

import pytest

from tugboat import config
from tugboat.core.errors import (
    EmptyMessageError,
    InvalidGenderError,
    MessageTooLongError,
    NoMatchingVoiceError,
    NotConnectedError,
    ProviderError,
)
from tugboat.core.synthesis import SynthesisRequest, build_request, parse_gender
from tugboat.utils import audio_processor


class TestParseGender:
    @pytest.mark.parametrize("raw, expected", [
        ("FEMALE", "Female"),
        ("female", "Female"),
        (" Male ", "Male"),
        ("neutral", "Neutral"),
        (None, None),
        ("", None),
    ])
    def test_accepted_values(self, raw, expected):
        assert parse_gender(raw) == expected

    def test_unknown_gender(self):
        with pytest.raises(InvalidGenderError) as excinfo:
            parse_gender("robot")
        assert "FEMALE, MALE, NEUTRAL" in excinfo.value.user_message


class TestBuildRequest:
    def test_defaults_to_default_language(self, catalog):
        request = build_request(catalog, "hello", rng=random.Random(0))

        assert request.language == config.DEFAULT_LANGUAGE
        assert request.voice.startswith("en-US-")
        assert request.gender is None

    def test_random_choice_within_filter(self, catalog):
        rng = random.Random(7)
        voices = {build_request(catalog, "hi", "en-US", "FEMALE", rng=rng).voice for _ in range(50)}
        assert voices == {"en-US-JennyNeural", "en-US-AriaNeural"}

    def test_text_is_normalized(self, catalog):
        request = build_request(catalog, "  \U0001d407\U0001d422   there\u200b ")
        assert request.text == "Hi there"

    def test_empty_after_normalization(self, catalog):
        with pytest.raises(EmptyMessageError):
            build_request(catalog, "\u200b \t ")

    def test_missing_message(self, catalog):
        with pytest.raises(EmptyMessageError):
            build_request(catalog, None)

    def test_too_long(self, catalog):
        with pytest.raises(MessageTooLongError) as excinfo:
            build_request(catalog, "a" * (config.MAX_TTS_LENGTH + 1))
        assert str(config.MAX_TTS_LENGTH) in excinfo.value.user_message

    def test_max_length_is_accepted(self, catalog):
        request = build_request(catalog, "a" * config.MAX_TTS_LENGTH)
        assert len(request.text) == config.MAX_TTS_LENGTH

    def test_no_voice_for_language_and_gender(self, catalog):
        with pytest.raises(NoMatchingVoiceError) as excinfo:
            build_request(catalog, "bonjour", "fr-FR", "FEMALE")
        assert "fr-FR" in excinfo.value.user_message

    def test_unknown_language(self, catalog):
        with pytest.raises(NoMatchingVoiceError):
            build_request(catalog, "hello", "tlh-Qaak")


class TestSsml:
    def test_envelope_escapes_text(self):
        request = SynthesisRequest(text="Tom & <Jerry>", voice="en-US-GuyNeural", language="en-US")
        ssml = request.ssml

        assert ssml.startswith("<speak ")
        assert ssml.endswith("</speak>")
        assert "xml:lang='en-US'" in ssml
        assert "<voice name='en-US-GuyNeural'>Tom &amp; &lt;Jerry&gt;</voice>" in ssml


class TestSpeak:
    @pytest.mark.asyncio
    async def test_file_lives_until_track_finishes(self, speech, registry, transport, fake_writer):
        await registry.join(1, 10)
        request = speech.build_request("hello world")

        track = await speech.speak(1, request)

        assert track.path == fake_writer[0]
        assert os.path.exists(track.path)
        assert transport.tracks == [track]
        assert track.display_name.startswith(request.voice)

        track.finish()

        assert not os.path.exists(track.path)
        await registry.shutdown()

    @pytest.mark.asyncio
    async def test_file_removed_when_enqueue_fails(self, speech, registry, transport, fake_writer):
        await registry.join(1, 10)
        transport.fail_enqueue = True

        with pytest.raises(ProviderError):
            await speech.speak(1, speech.build_request("hello"))

        assert len(fake_writer) == 1
        assert not os.path.exists(fake_writer[0])
        await registry.shutdown()

    @pytest.mark.asyncio
    async def test_file_removed_when_session_gone(self, speech, fake_writer):
        with pytest.raises(NotConnectedError):
            await speech.speak(1, speech.build_request("hello"))

        assert not os.path.exists(fake_writer[0])

    @pytest.mark.asyncio
    async def test_synthesis_failure_writes_nothing(self, speech, registry, provider, fake_writer):
        await registry.join(1, 10)
        provider.fail_synthesize = True

        with pytest.raises(ProviderError):
            await speech.speak(1, speech.build_request("hello"))

        assert fake_writer == []
        await registry.shutdown()

    @pytest.mark.asyncio
    async def test_undecodable_audio_is_a_provider_error(self, speech, registry, monkeypatch):
        def broken_writer(*args, **kwargs):
            raise ValueError("Could not decode synthesized mp3 audio")

        monkeypatch.setattr(audio_processor, "write_transient_audio", broken_writer)
        await registry.join(1, 10)

        with pytest.raises(ProviderError):
            await speech.speak(1, speech.build_request("hello"))
        await registry.shutdown()

    @pytest.mark.asyncio
    async def test_disconnect_removes_queued_file(self, speech, registry, fake_writer):
        await registry.join(1, 10)
        track = await speech.speak(1, speech.build_request("hello"))

        await registry.leave(1)

        assert track.finished
        assert not os.path.exists(fake_writer[0])
