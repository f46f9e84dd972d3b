"""Shared fakes and fixtures for the tugboat test-suite."""

import os
import random

import pytest

from tugboat.core.commands import BotServices, CommandDispatcher
from tugboat.core.errors import ProviderError
from tugboat.core.session_registry import SessionRegistry
from tugboat.core.synthesis import SpeechService
from tugboat.core.voice_catalog import VoiceCatalog, VoiceInfo
from tugboat.utils import audio_processor


class FakeTransport:
    """In-memory voice transport that records every call."""

    def __init__(self):
        self.connected = {}
        self.tracks = []
        self.calls = []
        self.fail_connect = False
        self.fail_enqueue = False

    async def connect(self, guild_id, channel_id):
        self.calls.append(("connect", guild_id, channel_id))
        if self.fail_connect:
            raise ProviderError("connect failed", user_message="Could not join voice channel.")
        self.connected[guild_id] = channel_id

    async def disconnect(self, guild_id):
        self.calls.append(("disconnect", guild_id))
        self.connected.pop(guild_id, None)
        for track in self.tracks:
            if track.guild_id == guild_id:
                track.finish()

    async def enqueue(self, guild_id, track):
        self.calls.append(("enqueue", guild_id, track.display_name))
        if self.fail_enqueue:
            raise ProviderError("enqueue failed", user_message="Not in a voice channel right now.")
        self.tracks.append(track)
        return sum(1 for t in self.tracks if t.guild_id == guild_id and not t.finished)

    def skip(self, guild_id):
        self.calls.append(("skip", guild_id))
        for track in self.tracks:
            if track.guild_id == guild_id and not track.finished:
                track.finish()
                return True
        return False

    def current_channel(self, guild_id):
        return self.connected.get(guild_id)

    def count(self, name):
        return sum(1 for call in self.calls if call[0] == name)


class FakeProvider:
    """Speech provider returning canned voices and audio."""

    def __init__(self, entries=None):
        self.entries = entries if entries is not None else []
        self.requests = []
        self.fail_list = False
        self.fail_synthesize = False

    async def list_voices(self):
        if self.fail_list:
            raise ProviderError("voice list unavailable")
        return self.entries

    async def synthesize(self, request):
        self.requests.append(request)
        if self.fail_synthesize:
            raise ProviderError("synthesis failed")
        return b"fake-audio"


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def catalog():
    return VoiceCatalog([
        VoiceInfo("en-US-JennyNeural", "en-US", "Female"),
        VoiceInfo("en-US-AriaNeural", "en-US", "Female"),
        VoiceInfo("en-US-GuyNeural", "en-US", "Male"),
        VoiceInfo("fr-FR-HenriNeural", "fr-FR", "Male"),
        VoiceInfo("de-DE-KatjaNeural", "de-DE", "Female"),
    ])


@pytest.fixture
def registry(transport):
    # Long ticks so the background timer never fires during a test
    return SessionRegistry(transport, idle_tick_seconds=3600, idle_threshold=10)


@pytest.fixture
def fake_writer(tmp_path, monkeypatch):
    """Replaces pydub decoding with a plain file write into ``tmp_path``."""
    written = []

    def write_transient_audio(audio_bytes, directory, source_format="mp3", label="tts"):
        path = os.path.join(directory, f"clip_{len(written)}.wav")
        with open(path, "wb") as f:
            f.write(audio_bytes)
        written.append(path)
        return path

    monkeypatch.setattr(audio_processor, "write_transient_audio", write_transient_audio)
    return written


@pytest.fixture
def speech(registry, provider, catalog, tmp_path, fake_writer):
    return SpeechService(registry, provider, catalog, temp_dir=str(tmp_path), rng=random.Random(1234))


@pytest.fixture
def dispatcher(registry, speech, catalog):
    return CommandDispatcher(BotServices(registry, speech, catalog))
