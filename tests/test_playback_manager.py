"""Tests for the py-cord voice transport, with the voice client mocked out."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import discord
import pytest

from tugboat.core.audio_types import AudioTrack
from tugboat.core.errors import ProviderError
from tugboat.core.playback_manager import PlaybackManager


def make_voice_client(guild_id=1, channel_id=10):
    vc = MagicMock()
    vc.guild.id = guild_id
    vc.channel.id = channel_id
    vc.is_connected.return_value = True
    vc.is_playing.return_value = False
    vc.is_paused.return_value = False
    vc.disconnect = AsyncMock()
    return vc


def make_track(tmp_path, name="clip", guild_id=1):
    path = tmp_path / f"{name}.wav"
    path.write_bytes(b"RIFF")
    return AudioTrack(guild_id=guild_id, path=str(path), display_name=name)


@pytest.fixture
def voice_client():
    return make_voice_client()


@pytest.fixture
def manager(voice_client):
    bot = MagicMock()
    bot.voice_clients = [voice_client]
    return PlaybackManager(bot)


@pytest.fixture
def ffmpeg():
    with patch("discord.FFmpegPCMAudio") as source:
        yield source


class TestQueries:
    def test_current_channel(self, manager):
        assert manager.current_channel(1) == 10
        assert manager.current_channel(2) is None


class TestEnqueue:
    @pytest.mark.asyncio
    async def test_not_connected(self, manager, tmp_path):
        manager.bot.voice_clients = []

        with pytest.raises(ProviderError) as excinfo:
            await manager.enqueue(1, make_track(tmp_path))

        assert excinfo.value.user_message == "Not in a voice channel right now."

    @pytest.mark.asyncio
    async def test_first_track_plays_immediately(self, manager, voice_client, ffmpeg, tmp_path):
        track = make_track(tmp_path)

        position = await manager.enqueue(1, track)

        assert position == 1
        assert manager.get_current_item(1) is track
        ffmpeg.assert_called_once_with(track.path)
        voice_client.play.assert_called_once()

    @pytest.mark.asyncio
    async def test_second_track_waits(self, manager, voice_client, ffmpeg, tmp_path):
        first, second = make_track(tmp_path, "first"), make_track(tmp_path, "second")

        await manager.enqueue(1, first)
        position = await manager.enqueue(1, second)

        assert position == 2
        assert manager.get_queue(1) == [second]
        assert voice_client.play.call_count == 1

    @pytest.mark.asyncio
    async def test_after_hook_finishes_track_and_advances(self, manager, voice_client, ffmpeg, tmp_path):
        manager.bot.loop = asyncio.get_running_loop()
        first, second = make_track(tmp_path, "first"), make_track(tmp_path, "second")
        await manager.enqueue(1, first)
        await manager.enqueue(1, second)

        after = voice_client.play.call_args.kwargs["after"]
        after(None)
        await asyncio.sleep(0.01)

        assert first.finished
        assert manager.get_current_item(1) is second
        assert voice_client.play.call_count == 2

    @pytest.mark.asyncio
    async def test_missing_file_is_skipped(self, manager, voice_client, ffmpeg, tmp_path):
        track = AudioTrack(guild_id=1, path=str(tmp_path / "gone.wav"), display_name="gone")
        errors = []
        track.add_done_callback(errors.append)

        await manager.enqueue(1, track)

        assert track.finished
        assert isinstance(errors[0], FileNotFoundError)
        assert manager.get_current_item(1) is None
        voice_client.play.assert_not_called()

    @pytest.mark.asyncio
    async def test_play_failure_finishes_track(self, manager, voice_client, ffmpeg, tmp_path):
        voice_client.play.side_effect = discord.ClientException("Already playing audio.")
        track = make_track(tmp_path)

        await manager.enqueue(1, track)

        assert track.finished
        assert manager.get_current_item(1) is None


class TestSkipAndDisconnect:
    def test_skip_when_idle(self, manager, voice_client):
        assert manager.skip(1) is False
        voice_client.stop.assert_not_called()

    def test_skip_while_playing(self, manager, voice_client):
        voice_client.is_playing.return_value = True

        assert manager.skip(1) is True
        voice_client.stop.assert_called_once()

    @pytest.mark.asyncio
    async def test_disconnect_drops_queue(self, manager, voice_client, ffmpeg, tmp_path):
        first, second = make_track(tmp_path, "first"), make_track(tmp_path, "second")
        await manager.enqueue(1, first)
        await manager.enqueue(1, second)
        voice_client.is_playing.return_value = True

        await manager.disconnect(1)

        assert second.finished
        assert manager.get_queue(1) == []
        voice_client.stop.assert_called_once()
        voice_client.disconnect.assert_awaited_once_with(force=False)

    @pytest.mark.asyncio
    async def test_disconnect_without_client_finishes_stale_track(self, manager, tmp_path):
        stale = make_track(tmp_path)
        manager.currently_playing[1] = stale
        manager.bot.voice_clients = []

        await manager.disconnect(1)

        assert stale.finished
        assert manager.get_current_item(1) is None


class TestConnect:
    @pytest.mark.asyncio
    async def test_rejects_non_voice_channel(self, manager):
        manager.bot.get_channel.return_value = MagicMock(spec=discord.TextChannel)

        with pytest.raises(ProviderError) as excinfo:
            await manager.connect(1, 55)

        assert excinfo.value.user_message == "Could not join voice channel."

    @pytest.mark.asyncio
    async def test_connects_new_channel(self, manager):
        manager.bot.voice_clients = []
        channel = MagicMock(spec=discord.VoiceChannel)
        channel.guild.id = 1
        channel.connect = AsyncMock()
        manager.bot.get_channel.return_value = channel

        await manager.connect(1, 10)

        channel.connect.assert_awaited_once_with(timeout=manager.connect_timeout, reconnect=True)

    @pytest.mark.asyncio
    async def test_connect_timeout(self, manager):
        manager.bot.voice_clients = []
        channel = MagicMock(spec=discord.VoiceChannel)
        channel.guild.id = 1
        channel.connect = AsyncMock(side_effect=asyncio.TimeoutError())
        manager.bot.get_channel.return_value = channel

        with pytest.raises(ProviderError) as excinfo:
            await manager.connect(1, 10)

        assert "timed out" in excinfo.value.user_message

    @pytest.mark.asyncio
    async def test_missing_permissions(self, manager):
        channel = MagicMock(spec=discord.VoiceChannel)
        channel.guild.id = 1
        channel.mention = "<#10>"
        channel.permissions_for.return_value.connect = False
        manager.bot.get_channel.return_value = channel

        with pytest.raises(ProviderError) as excinfo:
            await manager.connect(1, 10)

        assert "<#10>" in excinfo.value.user_message
