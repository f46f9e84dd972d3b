import asyncio
import functools
import logging
import os
from collections import defaultdict, deque
from typing import Deque, Dict, List, Optional

import discord

from tugboat import config
from tugboat.core.audio_types import AudioTrack
from tugboat.core.errors import ProviderError

log = logging.getLogger('Tugboat.PlaybackManager')

JOIN_FAILED_MESSAGE = "Could not join voice channel."


class PlaybackManager:
    """Voice transport on top of py-cord: connections, per-guild queues and playback.

    Queue state is only touched on the event loop. py-cord calls the ``after``
    hook of ``VoiceClient.play`` from its player thread; that hook finishes the
    track (running its cleanup) and hands queue advancement back to the loop.
    """
    def __init__(self, bot: discord.Bot, connect_timeout: float = config.VOICE_CONNECT_TIMEOUT_SECONDS):
        self.bot = bot
        self.connect_timeout = connect_timeout
        self.guild_queues: Dict[int, Deque[AudioTrack]] = defaultdict(deque)
        self.currently_playing: Dict[int, AudioTrack] = {}

    def _voice_client(self, guild_id: int) -> Optional[discord.VoiceClient]:
        return discord.utils.get(self.bot.voice_clients, guild__id=guild_id)

    def current_channel(self, guild_id: int) -> Optional[int]:
        vc = self._voice_client(guild_id)
        if vc and vc.is_connected() and vc.channel:
            return vc.channel.id
        return None

    def get_queue(self, guild_id: int) -> List[AudioTrack]:
        return list(self.guild_queues.get(guild_id, ()))

    def get_current_item(self, guild_id: int) -> Optional[AudioTrack]:
        return self.currently_playing.get(guild_id)

    # --- Connection ---

    async def connect(self, guild_id: int, channel_id: int) -> None:
        """Connects to the voice channel. Raises ProviderError on any failure."""
        channel = self.bot.get_channel(channel_id)
        if not isinstance(channel, (discord.VoiceChannel, discord.StageChannel)) or channel.guild.id != guild_id:
            raise ProviderError(f"Channel {channel_id} is not a voice channel of guild {guild_id}", user_message=JOIN_FAILED_MESSAGE)

        perms = channel.permissions_for(channel.guild.me)
        if not perms.connect or not perms.speak:
            log.warning(f"Connect: Missing Connect/Speak perms in {channel.name} (GID:{guild_id})")
            raise ProviderError(
                f"Missing Connect/Speak permissions in {channel_id}",
                user_message=f"I don't have permission to Connect or Speak in {channel.mention}.",
            )

        current_vc = self._voice_client(guild_id)
        try:
            if current_vc and current_vc.is_connected():
                # Leftover connection from a session that was dropped without a disconnect
                if current_vc.channel and current_vc.channel.id == channel_id:
                    log.debug(f"Connect: Already connected to {channel.name} in GID:{guild_id}")
                    return
                log.info(f"Connect: Moving stale connection from {current_vc.channel} to {channel.name} (GID:{guild_id})")
                await current_vc.move_to(channel)
                return
            log.info(f"Connect: Connecting to {channel.name} (GID:{guild_id})")
            await channel.connect(timeout=self.connect_timeout, reconnect=True)
            log.debug(f"Connect: Connect successful to {channel.name}.")
        except asyncio.TimeoutError as e:
            log.error(f"Connect: Timeout connecting to {channel.name} (GID:{guild_id})")
            raise ProviderError("Voice connection timed out", user_message="Connection to the voice channel timed out.") from e
        except discord.ClientException as e:
            log.error(f"Connect: Discord ClientException connecting to {channel.name} (GID:{guild_id}): {e}")
            raise ProviderError(str(e), user_message=JOIN_FAILED_MESSAGE) from e
        except Exception as e:
            log.error(f"Connect: Unexpected error connecting to {channel.name} (GID:{guild_id}): {e}", exc_info=True)
            raise ProviderError(str(e), user_message=JOIN_FAILED_MESSAGE) from e

    async def disconnect(self, guild_id: int) -> None:
        """Drops the queue, stops the current track and leaves the channel."""
        self._drop_queue(guild_id, reason="disconnect")
        vc = self._voice_client(guild_id)
        if not vc:
            log.info(f"Disconnect: No voice client for GID:{guild_id}.")
            stale = self.currently_playing.pop(guild_id, None)
            if stale:
                stale.finish()
            return
        if vc.is_playing() or vc.is_paused():
            log.debug(f"Stopping active player for GID:{guild_id} during disconnect.")
            vc.stop() # after-hook finishes the current track
        await vc.disconnect(force=False)
        log.info(f"Successfully disconnected from voice in GID:{guild_id}.")

    def _drop_queue(self, guild_id: int, reason: str):
        queue = self.guild_queues.pop(guild_id, None)
        if not queue:
            return
        log.info(f"GID {guild_id} - Dropping {len(queue)} queued tracks ({reason}).")
        while queue:
            queue.popleft().finish()

    # --- Playback ---

    async def enqueue(self, guild_id: int, track: AudioTrack) -> int:
        """Adds a track to the end of the guild's queue. Returns its position (1 = playing now)."""
        vc = self._voice_client(guild_id)
        if not vc or not vc.is_connected():
            raise ProviderError(f"No voice connection for GID {guild_id}", user_message="Not in a voice channel right now.")

        queue = self.guild_queues[guild_id]
        queue.append(track)
        position = len(queue) + (1 if guild_id in self.currently_playing else 0)
        log.info(f"ENQUEUE: GID {guild_id} - Appended '{track.display_name}'. Position: {position}")

        if guild_id not in self.currently_playing and not vc.is_playing():
            self._play_next(guild_id)
        return position

    def skip(self, guild_id: int) -> bool:
        vc = self._voice_client(guild_id)
        if vc and (vc.is_playing() or vc.is_paused()):
            log.info(f"SKIP: GID {guild_id} - Stopping current track.")
            vc.stop() # after-hook advances the queue
            return True
        return False

    def _play_next(self, guild_id: int):
        vc = self._voice_client(guild_id)
        if not vc or not vc.is_connected():
            log.warning(f"_play_next: GID {guild_id} - Voice client gone, dropping queue.")
            self.currently_playing.pop(guild_id, None)
            self._drop_queue(guild_id, reason="voice client gone")
            return

        queue = self.guild_queues.get(guild_id)
        while queue:
            track = queue.popleft()
            if not os.path.exists(track.path):
                log.error(f"_play_next: GID {guild_id} - Audio file missing for '{track.display_name}': {track.path}")
                track.finish(FileNotFoundError(track.path))
                continue
            try:
                audio_source = discord.FFmpegPCMAudio(track.path)
            except Exception as e:
                log.error(f"_play_next: GID {guild_id} - Failed to create FFmpegPCMAudio source for {track.path}: {e}", exc_info=True)
                track.finish(e)
                continue

            self.currently_playing[guild_id] = track
            try:
                vc.play(audio_source, after=functools.partial(self._after_track, guild_id, track))
            except discord.ClientException as e:
                log.error(f"_play_next: GID {guild_id} - ClientException during vc.play() for '{track.display_name}': {e}", exc_info=True)
                self.currently_playing.pop(guild_id, None)
                track.finish(e)
                continue
            log.info(f"Started playing '{track.display_name}' in GID {guild_id}")
            return

        self.currently_playing.pop(guild_id, None)
        log.debug(f"_play_next: GID {guild_id} - Queue empty.")

    def _after_track(self, guild_id: int, track: AudioTrack, error: Optional[Exception]):
        # Runs on the voice player thread
        if error:
            log.error(f"GID {guild_id} - Error during playback of '{track.display_name}': {error}")
        track.finish(error)
        try:
            asyncio.run_coroutine_threadsafe(self._track_finished(guild_id, track), self.bot.loop)
        except RuntimeError as e:
            log.warning(f"GID {guild_id} - Could not schedule next track (event loop closed?): {e}")

    async def _track_finished(self, guild_id: int, track: AudioTrack):
        if self.currently_playing.get(guild_id) is not track:
            log.debug(f"GID {guild_id} - Finished track was no longer current. Not advancing.")
            return
        del self.currently_playing[guild_id]
        self._play_next(guild_id)
