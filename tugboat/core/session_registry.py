# -*- coding: utf-8 -*-
import asyncio
import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from tugboat import config
from tugboat.core.audio_types import AudioTrack, VoiceTransport
from tugboat.core.errors import (
    AlreadyConnectedError,
    NotConnectedError,
    NotInSameChannelError,
    ProviderError,
)
from tugboat.core.idle_timer import IdleTimer

log = logging.getLogger('Tugboat.Registry')


@dataclass
class GuildVoiceSession:
    guild_id: int
    channel_id: int
    idle_minutes: int = 0
    created_at: float = field(default_factory=time.time)
    timer: Optional[IdleTimer] = field(default=None, repr=False, compare=False)

    def record_idle_minute(self) -> int:
        self.idle_minutes += 1
        return self.idle_minutes

    def reset_idle(self):
        self.idle_minutes = 0


class SessionRegistry:
    """Tracks which voice channel the bot occupies in each guild.

    A guild has at most one session; no session means the bot is not
    connected there. Every change to a guild's session happens while holding
    that guild's lock, so commands and idle ticks for one guild are serialized
    while different guilds never wait on each other.
    """

    def __init__(
        self,
        transport: VoiceTransport,
        idle_tick_seconds: float = config.IDLE_TICK_SECONDS,
        idle_threshold: int = config.IDLE_LEAVE_THRESHOLD,
    ):
        self.transport = transport
        self.idle_tick_seconds = idle_tick_seconds
        self.idle_threshold = idle_threshold
        self.guild_locks: Dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._sessions: Dict[int, GuildVoiceSession] = {}

    # --- Queries ---

    def lock_for(self, guild_id: int) -> asyncio.Lock:
        return self.guild_locks[guild_id]

    def get(self, guild_id: int) -> Optional[GuildVoiceSession]:
        return self._sessions.get(guild_id)

    def current_channel(self, guild_id: int) -> Optional[int]:
        session = self._sessions.get(guild_id)
        return session.channel_id if session else None

    def guild_ids(self) -> List[int]:
        return list(self._sessions)

    def __len__(self) -> int:
        return len(self._sessions)

    def _require_session(self, guild_id: int, channel_id: Optional[int] = None) -> GuildVoiceSession:
        session = self._sessions.get(guild_id)
        if session is None:
            raise NotConnectedError(f"GID {guild_id} has no voice session")
        if channel_id is not None and session.channel_id != channel_id:
            raise NotInSameChannelError(f"GID {guild_id} session is in {session.channel_id}, caller in {channel_id}")
        return session

    def require_same_channel(self, guild_id: int, channel_id: int) -> GuildVoiceSession:
        """Raises unless the guild has a session in ``channel_id``."""
        return self._require_session(guild_id, channel_id)

    # --- Transitions ---

    async def join(self, guild_id: int, channel_id: int) -> GuildVoiceSession:
        """Connects to ``channel_id`` and creates the guild's session.

        Raises AlreadyConnectedError if the guild already has a session (the
        bot never switches channels implicitly) and ProviderError if the
        transport could not connect, in which case no session is created.
        """
        async with self.lock_for(guild_id):
            existing = self._sessions.get(guild_id)
            if existing is not None:
                log.info(f"JOIN: GID {guild_id} - Rejected, already in channel {existing.channel_id}.")
                raise AlreadyConnectedError(f"GID {guild_id} already connected to {existing.channel_id}")
            return await self._join_locked(guild_id, channel_id)

    async def ensure_joined(self, guild_id: int, channel_id: int) -> bool:
        """Joins ``channel_id`` if the guild has no session yet.

        Returns True if a session was created. Raises NotInSameChannelError if
        the bot is already in a different channel of this guild.
        """
        async with self.lock_for(guild_id):
            session = self._sessions.get(guild_id)
            if session is None:
                await self._join_locked(guild_id, channel_id)
                return True
            if session.channel_id != channel_id:
                raise NotInSameChannelError(f"GID {guild_id} session is in {session.channel_id}, caller in {channel_id}")
            log.debug(f"GID {guild_id} - Already in the caller's channel {channel_id}, continuing.")
            return False

    async def _join_locked(self, guild_id: int, channel_id: int) -> GuildVoiceSession:
        log.info(f"JOIN: GID {guild_id} - Connecting to channel {channel_id}.")
        try:
            await self.transport.connect(guild_id, channel_id)
        except ProviderError:
            log.warning(f"JOIN: GID {guild_id} - Transport failed to connect to {channel_id}. No session created.")
            raise
        except Exception as e:
            log.error(f"JOIN: GID {guild_id} - Unexpected transport error connecting to {channel_id}: {e}", exc_info=True)
            raise ProviderError(str(e), user_message="Could not join voice channel.") from e

        session = GuildVoiceSession(guild_id=guild_id, channel_id=channel_id)
        session.timer = IdleTimer(self, session, self.idle_tick_seconds)
        self._sessions[guild_id] = session
        session.timer.start()
        log.info(f"JOIN: GID {guild_id} - Session created in channel {channel_id}.")
        return session

    async def leave(self, guild_id: int, channel_id: Optional[int] = None, reason: str = "command") -> int:
        """Ends the guild's session and disconnects.

        When ``channel_id`` is given the caller must be in the session's
        channel. Returns the channel that was left.
        """
        async with self.lock_for(guild_id):
            session = self._require_session(guild_id, channel_id)
            await self._teardown_locked(session, reason=reason)
            return session.channel_id

    async def _teardown_locked(self, session: GuildVoiceSession, reason: str, disconnect: bool = True):
        guild_id = session.guild_id
        if self._sessions.get(guild_id) is session:
            del self._sessions[guild_id]
        if session.timer:
            session.timer.cancel(reason=reason)
        log.info(f"LEAVE: GID {guild_id} - Session in channel {session.channel_id} ended. Reason: {reason}")
        if not disconnect:
            return
        try:
            await self.transport.disconnect(guild_id)
        except Exception as e:
            # The session is gone either way; the transport cleans up on its own disconnect event.
            log.error(f"LEAVE: GID {guild_id} - Transport error while disconnecting: {e}", exc_info=True)

    async def skip(self, guild_id: int, channel_id: Optional[int] = None) -> bool:
        async with self.lock_for(guild_id):
            self._require_session(guild_id, channel_id)
            return self.transport.skip(guild_id)

    async def enqueue(self, guild_id: int, track: AudioTrack) -> int:
        """Queues a track in the guild's channel and resets the idle counter."""
        async with self.lock_for(guild_id):
            session = self._require_session(guild_id)
            position = await self.transport.enqueue(guild_id, track)
            session.reset_idle()
            log.debug(f"GID {guild_id} - Enqueued '{track.display_name}' at position {position}. Idle counter reset.")
            return position

    async def record_idle_tick(self, session: GuildVoiceSession) -> bool:
        """Counts one idle minute for ``session``. Returns False when the timer should stop."""
        guild_id = session.guild_id
        async with self.lock_for(guild_id):
            current = self._sessions.get(guild_id)
            if current is not session:
                log.warning(f"IDLE: GID {guild_id} - Tick for a session that no longer exists. Skipping.")
                return False
            idle_minutes = session.record_idle_minute()
            log.debug(f"IDLE: GID {guild_id} - Idle in voice channel for {idle_minutes} minutes.")
            if idle_minutes >= self.idle_threshold:
                log.info(f"IDLE: GID {guild_id} - Idle for {idle_minutes}+ minutes, leaving.")
                await self._teardown_locked(session, reason="idle timeout")
                return False
            return True

    async def forget(self, guild_id: int, reason: str = "disconnected externally"):
        """Drops the guild's session without touching the transport."""
        async with self.lock_for(guild_id):
            session = self._sessions.get(guild_id)
            if session is None:
                log.debug(f"GID {guild_id} - forget() with no session. Nothing to do.")
                return
            await self._teardown_locked(session, reason=reason, disconnect=False)

    async def moved(self, guild_id: int, channel_id: int):
        """Follows the bot into another channel it was moved to by someone else."""
        async with self.lock_for(guild_id):
            session = self._sessions.get(guild_id)
            if session is None or session.channel_id == channel_id:
                return
            log.info(f"GID {guild_id} - Bot moved from channel {session.channel_id} to {channel_id}.")
            session.channel_id = channel_id

    async def shutdown(self):
        """Leaves every guild. Used when the bot process is closing."""
        for guild_id in self.guild_ids():
            try:
                await self.leave(guild_id, reason="shutdown")
            except NotConnectedError:
                pass
