# core/audio_types.py

import threading
import time
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol

log = logging.getLogger('Tugboat.AudioTypes')

TrackCallback = Callable[[Optional[Exception]], None]


@dataclass
class AudioTrack:
    """A transient audio file waiting in (or playing from) a guild's queue.

    Completion callbacks run exactly once, from whichever thread ends the
    track: the voice player thread after playback, or the event loop when the
    track is dropped from the queue or fails to start.
    """
    guild_id: int
    path: str
    display_name: str
    added_at: float = field(default_factory=time.time)
    _callbacks: List[TrackCallback] = field(default_factory=list, repr=False)
    _finished: bool = field(default=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def finished(self) -> bool:
        return self._finished

    def add_done_callback(self, callback: TrackCallback):
        with self._lock:
            if not self._finished:
                self._callbacks.append(callback)
                return
        # Already finished, run immediately
        self._run_callback(callback, None)

    def finish(self, error: Optional[Exception] = None):
        with self._lock:
            if self._finished:
                return
            self._finished = True
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            self._run_callback(callback, error)

    def _run_callback(self, callback: TrackCallback, error: Optional[Exception]):
        try:
            callback(error)
        except Exception as e:
            log.error(f"GID {self.guild_id} - Track completion callback failed for '{self.display_name}': {e}", exc_info=True)


class VoiceTransport(Protocol):
    """The voice-call collaborator the session registry drives."""

    async def connect(self, guild_id: int, channel_id: int) -> None: ...

    async def disconnect(self, guild_id: int) -> None: ...

    async def enqueue(self, guild_id: int, track: AudioTrack) -> int: ...

    def skip(self, guild_id: int) -> bool: ...

    def current_channel(self, guild_id: int) -> Optional[int]: ...
