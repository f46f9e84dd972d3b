# -*- coding: utf-8 -*-
import asyncio
import logging
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from tugboat.core.session_registry import GuildVoiceSession, SessionRegistry

log = logging.getLogger('Tugboat.IdleTimer')


class IdleTimer:
    """Periodic idle tick for one guild session.

    The timer belongs to exactly one session object. Each tick asks the
    registry to count an idle minute for that session; the registry decides
    when the threshold is reached and ends the session, which stops the timer.
    """

    def __init__(self, registry: "SessionRegistry", session: "GuildVoiceSession", interval: float):
        self.registry = registry
        self.session = session
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            log.debug(f"GID {self.session.guild_id} - Idle timer already running.")
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"IdleTimer_{self.session.guild_id}"
        )
        log.debug(f"GID {self.session.guild_id} - Idle timer started ({self.interval}s ticks).")

    def cancel(self, reason: str = "unknown"):
        task = self._task
        if task is None or task.done():
            return
        if task is asyncio.current_task():
            # Ending the session from inside our own tick: the loop exits on its own.
            log.debug(f"GID {self.session.guild_id} - Idle timer stopping from its own tick ({reason}).")
            return
        task.cancel()
        log.info(f"GID {self.session.guild_id} - Idle timer cancelled. Reason: {reason}")

    async def tick(self) -> bool:
        """Runs one idle tick. Returns False when ticking should stop."""
        return await self.registry.record_idle_tick(self.session)

    async def _run(self):
        guild_id = self.session.guild_id
        try:
            while True:
                await asyncio.sleep(self.interval)
                if not await self.tick():
                    break
        except asyncio.CancelledError:
            log.debug(f"GID {guild_id} - Idle timer task cancelled.")
            raise
        except Exception as e:
            log.error(f"GID {guild_id} - Idle timer stopped by unexpected error: {e}", exc_info=True)
