# cogs/events.py

import logging

import discord
from discord.ext import commands

from tugboat import config
from tugboat.core.errors import GENERIC_FAILURE_MESSAGE
from tugboat.core.session_registry import SessionRegistry

log = logging.getLogger('Tugboat.Cog.Events')


class EventsCog(commands.Cog):
    def __init__(self, bot: discord.Bot):
        self.bot = bot
        self.registry: SessionRegistry = bot.registry

    @commands.Cog.listener()
    async def on_ready(self):
        """Called once the bot is ready and operational."""
        log.info(f'{self.bot.user.name} ({self.bot.user.id}) is connected!')
        log.info(f"Using py-cord version {discord.__version__}")
        catalog = getattr(self.bot, 'catalog', None)
        if catalog is not None:
            log.info(f"Voice catalog: {len(catalog)} voices in {len(catalog.languages())} languages.")
        log.info(f"Idle auto-leave after {config.IDLE_LEAVE_THRESHOLD} x {config.IDLE_TICK_SECONDS}s.")
        log.info(f"Commands registered as /{config.COMMAND_GROUP_NAME} ({config.COMMAND_SCOPE} scope). Monitoring {len(self.bot.guilds)} guilds.")

    @commands.Cog.listener()
    async def on_voice_state_update(self, member: discord.Member, before: discord.VoiceState, after: discord.VoiceState):
        """Keeps sessions in step when someone else disconnects or moves the bot."""
        if not self.bot.user or member.id != self.bot.user.id:
            return
        guild_id = member.guild.id

        if before.channel and not after.channel:
            if self.registry.get(guild_id) is not None:
                log.info(f"EVENT: Bot was disconnected from {before.channel.name} in guild {guild_id}. Ending session.")
                await self.registry.forget(guild_id, reason="disconnected externally")
        elif after.channel and before.channel != after.channel:
            await self.registry.moved(guild_id, after.channel.id)

    @commands.Cog.listener()
    async def on_application_command_error(self, ctx: discord.ApplicationContext, error: discord.DiscordException):
        """Global handler for slash command errors."""
        command_name = ctx.command.qualified_name if ctx.command else "N/A"
        user_name = f"{ctx.author.name}({ctx.author.id})" if ctx.author else "Unknown User"
        log_prefix = f"CMD ERROR (/{command_name}, User: {user_name}, Guild: {ctx.guild_id}):"

        if isinstance(error, commands.CommandOnCooldown):
            log.debug(f"{log_prefix} On cooldown ({error.retry_after:.1f}s).")
            message = f"Command on cooldown. Please wait {error.retry_after:.1f} seconds."
        elif isinstance(error, discord.errors.NotFound):
            log.warning(f"{log_prefix} Interaction not found (possibly timed out?). Error: {error}")
            return
        else:
            original = getattr(error, 'original', error)
            log.error(f"{log_prefix} Unhandled error: {original}", exc_info=original)
            message = GENERIC_FAILURE_MESSAGE

        try:
            await ctx.respond(message, ephemeral=True)
        except discord.NotFound:
            log.warning(f"{log_prefix} Interaction not found while sending error response.")
        except discord.HTTPException as e:
            log.warning(f"{log_prefix} Could not send error response: {e}")


def setup(bot: discord.Bot):
    if not hasattr(bot, 'registry'):
        log.critical("Cannot load EventsCog: bot.registry is not set.")
        return
    bot.add_cog(EventsCog(bot))
    log.info("Events Cog loaded.")
