# -*- coding: utf-8 -*-
import logging
from typing import List, Optional

import discord
from discord.ext import commands

from tugboat import config
from tugboat.core.commands import CommandDispatcher, CommandInvocation
from tugboat.core.errors import GENERIC_FAILURE_MESSAGE

log = logging.getLogger('Tugboat.Cog.Voice')

GENDER_CHOICES = list(config.GENDER_LABELS)


def resolve_voice_channel_id(user: discord.abc.User) -> Optional[int]:
    """The voice channel the user is connected to in the command's guild, if any."""
    voice = getattr(user, "voice", None)
    if voice and voice.channel:
        return voice.channel.id
    return None


async def send_reply(ctx: discord.ApplicationContext, content: str):
    """Sends the follow-up reply, catching errors if the interaction already expired."""
    try:
        await ctx.followup.send(content)
    except discord.NotFound:
        log.warning(f"Follow-up failed (NotFound) for interaction {ctx.interaction.id}")
    except discord.HTTPException as e:
        log.warning(f"Follow-up failed (HTTPException {e.status} / {e.code}) for interaction {ctx.interaction.id}")


async def language_autocomplete(ctx: discord.AutocompleteContext) -> List[str]:
    """Autocomplete for language codes from the loaded voice catalog."""
    catalog = getattr(ctx.bot, "catalog", None)
    if catalog is None:
        return []
    current_value = (ctx.value or "").lower()
    return [code for code in catalog.languages() if current_value in code.lower()][:25]


class VoiceCog(commands.Cog):
    """The slash-command surface. Every subcommand goes through the dispatcher."""

    voice_group = discord.SlashCommandGroup(
        config.COMMAND_GROUP_NAME,
        "Text-to-speech in your voice channel",
        guild_ids=config.GUILD_IDS if config.COMMAND_SCOPE == "guild" else None,
    )

    def __init__(self, bot: discord.Bot):
        self.bot = bot

    @property
    def dispatcher(self) -> Optional[CommandDispatcher]:
        return getattr(self.bot, "dispatcher", None)

    async def _run(self, ctx: discord.ApplicationContext, name: str, **options):
        try:
            await ctx.defer()
        except discord.NotFound:
            log.warning(f"COMMAND: /{name} interaction expired before it could be deferred.")
            return

        user = ctx.author
        invocation = CommandInvocation(
            guild_id=ctx.guild_id,
            user_id=user.id,
            channel_id=resolve_voice_channel_id(user) if ctx.guild_id else None,
            options={k: v for k, v in options.items() if v is not None},
        )
        log.info(f"COMMAND: /{config.COMMAND_GROUP_NAME} {name} by {user.name} ({user.id}) in guild {ctx.guild_id}")
        dispatcher = self.dispatcher
        if dispatcher is None:
            log.error(f"COMMAND: /{name} received before the dispatcher was ready.")
            await send_reply(ctx, GENERIC_FAILURE_MESSAGE)
            return
        reply = await dispatcher.dispatch(name, invocation)
        await send_reply(ctx, reply)

    @voice_group.command(name="join", description="Join the voice channel you're in")
    async def join(self, ctx: discord.ApplicationContext):
        await self._run(ctx, "join")

    @voice_group.command(name="leave", description="Leave the currently-joined voice channel")
    async def leave(self, ctx: discord.ApplicationContext):
        await self._run(ctx, "leave")

    @voice_group.command(name="skip", description="Skip the currently-playing track")
    async def skip(self, ctx: discord.ApplicationContext):
        await self._run(ctx, "skip")

    @voice_group.command(name="languages", description="Show all the languages currently supported by the bot")
    async def languages(self, ctx: discord.ApplicationContext):
        await self._run(ctx, "languages")

    @voice_group.command(name="say", description="Say something in the voice channel you're in")
    @commands.cooldown(1, config.SAY_COOLDOWN_SECONDS, commands.BucketType.user)
    async def say(
        self,
        ctx: discord.ApplicationContext,
        message: discord.Option(str, description=f"Text to speak (max {config.MAX_TTS_LENGTH} chars).", required=True),
        language: discord.Option(
            str,
            description=f"Language code, e.g. fr-FR (default {config.DEFAULT_LANGUAGE}).",
            required=False,
            default=None,
            autocomplete=language_autocomplete,
        ),
        gender: discord.Option(str, description="Voice gender.", required=False, default=None, choices=GENDER_CHOICES),
    ):
        await self._run(ctx, "say", message=message, language=language, gender=gender)


def setup(bot: discord.Bot):
    if not hasattr(bot, 'registry'):
        log.critical("Cannot load VoiceCog: bot.registry is not set.")
        return
    bot.add_cog(VoiceCog(bot))
    log.info("Voice Cog loaded.")
