# -*- coding: utf-8 -*-
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional

from tugboat.core.errors import (
    GENERIC_FAILURE_MESSAGE,
    AlreadyConnectedError,
    NotInVoiceChannelError,
    ProviderError,
    StateConflictError,
    UserInputError,
)
from tugboat.core.session_registry import SessionRegistry
from tugboat.core.synthesis import SpeechService
from tugboat.core.voice_catalog import VoiceCatalog
from tugboat.utils import text_helpers

log = logging.getLogger('Tugboat.Commands')

NON_GUILD_MESSAGE = "Can't call this from a non-guild context"


@dataclass
class CommandInvocation:
    """One command request, already resolved against the chat platform."""
    guild_id: Optional[int]
    user_id: int
    channel_id: Optional[int] # The caller's current voice channel, if any
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass
class BotServices:
    registry: SessionRegistry
    speech: SpeechService
    catalog: VoiceCatalog


class Command:
    """A named handler. Handlers return the reply text or raise a TugboatError."""
    name = ""
    description = ""

    async def execute(self, services: BotServices, invocation: CommandInvocation) -> str:
        raise NotImplementedError


class JoinCommand(Command):
    name = "join"
    description = "Join the voice channel you're in"

    async def execute(self, services, invocation):
        if services.registry.current_channel(invocation.guild_id) is not None:
            # An explicit leave is required before joining another channel.
            raise AlreadyConnectedError()
        await services.registry.join(invocation.guild_id, invocation.channel_id)
        return "Joined voice channel."


class LeaveCommand(Command):
    name = "leave"
    description = "Leave the currently-joined voice channel"

    async def execute(self, services, invocation):
        await services.registry.leave(invocation.guild_id, invocation.channel_id, reason="leave command")
        return "Left voice channel"


class SkipCommand(Command):
    name = "skip"
    description = "Skip the currently-playing track"

    async def execute(self, services, invocation):
        skipped = await services.registry.skip(invocation.guild_id, invocation.channel_id)
        return "Skipped." if skipped else "Nothing is playing right now."


class SayCommand(Command):
    name = "say"
    description = "Say something in the voice channel you're in"

    async def execute(self, services, invocation):
        options = invocation.options
        # Validate before touching the voice channel or the synthesis service
        request = services.speech.build_request(
            options.get("message"), options.get("language"), options.get("gender")
        )
        joined = await services.registry.ensure_joined(invocation.guild_id, invocation.channel_id)
        if joined:
            log.debug(f"SAY: GID {invocation.guild_id} - Joined channel {invocation.channel_id} implicitly.")
        await services.speech.speak(invocation.guild_id, request)
        return f"Saying \"{text_helpers.truncate(request.text, 100)}\" with voice `{request.voice}`."


class LanguagesCommand(Command):
    name = "languages"
    description = "Show all the languages currently supported by the bot"

    async def execute(self, services, invocation):
        languages = services.catalog.languages()
        return f"{len(languages)} languages available:\n" + ", ".join(languages)


def register_commands(commands: Optional[Iterable[Command]] = None) -> Mapping[str, Command]:
    """Builds the read-only command table."""
    if commands is None:
        commands = [SayCommand(), JoinCommand(), LeaveCommand(), SkipCommand(), LanguagesCommand()]
    table: Dict[str, Command] = {}
    for command in commands:
        if command.name in table:
            raise ValueError(f"Duplicate command name: {command.name}")
        table[command.name] = command
    return MappingProxyType(table)


class CommandDispatcher:
    """Routes a command name to its handler and turns every outcome into a reply."""

    def __init__(self, services: BotServices, commands: Optional[Mapping[str, Command]] = None):
        self.services = services
        self.commands = commands if commands is not None else register_commands()

    async def dispatch(self, name: str, invocation: CommandInvocation) -> str:
        log_prefix = f"CMD /{name} (GID {invocation.guild_id}, User {invocation.user_id}):"

        if invocation.guild_id is None:
            return NON_GUILD_MESSAGE
        if invocation.channel_id is None:
            return NotInVoiceChannelError.default_message

        command = self.commands.get(name)
        if command is None:
            log.error(f"{log_prefix} Unknown command {name}")
            return GENERIC_FAILURE_MESSAGE

        log.debug(f"{log_prefix} Dispatching command.")
        try:
            reply = await command.execute(self.services, invocation)
        except (UserInputError, StateConflictError) as e:
            log.info(f"{log_prefix} Rejected: {e}")
            return e.user_message
        except ProviderError as e:
            log.error(f"{log_prefix} Provider failure: {e}", exc_info=e.__cause__ is not None)
            return e.user_message
        except Exception as e:
            log.error(f"{log_prefix} Error completing interaction: {e}", exc_info=True)
            return GENERIC_FAILURE_MESSAGE
        log.debug(f"{log_prefix} Result: {text_helpers.truncate(reply, 80)}")
        return reply
