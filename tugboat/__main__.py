# -*- coding: utf-8 -*-
import logging
import platform
import sys
from typing import Optional

import discord

# --- Import Core Components ---
from tugboat import config
from tugboat.core.commands import BotServices, CommandDispatcher
from tugboat.core.playback_manager import PlaybackManager
from tugboat.core.session_registry import SessionRegistry
from tugboat.core.synthesis import EdgeTTSProvider, SpeechProvider, SpeechService
from tugboat.core.voice_catalog import VoiceCatalog, load_catalog
from tugboat.utils import file_helpers, opus_loader

log = logging.getLogger('Tugboat.Main')

COGS = ['events', 'voice']


def setup_logging(level: str = config.LOG_LEVEL):
    log_formatter = logging.Formatter('%(asctime)s:%(levelname)s:%(name)s: %(message)s')
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(log_formatter)
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level, logging.INFO))
    root_logger.addHandler(console_handler)
    logging.getLogger('discord').setLevel(logging.WARNING) # Reduce discord lib noise


class TugboatBot(discord.Bot):
    """py-cord bot carrying the session registry, speech service and dispatcher.

    The voice catalog is fetched once in ``start()``, on the bot's own event
    loop, before the gateway connection opens; commands cannot arrive earlier.
    """

    def __init__(self, speech_provider: SpeechProvider, **kwargs):
        super().__init__(**kwargs)
        self.speech_provider = speech_provider
        self.playback_manager = PlaybackManager(self)
        self.registry = SessionRegistry(self.playback_manager)
        self.catalog: Optional[VoiceCatalog] = None
        self.speech: Optional[SpeechService] = None
        self.dispatcher: Optional[CommandDispatcher] = None

    async def start(self, token: str, *, reconnect: bool = True):
        log.info("Loading voice catalog...")
        self.catalog = await load_catalog(self.speech_provider)
        self.speech = SpeechService(self.registry, self.speech_provider, self.catalog)
        self.dispatcher = CommandDispatcher(BotServices(self.registry, self.speech, self.catalog))
        await super().start(token, reconnect=reconnect)

    async def close(self):
        log.info(f"Shutting down. Leaving {len(self.registry)} voice channels...")
        try:
            await self.registry.shutdown()
        except Exception as e:
            log.error(f"Error leaving voice channels during shutdown: {e}", exc_info=True)
        await super().close()


def create_bot(speech_provider: SpeechProvider) -> TugboatBot:
    intents = discord.Intents.default()
    intents.voice_states = True # Needed to see which voice channel a user is in
    intents.guilds = True
    intents.message_content = False # Slash commands only

    bot = TugboatBot(speech_provider, intents=intents)

    loaded_cogs = 0
    for cog_name in COGS:
        cog_path = f"tugboat.cogs.{cog_name}"
        try:
            bot.load_extension(cog_path)
            log.info(f"Successfully loaded Cog: {cog_path}")
            loaded_cogs += 1
        except discord.errors.ExtensionNotFound:
            log.error(f"Cog not found: {cog_path}. Skipping.")
        except Exception as e:
            log.error(f"Failed to load Cog {cog_path}: {e}", exc_info=True)
    log.info(f"Finished loading Cogs ({loaded_cogs}/{len(COGS)} successful).")
    return bot


def main() -> int:
    setup_logging()

    if not config.BOT_TOKEN:
        log.critical("CRITICAL ERROR: DISCORD_TOKEN is not set. Exiting.")
        return 1
    if config.COMMAND_SCOPE == "guild" and not config.GUILD_IDS:
        log.critical("CRITICAL ERROR: COMMAND_SCOPE is 'guild' but GUILD_IDS is empty. Exiting.")
        return 1

    opus_loader.load_opus()

    file_helpers.ensure_dir(config.TTS_TEMP_DIR)
    file_helpers.clear_directory(config.TTS_TEMP_DIR)

    bot = create_bot(EdgeTTSProvider())

    log.info(f"Starting Bot (Python {platform.python_version()}, py-cord {discord.__version__})")
    try:
        bot.run(config.BOT_TOKEN)
    except discord.errors.LoginFailure:
        log.critical("CRITICAL STARTUP ERROR: Login Failure - Invalid DISCORD_TOKEN.")
        return 1
    except discord.errors.PrivilegedIntentsRequired as e:
        log.critical(f"CRITICAL STARTUP ERROR: Missing Privileged Intents: {e}. Enable in Dev Portal.")
        return 1
    except Exception as e:
        log.critical(f"FATAL RUNTIME ERROR: {e}", exc_info=True)
        return 1
    finally:
        log.info("Bot process has ended.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
