# -*- coding: utf-8 -*-
import os
from typing import Dict, List, Tuple

from dotenv import load_dotenv

load_dotenv() # Load environment variables from .env file


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"Environment variable {name} must be an integer, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"Environment variable {name} must be positive, got {value}")
    return value


def parse_command_scope(raw: str) -> str:
    """Validates the slash-command registration scope ('guild' or 'global')."""
    scope = (raw or "").strip().lower()
    if scope not in ("guild", "global"):
        raise ValueError(
            f"Invalid value of command scope {raw!r}, can only be one of either 'guild' or 'global'"
        )
    return scope


def parse_guild_ids(raw: str) -> List[int]:
    """Parses a comma-separated list of guild IDs, ignoring blanks."""
    guild_ids = []
    for part in (raw or "").split(","):
        part = part.strip()
        if not part:
            continue
        try:
            guild_ids.append(int(part))
        except ValueError as e:
            raise ValueError(f"Invalid guild ID in GUILD_IDS: {part!r}") from e
    return guild_ids


# --- Core Settings ---
BOT_TOKEN = os.getenv('DISCORD_TOKEN')
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

# --- Slash Command Registration ---
COMMAND_GROUP_NAME = os.getenv('COMMAND_GROUP_NAME', 'tugboat').strip().lower() or 'tugboat'
COMMAND_SCOPE = parse_command_scope(os.getenv('COMMAND_SCOPE', 'global'))
GUILD_IDS = parse_guild_ids(os.getenv('GUILD_IDS', ''))
SAY_COOLDOWN_SECONDS = 5 # Per-user cooldown on /say

# --- TTS Settings ---
DEFAULT_LANGUAGE = os.getenv('DEFAULT_LANGUAGE', 'en-US')
VOICE_NAME_FILTER = os.getenv('VOICE_NAME_FILTER', 'Neural') # Only voices whose name contains this are offered
MAX_TTS_LENGTH = 350 # Max characters for TTS input
TTS_TEMP_DIR = os.getenv('TTS_TEMP_DIR', 'tts_temp') # Transient synthesized audio lives here until played

# --- Audio Processing ---
TARGET_LOUDNESS_DBFS = -14.0 # Target loudness for normalization
MAX_PLAYBACK_DURATION_MS = 30 * 1000 # Max duration for any synthesized clip (30 seconds)

# --- Voice Channel Behavior ---
IDLE_TICK_SECONDS = _int_env('IDLE_TICK_SECONDS', 60) # One idle "minute"
IDLE_LEAVE_THRESHOLD = _int_env('IDLE_LEAVE_THRESHOLD', 10) # Idle ticks before leaving
VOICE_CONNECT_TIMEOUT_SECONDS = 30.0

# --- Fallback Voices ---
# Used only when the voice list cannot be fetched from the synthesis service at startup.
# (voice name, locale, gender)
FALLBACK_VOICES: List[Tuple[str, str, str]] = [
    ("en-US-JennyNeural", "en-US", "Female"), ("en-US-AriaNeural", "en-US", "Female"),
    ("en-US-GuyNeural", "en-US", "Male"), ("en-US-ChristopherNeural", "en-US", "Male"),
    ("en-GB-LibbyNeural", "en-GB", "Female"), ("en-GB-RyanNeural", "en-GB", "Male"),
    ("en-AU-NatashaNeural", "en-AU", "Female"), ("en-AU-WilliamNeural", "en-AU", "Male"),
    ("es-ES-ElviraNeural", "es-ES", "Female"), ("es-MX-JorgeNeural", "es-MX", "Male"),
    ("fr-FR-DeniseNeural", "fr-FR", "Female"), ("fr-FR-HenriNeural", "fr-FR", "Male"),
    ("de-DE-KatjaNeural", "de-DE", "Female"), ("de-DE-ConradNeural", "de-DE", "Male"),
    ("it-IT-IsabellaNeural", "it-IT", "Female"), ("it-IT-DiegoNeural", "it-IT", "Male"),
    ("ja-JP-NanamiNeural", "ja-JP", "Female"), ("ja-JP-KeitaNeural", "ja-JP", "Male"),
    ("pt-BR-FranciscaNeural", "pt-BR", "Female"), ("pt-BR-AntonioNeural", "pt-BR", "Male"),
]

# Gender labels accepted by /say, as reported by the synthesis service
GENDER_LABELS: Dict[str, str] = {
    "FEMALE": "Female",
    "MALE": "Male",
    "NEUTRAL": "Neutral",
}
