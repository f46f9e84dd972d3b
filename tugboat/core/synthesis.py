# -*- coding: utf-8 -*-
import asyncio
import functools
import logging
import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

import edge_tts

from tugboat import config
from tugboat.core.audio_types import AudioTrack
from tugboat.core.errors import (
    EmptyMessageError,
    InvalidGenderError,
    MessageTooLongError,
    NoMatchingVoiceError,
    ProviderError,
)
from tugboat.core.voice_catalog import VoiceCatalog
from tugboat.utils import audio_processor, file_helpers, text_helpers

log = logging.getLogger('Tugboat.Synthesis')


@dataclass(frozen=True)
class SynthesisRequest:
    text: str
    voice: str
    language: str
    gender: Optional[str] = None

    @property
    def ssml(self) -> str:
        """The request wrapped in the synthesis service's SSML envelope."""
        return (
            f"<speak version='1.0' xmlns='http://www.w3.org/2001/10/synthesis' xml:lang='{self.language}'>"
            f"<voice name='{self.voice}'>{text_helpers.escape_markup(self.text)}</voice>"
            "</speak>"
        )


class SpeechProvider(Protocol):
    async def list_voices(self) -> List[Dict[str, Any]]: ...

    async def synthesize(self, request: SynthesisRequest) -> bytes: ...


def parse_gender(gender: Optional[str]) -> Optional[str]:
    """Maps a user-supplied gender (any case) to the service's label, or None for no filter."""
    if gender is None or not gender.strip():
        return None
    label = config.GENDER_LABELS.get(gender.strip().upper())
    if label is None:
        choices = ", ".join(config.GENDER_LABELS)
        raise InvalidGenderError(
            f"Unknown gender {gender!r}",
            user_message=f"Unknown voice gender `{gender}`. Choose one of: {choices}.",
        )
    return label


def build_request(
    catalog: VoiceCatalog,
    message: Optional[str],
    language: Optional[str] = None,
    gender: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> SynthesisRequest:
    """Validates the input and picks a random matching voice.

    Raises a UserInputError subclass for empty or overlong text, an unknown
    gender, or a language/gender combination with no voice.
    """
    text = text_helpers.normalize_for_tts(message or "")
    if not text:
        raise EmptyMessageError("Empty TTS message")
    if len(text) > config.MAX_TTS_LENGTH:
        raise MessageTooLongError(
            f"TTS message is {len(text)} characters",
            user_message=f"Message too long! Max length is {config.MAX_TTS_LENGTH} characters.",
        )

    language = (language or config.DEFAULT_LANGUAGE).strip()
    gender_label = parse_gender(gender)

    voices = catalog.voices_for(language, gender_label)
    if not voices:
        wanted = f"{gender_label.lower()} voice" if gender_label else "voice"
        raise NoMatchingVoiceError(
            f"No voices for language={language!r} gender={gender_label!r}",
            user_message=f"No {wanted} available for language `{language}`. Use `languages` to see what's supported.",
        )

    voice = (rng or random).choice(voices)
    return SynthesisRequest(text=text, voice=voice.name, language=voice.language, gender=gender_label)


class EdgeTTSProvider:
    """Speech synthesis through the Microsoft Edge online voices (edge-tts)."""

    async def list_voices(self) -> List[Dict[str, Any]]:
        try:
            return await edge_tts.list_voices()
        except Exception as e:
            raise ProviderError(f"Could not make list voices request: {e}") from e

    async def synthesize(self, request: SynthesisRequest) -> bytes:
        log.info(f"TTS: Generating audio with Edge-TTS (voice={request.voice}, lang={request.language}, {len(request.text)} chars)")
        chunks = []
        try:
            communicate = edge_tts.Communicate(request.text, request.voice)
            async for chunk in communicate.stream():
                if chunk["type"] == "audio":
                    chunks.append(chunk["data"])
        except Exception as e:
            raise ProviderError(f"Could not make TTS API call: {e}") from e

        audio = b"".join(chunks)
        if not audio:
            raise ProviderError("Edge-TTS generation resulted in empty audio data.")
        return audio


class SpeechService:
    """Turns a ``say`` request into a queued track in the guild's voice channel."""

    def __init__(self, registry: Any, provider: SpeechProvider, catalog: VoiceCatalog,
                 temp_dir: str = config.TTS_TEMP_DIR, rng: Optional[random.Random] = None):
        self.registry = registry
        self.provider = provider
        self.catalog = catalog
        self.temp_dir = temp_dir
        self.rng = rng

    def build_request(self, message: Optional[str], language: Optional[str] = None, gender: Optional[str] = None) -> SynthesisRequest:
        return build_request(self.catalog, message, language, gender, rng=self.rng)

    async def speak(self, guild_id: int, request: SynthesisRequest) -> AudioTrack:
        """Synthesizes ``request`` and enqueues it for ``guild_id``.

        The transient audio file is deleted by the track's completion callback,
        i.e. only after the transport has finished with it. If the track never
        makes it into the queue the file is deleted right away.
        """
        try:
            audio = await self.provider.synthesize(request)
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError(f"Could not make TTS API call: {e}") from e

        loop = asyncio.get_running_loop()
        try:
            path = await loop.run_in_executor(
                None,
                functools.partial(audio_processor.write_transient_audio, audio, self.temp_dir, label=request.voice),
            )
        except Exception as e:
            raise ProviderError(f"Error processing synthesized audio: {e}") from e

        track = AudioTrack(
            guild_id=guild_id,
            path=path,
            display_name=f"{request.voice}: {text_helpers.truncate(request.text)}",
        )
        track.add_done_callback(functools.partial(_cleanup_track_file, guild_id, path))

        try:
            await self.registry.enqueue(guild_id, track)
        except BaseException:
            track.finish()
            raise
        return track


def _cleanup_track_file(guild_id: int, path: str, error: Optional[Exception]):
    if error:
        log.error(f"GID {guild_id} - Playback error for {path}: {error}")
    file_helpers.remove_file(path, reason="track finished")
