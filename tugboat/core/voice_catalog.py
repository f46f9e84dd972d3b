# -*- coding: utf-8 -*-
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from tugboat import config

log = logging.getLogger('Tugboat.VoiceCatalog')


@dataclass(frozen=True)
class VoiceInfo:
    name: str
    language: str
    gender: Optional[str] = None # "Female", "Male" or "Neutral" as reported by the service


class VoiceCatalog:
    """Read-only mapping of language code -> available synthesis voices.

    Language lookups are case-insensitive; the codes are reported back
    exactly as the synthesis service spelled them.
    """

    def __init__(self, voices: Iterable[VoiceInfo] = ()):
        grouped: Dict[str, List[VoiceInfo]] = defaultdict(list)
        display: Dict[str, str] = {}
        for voice in voices:
            key = voice.language.lower()
            display.setdefault(key, voice.language)
            if voice not in grouped[key]:
                grouped[key].append(voice)
        self._voices: Dict[str, Tuple[VoiceInfo, ...]] = {k: tuple(v) for k, v in grouped.items()}
        self._display: Dict[str, str] = display

    @classmethod
    def from_service_entries(cls, entries: Iterable[Mapping[str, Any]], name_filter: str = "") -> "VoiceCatalog":
        """Builds a catalog from edge-tts ``list_voices()`` entries.

        Entries without a short name or locale are skipped; when ``name_filter``
        is set only voices whose name contains it are kept.
        """
        voices = []
        skipped = 0
        for entry in entries:
            name = entry.get("ShortName") or entry.get("Name")
            locale = entry.get("Locale")
            if not name or not locale:
                skipped += 1
                continue
            if name_filter and name_filter not in name:
                continue
            voices.append(VoiceInfo(name=name, language=locale, gender=entry.get("Gender")))
        if skipped:
            log.warning(f"Skipped {skipped} voice entries with no name or locale.")
        return cls(voices)

    @classmethod
    def from_fallback(cls, entries: Iterable[Tuple[str, str, str]]) -> "VoiceCatalog":
        return cls(VoiceInfo(name=name, language=language, gender=gender) for name, language, gender in entries)

    def __len__(self) -> int:
        return sum(len(v) for v in self._voices.values())

    def __contains__(self, language: object) -> bool:
        return isinstance(language, str) and language.lower() in self._voices

    def languages(self) -> List[str]:
        """All language codes with at least one voice, sorted."""
        return sorted(self._display.values(), key=str.lower)

    def voices_for(self, language: str, gender: Optional[str] = None) -> List[VoiceInfo]:
        """Voices for a language, optionally only those of one gender.

        Returns an empty list when nothing matches.
        """
        voices = self._voices.get(language.lower(), ())
        if gender is None:
            return list(voices)
        wanted = gender.lower()
        return [v for v in voices if v.gender is not None and v.gender.lower() == wanted]


async def load_catalog(provider: Any, name_filter: str = config.VOICE_NAME_FILTER) -> VoiceCatalog:
    """Fetches the voice list once at startup.

    If the service cannot be reached, or it offers no usable voice, the small
    built-in fallback table from config is used so the bot can still start.
    """
    try:
        entries = await provider.list_voices()
    except Exception as e:
        log.critical(f"Could not fetch the voice list from the synthesis service: {e}. Using fallback voices.", exc_info=True)
        return VoiceCatalog.from_fallback(config.FALLBACK_VOICES)

    catalog = VoiceCatalog.from_service_entries(entries, name_filter=name_filter)
    if len(catalog) == 0:
        log.error(f"Synthesis service returned no voices matching filter '{name_filter}'. Using fallback voices.")
        return VoiceCatalog.from_fallback(config.FALLBACK_VOICES)

    log.info(f"Loaded {len(catalog)} '{name_filter}' voices across {len(catalog.languages())} languages.")
    return catalog
