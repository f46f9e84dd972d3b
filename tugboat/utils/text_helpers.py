# -*- coding: utf-8 -*-
import re
import unicodedata
from xml.sax.saxutils import escape

# Symbols that only produce noise when read aloud
STRIPPED_SYMBOLS = {
    '†': '', # Dagger
    '⚰': '', # Coffin
    '\u200b': '', # Zero width space
    '\u200d': '', # Zero width joiner
    '\ufeff': '', # BOM
}

# Control characters other than whitespace
CONTROL_CHARS_REGEX = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def normalize_for_tts(text: str) -> str:
    """
    Converts stylized Unicode text (bold/script/circled letters, super- and
    subscript digits) to plain characters, drops control characters and
    noise symbols, and collapses whitespace.

    Accents are kept: the voices are multilingual.
    """
    if not isinstance(text, str):
        return "" # Return empty string for non-string input

    # NFKC folds compatibility characters (e.g. mathematical bold 'A' -> 'A', '²' -> '2')
    normalized_text = unicodedata.normalize('NFKC', text)
    normalized_text = "".join(STRIPPED_SYMBOLS.get(char, char) for char in normalized_text)
    normalized_text = CONTROL_CHARS_REGEX.sub('', normalized_text)

    # Collapse multiple whitespace characters into single spaces
    return ' '.join(normalized_text.split())


def escape_markup(text: str) -> str:
    """Escapes text for embedding inside an SSML document."""
    return escape(text, {'"': '&quot;', "'": '&apos;'})


def truncate(text: str, limit: int = 50) -> str:
    """Shortens text for log lines and reply previews."""
    return text if len(text) <= limit else text[:limit] + '...'
