# -*- coding: utf-8 -*-
import ctypes.util
import logging
import os
import struct
import sys

import discord
import discord.opus

log = logging.getLogger('Tugboat.Opus')

COMMON_OPUS_NAMES = ['opus', 'libopus.so.0', 'libopus.so', 'libopus.dylib', 'opus.dll']


def _try_load(name: str) -> bool:
    try:
        discord.opus.load_opus(name)
    except OSError:
        log.debug(f"Failed to load Opus from '{name}'.")
        return False
    return discord.opus.is_loaded()


def load_opus() -> bool:
    """Makes sure the Opus codec is loaded for voice playback.

    Tries the DLL bundled with py-cord on Windows, then ctypes.util.find_library,
    then a few common library names. Returns True if Opus is loaded.
    """
    if discord.opus.is_loaded():
        log.info("Opus library already loaded.")
        return True

    candidates = []
    if sys.platform == 'win32':
        basedir = os.path.dirname(os.path.abspath(discord.opus.__file__))
        target = 'x64' if struct.calcsize('P') * 8 > 32 else 'x86'
        bundled = os.path.join(basedir, 'bin', f'libopus-0.{target}.dll')
        if os.path.exists(bundled):
            candidates.append(bundled)
        else:
            log.warning(f"Bundled Opus DLL not found: {bundled}")

    found_path = ctypes.util.find_library('opus')
    if found_path:
        candidates.append(found_path)
    candidates.extend(COMMON_OPUS_NAMES)

    for candidate in candidates:
        if _try_load(candidate):
            log.info(f"Successfully loaded Opus library: {candidate}")
            return True

    log.error("FAILED to load the Opus library. Voice playback will not work.")
    return False
