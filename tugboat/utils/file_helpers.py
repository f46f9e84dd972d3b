# -*- coding: utf-8 -*-
import os
import logging
import tempfile
from typing import Optional

log = logging.getLogger('Tugboat.Utils.FileHelpers')


def ensure_dir(dir_path: str):
    """Creates a directory if it doesn't exist."""
    if not os.path.exists(dir_path):
        try:
            os.makedirs(dir_path, exist_ok=True)
            log.info(f"Created directory: {dir_path}")
        except OSError as e:
            log.critical(f"CRITICAL: Could not create directory '{dir_path}': {e}", exc_info=True)
            raise RuntimeError(f"Failed to create essential directory: {dir_path}") from e


def create_temp_audio_path(directory: str, prefix: str = "tts_", suffix: str = ".wav") -> str:
    """Reserves a uniquely named file in ``directory`` and returns its path.

    The file is created empty and is NOT deleted automatically; whoever
    receives the path owns its removal.
    """
    ensure_dir(directory)
    fd, path = tempfile.mkstemp(prefix=prefix, suffix=suffix, dir=directory)
    os.close(fd)
    return path


def remove_file(path: Optional[str], reason: str = "cleanup") -> bool:
    """Deletes a file if it exists. Returns True if something was deleted."""
    if not path or not os.path.exists(path):
        return False
    try:
        os.remove(path)
        log.debug(f"Deleted temporary file ({reason}): {path}")
        return True
    except OSError as e:
        log.warning(f"Failed to delete temporary file {path} ({reason}): {e}")
        return False


def clear_directory(directory: str, suffix: str = ".wav") -> int:
    """Removes leftover transient files, e.g. after a crash. Returns the count removed."""
    if not os.path.isdir(directory):
        return 0
    removed = 0
    try:
        with os.scandir(directory) as entries:
            for entry in entries:
                if entry.is_file() and entry.name.endswith(suffix):
                    if remove_file(entry.path, reason="startup sweep"):
                        removed += 1
    except OSError as e:
        log.error(f"Error listing files in {directory}: {e}")
    if removed:
        log.info(f"Removed {removed} leftover temporary audio files from {directory}")
    return removed
