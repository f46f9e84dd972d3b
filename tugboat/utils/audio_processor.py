# -*- coding: utf-8 -*-
import io
import math
import logging

from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError

from tugboat import config
from tugboat.utils import file_helpers

log = logging.getLogger('Tugboat.AudioProcessor')


def normalize_segment(audio_segment: AudioSegment, label: str = "audio") -> AudioSegment:
    """Trims to the max playback duration and normalizes peak loudness."""
    if len(audio_segment) > config.MAX_PLAYBACK_DURATION_MS:
        log.info(f"AUDIO: Trimming '{label}' from {len(audio_segment)}ms to first {config.MAX_PLAYBACK_DURATION_MS}ms.")
        audio_segment = audio_segment[:config.MAX_PLAYBACK_DURATION_MS]

    peak_dbfs = audio_segment.max_dBFS
    if not math.isinf(peak_dbfs) and peak_dbfs > -90.0:
        change_in_dbfs = config.TARGET_LOUDNESS_DBFS - peak_dbfs
        gain_limit = 6.0 # Limit positive gain
        apply_gain = min(change_in_dbfs, gain_limit) if change_in_dbfs > 0 else change_in_dbfs
        log.debug(f"AUDIO: Normalizing '{label}'. Peak:{peak_dbfs:.2f} Target:{config.TARGET_LOUDNESS_DBFS:.2f} ApplyGain:{apply_gain:.2f} dB.")
        audio_segment = audio_segment.apply_gain(apply_gain)
    elif math.isinf(peak_dbfs):
        log.warning(f"AUDIO: Cannot normalize silent audio '{label}'. Peak is -inf.")
    else:
        log.warning(f"AUDIO: Skipping normalization for very quiet audio '{label}'. Peak: {peak_dbfs:.2f}")

    # Discord plays 48kHz stereo
    return audio_segment.set_frame_rate(48000).set_channels(2)


def write_transient_audio(audio_bytes: bytes, directory: str = config.TTS_TEMP_DIR, source_format: str = "mp3", label: str = "tts") -> str:
    """
    Decodes synthesized audio, normalizes it and writes it to a new WAV file.
    Returns the file path. The caller owns the file and must delete it once
    playback has finished. Blocking; run it in an executor.
    Raises ValueError for empty or undecodable audio.
    """
    if not audio_bytes:
        raise ValueError("Synthesized audio is empty.")

    try:
        with io.BytesIO(audio_bytes) as fp:
            audio_segment = AudioSegment.from_file(fp, format=source_format)
    except CouldntDecodeError as e:
        raise ValueError(f"Could not decode synthesized {source_format} audio: {e}") from e

    audio_segment = normalize_segment(audio_segment, label=label)

    path = file_helpers.create_temp_audio_path(directory)
    try:
        audio_segment.export(path, format="wav")
    except Exception:
        file_helpers.remove_file(path, reason="export failed")
        raise
    log.debug(f"AUDIO: Wrote '{label}' ({len(audio_segment)}ms) to {path}")
    return path
