"""Voice-channel text-to-speech bot for Discord."""

__version__ = "0.3.0"
