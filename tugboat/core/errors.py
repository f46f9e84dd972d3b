# -*- coding: utf-8 -*-
"""Exceptions raised by the session, synthesis and command layers.

Every exception carries a ``user_message`` that is safe to send back to
the person who issued the command. Provider errors keep the technical
detail in ``str(error)`` for the log and show a generic message instead.
"""
from typing import Optional

NOT_IN_VOICE_CHANNEL_MESSAGE = "Can't tell me what to do if you're not in a voice channel!"
NOT_IN_SAME_VOICE_CHANNEL_MESSAGE = "Can't tell me what to do if you're not in the same voice channel!"
ALREADY_CONNECTED_MESSAGE = "I'm already in a voice channel."
NOT_CONNECTED_MESSAGE = "I'm not in a voice channel."
GENERIC_FAILURE_MESSAGE = "Error completing interaction."


class TugboatError(Exception):
    """Base class for errors that end a command with a reply."""
    default_message = GENERIC_FAILURE_MESSAGE

    def __init__(self, detail: Optional[str] = None, *, user_message: Optional[str] = None):
        self.user_message = user_message or self.default_message
        super().__init__(detail or self.user_message)


# --- User input ---

class UserInputError(TugboatError):
    """The request itself is invalid. The user can fix it and try again."""


class EmptyMessageError(UserInputError):
    default_message = "Please provide some text for me to say."


class MessageTooLongError(UserInputError):
    pass


class InvalidGenderError(UserInputError):
    pass


class NoMatchingVoiceError(UserInputError):
    pass


# --- Session state ---

class StateConflictError(TugboatError):
    """The request conflicts with the bot's current voice state."""


class NotInVoiceChannelError(StateConflictError):
    default_message = NOT_IN_VOICE_CHANNEL_MESSAGE


class NotInSameChannelError(StateConflictError):
    default_message = NOT_IN_SAME_VOICE_CHANNEL_MESSAGE


class AlreadyConnectedError(StateConflictError):
    default_message = ALREADY_CONNECTED_MESSAGE


class NotConnectedError(StateConflictError):
    default_message = NOT_CONNECTED_MESSAGE


# --- Collaborators ---

class ProviderError(TugboatError):
    """The synthesis service or the voice transport failed."""
