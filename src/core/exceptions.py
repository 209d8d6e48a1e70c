"""Exceptions for the call relay core.

Pipeline-stage failures (the CollaboratorError family) are caught at the
ConnectionProcessor flush boundary and never tear down a leg.
"""


class RelayError(Exception):
    """Base exception for relay errors."""

    pass


class RoomNotFoundError(RelayError):
    """Raised when a room id is not in the session registry."""

    def __init__(self, room_id: str) -> None:
        super().__init__(f"Room not found: {room_id}")
        self.room_id = room_id


class RoomFullError(RelayError):
    """Raised when a second participant tries to join an occupied room."""

    def __init__(self, room_id: str) -> None:
        super().__init__(f"Room is full (2 participants max): {room_id}")
        self.room_id = room_id


class PeerNotReadyError(RelayError):
    """Raised when the other leg of a room has not connected yet."""

    pass


class LegValidationError(RelayError):
    """Raised when a stream start event lacks required parameters."""

    pass


class CollaboratorError(RelayError):
    """Base exception for external transcription/translation/synthesis failures."""

    pass


class TranscriptionError(CollaboratorError):
    """Raised when the transcription service fails."""

    pass


class TranslationError(CollaboratorError):
    """Raised when the translation service fails."""

    pass


class SynthesisError(CollaboratorError):
    """Raised when the speech synthesis service fails."""

    pass


class TransportUnavailableError(RelayError):
    """Raised when a leg's transport is closed or missing."""

    pass


class BufferTooShortError(RelayError):
    """A flushed segment was below the minimum duration.

    Not a real failure: short segments are abandoned silently.
    """

    pass
