"""Exception hierarchy and user-facing error messages for VoiceNotes."""

from typing import Tuple


class VoiceNotesError(Exception):
    """Base class for all VoiceNotes errors."""


class ConfigurationError(VoiceNotesError):
    """Configuration file is missing or invalid."""


class DeviceError(VoiceNotesError):
    """Capture device failure. Fatal to the current session."""


class DeviceAcquisitionError(DeviceError):
    """The capture device could not be opened."""

    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    BUSY = "busy"
    UNSUPPORTED = "unsupported"
    UNKNOWN = "unknown"

    def __init__(self, message: str, reason: str = UNKNOWN):
        super().__init__(message)
        self.reason = reason


class DeviceRuntimeError(DeviceError):
    """The capture device failed while a session was running."""


class TranscriptionServiceError(VoiceNotesError):
    """Speech recognition failed. Non-fatal unless it blocks the join."""


class PersistenceError(VoiceNotesError):
    """A storage tier could not complete a read or write."""


class JoinTimeoutError(VoiceNotesError):
    """Neither completion signal arrived within the grace period."""


_ACQUISITION_MESSAGES = {
    DeviceAcquisitionError.PERMISSION_DENIED: (
        "Microphone blocked",
        "Allow microphone access for this application and try again",
    ),
    DeviceAcquisitionError.NOT_FOUND: (
        "Microphone not found",
        "Check that a microphone is connected and working",
    ),
    DeviceAcquisitionError.UNSUPPORTED: (
        "Audio capture not supported",
        "This environment cannot record audio; use text-only mode",
    ),
    DeviceAcquisitionError.BUSY: (
        "Microphone in use",
        "Close other applications using the microphone and try again",
    ),
    DeviceAcquisitionError.UNKNOWN: (
        "Microphone error",
        "Acknowledge and try recording again",
    ),
}


def user_message(error: BaseException) -> Tuple[str, str]:
    """Return the (title, description) pair shown to the user for an error."""
    if isinstance(error, DeviceAcquisitionError):
        return _ACQUISITION_MESSAGES.get(error.reason, _ACQUISITION_MESSAGES[DeviceAcquisitionError.UNKNOWN])
    if isinstance(error, DeviceRuntimeError):
        return ("Recording error", "Acknowledge and start a new recording")
    if isinstance(error, JoinTimeoutError):
        return ("Recording not saved", "The recorder did not finish in time; acknowledge and try again")
    if isinstance(error, TranscriptionServiceError):
        return ("Transcription error", "Recording continues without transcription")
    if isinstance(error, PersistenceError):
        return ("Save failed", "The note could not be stored; it is only kept in memory")
    if isinstance(error, ConfigurationError):
        return ("Configuration error", str(error))
    return ("Unexpected error", "Acknowledge and try again")
