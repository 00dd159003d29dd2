"""Engine error codes, their classification and user-facing messages."""

from __future__ import annotations

from models import ErrorKind

NO_SPEECH = "no-speech"
AUDIO_CAPTURE = "audio-capture"
NOT_ALLOWED = "not-allowed"
NETWORK = "network"
ABORTED = "aborted"
AUTH_FAILED = "auth-failed"
RECOGNIZER_ERROR = "recognizer-error"

_CODE_TO_KIND = {
    NO_SPEECH: ErrorKind.NO_SPEECH,
    AUDIO_CAPTURE: ErrorKind.MICROPHONE_UNAVAILABLE,
    NOT_ALLOWED: ErrorKind.PERMISSION_DENIED,
    NETWORK: ErrorKind.NETWORK_FAILURE,
    ABORTED: ErrorKind.ABORTED,
}

ERROR_MESSAGES = {
    ErrorKind.NO_SPEECH: "No speech detected. Please speak clearly.",
    ErrorKind.MICROPHONE_UNAVAILABLE: "Microphone not found. Please check your microphone.",
    ErrorKind.PERMISSION_DENIED: (
        "Microphone access denied. Please allow microphone access in system settings."
    ),
    ErrorKind.NETWORK_FAILURE: "Network error. Please check your internet connection.",
    ErrorKind.UNSUPPORTED: "Speech recognition is not supported on this system.",
}

START_FAILED_MESSAGE = "Failed to start voice recognition. Please try again."

REJECTION_MESSAGE = (
    "❌ Didn't understand. Try saying:\n"
    '"Add task review presentation"\n'
    '"Remind me to call client at 3 PM"'
)


class CaptureError(RuntimeError):
    """Raised by capture adapters; carries an engine error code."""

    def __init__(self, code: str, message: str = "") -> None:
        super().__init__(message or code)
        self.code = code


def classify_error(code: str) -> ErrorKind:
    return _CODE_TO_KIND.get(code, ErrorKind.UNKNOWN)


def error_message(kind: ErrorKind, code: str = "") -> str:
    """Return the text shown to the user; empty for intentional aborts."""
    if kind == ErrorKind.ABORTED:
        return ""
    if kind in ERROR_MESSAGES:
        return ERROR_MESSAGES[kind]
    return f"Error: {code or 'unknown'}. Please try again."
