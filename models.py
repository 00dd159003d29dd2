"""Core data models for the voice task pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class CaptureState(str, Enum):
    IDLE = "IDLE"
    LISTENING = "LISTENING"
    PROCESSING = "PROCESSING"
    ERRORED = "ERRORED"


class ErrorKind(str, Enum):
    NO_SPEECH = "NO_SPEECH"
    MICROPHONE_UNAVAILABLE = "MICROPHONE_UNAVAILABLE"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NETWORK_FAILURE = "NETWORK_FAILURE"
    ABORTED = "ABORTED"
    UNKNOWN = "UNKNOWN"
    UNSUPPORTED = "UNSUPPORTED"


class EngineEventKind(str, Enum):
    STARTED = "started"
    ENDED = "ended"
    RESULT = "result"
    ERROR = "error"


@dataclass
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0


@dataclass
class RecognitionFragment:
    text: str
    is_final: bool = False


@dataclass
class EngineEvent:
    """One callback from the speech engine.

    For ``RESULT`` events ``fragments`` holds every result of the current
    engine session; entries before ``result_index`` were already delivered.
    """

    kind: str
    fragments: List[RecognitionFragment] = field(default_factory=list)
    result_index: int = 0
    code: str = ""
    message: str = ""


@dataclass
class EngineOptions:
    locale: str = "en-US"
    continuous: bool = True
    interim_results: bool = True


@dataclass
class ParsedCommand:
    title: str
    raw_time: Optional[str] = None


@dataclass
class TaskDraft:
    title: str
    date: str
    time: Optional[str] = None
    completed: bool = False


@dataclass
class Task:
    id: str
    title: str
    date: str
    time: Optional[str] = None
    completed: bool = False


@dataclass
class VoiceDisplay:
    interim_text: str = ""
    transcript: str = ""
    error: str = ""
    listening: bool = False
    start_enabled: bool = True


@dataclass
class PipelineTimings:
    debounce_ms: int = 1200
    stop_delay_ms: int = 500
    close_delay_ms: int = 1500
    retry_delay_ms: int = 3000
