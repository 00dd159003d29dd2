"""Microphone capture feeding PCM16 frames into a queue."""

from __future__ import annotations

import logging
import threading
import time
from queue import Full, Queue
from typing import Any, Optional

from errors import AUDIO_CAPTURE, NOT_ALLOWED, CaptureError
from models import AudioFrame

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)

_PERMISSION_HINTS = ("permission", "not permitted", "denied", "not authorized")


class MicrophoneRecorder:
    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = 100,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self.dropped_chunks = 0
        self._stream: Any = None
        self._lock = threading.Lock()
        self._queue: Optional[Queue[AudioFrame | None]] = None

    @property
    def running(self) -> bool:
        return self._stream is not None

    def is_available(self) -> bool:
        return sd is not None and np is not None

    def start(self, audio_queue: Queue[AudioFrame | None]) -> None:
        with self._lock:
            if self._stream is not None:
                return
            if sd is None:
                raise CaptureError(AUDIO_CAPTURE, "sounddevice is not installed")
            self._queue = audio_queue
            self.dropped_chunks = 0
            try:
                stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    dtype="int16",
                    blocksize=int(self.sample_rate * self.chunk_ms / 1000),
                    callback=self._on_audio,
                )
                stream.start()
            except Exception as exc:
                self._queue = None
                raise CaptureError(_capture_code(exc), str(exc)) from exc
            self._stream = stream
            logger.debug("Microphone stream opened at %d Hz", self.sample_rate)

    def stop(self) -> None:
        with self._lock:
            stream, self._stream = self._stream, None
            if stream is not None:
                try:
                    stream.stop()
                    stream.close()
                except Exception as exc:
                    logger.debug("Ignoring microphone close failure: %s", exc)
            self._push(None)
            if self.dropped_chunks:
                logger.info("Dropped %d audio chunks (queue full)", self.dropped_chunks)

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if self._stream is None or np is None:
            return
        if status:
            logger.debug("Microphone status: %s", status)
        frame = AudioFrame(
            pcm16_bytes=np.asarray(indata, dtype=np.int16).tobytes(),
            sample_rate=self.sample_rate,
            channels=self.channels,
            timestamp_ms=int(time.time() * 1000),
        )
        if not self._push(frame):
            self.dropped_chunks += 1

    def _push(self, frame: AudioFrame | None) -> bool:
        if self._queue is None:
            return False
        try:
            self._queue.put_nowait(frame)
        except Full:
            return False
        return True


def _capture_code(exc: Exception) -> str:
    low = str(exc).lower()
    if any(hint in low for hint in _PERMISSION_HINTS):
        return NOT_ALLOWED
    return AUDIO_CAPTURE
