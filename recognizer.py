"""Speech engine backed by DashScope real-time recognition.

Microphone frames are streamed to ``paraformer-realtime-v2`` while it is
listening.  The recognizer reports one sentence at a time: a sentence's
text is revised in place until its end marker arrives, which maps onto
interim results that become final.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from queue import Empty, Queue
from typing import Any, Callable, Dict, List, Optional

from errors import (
    ABORTED,
    AUTH_FAILED,
    NETWORK,
    NO_SPEECH,
    RECOGNIZER_ERROR,
    CaptureError,
)
from models import AudioFrame, EngineEvent, EngineEventKind, EngineOptions, RecognitionFragment
from recorder import MicrophoneRecorder

try:
    import dashscope
    from dashscope.audio.asr import Recognition, RecognitionCallback
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore
    Recognition = None  # type: ignore
    RecognitionCallback = object  # type: ignore

logger = logging.getLogger(__name__)

EventCallback = Callable[[EngineEvent], None]


class _SentenceSlots:
    """Result list in which the newest open sentence is revised in place."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._fragments: List[RecognitionFragment] = []
        self._open = False
        self.heard = False

    @property
    def closed(self) -> bool:
        return not self._open

    def update(self, text: str, is_final: bool) -> EngineEvent:
        with self._lock:
            fragment = RecognitionFragment(text=text, is_final=is_final)
            if self._open:
                self._fragments[-1] = fragment
            else:
                self._fragments.append(fragment)
            self._open = not is_final
            if text.strip():
                self.heard = True
            return EngineEvent(
                kind=EngineEventKind.RESULT.value,
                fragments=list(self._fragments),
                result_index=len(self._fragments) - 1,
            )


class _RecognitionListener(RecognitionCallback):
    def __init__(self, engine: "DashscopeSpeechEngine", slots: _SentenceSlots) -> None:
        super().__init__()
        self._engine = engine
        self._slots = slots

    def on_open(self) -> None:
        logger.debug("Recognizer connection opened")

    def on_complete(self) -> None:
        logger.debug("Recognizer completed")

    def on_close(self) -> None:
        logger.debug("Recognizer connection closed")

    def on_error(self, result: Any) -> None:
        message = str(getattr(result, "message", "") or result)
        self._engine._fail(_to_error_code(message), message)

    def on_event(self, result: Any) -> None:
        sentence = result.get_sentence()
        if not isinstance(sentence, dict) or "text" not in sentence:
            return
        event = self._slots.update(str(sentence.get("text", "")), _is_sentence_end(sentence))
        self._engine._emit(event)


class DashscopeSpeechEngine:
    def __init__(
        self,
        api_key: str = "",
        recorder: Optional[MicrophoneRecorder] = None,
        model: str = "paraformer-realtime-v2",
        no_speech_timeout_s: float = 8.0,
        queue_maxsize: int = 50,
    ) -> None:
        self._api_key = api_key
        self._recorder = recorder or MicrophoneRecorder()
        self._model = model
        self._no_speech_timeout_s = no_speech_timeout_s
        self._queue_maxsize = queue_maxsize
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._failed = threading.Event()
        self._on_event: Optional[EventCallback] = None
        self._options = EngineOptions()
        self._slots = _SentenceSlots()
        self._queue: Queue[AudioFrame | None] = Queue(maxsize=queue_maxsize)

    def is_available(self) -> bool:
        return Recognition is not None and self._recorder.is_available()

    def start(self, on_event: EventCallback, options: EngineOptions) -> None:
        if self._thread and self._thread.is_alive():
            raise RuntimeError("recognition has already started")
        self._on_event = on_event
        self._options = options
        self._stop_event.clear()
        self._failed.clear()
        self._thread = threading.Thread(target=self._worker, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        self._recorder.stop()
        if self._thread and self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=0.5)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _worker(self) -> None:
        try:
            recognition = self._open_recognition()
        except CaptureError as exc:
            self._emit_error(exc.code, str(exc))
            self._emit(EngineEvent(kind=EngineEventKind.ENDED.value))
            return

        try:
            if self._stop_event.is_set():
                self._emit_error(ABORTED, "stopped before listening began")
                return
            self._emit(EngineEvent(kind=EngineEventKind.STARTED.value))
            self._pump(recognition)
        finally:
            self._recorder.stop()
            try:
                recognition.stop()
            except Exception as exc:
                logger.debug("Ignoring recognizer stop failure: %s", exc)
            self._emit(EngineEvent(kind=EngineEventKind.ENDED.value))

    def _open_recognition(self) -> Any:
        if Recognition is None:
            raise CaptureError(RECOGNIZER_ERROR, "dashscope is not installed")
        api_key = self._api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not api_key:
            raise CaptureError(AUTH_FAILED, "No API key configured")
        dashscope.api_key = api_key

        self._slots = _SentenceSlots()
        self._queue = Queue(maxsize=self._queue_maxsize)
        recognition = Recognition(
            model=self._model,
            format="pcm",
            sample_rate=self._recorder.sample_rate,
            callback=_RecognitionListener(self, self._slots),
            language_hints=[_language(self._options.locale)],
        )
        try:
            recognition.start()
        except Exception as exc:
            raise CaptureError(_to_error_code(str(exc)), str(exc)) from exc
        try:
            self._recorder.start(self._queue)
        except CaptureError:
            try:
                recognition.stop()
            except Exception as exc:
                logger.debug("Ignoring recognizer stop failure: %s", exc)
            raise
        return recognition

    def _pump(self, recognition: Any) -> None:
        started_at = time.monotonic()
        while not self._stop_event.is_set() and not self._failed.is_set():
            try:
                frame = self._queue.get(timeout=0.2)
            except Empty:
                pass
            else:
                if frame is None:  # Sentinel
                    return
                try:
                    recognition.send_audio_frame(frame.pcm16_bytes)
                except Exception as exc:
                    self._fail(_to_error_code(str(exc)), str(exc))
                    return
            if not self._slots.heard and time.monotonic() - started_at > self._no_speech_timeout_s:
                self._fail(NO_SPEECH, "no speech within %.1fs" % self._no_speech_timeout_s)
                return
            if not self._options.continuous and self._slots.heard and self._slots.closed:
                return

    def _fail(self, code: str, message: str) -> None:
        if self._failed.is_set():
            return
        self._failed.set()
        self._emit_error(code, message)

    def _emit_error(self, code: str, message: str) -> None:
        self._emit(EngineEvent(kind=EngineEventKind.ERROR.value, code=code, message=message))

    def _emit(self, event: EngineEvent) -> None:
        if not self._options.interim_results and event.kind == EngineEventKind.RESULT.value:
            if not any(f.is_final for f in event.fragments[event.result_index:]):
                return
        on_event = self._on_event
        if on_event is not None:
            on_event(event)


def _is_sentence_end(sentence: Dict[str, Any]) -> bool:
    if "sentence_end" in sentence:
        return bool(sentence["sentence_end"])
    return sentence.get("end_time") is not None


def _language(locale: str) -> str:
    return (locale or "en").split("-")[0].lower()


def _to_error_code(message: str) -> str:
    """Map an SDK/network failure message to an engine error code."""
    low = message.lower()
    if "401" in low or "auth" in low or "api key" in low or "apikey" in low:
        return AUTH_FAILED
    if "timeout" in low or "network" in low or "connection" in low:
        return NETWORK
    return RECOGNIZER_ERROR
