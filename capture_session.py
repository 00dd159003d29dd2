"""State-machine wrapper around a speech recognition engine."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from errors import START_FAILED_MESSAGE, classify_error, error_message
from interfaces import SpeechEngine
from models import (
    CaptureState,
    EngineEvent,
    EngineEventKind,
    EngineOptions,
    ErrorKind,
)

logger = logging.getLogger(__name__)

StateCallback = Callable[[CaptureState, CaptureState], None]
TextCallback = Callable[[str], None]
FinalCallback = Callable[[List[str]], None]
ErrorCallback = Callable[[ErrorKind, str], None]
LifecycleCallback = Callable[[], None]

_TRANSITIONS = {
    CaptureState.IDLE: {CaptureState.LISTENING, CaptureState.ERRORED},
    CaptureState.LISTENING: {CaptureState.PROCESSING, CaptureState.IDLE, CaptureState.ERRORED},
    CaptureState.PROCESSING: {CaptureState.LISTENING, CaptureState.IDLE, CaptureState.ERRORED},
    CaptureState.ERRORED: {CaptureState.LISTENING, CaptureState.IDLE},
}


class CaptureSession:
    def __init__(
        self,
        engine: SpeechEngine,
        options: Optional[EngineOptions] = None,
        on_state_change: Optional[StateCallback] = None,
        on_listening_started: Optional[LifecycleCallback] = None,
        on_listening_ended: Optional[LifecycleCallback] = None,
        on_interim: Optional[TextCallback] = None,
        on_final: Optional[FinalCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._engine = engine
        self._options = options or EngineOptions()
        self._on_state_change = on_state_change
        self._on_listening_started = on_listening_started
        self._on_listening_ended = on_listening_ended
        self._on_interim = on_interim
        self._on_final = on_final
        self._on_error = on_error

        self._state = CaptureState.IDLE
        self._epoch = 0
        self._engine_active = False
        self._unsupported = not self._probe_engine()
        if self._unsupported:
            logger.warning("Speech engine is unavailable; voice capture disabled")

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def unsupported(self) -> bool:
        return self._unsupported

    @property
    def listening(self) -> bool:
        return self._state in (CaptureState.LISTENING, CaptureState.PROCESSING)

    def start(self) -> bool:
        if self._unsupported:
            return False
        if self._state not in (CaptureState.IDLE, CaptureState.ERRORED):
            return False
        if self._engine_active:
            # A previous engine run has not reported its end yet.
            self._safe_stop_engine()
        self._epoch += 1
        epoch = self._epoch
        self._transition(CaptureState.LISTENING)
        self._engine_active = True
        try:
            self._engine.start(lambda event: self._handle_engine_event(epoch, event), self._options)
        except Exception as exc:
            logger.warning("Speech engine failed to start: %s", exc)
            self._engine_active = False
            self._transition(CaptureState.ERRORED)
            self._emit_error(ErrorKind.UNKNOWN, START_FAILED_MESSAGE)
            return False
        logger.info("Capture session %d started", epoch)
        return True

    def stop(self) -> None:
        if self._engine_active:
            self._engine_active = False
            self._safe_stop_engine()
        self._transition(CaptureState.IDLE)

    def close(self) -> None:
        self.stop()
        self._epoch += 1
        self._transition(CaptureState.IDLE)

    def mark_processing(self) -> bool:
        if self._state != CaptureState.LISTENING:
            return False
        self._transition(CaptureState.PROCESSING)
        return True

    def resume_listening(self) -> bool:
        if self._state != CaptureState.PROCESSING:
            return False
        self._transition(CaptureState.LISTENING)
        return True

    # ------------------------------------------------------------------
    # Engine events
    # ------------------------------------------------------------------

    def _handle_engine_event(self, epoch: int, event: EngineEvent) -> None:
        if epoch != self._epoch:
            logger.debug("Dropping %s event from stale session %d", event.kind, epoch)
            return
        kind = event.kind
        if kind == EngineEventKind.STARTED.value:
            if self._on_listening_started:
                self._on_listening_started()
        elif kind == EngineEventKind.RESULT.value:
            self._handle_result(event)
        elif kind == EngineEventKind.ERROR.value:
            self._handle_error(event.code, event.message)
        elif kind == EngineEventKind.ENDED.value:
            self._engine_active = False
            self._transition(CaptureState.IDLE)
            if self._on_listening_ended:
                self._on_listening_ended()

    def _handle_result(self, event: EngineEvent) -> None:
        if self._state != CaptureState.LISTENING:
            return
        interim = ""
        finals: List[str] = []
        for fragment in event.fragments[max(0, event.result_index):]:
            if fragment.is_final:
                if fragment.text.strip():
                    finals.append(fragment.text.strip())
            else:
                interim += fragment.text
        if interim and self._on_interim:
            self._on_interim(interim)
        if finals and self._on_final:
            self._on_final(finals)

    def _handle_error(self, code: str, message: str) -> None:
        kind = classify_error(code)
        if kind == ErrorKind.ABORTED:
            logger.debug("Engine aborted: %s", message or code)
            return
        logger.warning("Speech engine error %s: %s", code, message)
        self._transition(CaptureState.ERRORED)
        self._emit_error(kind, error_message(kind, code))

    def _emit_error(self, kind: ErrorKind, message: str) -> None:
        if self._on_error:
            self._on_error(kind, message)

    def _probe_engine(self) -> bool:
        try:
            return bool(self._engine.is_available())
        except Exception as exc:
            logger.warning("Speech engine probe failed: %s", exc)
            return False

    def _safe_stop_engine(self) -> None:
        try:
            self._engine.stop()
        except Exception as exc:
            logger.debug("Ignoring engine stop failure: %s", exc)

    def _transition(self, to_state: CaptureState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        if to_state not in _TRANSITIONS[from_state]:
            logger.warning("Ignoring illegal transition %s -> %s", from_state.value, to_state.value)
            return
        self._state = to_state
        logger.debug("Capture state %s -> %s", from_state.value, to_state.value)
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
