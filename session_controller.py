"""Voice command orchestration: capture, interpretation, task creation."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Callable, List, Optional

from capture_session import CaptureSession
from command_interpreter import CommandInterpreter
from errors import REJECTION_MESSAGE, error_message
from interfaces import Scheduler, SpeechEngine, TaskSink, TimerHandle
from models import (
    CaptureState,
    EngineOptions,
    ErrorKind,
    ParsedCommand,
    PipelineTimings,
    TaskDraft,
    VoiceDisplay,
)
from time_normalizer import normalize_time

logger = logging.getLogger(__name__)

StateCallback = Callable[[CaptureState, CaptureState], None]
DisplayCallback = Callable[[VoiceDisplay], None]
CloseCallback = Callable[[], None]

LISTENING_TEXT = "Listening..."
PROCESSING_TEXT = "Processing..."


class SessionController:
    def __init__(
        self,
        engine: SpeechEngine,
        task_sink: TaskSink,
        scheduler: Scheduler,
        timings: Optional[PipelineTimings] = None,
        options: Optional[EngineOptions] = None,
        on_close: Optional[CloseCallback] = None,
        on_state_change: Optional[StateCallback] = None,
        on_display_change: Optional[DisplayCallback] = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._task_sink = task_sink
        self._scheduler = scheduler
        self._timings = timings or PipelineTimings()
        self._on_close = on_close
        self._on_state_change = on_state_change
        self._on_display_change = on_display_change
        self._today = today

        self._epoch = 0
        self._timers: List[TimerHandle] = []
        self._matched = False
        self._display = VoiceDisplay()

        self._interpreter = CommandInterpreter(
            scheduler,
            on_dispatch=self._handle_utterance,
            debounce_ms=self._timings.debounce_ms,
        )
        self._session = CaptureSession(
            engine,
            options=options,
            on_state_change=self._handle_state_change,
            on_listening_started=self._handle_listening_started,
            on_listening_ended=self._handle_listening_ended,
            on_interim=self._handle_interim,
            on_final=self._interpreter.append_final,
            on_error=self._handle_error,
        )
        if self._session.unsupported:
            self._update(
                error=error_message(ErrorKind.UNSUPPORTED),
                start_enabled=False,
            )

    @property
    def state(self) -> CaptureState:
        return self._session.state

    @property
    def display(self) -> VoiceDisplay:
        return replace(self._display)

    @property
    def session(self) -> CaptureSession:
        return self._session

    def start_listening(self) -> bool:
        if self._session.unsupported or self._session.listening:
            return False
        self._begin_epoch()
        self._update(transcript="", error="")
        return self._session.start()

    def stop_listening(self) -> None:
        self._interpreter.cancel()
        self._session.stop()

    def toggle(self) -> None:
        if self._session.listening:
            self.stop_listening()
        else:
            self.start_listening()

    def close(self) -> None:
        """Tear down the surface; no pending callback fires afterwards."""
        self._epoch += 1
        self._cancel_timers()
        self._interpreter.reset()
        self._session.close()
        self._matched = False
        self._update(interim_text="", transcript="")

    # ------------------------------------------------------------------
    # Session callbacks
    # ------------------------------------------------------------------

    def _handle_state_change(self, from_state: CaptureState, to_state: CaptureState) -> None:
        self._update(listening=to_state in (CaptureState.LISTENING, CaptureState.PROCESSING))
        if self._on_state_change:
            self._on_state_change(from_state, to_state)

    def _handle_listening_started(self) -> None:
        self._update(interim_text=LISTENING_TEXT, transcript="", error="")

    def _handle_listening_ended(self) -> None:
        self._update(interim_text="")

    def _handle_interim(self, text: str) -> None:
        self._update(interim_text=text)

    def _handle_error(self, kind: ErrorKind, message: str) -> None:
        self._interpreter.cancel()
        self._update(error=message, interim_text="")

    # ------------------------------------------------------------------
    # Interpretation outcome
    # ------------------------------------------------------------------

    def _handle_utterance(self, utterance: str, command: Optional[ParsedCommand]) -> None:
        if self._matched:
            return
        self._session.mark_processing()
        self._update(transcript=f'"{utterance}"', interim_text=PROCESSING_TEXT)
        if command is None:
            self._reject(utterance)
        else:
            self._accept(command)

    def _accept(self, command: ParsedCommand) -> None:
        self._matched = True
        time_text = normalize_time(command.raw_time) if command.raw_time else None
        draft = TaskDraft(
            title=command.title,
            time=time_text,
            completed=False,
            date=self._today().isoformat(),
        )
        try:
            self._task_sink.add(draft)
        except Exception as exc:
            logger.warning("Task sink rejected %r: %s", draft.title, exc)
            self._update(error=error_message(ErrorKind.UNKNOWN, "task-store"), interim_text="")
        else:
            logger.info("Task added: %s (%s)", draft.title, draft.time or "no time")
            suffix = f" at {time_text}" if time_text else ""
            self._update(transcript=f'✓ Task added: "{draft.title}"{suffix}', interim_text="")
        self._schedule(self._timings.stop_delay_ms, self._stop_after_match)

    def _stop_after_match(self) -> None:
        self.stop_listening()
        self._schedule(self._timings.close_delay_ms, self._close_surface)

    def _close_surface(self) -> None:
        if self._on_close:
            self._on_close()

    def _reject(self, utterance: str) -> None:
        logger.info("No command matched: %s", utterance)
        self._update(transcript=REJECTION_MESSAGE, interim_text="")
        self._schedule(self._timings.retry_delay_ms, self._retry)

    def _retry(self) -> None:
        self._update(transcript="")
        self._interpreter.reset()
        if self._session.resume_listening():
            return
        if self._session.state in (CaptureState.IDLE, CaptureState.ERRORED):
            self._session.start()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _begin_epoch(self) -> None:
        self._epoch += 1
        self._cancel_timers()
        self._interpreter.reset()
        self._matched = False

    def _schedule(self, delay_ms: int, action: Callable[[], None]) -> None:
        epoch = self._epoch
        handle: Optional[TimerHandle] = None

        def _guarded() -> None:
            if handle in self._timers:
                self._timers.remove(handle)
            if epoch != self._epoch:
                return
            action()

        handle = self._scheduler.call_later(delay_ms, _guarded)
        self._timers.append(handle)

    def _cancel_timers(self) -> None:
        timers, self._timers = self._timers, []
        for timer in timers:
            timer.cancel()

    def _update(self, **changes: object) -> None:
        updated = replace(self._display, **changes)
        if updated == self._display:
            return
        self._display = updated
        if self._on_display_change:
            self._on_display_change(replace(updated))
