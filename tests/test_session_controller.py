from __future__ import annotations

from datetime import date
from typing import List, Tuple

from errors import REJECTION_MESSAGE
from models import CaptureState, PipelineTimings, TaskDraft, VoiceDisplay
from session_controller import LISTENING_TEXT, PROCESSING_TEXT, SessionController

TODAY = date(2026, 10, 19)


class Surface:
    def __init__(self) -> None:
        self.closed = 0
        self.displays: List[VoiceDisplay] = []
        self.transitions: List[Tuple[CaptureState, CaptureState]] = []
        self.log: List[str] = []

    def close(self) -> None:
        self.closed += 1
        self.log.append("close")


def _make_controller(engine, sink, scheduler, surface=None, timings=None):  # noqa: ANN001
    surface = surface or Surface()
    controller = SessionController(
        engine=engine,
        task_sink=sink,
        scheduler=scheduler,
        timings=timings,
        on_close=surface.close,
        on_state_change=lambda f, t: surface.transitions.append((f, t)),
        on_display_change=surface.displays.append,
        today=lambda: TODAY,
    )
    return controller, surface


def _listen(controller, engine) -> None:  # noqa: ANN001
    controller.start_listening()
    engine.started()


def test_happy_path_adds_task_then_stops_then_closes(engine, sink, scheduler) -> None:  # noqa: ANN001
    controller, surface = _make_controller(engine, sink, scheduler)
    order: List[str] = []
    engine.log = sink.log = surface.log = order

    _listen(controller, engine)
    assert controller.display.interim_text == LISTENING_TEXT

    engine.final("add task call mom at 5 pm")
    scheduler.advance(1200)

    assert sink.drafts == [
        TaskDraft(title="Call mom", time="5:00 PM", completed=False, date="2026-10-19")
    ]
    assert controller.display.transcript == '✓ Task added: "Call mom" at 5:00 PM'
    assert controller.state == CaptureState.PROCESSING

    scheduler.advance(500)
    assert engine.stop_calls == 1
    assert controller.state == CaptureState.IDLE
    assert surface.closed == 0

    scheduler.advance(1500)
    assert surface.closed == 1
    assert order == ["add", "stop", "close"]


def test_fragments_during_delay_window_do_not_duplicate(engine, sink, scheduler) -> None:  # noqa: ANN001
    controller, surface = _make_controller(engine, sink, scheduler)
    _listen(controller, engine)

    engine.final("remind me to call client")
    scheduler.advance(1200)
    engine.final("add task something else")
    scheduler.advance(300)
    engine.final("schedule more")
    scheduler.advance(10_000)

    assert [d.title for d in sink.drafts] == ["Call client"]
    assert sink.drafts[0].time is None
    assert engine.stop_calls == 1
    assert surface.closed == 1


def test_debounced_fragments_make_one_task(engine, sink, scheduler) -> None:  # noqa: ANN001
    controller, _ = _make_controller(engine, sink, scheduler)
    _listen(controller, engine)

    engine.final("schedule")
    scheduler.advance(600)
    engine.final("dentist")
    scheduler.advance(600)
    engine.final("at 1430")
    scheduler.advance(1200)

    assert sink.drafts == [
        TaskDraft(title="Dentist", time="2:30 PM", completed=False, date="2026-10-19")
    ]


def test_unrecognized_time_is_kept_verbatim(engine, sink, scheduler) -> None:  # noqa: ANN001
    controller, _ = _make_controller(engine, sink, scheduler)
    _listen(controller, engine)

    engine.final("new task lunch at noonish")
    scheduler.advance(1200)

    assert sink.drafts[0].time == "noonish"
    assert controller.display.transcript == '✓ Task added: "Lunch" at noonish'


def test_no_match_shows_rejection_and_retries_once(engine, sink, scheduler) -> None:  # noqa: ANN001
    controller, surface = _make_controller(engine, sink, scheduler)
    _listen(controller, engine)

    engine.final("banana")
    scheduler.advance(1200)

    assert sink.drafts == []
    assert controller.display.transcript == REJECTION_MESSAGE
    assert controller.state == CaptureState.PROCESSING
    assert len(scheduler.pending) == 1
    assert scheduler.pending[0].due_ms == scheduler.now_ms + 3000

    scheduler.advance(3000)

    assert controller.display.transcript == ""
    assert controller.state == CaptureState.LISTENING
    assert engine.start_calls == 1
    assert scheduler.pending == []
    assert surface.closed == 0

    # The user gets another try in the same session.
    engine.final("add task try again")
    scheduler.advance(1200)
    assert [d.title for d in sink.drafts] == ["Try again"]


def test_no_match_restarts_engine_that_ended(engine, sink, scheduler) -> None:  # noqa: ANN001
    controller, _ = _make_controller(engine, sink, scheduler)
    _listen(controller, engine)

    engine.final("banana")
    scheduler.advance(1200)
    engine.ended()
    assert controller.state == CaptureState.IDLE

    scheduler.advance(3000)

    assert engine.start_calls == 2
    assert controller.state == CaptureState.LISTENING


def test_processing_display_shows_quoted_utterance(engine, sink, scheduler) -> None:  # noqa: ANN001
    controller, surface = _make_controller(engine, sink, scheduler)
    _listen(controller, engine)

    engine.final("banana")
    scheduler.advance(1200)

    transcripts = [d.transcript for d in surface.displays]
    assert '"banana"' in transcripts
    assert any(d.interim_text == PROCESSING_TEXT for d in surface.displays)


def test_interim_text_is_a_preview(engine, sink, scheduler) -> None:  # noqa: ANN001
    controller, _ = _make_controller(engine, sink, scheduler)
    _listen(controller, engine)

    engine.interim("add")
    engine.interim("add task")

    assert controller.display.interim_text == "add task"

    engine.ended()
    assert controller.display.interim_text == ""
    assert controller.display.listening is False


def test_aborted_error_is_not_shown(engine, sink, scheduler) -> None:  # noqa: ANN001
    controller, _ = _make_controller(engine, sink, scheduler)
    _listen(controller, engine)

    engine.error("aborted")

    assert controller.display.error == ""


def test_error_replaces_display_and_cancels_pending_utterance(engine, sink, scheduler) -> None:  # noqa: ANN001
    controller, _ = _make_controller(engine, sink, scheduler)
    _listen(controller, engine)

    engine.final("add task half said")
    engine.error("network")
    scheduler.advance(5000)

    assert controller.display.error == "Network error. Please check your internet connection."
    assert controller.display.interim_text == ""
    assert controller.display.start_enabled is True
    assert controller.state == CaptureState.ERRORED
    assert sink.drafts == []

    # Errors are recoverable: starting again clears the message.
    assert controller.start_listening() is True
    assert controller.display.error == ""


def test_stop_cancels_pending_debounce(engine, sink, scheduler) -> None:  # noqa: ANN001
    controller, _ = _make_controller(engine, sink, scheduler)
    _listen(controller, engine)

    engine.final("add task water plants")
    controller.stop_listening()
    scheduler.advance(5000)

    assert sink.drafts == []
    assert controller.state == CaptureState.IDLE


def test_stop_without_start_is_safe(engine, sink, scheduler) -> None:  # noqa: ANN001
    controller, _ = _make_controller(engine, sink, scheduler)

    controller.stop_listening()
    controller.stop_listening()

    assert controller.state == CaptureState.IDLE
    assert engine.stop_calls == 0


def test_toggle_starts_and_stops(engine, sink, scheduler) -> None:  # noqa: ANN001
    controller, _ = _make_controller(engine, sink, scheduler)

    controller.toggle()
    assert controller.state == CaptureState.LISTENING
    controller.toggle()
    assert controller.state == CaptureState.IDLE
    assert engine.stop_calls == 1


def test_close_cancels_all_pending_timers(engine, sink, scheduler) -> None:  # noqa: ANN001
    controller, surface = _make_controller(engine, sink, scheduler)
    _listen(controller, engine)

    engine.final("add task pack bags")
    scheduler.advance(1200)
    assert len(sink.drafts) == 1

    controller.close()
    scheduler.advance(10_000)

    assert surface.closed == 0
    assert engine.stop_calls == 1
    assert controller.state == CaptureState.IDLE


def test_stale_timer_from_previous_session_is_ignored(engine, sink, scheduler) -> None:  # noqa: ANN001
    controller, surface = _make_controller(engine, sink, scheduler)
    _listen(controller, engine)
    engine.final("add task first")
    scheduler.advance(1200)
    stop_timer = scheduler.pending[0]

    controller.close()
    _listen(controller, engine)
    stop_timer.callback()  # fires even though it was cancelled

    assert controller.state == CaptureState.LISTENING
    assert engine.stop_calls == 1  # only the stop issued by close()


def test_new_session_cancels_previous_debounce(engine, sink, scheduler) -> None:  # noqa: ANN001
    controller, _ = _make_controller(engine, sink, scheduler)
    _listen(controller, engine)
    engine.final("add task stale")
    engine.ended()

    _listen(controller, engine)
    scheduler.advance(5000)

    assert sink.drafts == []


def test_unsupported_engine_disables_start(engine, sink, scheduler) -> None:  # noqa: ANN001
    engine.available = False
    controller, _ = _make_controller(engine, sink, scheduler)

    assert controller.display.start_enabled is False
    assert controller.display.error == "Speech recognition is not supported on this system."
    assert controller.start_listening() is False
    assert engine.start_calls == 0


def test_task_sink_failure_is_reported_not_raised(engine, sink, scheduler) -> None:  # noqa: ANN001
    sink.fail = True
    controller, surface = _make_controller(engine, sink, scheduler)
    _listen(controller, engine)

    engine.final("add task report")
    scheduler.advance(1200)

    assert controller.display.error == "Error: task-store. Please try again."
    scheduler.advance(2000)
    assert surface.closed == 1


def test_custom_timings_are_used(engine, sink, scheduler) -> None:  # noqa: ANN001
    timings = PipelineTimings(debounce_ms=100, stop_delay_ms=10, close_delay_ms=20, retry_delay_ms=50)
    controller, surface = _make_controller(engine, sink, scheduler, timings=timings)
    _listen(controller, engine)

    engine.final("schedule review")
    scheduler.advance(100)
    assert len(sink.drafts) == 1
    scheduler.advance(30)
    assert surface.closed == 1


def test_fired_timers_are_not_retained(engine, sink, scheduler) -> None:  # noqa: ANN001
    controller, _ = _make_controller(engine, sink, scheduler)
    _listen(controller, engine)

    for word in ("banana", "apple", "cherry"):
        engine.final(word)
        scheduler.advance(1200)
        assert len(controller._timers) == 1
        scheduler.advance(3000)
        assert controller._timers == []

    assert controller.state == CaptureState.LISTENING


def test_engine_end_after_error_is_idle_but_keeps_message(engine, sink, scheduler) -> None:  # noqa: ANN001
    controller, _ = _make_controller(engine, sink, scheduler)
    _listen(controller, engine)

    engine.error("network")
    engine.ended()

    assert controller.state == CaptureState.IDLE
    assert controller.display.error == "Network error. Please check your internet connection."
    assert controller.display.listening is False
