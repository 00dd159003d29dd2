"""Fakes shared by the pipeline tests."""

from __future__ import annotations

from typing import Callable, List, Optional, Tuple

import pytest

from models import EngineEvent, EngineEventKind, EngineOptions, RecognitionFragment, TaskDraft


class FakeEngine:
    def __init__(self, available: bool = True) -> None:
        self.available = available
        self.callbacks: List[Callable[[EngineEvent], None]] = []
        self.options: Optional[EngineOptions] = None
        self.start_calls = 0
        self.stop_calls = 0
        self.fail_start = False
        self.fail_stop = False
        self.log: Optional[List[str]] = None

    @property
    def on_event(self) -> Callable[[EngineEvent], None]:
        assert self.callbacks, "engine was never started"
        return self.callbacks[-1]

    def is_available(self) -> bool:
        return self.available

    def start(self, on_event, options: EngineOptions) -> None:  # noqa: ANN001
        self.start_calls += 1
        if self.fail_start:
            raise RuntimeError("recognition has already started")
        self.callbacks.append(on_event)
        self.options = options

    def stop(self) -> None:
        self.stop_calls += 1
        if self.log is not None:
            self.log.append("stop")
        if self.fail_stop:
            raise RuntimeError("recognition is not started")

    # Helpers to drive the engine from tests

    def started(self) -> None:
        self.on_event(EngineEvent(kind=EngineEventKind.STARTED.value))

    def ended(self) -> None:
        self.on_event(EngineEvent(kind=EngineEventKind.ENDED.value))

    def error(self, code: str, message: str = "") -> None:
        self.on_event(EngineEvent(kind=EngineEventKind.ERROR.value, code=code, message=message))

    def result(self, *fragments: Tuple[str, bool], result_index: int = 0) -> None:
        self.on_event(
            EngineEvent(
                kind=EngineEventKind.RESULT.value,
                fragments=[RecognitionFragment(text=t, is_final=f) for t, f in fragments],
                result_index=result_index,
            )
        )

    def final(self, text: str) -> None:
        self.result((text, True))

    def interim(self, text: str) -> None:
        self.result((text, False))


class FakeTaskSink:
    def __init__(self) -> None:
        self.drafts: List[TaskDraft] = []
        self.log: Optional[List[str]] = None
        self.fail = False

    def add(self, draft: TaskDraft) -> None:
        if self.log is not None:
            self.log.append("add")
        if self.fail:
            raise OSError("disk full")
        self.drafts.append(draft)


class _ManualHandle:
    def __init__(self, scheduler: "ManualScheduler", due_ms: int, callback: Callable[[], None]) -> None:
        self.scheduler = scheduler
        self.due_ms = due_ms
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler driven by an explicit clock instead of an event loop."""

    def __init__(self) -> None:
        self.now_ms = 0
        self.handles: List[_ManualHandle] = []

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> _ManualHandle:
        handle = _ManualHandle(self, self.now_ms + delay_ms, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> List[_ManualHandle]:
        return [h for h in self.handles if not h.cancelled and not h.fired]

    def advance(self, ms: int) -> None:
        target = self.now_ms + ms
        while True:
            due = [h for h in self.pending if h.due_ms <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.due_ms)
            self.now_ms = handle.due_ms
            handle.fired = True
            handle.callback()
        self.now_ms = target


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def sink() -> FakeTaskSink:
    return FakeTaskSink()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()
