"""Protocol interfaces used by the capture session and controller."""

from __future__ import annotations

from typing import Callable, Protocol

from models import EngineEvent, EngineOptions, PipelineTimings, TaskDraft

EngineCallback = Callable[[EngineEvent], None]


class SpeechEngine(Protocol):
    def is_available(self) -> bool: ...

    def start(self, on_event: EngineCallback, options: EngineOptions) -> None: ...

    def stop(self) -> None: ...


class TaskSink(Protocol):
    def add(self, draft: TaskDraft) -> object: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle: ...


class ConfigStore(Protocol):
    def get_api_key(self) -> str: ...

    def set_api_key(self, key: str) -> None: ...

    def get_hotkey(self) -> str: ...

    def set_hotkey(self, hotkey: str) -> None: ...

    def get_locale(self) -> str: ...

    def get_timings(self) -> PipelineTimings: ...
