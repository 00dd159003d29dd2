"""Turn finalized speech into task commands.

Final fragments accumulate in an utterance buffer. Once no new final text
has arrived for the debounce interval, the buffer is taken as one complete
utterance and matched against an ordered list of grammars; the first
grammar that matches wins.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from interfaces import Scheduler, TimerHandle
from models import ParsedCommand

logger = logging.getLogger(__name__)

DispatchCallback = Callable[[str, Optional[ParsedCommand]], None]

_TIME_CLAUSE = r"(?:\s+(?:at|for|by)\s+(?P<time>.+))"


@dataclass(frozen=True)
class Grammar:
    name: str
    pattern: re.Pattern
    anchored: bool = False

    def extract(self, utterance: str) -> Optional[ParsedCommand]:
        match = (self.pattern.match if self.anchored else self.pattern.search)(utterance)
        if not match:
            return None
        title = match.group("title").strip()
        if not title:
            return None
        raw_time = match.group("time")
        raw_time = raw_time.strip() if raw_time else None
        return ParsedCommand(title=_capitalize(title), raw_time=raw_time or None)


GRAMMARS: List[Grammar] = [
    Grammar(
        "create",
        re.compile(rf"\b(?:add|create|new)\s+(?:a\s+)?task\s+(?P<title>.+?){_TIME_CLAUSE}?$"),
    ),
    Grammar(
        "remind",
        re.compile(rf"\b(?:remind|tell)\s+me\s+to\s+(?P<title>.+?){_TIME_CLAUSE}?$"),
    ),
    Grammar(
        "schedule",
        re.compile(rf"\bschedule\s+(?P<title>.+?){_TIME_CLAUSE}?$"),
    ),
    Grammar(
        "timed",
        re.compile(rf"^(?P<title>.+?){_TIME_CLAUSE}$"),
        anchored=True,
    ),
]


def _capitalize(title: str) -> str:
    return title[:1].upper() + title[1:]


def interpret(utterance: str, grammars: Iterable[Grammar] = GRAMMARS) -> Optional[ParsedCommand]:
    """Match a complete utterance; None when no grammar applies."""
    cleaned = utterance.strip().casefold()
    if not cleaned:
        return None
    for grammar in grammars:
        command = grammar.extract(cleaned)
        if command is not None:
            logger.debug("Utterance %r matched grammar %s", cleaned, grammar.name)
            return command
    return None


class UtteranceBuffer:
    def __init__(self) -> None:
        self._parts: List[str] = []

    def append(self, text: str) -> bool:
        text = text.strip()
        if not text:
            return False
        self._parts.append(text)
        return True

    @property
    def text(self) -> str:
        return " ".join(self._parts)

    def take(self) -> str:
        text = self.text
        self._parts.clear()
        return text

    def clear(self) -> None:
        self._parts.clear()


class CommandInterpreter:
    def __init__(
        self,
        scheduler: Scheduler,
        on_dispatch: DispatchCallback,
        debounce_ms: int = 1200,
        grammars: Iterable[Grammar] = GRAMMARS,
    ) -> None:
        self._scheduler = scheduler
        self._on_dispatch = on_dispatch
        self._debounce_ms = debounce_ms
        self._grammars = list(grammars)
        self._buffer = UtteranceBuffer()
        self._timer: Optional[TimerHandle] = None
        self._generation = 0

    @property
    def pending_text(self) -> str:
        return self._buffer.text

    @property
    def is_pending(self) -> bool:
        return self._timer is not None

    def append_final(self, texts: Iterable[str]) -> None:
        appended = False
        for text in texts:
            appended = self._buffer.append(text) or appended
        if appended:
            self._restart_timer()

    def reset(self) -> None:
        self.cancel()
        self._buffer.clear()

    def cancel(self) -> None:
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _restart_timer(self) -> None:
        self.cancel()
        generation = self._generation
        self._timer = self._scheduler.call_later(
            self._debounce_ms, lambda: self._on_quiet(generation)
        )

    def _on_quiet(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._timer = None
        utterance = self._buffer.take()
        if not utterance.strip():
            return
        logger.info("Dispatching utterance: %s", utterance)
        self._on_dispatch(utterance, interpret(utterance, self._grammars))
