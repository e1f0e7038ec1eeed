"""
Detection Run State
====================
Everything that belongs to a single detection run: the append-only
message history, the URL -> verdict map, the current state and the
clock used for the run deadline. A new DetectionRun is created for every
email, so runs never share mutable state.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from phish_detector.core.url_scanner import UrlScanner
from phish_detector.schemas import DetectionVerdict


class RunState(Enum):
    SEEDED = "seeded"
    AWAITING_MODEL = "awaiting_model"
    TOOL_PHASE = "tool_phase"
    DONE = "done"
    FAILED = "failed"


@dataclass
class DetectionRun:
    scanner: UrlScanner
    messages: list[dict[str, Any]] = field(default_factory=list)
    url_checks: dict[str, str] = field(default_factory=dict)
    state: RunState = RunState.SEEDED
    rounds: int = 0
    verdict: DetectionVerdict | None = None
    started_at: float = field(default_factory=time.monotonic)

    def append(self, message: dict[str, Any]) -> None:
        self.messages.append(message)

    def elapsed(self) -> float:
        return time.monotonic() - self.started_at

    @property
    def finished(self) -> bool:
        return self.state in (RunState.DONE, RunState.FAILED)
