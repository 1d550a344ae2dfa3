from __future__ import annotations

import os
from dataclasses import dataclass, replace

MIN_TOTAL_QUESTIONS = 3
MAX_TOTAL_QUESTIONS = 10
MIN_REVEAL_INTERVAL_MS = 500
MAX_REVEAL_INTERVAL_MS = 3000
REVEAL_INTERVAL_STEP_MS = 500

DEFAULT_TOTAL_QUESTIONS = 5
DEFAULT_REVEAL_INTERVAL_MS = 1000

TOTAL_QUESTIONS_ENV = "MENTAL_MATH_TOTAL_QUESTIONS"
REVEAL_INTERVAL_ENV = "MENTAL_MATH_REVEAL_INTERVAL_MS"


@dataclass(frozen=True, slots=True)
class Settings:
    """Per-session drill parameters.

    ``total_questions`` is both the number of operands per round and the
    number of rounds in a session.
    """

    total_questions: int = DEFAULT_TOTAL_QUESTIONS
    reveal_interval_ms: int = DEFAULT_REVEAL_INTERVAL_MS

    @property
    def reveal_interval_s(self) -> float:
        return self.reveal_interval_ms / 1000.0

    def clamped(self) -> "Settings":
        total = _clamp_int(self.total_questions, MIN_TOTAL_QUESTIONS, MAX_TOTAL_QUESTIONS)
        interval = _clamp_int(self.reveal_interval_ms, MIN_REVEAL_INTERVAL_MS, MAX_REVEAL_INTERVAL_MS)
        # Snap onto the 500 ms grid the settings dialog offers.
        steps = int(round((interval - MIN_REVEAL_INTERVAL_MS) / REVEAL_INTERVAL_STEP_MS))
        interval = MIN_REVEAL_INTERVAL_MS + steps * REVEAL_INTERVAL_STEP_MS
        return Settings(total_questions=total, reveal_interval_ms=interval)

    def with_total_questions_step(self, delta: int) -> "Settings":
        total = _clamp_int(self.total_questions + delta, MIN_TOTAL_QUESTIONS, MAX_TOTAL_QUESTIONS)
        return replace(self, total_questions=total)

    def with_reveal_interval_step(self, delta: int) -> "Settings":
        interval = _clamp_int(
            self.reveal_interval_ms + delta * REVEAL_INTERVAL_STEP_MS,
            MIN_REVEAL_INTERVAL_MS,
            MAX_REVEAL_INTERVAL_MS,
        )
        return replace(self, reveal_interval_ms=interval)


def settings_from_env(environ: dict[str, str] | None = None) -> Settings:
    """Default settings, overridable through environment variables."""

    env = os.environ if environ is None else environ
    return Settings(
        total_questions=_as_int(env.get(TOTAL_QUESTIONS_ENV), DEFAULT_TOTAL_QUESTIONS),
        reveal_interval_ms=_as_int(env.get(REVEAL_INTERVAL_ENV), DEFAULT_REVEAL_INTERVAL_MS),
    ).clamped()


def _as_int(value: object, default: int) -> int:
    if value is None:
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def _clamp_int(value: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, int(value)))
