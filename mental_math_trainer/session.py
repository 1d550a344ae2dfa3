"""Game session state machine for the memory drill.

    IDLE -> REVEALING -> AWAITING_ANSWER -> SHOWING_RESULT -> (REVEALING | IDLE)

A session owns exactly one :class:`ScheduledCallback`. During REVEALING it
holds the next reveal tick, during SHOWING_RESULT it holds the result
timeout, otherwise it is empty. All phase changes go through
``_enter_phase``, which cancels whatever was pending before anything else
happens, so a stale tick can never touch a superseded round.

Time only moves through the injected clock; the host calls :meth:`update`
once per frame. Actions that are not valid in the current phase are
ignored and report ``False``.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from .clock import Clock
from .problems import Operation, ProblemGenerator, Round
from .settings import Settings
from .timer import ScheduledCallback

logger = logging.getLogger(__name__)

RESULT_DISPLAY_S = 2.0
ANSWER_TOLERANCE = 0.01


class Phase(str, Enum):
    IDLE = "idle"
    REVEALING = "revealing"
    AWAITING_ANSWER = "awaiting_answer"
    SHOWING_RESULT = "showing_result"


@dataclass(frozen=True, slots=True)
class SessionState:
    """Read-only view of a session (pure data)."""

    operation: Operation | None
    phase: Phase
    current_round_index: int
    total_rounds: int
    operands: tuple[int, ...]
    reveal_index: int
    user_answer_text: str
    correct_answer: float
    last_answer_correct: bool | None
    score: int
    answered_count: int
    timer_remaining_s: float | None = None

    @property
    def active(self) -> bool:
        return self.operation is not None

    @property
    def round_number(self) -> int:
        return self.current_round_index + 1 if self.active else 0

    @property
    def is_last_round(self) -> bool:
        return self.active and self.current_round_index + 1 >= self.total_rounds

    @property
    def current_operand(self) -> int | None:
        if self.phase is not Phase.REVEALING:
            return None
        return self.operands[self.reveal_index]

    @property
    def accuracy_percent(self) -> int | None:
        if self.answered_count == 0:
            return None
        return int(math.floor(self.score * 100.0 / self.answered_count + 0.5))


Listener = Callable[[SessionState], None]


class GameSession:
    def __init__(
        self,
        *,
        clock: Clock,
        seed: int | None = None,
        generator: ProblemGenerator | None = None,
    ) -> None:
        self._clock = clock
        self._generator = generator if generator is not None else ProblemGenerator(seed)
        self._timer = ScheduledCallback(clock)
        self._listeners: list[Listener] = []
        self._closed = False

        self._settings = Settings()
        self._operation: Operation | None = None
        self._phase = Phase.IDLE
        self._round_index = 0
        self._total_rounds = 0
        self._round: Round | None = None
        self._reveal_index = -1
        self._answer_text = ""
        self._last_correct: bool | None = None

        self._score = 0
        self._answered = 0

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def closed(self) -> bool:
        return self._closed

    def get_state(self) -> SessionState:
        operands = () if self._round is None else self._round.operands
        correct = 0.0 if self._round is None else self._round.correct_answer
        return SessionState(
            operation=self._operation,
            phase=self._phase,
            current_round_index=self._round_index,
            total_rounds=self._total_rounds,
            operands=operands,
            reveal_index=self._reveal_index,
            user_answer_text=self._answer_text,
            correct_answer=correct,
            last_answer_correct=self._last_correct,
            score=self._score,
            answered_count=self._answered,
            timer_remaining_s=self._timer.time_remaining_s(),
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register for a snapshot after every transition. Returns an unsubscribe callable."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -- Actions ------------------------------------------------------------
    def start_session(self, operation: Operation, settings: Settings) -> bool:
        if self._closed or self._phase is not Phase.IDLE:
            logger.debug("start_session ignored in phase %s", self._phase.value)
            return False

        self._settings = settings.clamped()
        self._operation = Operation(operation)
        self._total_rounds = self._settings.total_questions
        self._score = 0
        self._answered = 0
        logger.debug(
            "session started: %s, %d rounds, %d ms interval",
            self._operation.value,
            self._total_rounds,
            self._settings.reveal_interval_ms,
        )
        self._begin_round(0)
        self._emit()
        return True

    def restart_session(self, operation: Operation, settings: Settings) -> bool:
        """Abandon whatever is running and start a new session."""

        if self._closed:
            return False
        self._clear_to_idle()
        return self.start_session(operation, settings)

    def set_answer_text(self, text: str) -> bool:
        if self._closed or self._phase is not Phase.AWAITING_ANSWER:
            logger.debug("set_answer_text ignored in phase %s", self._phase.value)
            return False
        self._answer_text = text
        self._emit()
        return True

    def submit_answer(self) -> bool:
        if self._closed or self._phase is not Phase.AWAITING_ANSWER:
            logger.debug("submit_answer ignored in phase %s", self._phase.value)
            return False
        if not self._answer_text.strip():
            return False

        assert self._round is not None
        value = _try_parse_number(self._answer_text)
        correct = value is not None and abs(value - self._round.correct_answer) < ANSWER_TOLERANCE

        self._answered += 1
        if correct:
            self._score += 1
        self._last_correct = correct
        logger.debug(
            "round %d answered %r (expected %s): %s",
            self._round_index + 1,
            self._answer_text,
            self._round.correct_answer,
            "correct" if correct else "wrong",
        )
        self._enter_phase(Phase.SHOWING_RESULT, delay_s=RESULT_DISPLAY_S, on_timer=self._on_result_timeout)
        self._emit()
        return True

    def reset_session(self) -> None:
        if self._closed:
            return
        self._clear_to_idle()
        self._emit()

    def update(self) -> None:
        """Fire the pending timer if it is due."""

        if self._closed:
            return
        self._timer.poll()

    def close(self) -> None:
        """Tear down: cancel the pending timer and drop all subscribers."""

        self._timer.cancel()
        self._listeners.clear()
        self._closed = True

    # -- Timer callbacks ----------------------------------------------------
    def _on_reveal_tick(self) -> None:
        assert self._round is not None
        if self._reveal_index < len(self._round.operands) - 1:
            self._reveal_index += 1
            self._enter_phase(
                Phase.REVEALING,
                delay_s=self._settings.reveal_interval_s,
                on_timer=self._on_reveal_tick,
            )
        else:
            self._reveal_index = len(self._round.operands)
            self._enter_phase(Phase.AWAITING_ANSWER)
        self._emit()

    def _on_result_timeout(self) -> None:
        if self._round_index + 1 < self._total_rounds:
            self._begin_round(self._round_index + 1)
        else:
            logger.debug("session finished: %d/%d", self._score, self._answered)
            self._clear_to_idle()
        self._emit()

    # -- Helpers --------------------------------------------------------------
    def _begin_round(self, index: int) -> None:
        assert self._operation is not None
        self._round = self._generator.next_round(self._operation, self._settings.total_questions)
        self._round_index = index
        self._reveal_index = 0
        self._answer_text = ""
        self._last_correct = None
        self._enter_phase(
            Phase.REVEALING,
            delay_s=self._settings.reveal_interval_s,
            on_timer=self._on_reveal_tick,
        )

    def _clear_to_idle(self) -> None:
        self._enter_phase(Phase.IDLE)
        self._operation = None
        self._round = None
        self._round_index = 0
        self._total_rounds = 0
        self._reveal_index = -1
        self._answer_text = ""
        self._last_correct = None

    def _enter_phase(
        self,
        phase: Phase,
        *,
        delay_s: float | None = None,
        on_timer: Callable[[], None] | None = None,
    ) -> None:
        self._timer.cancel()
        self._phase = phase
        if on_timer is not None:
            assert delay_s is not None
            self._timer.schedule(delay_s, on_timer)

    def _emit(self) -> None:
        if not self._listeners:
            return
        state = self.get_state()
        for listener in list(self._listeners):
            listener(state)


def _try_parse_number(text: str) -> float | None:
    s = text.strip()
    if not s:
        return None
    try:
        value = float(s)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value
