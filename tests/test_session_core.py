from __future__ import annotations

import pytest

from mental_math_trainer.clock import FakeClock
from mental_math_trainer.problems import Operation, ProblemGenerator
from mental_math_trainer.session import RESULT_DISPLAY_S, GameSession, Phase, SessionState
from mental_math_trainer.settings import Settings


class ScriptedGenerator(ProblemGenerator):
    """Serves the given operand sequences in order, repeating the last one."""

    def __init__(self, *rounds: tuple[int, ...]) -> None:
        super().__init__(seed=0)
        self._rounds = list(rounds)
        self.requests: list[tuple[Operation, int]] = []

    def generate_operands(self, operation: Operation, count: int) -> tuple[int, ...]:
        self.requests.append((operation, count))
        if len(self._rounds) > 1:
            return self._rounds.pop(0)
        return self._rounds[0]


SETTINGS = Settings(total_questions=3, reveal_interval_ms=1000)


def _session(*rounds: tuple[int, ...]) -> tuple[GameSession, FakeClock]:
    clock = FakeClock()
    return GameSession(clock=clock, generator=ScriptedGenerator(*rounds)), clock


def _finish_reveal(session: GameSession, clock: FakeClock) -> None:
    while session.phase is Phase.REVEALING:
        clock.advance(session.settings.reveal_interval_s)
        session.update()


def _answer(session: GameSession, clock: FakeClock, text: str) -> None:
    _finish_reveal(session, clock)
    assert session.set_answer_text(text) is True
    assert session.submit_answer() is True


def test_initial_state_is_idle() -> None:
    session, _ = _session((1, 2, 3))
    s = session.get_state()
    assert s.phase is Phase.IDLE
    assert s.operation is None
    assert s.reveal_index == -1
    assert (s.score, s.answered_count) == (0, 0)
    assert s.accuracy_percent is None


def test_start_session_sets_up_first_round() -> None:
    session, _ = _session((4, 5, 6))
    assert session.start_session(Operation.ADD, SETTINGS) is True

    s = session.get_state()
    assert s.phase is Phase.REVEALING
    assert s.operation is Operation.ADD
    assert s.operands == (4, 5, 6)
    assert s.correct_answer == 15
    assert s.reveal_index == 0
    assert s.current_operand == 4
    assert s.current_round_index == 0
    assert s.total_rounds == 3
    assert s.timer_remaining_s == 1.0


def test_start_session_clamps_settings_and_passes_count() -> None:
    gen = ScriptedGenerator((1, 1, 1))
    session = GameSession(clock=FakeClock(), generator=gen)
    session.start_session(Operation.MULTIPLY, Settings(total_questions=50, reveal_interval_ms=10))

    assert session.settings == Settings(total_questions=10, reveal_interval_ms=500)
    assert session.get_state().total_rounds == 10
    assert gen.requests == [(Operation.MULTIPLY, 10)]


def test_start_session_while_active_is_ignored() -> None:
    session, _ = _session((1, 2, 3))
    session.start_session(Operation.ADD, SETTINGS)
    before = session.get_state()

    assert session.start_session(Operation.DIVIDE, SETTINGS) is False
    assert session.get_state() == before


def test_reveal_ticks_advance_then_await_answer() -> None:
    session, clock = _session((4, 5, 6))
    session.start_session(Operation.ADD, SETTINGS)

    clock.advance(0.5)
    session.update()
    assert session.get_state().reveal_index == 0

    clock.advance(0.5)
    session.update()
    assert session.get_state().reveal_index == 1
    assert session.get_state().current_operand == 5

    clock.advance(1.0)
    session.update()
    assert session.get_state().reveal_index == 2
    assert session.phase is Phase.REVEALING

    clock.advance(1.0)
    session.update()
    s = session.get_state()
    assert s.phase is Phase.AWAITING_ANSWER
    assert s.reveal_index == 3
    assert s.current_operand is None
    assert s.timer_remaining_s is None


def test_scenario_a_addition_correct() -> None:
    session, clock = _session((5, 3))
    session.start_session(Operation.ADD, SETTINGS)
    assert session.get_state().correct_answer == 8

    _answer(session, clock, "8")

    s = session.get_state()
    assert s.phase is Phase.SHOWING_RESULT
    assert s.last_answer_correct is True
    assert (s.score, s.answered_count) == (1, 1)
    assert s.timer_remaining_s == RESULT_DISPLAY_S


@pytest.mark.parametrize(
    ("text", "correct"),
    [("2.5", True), ("2.50", True), (" 2.5 ", True), ("3", False), ("2.52", False)],
)
def test_scenario_b_division_tolerance(text: str, correct: bool) -> None:
    session, clock = _session((10, 4))
    session.start_session(Operation.DIVIDE, SETTINGS)
    assert session.get_state().correct_answer == 2.5

    _answer(session, clock, text)

    s = session.get_state()
    assert s.last_answer_correct is correct
    assert s.answered_count == 1
    assert s.score == (1 if correct else 0)


@pytest.mark.parametrize("text", ["abc", "8x", "nan", "inf", "-"])
def test_unparseable_answer_counts_as_wrong(text: str) -> None:
    session, clock = _session((5, 3))
    session.start_session(Operation.ADD, SETTINGS)

    _answer(session, clock, text)

    s = session.get_state()
    assert s.phase is Phase.SHOWING_RESULT
    assert s.last_answer_correct is False
    assert (s.score, s.answered_count) == (0, 1)


def test_blank_answer_submit_is_ignored() -> None:
    session, clock = _session((5, 3))
    session.start_session(Operation.ADD, SETTINGS)
    _finish_reveal(session, clock)

    assert session.submit_answer() is False
    session.set_answer_text("   ")
    assert session.submit_answer() is False
    assert session.phase is Phase.AWAITING_ANSWER
    assert session.get_state().answered_count == 0


def test_set_answer_text_is_stored_verbatim() -> None:
    session, clock = _session((5, 3))
    session.start_session(Operation.ADD, SETTINGS)
    _finish_reveal(session, clock)

    session.set_answer_text(" 08 ")
    assert session.get_state().user_answer_text == " 08 "


def test_scenario_d_actions_outside_their_phase_are_noops() -> None:
    session, clock = _session((5, 3))
    assert session.set_answer_text("1") is False
    assert session.submit_answer() is False

    session.start_session(Operation.ADD, SETTINGS)
    before = session.get_state()
    assert session.submit_answer() is False
    assert session.set_answer_text("8") is False
    assert session.get_state() == before

    _answer(session, clock, "8")
    showing = session.get_state()
    assert session.submit_answer() is False
    assert session.set_answer_text("9") is False
    assert session.get_state() == showing


def test_result_timer_advances_to_next_round() -> None:
    session, clock = _session((5, 3), (7, 1))
    session.start_session(Operation.SUBTRACT, SETTINGS)
    _answer(session, clock, "2")

    clock.advance(RESULT_DISPLAY_S - 0.5)
    session.update()
    assert session.phase is Phase.SHOWING_RESULT

    clock.advance(0.5)
    session.update()
    s = session.get_state()
    assert s.phase is Phase.REVEALING
    assert s.current_round_index == 1
    assert s.round_number == 2
    assert s.operands == (7, 1)
    assert s.correct_answer == 6
    assert s.reveal_index == 0
    assert s.user_answer_text == ""
    assert s.last_answer_correct is None
    assert (s.score, s.answered_count) == (1, 1)


def test_scenario_c_session_ends_after_total_rounds() -> None:
    session, clock = _session((5, 3))
    session.start_session(Operation.ADD, SETTINGS)

    for i, text in enumerate(["8", "9", "8"]):
        assert session.get_state().current_round_index == i
        assert session.get_state().is_last_round is (i == 2)
        _answer(session, clock, text)
        clock.advance(RESULT_DISPLAY_S)
        session.update()

    s = session.get_state()
    assert s.phase is Phase.IDLE
    assert s.operation is None
    assert s.current_round_index == 0
    assert s.total_rounds == 0
    assert (s.score, s.answered_count) == (2, 3)
    assert s.accuracy_percent == 67


def test_new_session_resets_score() -> None:
    session, clock = _session((5, 3))
    session.start_session(Operation.ADD, SETTINGS)
    for _ in range(3):
        _answer(session, clock, "8")
        clock.advance(RESULT_DISPLAY_S)
        session.update()
    assert session.get_state().score == 3

    assert session.start_session(Operation.ADD, SETTINGS) is True
    s = session.get_state()
    assert (s.score, s.answered_count) == (0, 0)


def test_scenario_e_reset_mid_reveal_cancels_tick() -> None:
    session, clock = _session((5, 3, 2))
    session.start_session(Operation.ADD, SETTINGS)
    clock.advance(1.0)
    session.update()
    assert session.get_state().reveal_index == 1

    session.reset_session()
    after_reset = session.get_state()
    assert after_reset.phase is Phase.IDLE
    assert after_reset.reveal_index == -1
    assert after_reset.timer_remaining_s is None

    for _ in range(10):
        clock.advance(1.0)
        session.update()
    assert session.get_state() == after_reset


def test_reset_during_result_keeps_history_and_cancels_timer() -> None:
    session, clock = _session((5, 3))
    session.start_session(Operation.ADD, SETTINGS)
    _answer(session, clock, "8")

    session.reset_session()
    clock.advance(10.0)
    session.update()

    s = session.get_state()
    assert s.phase is Phase.IDLE
    assert s.operation is None
    assert s.operands == ()
    assert s.user_answer_text == ""
    assert s.last_answer_correct is None
    assert (s.score, s.answered_count) == (1, 1)


def test_restart_session_replaces_running_session() -> None:
    session, clock = _session((5, 3), (9, 3))
    session.start_session(Operation.ADD, SETTINGS)
    _answer(session, clock, "8")

    assert session.restart_session(Operation.DIVIDE, Settings(total_questions=4, reveal_interval_ms=500)) is True
    s = session.get_state()
    assert s.operation is Operation.DIVIDE
    assert s.phase is Phase.REVEALING
    assert s.operands == (9, 3)
    assert s.correct_answer == 3
    assert s.total_rounds == 4
    assert (s.score, s.answered_count) == (0, 0)
    assert s.timer_remaining_s == 0.5

    # The old result timer must not fire into the new session.
    clock.advance(0.4)
    session.update()
    assert session.get_state().reveal_index == 0


def test_subscribers_receive_each_transition() -> None:
    session, clock = _session((5, 3))
    seen: list[SessionState] = []
    unsubscribe = session.subscribe(seen.append)

    session.start_session(Operation.ADD, SETTINGS)
    _answer(session, clock, "8")

    phases = [s.phase for s in seen]
    assert phases == [
        Phase.REVEALING,
        Phase.REVEALING,
        Phase.AWAITING_ANSWER,
        Phase.AWAITING_ANSWER,
        Phase.SHOWING_RESULT,
    ]
    assert seen[-1].last_answer_correct is True

    unsubscribe()
    session.reset_session()
    assert len(seen) == 5


def test_close_cancels_timer_and_ignores_further_calls() -> None:
    session, clock = _session((5, 3))
    seen: list[SessionState] = []
    session.subscribe(seen.append)
    session.start_session(Operation.ADD, SETTINGS)
    before = session.get_state()

    session.close()
    clock.advance(5.0)
    session.update()

    assert session.closed
    assert session.get_state().reveal_index == before.reveal_index
    assert session.get_state().timer_remaining_s is None
    assert session.start_session(Operation.ADD, SETTINGS) is False
    assert session.restart_session(Operation.ADD, SETTINGS) is False
    assert len(seen) == 1


def test_listener_errors_propagate() -> None:
    session, _ = _session((5, 3))

    def boom(_: SessionState) -> None:
        raise RuntimeError("listener failed")

    session.subscribe(boom)
    with pytest.raises(RuntimeError):
        session.start_session(Operation.ADD, SETTINGS)
