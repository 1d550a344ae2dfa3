"""Pygame UI shell for the Mental Math Trainer.

Screens only translate input into calls on :class:`GameSession` and draw
its snapshots. Timing, scoring and RNG live in the core modules.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import pygame

from .clock import RealClock
from .problems import Operation, format_answer
from .session import GameSession, Phase, SessionState
from .settings import Settings, settings_from_env

logger = logging.getLogger(__name__)

WINDOW_SIZE = (960, 540)
TARGET_FPS = 60

BG = (3, 9, 78)
PANEL_BG = (8, 18, 104)
BORDER = (226, 236, 255)
TEXT_MAIN = (238, 245, 255)
TEXT_MUTED = (186, 200, 224)
ACTIVE_BG = (244, 248, 255)
ACTIVE_TEXT = (14, 26, 74)
CORRECT = (5, 150, 105)
WRONG = (220, 38, 38)
DOT_IDLE = (229, 231, 235)

OPERATION_COLORS: dict[Operation, tuple[int, int, int]] = {
    Operation.ADD: (59, 130, 246),
    Operation.SUBTRACT: (239, 68, 68),
    Operation.MULTIPLY: (16, 185, 129),
    Operation.DIVIDE: (245, 158, 11),
}

# Characters accepted into the answer buffer.
_ANSWER_CHARS = set("0123456789.-")


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


@dataclass(frozen=True, slots=True)
class MenuItem:
    label: str
    action: Callable[[], None]


class App:
    def __init__(self, surface: pygame.Surface, font: pygame.font.Font, *, session: GameSession) -> None:
        self._surface = surface
        self._font = font
        self._screens: list[Screen] = []
        self._running = True
        self.session = session
        self.settings: Settings = settings_from_env()

    @property
    def running(self) -> bool:
        return self._running

    @property
    def font(self) -> pygame.font.Font:
        return self._font

    @property
    def top(self) -> Screen | None:
        return self._screens[-1] if self._screens else None

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # Never pop the root screen; it handles its own quit behaviour.
        if len(self._screens) > 1:
            self._screens.pop()

    def quit(self) -> None:
        self._running = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def render(self) -> None:
        if not self._screens:
            return
        self._screens[-1].render(self._surface)


def _draw_frame(surface: pygame.Surface) -> pygame.Rect:
    w, h = surface.get_size()
    surface.fill(BG)
    margin = max(10, min(26, w // 34))
    frame = pygame.Rect(margin, margin, max(260, w - margin * 2), max(220, h - margin * 2))
    pygame.draw.rect(surface, PANEL_BG, frame)
    pygame.draw.rect(surface, BORDER, frame, 2)
    return frame


class MenuScreen:
    def __init__(
        self,
        app: App,
        title: str,
        items: list[MenuItem],
        *,
        is_root: bool = False,
        subtitle: Callable[[], str | None] | None = None,
    ) -> None:
        self._app = app
        self._title = title
        self._items = items
        self._selected = 0
        self._is_root = is_root
        self._subtitle = subtitle
        self._title_font = pygame.font.Font(None, 42)
        self._item_font = pygame.font.Font(None, 32)
        self._hint_font = pygame.font.Font(None, 22)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_UP, pygame.K_w):
            self._move(-1)
        elif event.key in (pygame.K_DOWN, pygame.K_s):
            self._move(1)
        elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            self._activate()
        elif event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._back()

    def _move(self, delta: int) -> None:
        if not self._items:
            return
        self._selected = (self._selected + delta) % len(self._items)

    def _activate(self) -> None:
        if not self._items:
            return
        self._items[self._selected].action()

    def _back(self) -> None:
        if self._is_root:
            self._app.quit()
        else:
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        frame = _draw_frame(surface)

        title = self._title_font.render(self._title, True, TEXT_MAIN)
        surface.blit(title, title.get_rect(midtop=(frame.centerx, frame.y + 18)))
        y = frame.y + 70

        subtitle = None if self._subtitle is None else self._subtitle()
        if subtitle:
            sub = self._hint_font.render(subtitle, True, TEXT_MUTED)
            surface.blit(sub, sub.get_rect(midtop=(frame.centerx, y)))
        y += 36

        for idx, item in enumerate(self._items):
            row = pygame.Rect(frame.x + 60, y, frame.w - 120, 40)
            selected = idx == self._selected
            pygame.draw.rect(surface, ACTIVE_BG if selected else (9, 20, 106), row)
            pygame.draw.rect(surface, (62, 84, 152), row, 1)
            text = self._item_font.render(item.label, True, ACTIVE_TEXT if selected else TEXT_MAIN)
            surface.blit(text, (row.x + 10, row.y + (row.h - text.get_height()) // 2))
            y += 48

        foot = self._hint_font.render("Enter/Space: Select  |  Esc: Back", True, TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(frame.centerx, frame.bottom - 10)))


class SettingsScreen:
    """Per-operation settings dialog: adjust, then start or cancel."""

    _ROWS = ("questions", "interval", "start", "cancel")

    def __init__(self, app: App, operation: Operation, *, on_start: Callable[[Operation, Settings], None]) -> None:
        self._app = app
        self._operation = operation
        self._on_start = on_start
        self._temp = app.settings
        self._selected = 0
        self._title_font = pygame.font.Font(None, 42)
        self._item_font = pygame.font.Font(None, 32)
        self._hint_font = pygame.font.Font(None, 22)

    @property
    def pending_settings(self) -> Settings:
        return self._temp

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        row = self._ROWS[self._selected]
        if event.key in (pygame.K_UP, pygame.K_w):
            self._selected = (self._selected - 1) % len(self._ROWS)
        elif event.key in (pygame.K_DOWN, pygame.K_s):
            self._selected = (self._selected + 1) % len(self._ROWS)
        elif event.key in (pygame.K_LEFT, pygame.K_MINUS, pygame.K_KP_MINUS):
            self._adjust(row, -1)
        elif event.key in (pygame.K_RIGHT, pygame.K_PLUS, pygame.K_EQUALS, pygame.K_KP_PLUS):
            self._adjust(row, 1)
        elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            if row == "cancel":
                self._app.pop()
            else:
                self._start()
        elif event.key == pygame.K_ESCAPE:
            self._app.pop()

    def _adjust(self, row: str, delta: int) -> None:
        if row == "questions":
            self._temp = self._temp.with_total_questions_step(delta)
        elif row == "interval":
            self._temp = self._temp.with_reveal_interval_step(delta)

    def _start(self) -> None:
        self._app.settings = self._temp
        self._app.pop()
        self._on_start(self._operation, self._temp)

    def render(self, surface: pygame.Surface) -> None:
        frame = _draw_frame(surface)
        color = OPERATION_COLORS[self._operation]

        title = self._title_font.render(f"Game Settings - {self._operation.label}", True, color)
        surface.blit(title, title.get_rect(midtop=(frame.centerx, frame.y + 18)))

        labels = {
            "questions": f"Total Questions:  < {self._temp.total_questions} >",
            "interval": f"Time Interval (seconds):  < {self._temp.reveal_interval_s:g}s >",
            "start": "Start Game",
            "cancel": "Cancel",
        }
        y = frame.y + 100
        for idx, row_name in enumerate(self._ROWS):
            row = pygame.Rect(frame.x + 60, y, frame.w - 120, 42)
            selected = idx == self._selected
            pygame.draw.rect(surface, ACTIVE_BG if selected else (9, 20, 106), row)
            pygame.draw.rect(surface, (62, 84, 152), row, 1)
            text = self._item_font.render(labels[row_name], True, ACTIVE_TEXT if selected else TEXT_MAIN)
            surface.blit(text, (row.x + 10, row.y + (row.h - text.get_height()) // 2))
            y += 52

        foot = self._hint_font.render("Up/Down: Select  |  Left/Right: Adjust  |  Enter: Confirm", True, TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(frame.centerx, frame.bottom - 10)))


class DrillScreen:
    """Reveal, answer and result views for a running session.

    Pops itself once the session returns to idle.
    """

    def __init__(self, app: App) -> None:
        self._app = app
        self._session = app.session
        self._big_font = pygame.font.Font(None, 140)
        self._mid_font = pygame.font.Font(None, 52)
        self._small_font = pygame.font.Font(None, 28)
        self._done = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        phase = self._session.phase

        if phase is Phase.AWAITING_ANSWER:
            text = self._session.get_state().user_answer_text
            if event.key in (pygame.K_RETURN, pygame.K_KP_ENTER):
                self._session.submit_answer()
            elif event.key == pygame.K_BACKSPACE:
                self._session.set_answer_text(text[:-1])
            elif event.key == pygame.K_ESCAPE:
                self._leave()
            elif event.unicode and event.unicode in _ANSWER_CHARS:
                self._session.set_answer_text(text + event.unicode)
            return

        if phase is Phase.REVEALING and event.key in (pygame.K_ESCAPE, pygame.K_r):
            self._leave()

    def _leave(self) -> None:
        self._session.reset_session()
        self._close()

    def _close(self) -> None:
        if self._done:
            return
        self._done = True
        self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        self._session.update()
        snap = self._session.get_state()
        if snap.phase is Phase.IDLE:
            self._close()
            return

        frame = _draw_frame(surface)
        assert snap.operation is not None
        color = OPERATION_COLORS[snap.operation]

        if snap.phase is Phase.REVEALING:
            self._render_reveal(surface, frame, snap, color)
        elif snap.phase is Phase.AWAITING_ANSWER:
            self._render_answer(surface, frame, snap, color)
        else:
            self._render_result(surface, frame, snap, color)

    def _render_reveal(
        self,
        surface: pygame.Surface,
        frame: pygame.Rect,
        snap: SessionState,
        color: tuple[int, int, int],
    ) -> None:
        assert snap.operation is not None
        title = self._mid_font.render(snap.operation.label, True, color)
        surface.blit(title, title.get_rect(midtop=(frame.centerx, frame.y + 18)))

        n = len(snap.operands)
        spacing = 24
        x0 = frame.centerx - (n - 1) * spacing // 2
        for i in range(n):
            dot_color = color if i <= snap.reveal_index else DOT_IDLE
            pygame.draw.circle(surface, dot_color, (x0 + i * spacing, frame.y + 90), 7)

        operand = snap.current_operand
        if operand is not None:
            num = self._big_font.render(str(operand), True, color)
            surface.blit(num, num.get_rect(center=frame.center))
            if snap.reveal_index > 0:
                sym = self._mid_font.render(snap.operation.symbol, True, TEXT_MUTED)
                surface.blit(sym, sym.get_rect(midright=(frame.centerx - 90, frame.centery)))

        hint = self._small_font.render("Esc/R: Reset", True, TEXT_MUTED)
        surface.blit(hint, hint.get_rect(midbottom=(frame.centerx, frame.bottom - 10)))

    def _render_answer(
        self,
        surface: pygame.Surface,
        frame: pygame.Rect,
        snap: SessionState,
        color: tuple[int, int, int],
    ) -> None:
        title = self._mid_font.render("What's your answer?", True, color)
        surface.blit(title, title.get_rect(midtop=(frame.centerx, frame.y + 18)))
        sub = self._small_font.render("Enter the result of the calculation you just saw", True, TEXT_MUTED)
        surface.blit(sub, sub.get_rect(midtop=(frame.centerx, frame.y + 70)))

        box = pygame.Rect(0, 0, 360, 72)
        box.center = frame.center
        pygame.draw.rect(surface, (6, 13, 92), box)
        pygame.draw.rect(surface, color, box, 2)
        shown = snap.user_answer_text or "Enter your answer"
        text = self._mid_font.render(shown, True, TEXT_MAIN if snap.user_answer_text else TEXT_MUTED)
        surface.blit(text, text.get_rect(center=box.center))

        hint = self._small_font.render("Enter: Submit  |  Esc: Start Over", True, TEXT_MUTED)
        surface.blit(hint, hint.get_rect(midbottom=(frame.centerx, frame.bottom - 10)))

    def _render_result(
        self,
        surface: pygame.Surface,
        frame: pygame.Rect,
        snap: SessionState,
        color: tuple[int, int, int],
    ) -> None:
        title = self._mid_font.render(f"Round {snap.round_number} of {snap.total_rounds}", True, color)
        surface.blit(title, title.get_rect(midtop=(frame.centerx, frame.y + 18)))

        ok = bool(snap.last_answer_correct)
        verdict = self._big_font.render("Correct!" if ok else "Wrong!", True, CORRECT if ok else WRONG)
        surface.blit(verdict, verdict.get_rect(center=(frame.centerx, frame.centery - 30)))

        answer = self._small_font.render(
            f"Correct answer: {format_answer(snap.correct_answer)}", True, TEXT_MAIN
        )
        surface.blit(answer, answer.get_rect(center=(frame.centerx, frame.centery + 50)))

        if snap.is_last_round:
            line = f"Game completed! Final score: {snap.score}/{snap.answered_count}"
        else:
            line = "Next round starting..."
        foot = self._small_font.render(line, True, TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(frame.centerx, frame.bottom - 10)))


def score_line(state: SessionState) -> str | None:
    if state.answered_count == 0:
        return None
    return f"Score: {state.score}/{state.answered_count} ({state.accuracy_percent}%)"


def _new_seed() -> int:
    return random.SystemRandom().randint(1, 2**31 - 1)


def run(
    *,
    max_frames: int | None = None,
    event_injector: Callable[[int], None] | None = None,
    seed: int | None = None,
) -> int:
    pygame.init()
    pygame.display.set_caption("Mental Math Trainer")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    font = pygame.font.Font(None, 36)
    clock = pygame.time.Clock()

    session = GameSession(clock=RealClock(), seed=_new_seed() if seed is None else seed)
    app = App(surface=surface, font=font, session=session)

    def start(operation: Operation, settings: Settings) -> None:
        if not session.restart_session(operation, settings):
            logger.warning("could not start %s session", operation.value)
            return
        app.push(DrillScreen(app))

    def open_settings(operation: Operation) -> Callable[[], None]:
        return lambda: app.push(SettingsScreen(app, operation, on_start=start))

    main_items = [MenuItem(op.label, open_settings(op)) for op in Operation]
    main_items.append(MenuItem("Quit", app.quit))
    app.push(
        MenuScreen(
            app,
            "Mental Math Trainer",
            main_items,
            is_root=True,
            subtitle=lambda: score_line(session.get_state()) or "Choose your operation mode",
        )
    )

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            app.render()

            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            clock.tick(TARGET_FPS)
    finally:
        session.close()
        pygame.quit()

    return 0
