"""Pygame UI shell for the Stroop treadmill task.

Screens:
- Setup form (participant details, trial count, incongruent rate, toggles)
- Trial screen (stimulus word + two large touch targets, progress bar)
- Results (summary metrics, preview table, CSV export)

Timing, scoring, RNG and response arbitration live in stroop_treadmill/*
(core modules); this file only renders snapshots and forwards input.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import pygame

from .arbitration import ChoiceId
from .audio import ToneCue
from .clock import RealClock
from .cognitive_core import Phase
from .config import Participant, SettingsError, StroopConfig, parse_settings
from .export import write_csv
from .results import RECORD_FIELDS, format_summary
from .speech import SpeechRecognizer
from .stroop_test import StroopSnapshot, StroopTest, build_stroop_test
from .whisper_speech import build_speech_recognizer

logger = logging.getLogger(__name__)

WINDOW_SIZE = (540, 960)
TARGET_FPS = 60

BG = (11, 16, 32)
PANEL_BG = (20, 28, 52)
BORDER = (78, 102, 170)
TEXT_MAIN = (234, 241, 255)
TEXT_MUTED = (160, 172, 200)
ACCENT = (77, 163, 255)
ERROR = (255, 110, 110)

PREVIEW_COLUMNS = ("trial", "word", "ink_colour", "congruency", "response", "correct", "rt_ms")


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


class App:
    def __init__(self, surface: pygame.Surface, font: pygame.font.Font) -> None:
        self._surface = surface
        self._font = font
        self._screens: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def font(self) -> pygame.font.Font:
        return self._font

    @property
    def surface(self) -> pygame.Surface:
        return self._surface

    @property
    def top_screen(self) -> Screen | None:
        return self._screens[-1] if self._screens else None

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # Never pop the last/root screen; root handles its own quit/back behavior.
        if len(self._screens) > 1:
            self._screens.pop()

    def quit(self) -> None:
        self._running = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if event.type == pygame.KEYDOWN and event.key == pygame.K_F11:
            toggle_fullscreen()
            return
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def render(self) -> None:
        if not self._screens:
            return
        self._surface = pygame.display.get_surface() or self._surface
        self._screens[-1].render(self._surface)


def toggle_fullscreen() -> None:
    # Unsupported on some platforms/drivers; the run continues windowed.
    try:
        pygame.display.toggle_fullscreen()
    except pygame.error:
        logger.debug("Fullscreen toggle not supported", exc_info=True)


def hex_to_rgb(css: str) -> tuple[int, int, int]:
    s = css.strip().lstrip("#")
    if len(s) != 6:
        return (255, 255, 255)
    try:
        return (int(s[0:2], 16), int(s[2:4], 16), int(s[4:6], 16))
    except ValueError:
        return (255, 255, 255)


def _event_pos(event: pygame.event.Event, surface: pygame.Surface) -> tuple[int, int] | None:
    if event.type == pygame.MOUSEBUTTONDOWN and getattr(event, "button", 0) == 1:
        # SDL mirrors each touch as a mouse click; the FINGERDOWN is the one we keep.
        if getattr(event, "touch", False):
            return None
        return getattr(event, "pos", None)
    if event.type == pygame.FINGERDOWN:
        # Finger coordinates are normalised to [0, 1].
        w, h = surface.get_size()
        return (int(event.x * w), int(event.y * h))
    return None


def _fit_label(font: pygame.font.Font, label: str, max_width: int) -> str:
    if max_width <= 0:
        return ""
    if font.size(label)[0] <= max_width:
        return label
    clipped = label
    while clipped and font.size(f"{clipped}...")[0] > max_width:
        clipped = clipped[:-1]
    return f"{clipped}..." if clipped else "..."


@dataclass(slots=True)
class _FormField:
    key: str
    label: str
    value: str = ""
    toggle: bool = False
    checked: bool = False


class SetupScreen:
    """Participant/settings form. Start validates and opens the trial screen."""

    def __init__(
        self,
        app: App,
        *,
        config: StroopConfig,
        engine_factory: Callable[[], StroopTest],
        voice_available: bool,
    ) -> None:
        self._app = app
        self._config = config
        self._engine_factory = engine_factory
        self._voice_available = voice_available
        self._fields = [
            _FormField("participant_id", "Participant ID"),
            _FormField("condition", "Condition", "walk"),
            _FormField("treadmill_speed", "Treadmill speed"),
            _FormField("notes", "Notes"),
            _FormField("n_trials", "Trials", str(config.default_trials)),
            _FormField("incongruent_rate", "Incongruent rate", str(config.default_incongruent_rate)),
            _FormField("audio_cue", "Audio cue", toggle=True, checked=not config.audio_disabled),
            _FormField("practice", "Practice block", toggle=True, checked=False),
            _FormField("voice", "Voice input", toggle=True, checked=False),
        ]
        self._selected = 0
        self._error: str | None = None
        self._row_hitboxes: list[tuple[pygame.Rect, int]] = []
        self._start_hitbox: pygame.Rect | None = None

        self._title_font = pygame.font.Font(None, 46)
        self._row_font = pygame.font.Font(None, 32)
        self._hint_font = pygame.font.Font(None, 22)

    def field(self, key: str) -> _FormField:
        return next(f for f in self._fields if f.key == key)

    @property
    def error(self) -> str | None:
        return self._error

    def row_hitbox(self, key: str) -> pygame.Rect | None:
        for rect, idx in self._row_hitboxes:
            if self._fields[idx].key == key:
                return rect
        return None

    @property
    def start_hitbox(self) -> pygame.Rect | None:
        return self._start_hitbox

    def handle_event(self, event: pygame.event.Event) -> None:
        pos = _event_pos(event, self._app.surface)
        if pos is not None:
            if self._start_hitbox is not None and self._start_hitbox.collidepoint(pos):
                self.start()
                return
            for rect, idx in self._row_hitboxes:
                if rect.collidepoint(pos):
                    self._selected = idx
                    if self._fields[idx].toggle:
                        self._toggle(idx)
                    return
            return

        if event.type == pygame.TEXTINPUT:
            current = self._fields[self._selected]
            if not current.toggle:
                current.value += str(event.text)
            return

        if event.type != pygame.KEYDOWN:
            return

        key = event.key
        if key in (pygame.K_UP,):
            self._selected = (self._selected - 1) % len(self._fields)
        elif key in (pygame.K_DOWN, pygame.K_TAB):
            self._selected = (self._selected + 1) % len(self._fields)
        elif key == pygame.K_BACKSPACE:
            current = self._fields[self._selected]
            if not current.toggle:
                current.value = current.value[:-1]
        elif key == pygame.K_SPACE and self._fields[self._selected].toggle:
            self._toggle(self._selected)
        elif key in (pygame.K_RETURN, pygame.K_KP_ENTER):
            self.start()
        elif key == pygame.K_ESCAPE:
            self._app.quit()

    def start(self) -> None:
        values = {f.key: (f.checked if f.toggle else f.value) for f in self._fields}
        try:
            settings = parse_settings(
                n_trials=values["n_trials"],
                incongruent_rate=values["incongruent_rate"],
                audio_cue=values["audio_cue"],
                practice=values["practice"],
                voice=values["voice"],
                config=self._config,
            )
        except SettingsError as exc:
            self._error = str(exc)
            return

        participant = Participant.from_form(
            participant_id=str(values["participant_id"]),
            condition=str(values["condition"]),
            treadmill_speed=str(values["treadmill_speed"]),
            notes=str(values["notes"]),
        )
        self._error = None
        engine = self._engine_factory()
        engine.start(settings, participant)
        self._app.push(StroopScreen(self._app, engine=engine, export_dir_label=str(self._config.export_dir)))

    def toggle(self, key: str) -> None:
        idx = next(i for i, f in enumerate(self._fields) if f.key == key)
        self._toggle(idx)

    def _toggle(self, idx: int) -> None:
        f = self._fields[idx]
        if f.key == "voice" and not self._voice_available:
            f.checked = False
            self._error = "Voice input is not available on this device."
            return
        f.checked = not f.checked

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(BG)

        title = self._title_font.render("Stroop Treadmill Test", True, TEXT_MAIN)
        surface.blit(title, title.get_rect(midtop=(w // 2, 24)))

        margin = max(16, w // 24)
        row_h = max(40, min(64, (h - 260) // (len(self._fields) + 1)))
        y = 90
        self._row_hitboxes = []
        for idx, f in enumerate(self._fields):
            row = pygame.Rect(margin, y, w - margin * 2, row_h - 6)
            selected = idx == self._selected
            pygame.draw.rect(surface, PANEL_BG, row, border_radius=8)
            pygame.draw.rect(surface, ACCENT if selected else BORDER, row, 2, border_radius=8)

            label = self._row_font.render(f.label, True, TEXT_MUTED)
            surface.blit(label, (row.x + 12, row.y + (row.h - label.get_height()) // 2))

            if f.toggle:
                mark = "[x]" if f.checked else "[ ]"
                if f.key == "voice" and not self._voice_available:
                    mark = "n/a"
                value_text = mark
            else:
                value_text = f.value + ("_" if selected else "")
            value_w = row.w // 2 - 16
            value = self._row_font.render(_fit_label(self._row_font, value_text, value_w), True, TEXT_MAIN)
            surface.blit(value, (row.centerx, row.y + (row.h - value.get_height()) // 2))

            self._row_hitboxes.append((row.copy(), idx))
            y += row_h

        start = pygame.Rect(margin, y + 12, w - margin * 2, max(56, row_h))
        pygame.draw.rect(surface, ACCENT, start, border_radius=10)
        start_text = self._title_font.render("Start", True, BG)
        surface.blit(start_text, start_text.get_rect(center=start.center))
        self._start_hitbox = start.copy()

        if self._error:
            err = self._hint_font.render(self._error, True, ERROR)
            surface.blit(err, err.get_rect(midtop=(w // 2, start.bottom + 12)))

        hint = "Up/Down: field  |  Space: toggle  |  Enter: start  |  F11: fullscreen  |  Esc: quit"
        foot = self._hint_font.render(_fit_label(self._hint_font, hint, w - 20), True, TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(w // 2, h - 10)))


class StroopScreen:
    """Trial and results screen for one run."""

    def __init__(self, app: App, *, engine: StroopTest, export_dir_label: str = "") -> None:
        self._app = app
        self._engine = engine
        self._export_dir_label = export_dir_label
        self._status: str | None = None
        self._choice_hitboxes: dict[ChoiceId, pygame.Rect] = {}
        self._action_hitboxes: dict[str, pygame.Rect] = {}

        self._word_font = pygame.font.Font(None, 150)
        self._choice_font = pygame.font.Font(None, 64)
        self._label_font = pygame.font.Font(None, 30)
        self._small_font = pygame.font.Font(None, 22)

    @property
    def engine(self) -> StroopTest:
        return self._engine

    @property
    def status(self) -> str | None:
        return self._status

    def choice_hitbox(self, choice: ChoiceId) -> pygame.Rect | None:
        return self._choice_hitboxes.get(choice)

    def action_hitbox(self, action: str) -> pygame.Rect | None:
        return self._action_hitboxes.get(action)

    def handle_event(self, event: pygame.event.Event) -> None:
        snap = self._engine.snapshot()

        pos = _event_pos(event, self._app.surface)
        if pos is not None:
            if snap.phase in (Phase.PRACTICE, Phase.TEST):
                for choice, rect in self._choice_hitboxes.items():
                    if rect.collidepoint(pos):
                        self._engine.tap(choice)
                        return
                abort = self._action_hitboxes.get("abort")
                if abort is not None and abort.collidepoint(pos):
                    self._back_to_setup()
                return
            if snap.phase is Phase.DONE:
                for action, rect in self._action_hitboxes.items():
                    if rect.collidepoint(pos):
                        self._run_action(action)
                        return
            return

        if event.type != pygame.KEYDOWN:
            return

        key = event.key
        if key == pygame.K_ESCAPE:
            self._back_to_setup()
            return
        if snap.phase in (Phase.PRACTICE, Phase.TEST):
            if key in (pygame.K_LEFT, pygame.K_a):
                self._engine.tap(ChoiceId.LEFT)
            elif key in (pygame.K_RIGHT, pygame.K_d):
                self._engine.tap(ChoiceId.RIGHT)
            return
        if snap.phase is Phase.DONE:
            if key == pygame.K_e:
                self._run_action("export")
            elif key in (pygame.K_r, pygame.K_RETURN, pygame.K_KP_ENTER):
                self._run_action("restart")

    def _run_action(self, action: str) -> None:
        if action == "export":
            self.export()
        elif action == "restart":
            self._back_to_setup()

    def export(self) -> None:
        engine = self._engine
        try:
            path = write_csv(
                engine.records(),
                directory=engine.config.export_dir,
                participant=engine.participant,
            )
        except OSError as exc:
            logger.warning("CSV export failed: %s", exc)
            self._status = f"Export failed: {exc.strerror or exc}"
            return
        self._status = f"Saved {path.name}"

    def _back_to_setup(self) -> None:
        self._engine.restart()
        self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        self._engine.update()
        snap = self._engine.snapshot()
        surface.fill(BG)
        if snap.phase is Phase.DONE:
            self._render_results(surface, snap)
        else:
            self._render_trial(surface, snap)

    def _render_trial(self, surface: pygame.Surface, snap: StroopSnapshot) -> None:
        w, h = surface.get_size()
        margin = max(14, w // 28)

        phase_label = "PRACTICE" if snap.phase is Phase.PRACTICE else "TEST"
        label = self._label_font.render(
            f"{phase_label}  Trial {snap.trial_number} / {snap.trial_total}", True, TEXT_MUTED
        )
        surface.blit(label, (margin, margin))

        bar = pygame.Rect(margin, margin + 34, w - margin * 2, 10)
        pygame.draw.rect(surface, PANEL_BG, bar, border_radius=5)
        fill = bar.copy()
        fill.w = int(bar.w * snap.progress)
        if fill.w > 0:
            pygame.draw.rect(surface, ACCENT, fill, border_radius=5)

        block = pygame.Rect(margin, bar.bottom + 20, w - margin * 2, int(h * 0.42))
        pygame.draw.rect(surface, PANEL_BG, block, border_radius=16)
        if snap.stimulus_visible:
            color = hex_to_rgb(snap.ink_css)
        else:
            color = tuple(int(c * 0.65) for c in hex_to_rgb(snap.ink_css))
        word = self._word_font.render(snap.word, True, color)
        surface.blit(word, word.get_rect(center=block.center))

        gap = margin
        btn_w = (w - margin * 2 - gap) // 2
        btn_h = max(120, int(h * 0.2))
        top = block.bottom + 24
        self._choice_hitboxes = {}
        for i, (choice, text) in enumerate(
            ((ChoiceId.LEFT, snap.choice_left), (ChoiceId.RIGHT, snap.choice_right))
        ):
            rect = pygame.Rect(margin + i * (btn_w + gap), top, btn_w, btn_h)
            enabled = snap.controls_enabled
            pygame.draw.rect(surface, (36, 50, 92) if enabled else PANEL_BG, rect, border_radius=14)
            pygame.draw.rect(surface, ACCENT if enabled else BORDER, rect, 2, border_radius=14)
            if text:
                t = self._choice_font.render(text, True, TEXT_MAIN if enabled else TEXT_MUTED)
                surface.blit(t, t.get_rect(center=rect.center))
            self._choice_hitboxes[choice] = rect.copy()

        abort = pygame.Rect(margin, h - margin - 44, 140, 44)
        pygame.draw.rect(surface, PANEL_BG, abort, border_radius=8)
        pygame.draw.rect(surface, BORDER, abort, 1, border_radius=8)
        abort_text = self._label_font.render("Abort", True, TEXT_MUTED)
        surface.blit(abort_text, abort_text.get_rect(center=abort.center))
        self._action_hitboxes = {"abort": abort.copy()}

        if snap.listening:
            mic = self._small_font.render("Listening...", True, ACCENT)
            surface.blit(mic, mic.get_rect(midright=(w - margin, abort.centery)))

    def _render_results(self, surface: pygame.Surface, snap: StroopSnapshot) -> None:
        w, h = surface.get_size()
        margin = max(14, w // 28)

        title = self._choice_font.render("Results", True, TEXT_MAIN)
        surface.blit(title, (margin, margin))

        summary = snap.summary if snap.summary is not None else self._engine.summary()
        shown = format_summary(summary)
        y = margin + 70
        for key, label in (
            ("trials", "Trials"),
            ("accuracy", "Accuracy"),
            ("mean_rt", "Mean RT"),
            ("median_rt", "Median RT"),
        ):
            row = self._label_font.render(f"{label}: {shown[key]}", True, TEXT_MAIN)
            surface.blit(row, (margin, y))
            y += 36

        y += 12
        rows = self._engine.records()[:6]
        if not rows:
            empty = self._small_font.render("No data.", True, TEXT_MUTED)
            surface.blit(empty, (margin, y))
            y += 28
        else:
            columns = [c for c in PREVIEW_COLUMNS if c in RECORD_FIELDS]
            col_w = (w - margin * 2) // len(columns)
            for i, c in enumerate(columns):
                head = self._small_font.render(_fit_label(self._small_font, c, col_w - 4), True, TEXT_MUTED)
                surface.blit(head, (margin + i * col_w, y))
            y += 24
            for rec in rows:
                data = rec.as_row()
                for i, c in enumerate(columns):
                    text = _fit_label(self._small_font, str(data[c]), col_w - 4)
                    cell = self._small_font.render(text, True, TEXT_MAIN)
                    surface.blit(cell, (margin + i * col_w, y))
                y += 22

        btn_w = (w - margin * 3) // 2
        btn_y = h - margin - 64
        self._action_hitboxes = {}
        for i, (action, text) in enumerate((("export", "Download CSV"), ("restart", "Restart"))):
            rect = pygame.Rect(margin + i * (btn_w + margin), btn_y, btn_w, 64)
            pygame.draw.rect(surface, ACCENT if action == "export" else PANEL_BG, rect, border_radius=12)
            pygame.draw.rect(surface, BORDER, rect, 1, border_radius=12)
            t = self._label_font.render(text, True, BG if action == "export" else TEXT_MAIN)
            surface.blit(t, t.get_rect(center=rect.center))
            self._action_hitboxes[action] = rect.copy()

        status = self._status or f"Exports go to {self._export_dir_label}"
        st = self._small_font.render(_fit_label(self._small_font, status, w - margin * 2), True, TEXT_MUTED)
        surface.blit(st, (margin, btn_y - 30))


def run(
    *,
    max_frames: int | None = None,
    event_injector: Callable[[int], None] | None = None,
    config: StroopConfig | None = None,
    recognizer: SpeechRecognizer | None = None,
) -> int:
    cfg = StroopConfig.from_env() if config is None else config
    speech: SpeechRecognizer = build_speech_recognizer(cfg) if recognizer is None else recognizer

    pygame.init()
    pygame.display.set_caption("Stroop Treadmill Test")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)
    pygame.key.start_text_input()

    font = pygame.font.Font(None, 36)
    clock = pygame.time.Clock()

    app = App(surface=surface, font=font)
    real_clock = RealClock()

    def new_engine() -> StroopTest:
        return build_stroop_test(
            clock=real_clock,
            config=cfg,
            recognizer=speech,
            audio_cue_factory=ToneCue,
        )

    app.push(
        SetupScreen(
            app,
            config=cfg,
            engine_factory=new_engine,
            voice_available=speech.available,
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
        speech.stop()
        pygame.quit()

    return 0
