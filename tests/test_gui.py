from __future__ import annotations

import time
from typing import Callable, Iterator

import pytest

from taptique.gui import TapWindow, _parse_args, format_bpm_label, metronome_pixmap


@pytest.mark.unit
def test_format_bpm_label() -> None:
    assert format_bpm_label(None) == ""
    assert format_bpm_label(120) == "120"


@pytest.mark.unit
def test_parse_args_defaults() -> None:
    assert _parse_args([]).log_level == "INFO"
    assert _parse_args(["--log-level", "DEBUG"]).log_level == "DEBUG"


@pytest.mark.integration
def test_metronome_pixmap_size(qapp) -> None:
    pix = metronome_pixmap(32)
    assert pix.width() == 32
    assert pix.height() == 32
    assert not pix.isNull()


@pytest.fixture
def make_window(qapp) -> Iterator[Callable[..., TapWindow]]:
    """Build TapWindows whose worker threads are always stopped afterwards."""
    windows: list[TapWindow] = []

    def _make(**kwargs) -> TapWindow:
        w = TapWindow(**kwargs)
        windows.append(w)
        return w

    try:
        yield _make
    finally:
        for w in windows:
            w.close()
            w.worker_thread.quit()
            w.worker_thread.wait(1000)


@pytest.fixture
def window(make_window: Callable[..., TapWindow]) -> TapWindow:
    return make_window()


def _action_states(window: TapWindow) -> list[tuple[str, bool]]:
    menu = window._build_context_menu()
    return [(a.text(), a.isEnabled()) for a in menu.actions() if not a.isSeparator()]


@pytest.mark.integration
def test_window_shows_tapped_tempo(window: TapWindow, wait_until) -> None:
    assert window.btn_tap.text() == ""
    now = time.monotonic()
    window.sig_tap_at.emit(now)
    window.sig_tap_at.emit(now + 0.5)

    assert wait_until(lambda: window.btn_tap.text() == " 120")
    assert window.info.text() == "120 BPM"


@pytest.mark.integration
def test_button_press_is_stamped_in_the_gui_thread(make_window, wait_until) -> None:
    base = time.monotonic()
    stamps = iter([base, base + 0.5])
    window = make_window(clock=lambda: next(stamps))

    window.btn_tap.pressed.emit()
    window.btn_tap.pressed.emit()

    assert wait_until(lambda: window.btn_tap.text() == " 120")
    # Intervals come from press times, not from when the worker ran
    assert window.engine.estimator.history == (base, base + 0.5)


@pytest.mark.integration
def test_window_reset_clears_label(window: TapWindow, wait_until) -> None:
    now = time.monotonic()
    window.sig_tap_at.emit(now)
    window.sig_tap_at.emit(now + 0.5)
    assert wait_until(lambda: window.btn_tap.text() == " 120")

    window.sig_reset.emit()
    assert wait_until(lambda: window.btn_tap.text() == "")
    assert window.info.text() == "Tap to start"


@pytest.mark.integration
def test_context_menu_while_idle(window: TapWindow) -> None:
    assert _action_states(window) == [("Reset", True), ("Quit Taptique", True)]


@pytest.mark.integration
def test_context_menu_shows_current_tempo(window: TapWindow, wait_until) -> None:
    now = time.monotonic()
    window.sig_tap_at.emit(now)
    window.sig_tap_at.emit(now + 0.5)
    assert wait_until(lambda: window.btn_tap.text() == " 120")

    assert _action_states(window) == [
        ("Current: 120 BPM", False),
        ("Reset", True),
        ("Quit Taptique", True),
    ]


@pytest.mark.integration
def test_context_menu_reset_action(window: TapWindow, wait_until) -> None:
    now = time.monotonic()
    window.sig_tap_at.emit(now)
    window.sig_tap_at.emit(now + 0.5)
    assert wait_until(lambda: window.btn_tap.text() == " 120")

    menu = window._build_context_menu()
    reset = next(a for a in menu.actions() if a.text() == "Reset")
    reset.trigger()

    assert wait_until(lambda: window.btn_tap.text() == "")
    assert not window.engine.is_tracking
    assert _action_states(window)[0] == ("Reset", True)
