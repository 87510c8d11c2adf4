import logging

import pytest

import stepgrid.clock
import stepgrid.display
import stepgrid.event_emitter
import stepgrid.pattern_store


@pytest.fixture
def clock (events: stepgrid.event_emitter.EventEmitter) -> stepgrid.clock.StepClock:

	"""A clock for the status line tempo."""

	return stepgrid.clock.StepClock(events, bpm=125)


def test_format_status_before_first_step (store: stepgrid.pattern_store.PatternStore, clock: stepgrid.clock.StepClock) -> None:

	"""Before playback the step shows as a dash."""

	display = stepgrid.display.Display(store, clock=clock)

	assert display._format_status() == "125.00 BPM  Step: -/16  Channels: 0"


def test_format_status_without_clock (store: stepgrid.pattern_store.PatternStore) -> None:

	"""Without a clock the tempo is omitted and steps are one-based."""

	store.add_channel("kick")
	store.tick()
	store.tick()

	display = stepgrid.display.Display(store)

	assert display._format_status() == "Step: 2/16  Channels: 1"


def test_grid_rows_and_cursor (store: stepgrid.pattern_store.PatternStore) -> None:

	"""One row per channel plus a cursor row under the current step."""

	store.set_steps_per_channel(4)
	store.add_channel("kick")
	store.add_channel("snare")
	store.set_step("kick", 0, True)
	store.set_step("snare", 2, True)
	store.tick()
	store.tick()

	grid = stepgrid.display.GridDisplay(store)
	grid.build(term_width=80)

	assert grid._lines == [
		"  kick        |X . . .|",
		"  snare       |. . X .|",
		"                 ^",
	]
	assert grid.line_count == 3


def test_grid_clips_to_terminal_width (store: stepgrid.pattern_store.PatternStore) -> None:

	"""Columns that do not fit are dropped."""

	store.set_steps_per_channel(32)
	store.add_channel("hat")

	grid = stepgrid.display.GridDisplay(store)
	grid.build(term_width=40)

	# 40 - 16 overhead leaves room for 12 columns.
	assert grid._lines[0] == "  hat         |" + " ".join(["."] * 12) + "|"


def test_grid_hidden_on_narrow_terminal (store: stepgrid.pattern_store.PatternStore) -> None:

	"""Very narrow terminals show no grid."""

	store.add_channel("kick")

	grid = stepgrid.display.GridDisplay(store)
	grid.build(term_width=20)

	assert grid._lines == []


def test_update_on_step_tick (store: stepgrid.pattern_store.PatternStore, clock: stepgrid.clock.StepClock, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch) -> None:

	"""The display redraws on every step tick while active."""

	monkeypatch.setenv("COLUMNS", "100")

	display = stepgrid.display.Display(store, clock=clock, grid=True)
	display._active = True
	store.add_channel("kick")

	store.tick()

	assert display._last_line == "125.00 BPM  Step: 1/16  Channels: 1"
	assert "kick" in capsys.readouterr().err


def test_update_inactive_is_noop (store: stepgrid.pattern_store.PatternStore) -> None:

	"""update() does nothing when the display is not active."""

	display = stepgrid.display.Display(store)

	store.tick()

	assert display._last_line == ""


def test_clear_line_writes_ansi (store: stepgrid.pattern_store.PatternStore, capsys: pytest.CaptureFixture[str]) -> None:

	"""clear_line() writes carriage return and clear-to-end-of-line."""

	display = stepgrid.display.Display(store)
	display._active = True

	display.clear_line()

	assert capsys.readouterr().err.endswith("\r\033[K")


def test_start_installs_and_stop_restores_handlers (store: stepgrid.pattern_store.PatternStore, capsys: pytest.CaptureFixture[str]) -> None:

	"""start() swaps in DisplayLogHandler and stop() puts the originals back."""

	display = stepgrid.display.Display(store)
	root_logger = logging.getLogger()
	original_handlers = list(root_logger.handlers)

	display.start()

	try:
		assert len(root_logger.handlers) == 1
		assert isinstance(root_logger.handlers[0], stepgrid.display.DisplayLogHandler)
	finally:
		display.stop()

	assert root_logger.handlers == original_handlers
