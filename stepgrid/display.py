"""Live terminal dashboard for step playback.

Provides a persistent status line showing the tempo, the current step and
the number of channels. Optionally renders the step grid of every channel
above the status line, with a cursor under the step being played.

Log messages scroll above the dashboard without disruption.

Enable it with a single call before ``play()``:

```python
sequencer.display()          # status line only
sequencer.display(grid=True) # status line + step grid
sequencer.play()
```

The status line updates every step and looks like::

	120.00 BPM  Step: 5/16  Channels: 3

The grid (when enabled) looks like::

	  kick        |X . . . X . . . X . . . X . . .|
	  snare       |. . . . X . . . . . . . X . . .|
	               ^
"""

import logging
import shutil
import sys
import typing

import stepgrid.constants

if typing.TYPE_CHECKING:
	from stepgrid.clock import StepClock
	from stepgrid.pattern_store import PatternStore


_LABEL_WIDTH = 12
_MIN_TERMINAL_WIDTH = 40


class GridDisplay:

	"""Multi-line ASCII grid of every channel's steps.

	Not used directly — instantiated by ``Display`` when ``grid=True``.
	"""

	def __init__ (self, store: "PatternStore") -> None:

		"""Store the pattern store reference for reading channel state."""

		self._store = store
		self._lines: typing.List[str] = []

	@property
	def line_count (self) -> int:

		"""Number of terminal lines the grid currently occupies."""

		return len(self._lines)

	def build (self, term_width: typing.Optional[int] = None) -> None:

		"""Rebuild grid lines from the current pattern state."""

		if term_width is None:
			term_width = shutil.get_terminal_size(fallback=(80, 24)).columns

		if term_width < _MIN_TERMINAL_WIDTH or not self._store.patterns:
			self._lines = []
			return

		display_cols = self._fit_columns(self._store.steps_per_channel, term_width)
		lines: typing.List[str] = []

		for pattern in self._store.patterns:
			label = str(pattern.channel_id)[:_LABEL_WIDTH].ljust(_LABEL_WIDTH)
			cells = " ".join("X" if on else "." for on in pattern.steps[:display_cols])
			lines.append(f"  {label}|{cells}|")

		lines.append(self._render_cursor(self._store.current_step, display_cols))

		self._lines = lines

	@staticmethod
	def _render_cursor (current_step: int, display_cols: int) -> str:

		"""Render a ``^`` under the current step, or a blank row when it is off-screen."""

		indent = " " * (2 + _LABEL_WIDTH + 1)

		if not 0 <= current_step < display_cols:
			return indent

		return f"{indent}{' ' * (current_step * 2)}^"

	@staticmethod
	def _fit_columns (steps: int, term_width: int) -> int:

		"""Determine how many step columns fit in the terminal.

		Each column occupies 2 characters (char + space), plus the label
		prefix and pipe delimiters.
		"""

		overhead = 2 + _LABEL_WIDTH + 2  # indent + label + pipes
		available = term_width - overhead

		if available <= 0:
			return 0

		# The last column has no trailing space inside the pipes.
		max_cols = (available + 1) // 2

		return min(steps, max_cols)


class DisplayLogHandler (logging.Handler):

	"""Logging handler that clears and redraws the dashboard around log output.

	Installed by ``Display.start()`` and removed by ``Display.stop()``.
	"""

	def __init__ (self, display: "Display") -> None:

		"""Store reference to the display for clear/redraw calls."""

		super().__init__()
		self._display = display

	def emit (self, record: logging.LogRecord) -> None:

		"""Clear the dashboard, write the log message, then redraw."""

		try:
			self._display.clear_line()

			msg = self.format(record)
			sys.stderr.write(msg + "\n")
			sys.stderr.flush()

			self._display.draw()

		except Exception:
			self.handleError(record)


class Display:

	"""Live-updating terminal dashboard showing playback state.

	Subscribes to ``step.tick`` and redraws a persistent region on stderr.
	"""

	def __init__ (self, store: "PatternStore", clock: typing.Optional["StepClock"] = None, grid: bool = False) -> None:

		"""Subscribe to step ticks.

		Parameters:
			store: The pattern store to read channels and the cursor from.
			clock: Optional clock; when given, its tempo is shown.
			grid: When True, render the step grid above the status line.
		"""

		self._store = store
		self._clock = clock
		self._active: bool = False
		self._handler: typing.Optional[DisplayLogHandler] = None
		self._saved_handlers: typing.List[logging.Handler] = []
		self._last_line: str = ""
		self._grid: typing.Optional[GridDisplay] = GridDisplay(store) if grid else None
		self._drawn_line_count: int = 0

		store.events.subscribe(stepgrid.constants.STEP_TICK, self.update)

	def start (self) -> None:

		"""Install the log handler and activate the display.

		Existing root logger handlers are saved and restored by ``stop()``.
		"""

		if self._active:
			return

		self._active = True

		root_logger = logging.getLogger()

		self._saved_handlers = list(root_logger.handlers)

		self._handler = DisplayLogHandler(self)

		if self._saved_handlers and self._saved_handlers[0].formatter:
			self._handler.setFormatter(self._saved_handlers[0].formatter)
		else:
			self._handler.setFormatter(logging.Formatter("%(levelname)s:%(name)s:%(message)s"))

		root_logger.handlers.clear()
		root_logger.addHandler(self._handler)

	def stop (self) -> None:

		"""Clear the dashboard and restore original log handlers."""

		if not self._active:
			return

		self.clear_line()
		self._active = False

		root_logger = logging.getLogger()
		root_logger.handlers.clear()

		for handler in self._saved_handlers:
			root_logger.addHandler(handler)

		self._saved_handlers = []
		self._handler = None

	def update (self, _: int = 0) -> None:

		"""Rebuild and redraw the dashboard; called on every ``step.tick``.

		The step argument is ignored - state is read from the pattern store.
		"""

		if not self._active:
			return

		self._last_line = self._format_status()

		if self._grid is not None:
			self._grid.build()

		self.draw()

	def draw (self) -> None:

		"""Write the current dashboard to the terminal."""

		if not self._active or not self._last_line:
			return

		grid_lines = self._grid._lines if self._grid is not None else []
		total = len(grid_lines) + 1

		# Cursor sits on the status line; move up to the first drawn line.
		if self._drawn_line_count > 1:
			sys.stderr.write(f"\033[{self._drawn_line_count - 1}A")

		for line in grid_lines:
			sys.stderr.write(f"\r\033[K{line}\n")

		sys.stderr.write(f"\r\033[K{self._last_line}")
		sys.stderr.flush()

		self._drawn_line_count = total

	def clear_line (self) -> None:

		"""Erase the entire dashboard region from the terminal."""

		if not self._active:
			return

		if self._drawn_line_count > 1:
			sys.stderr.write(f"\033[{self._drawn_line_count - 1}A")

			for _ in range(self._drawn_line_count):
				sys.stderr.write("\r\033[K\n")

			sys.stderr.write(f"\033[{self._drawn_line_count}A")
		else:
			sys.stderr.write("\r\033[K")

		sys.stderr.flush()
		self._drawn_line_count = 0

	def _format_status (self) -> str:

		"""Build the status string from the current store and clock state."""

		parts: typing.List[str] = []

		if self._clock is not None:
			parts.append(f"{self._clock.current_bpm:.2f} BPM")

		current = self._store.current_step
		step = str(current + 1) if current >= 0 else "-"
		parts.append(f"Step: {step}/{self._store.steps_per_channel}")

		parts.append(f"Channels: {len(self._store.patterns)}")

		return "  ".join(parts)
