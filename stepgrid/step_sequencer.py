import asyncio
import logging
import signal
import typing

import stepgrid.clock
import stepgrid.constants
import stepgrid.display
import stepgrid.event_emitter
import stepgrid.midi_output
import stepgrid.osc
import stepgrid.pattern_store


logger = logging.getLogger(__name__)


async def run_until_stopped (clock: stepgrid.clock.StepClock) -> None:

	"""
	Run the clock until a stop signal is received or it finishes on its own.
	"""

	logger.info("Playing pattern. Press Ctrl+C to stop.")

	await clock.start()

	stop_event = asyncio.Event()
	loop = asyncio.get_running_loop()

	def _request_stop () -> None:

		"""
		Signal handler to request a clean shutdown.
		"""

		stop_event.set()

	for sig in (signal.SIGINT, signal.SIGTERM):
		loop.add_signal_handler(sig, _request_stop)

	assert clock.task is not None, "Clock task should exist after start()"

	try:
		await asyncio.wait(
			[asyncio.create_task(stop_event.wait()), clock.task],
			return_when = asyncio.FIRST_COMPLETED
		)
	finally:
		for sig in (signal.SIGINT, signal.SIGTERM):
			loop.remove_signal_handler(sig)

	await clock.stop()


class StepSequencer:

	"""
	The top-level controller for a step-sequenced pattern.

	Wires one event bus and the shared ``PatternStore`` into a tempo clock,
	a MIDI trigger output and (optionally) an OSC control surface and a
	terminal display. Every edit goes through the event bus, exactly as an
	external UI would send it.

	Example:
		```python
		seq = StepSequencer(bpm=124)
		seq.channel("kick", note=36, hits=[0, 4, 8, 12])
		seq.channel("snare", note=38, hits=[4, 12])
		seq.display(grid=True)
		seq.play()
		```
	"""

	def __init__ (
		self,
		output_device: typing.Optional[str] = None,
		bpm: float = stepgrid.constants.DEFAULT_BPM,
		steps_per_beat: int = stepgrid.constants.DEFAULT_STEPS_PER_BEAT,
		steps_per_channel: int = stepgrid.constants.DEFAULT_STEPS_PER_CHANNEL,
		debug_assertions: bool = False,
		max_steps: typing.Optional[int] = None
	) -> None:

		"""Create the clock and output around the shared pattern store.

		Parameters:
			output_device: MIDI output device name. When omitted, the device is
				auto-discovered when playback starts.
			bpm: Tempo in beats per minute.
			steps_per_beat: Steps per beat (4 = sixteenth notes).
			steps_per_channel: Initial grid width, used only if this call
				creates the pattern store.
			debug_assertions: Raise on ignored pattern events (store creation only).
			max_steps: Stop ``play()`` after this many steps.
		"""

		store = stepgrid.pattern_store.get_pattern_store(
			stepgrid.event_emitter.EventEmitter(),
			steps_per_channel = steps_per_channel,
			debug_assertions = debug_assertions
		)

		assert store is not None

		self.pattern_store = store
		self.events = store.events

		self.clock = stepgrid.clock.StepClock(self.events, bpm=bpm, steps_per_beat=steps_per_beat, max_steps=max_steps)
		self.output = stepgrid.midi_output.TriggerOutput(self.events, device_name=output_device)

		self._display: typing.Optional[stepgrid.display.Display] = None
		self._osc_control: typing.Optional[stepgrid.osc.OscControl] = None

	@property
	def bpm (self) -> float:
		return self.clock.current_bpm

	def set_bpm (self, bpm: float) -> None:

		"""
		Instantly change the tempo.
		"""

		self.clock.set_bpm(bpm)

	def on_event (self, event_name: str, handler: typing.Callable[..., typing.Any]) -> None:

		"""
		Subscribe to any event on the sequencer's bus (e.g. ``"step.tick"``).
		"""

		self.events.subscribe(event_name, handler)

	# ------------------------------------------------------------------
	# Pattern editing - all published as events
	# ------------------------------------------------------------------

	def channel (
		self,
		channel_id: typing.Hashable,
		note: int,
		midi_channel: int = stepgrid.constants.DEFAULT_MIDI_CHANNEL,
		velocity: int = stepgrid.constants.DEFAULT_VELOCITY,
		hits: typing.Iterable[int] = ()
	) -> None:

		"""Add (or reset) a channel, assign its MIDI note and switch on *hits*.

		Parameters:
			channel_id: Stable identifier for the channel.
			note: MIDI note played when the channel fires.
			midi_channel: Zero-indexed MIDI channel (default 9, GM drums).
			velocity: Note velocity.
			hits: Step indices to switch on.
		"""

		self.output.assign(channel_id, note=note, midi_channel=midi_channel, velocity=velocity)
		self.events.publish(stepgrid.constants.CHANNEL_ADDED, channel_id)

		for step_index in hits:
			self.toggle_step(channel_id, step_index, True)

	def remove_channel (self, channel_id: typing.Hashable) -> None:
		self.events.publish(stepgrid.constants.CHANNEL_REMOVED, channel_id)

	def set_steps_per_channel (self, count: int) -> None:
		self.events.publish(stepgrid.constants.STEPS_PER_CHANNEL_UPDATE, int(count))

	def toggle_step (self, channel_id: typing.Hashable, step_index: int, on: typing.Any = True) -> None:

		"""
		Switch a step on or off. *on* may be any truthy or falsy value.
		"""

		self.events.publish(stepgrid.constants.UI_STEP_TOGGLED, channel_id, int(step_index), bool(on))

	def clear (self) -> None:
		self.events.publish(stepgrid.constants.UI_PATTERN_CLEAR)

	def reset (self) -> None:

		"""
		Rewind the cursor so the next step played is the first.
		"""

		self.events.publish(stepgrid.constants.UI_TRANSPORT_RESET)

	# ------------------------------------------------------------------
	# Optional surfaces
	# ------------------------------------------------------------------

	def display (self, enabled: bool = True, grid: bool = False) -> None:

		"""
		Enable or disable the live terminal dashboard.

		Parameters:
			enabled: Whether to show the display (default True).
			grid: When True, render every channel's steps above the status line.
		"""

		if enabled:
			self._display = stepgrid.display.Display(self.pattern_store, clock=self.clock, grid=grid)
		else:
			self._display = None

	def osc (self, receive_port: int = 9000, send_port: int = 9001, send_host: str = "127.0.0.1") -> None:

		"""
		Enable bi-directional Open Sound Control (OSC).

		Parameters:
			receive_port: Port to listen for incoming OSC messages (default 9000).
			send_port: Port to send cursor updates to (default 9001).
			send_host: The IP address to send updates to (default "127.0.0.1").
		"""

		self._osc_control = stepgrid.osc.OscControl(
			self.events,
			clock = self.clock,
			receive_port = receive_port,
			send_port = send_port,
			send_host = send_host
		)

	# ------------------------------------------------------------------
	# Playback
	# ------------------------------------------------------------------

	def play (self) -> None:

		"""
		Start playback. Blocks until interrupted (e.g. Ctrl+C) or ``max_steps`` is reached.
		"""

		try:
			asyncio.run(self._run())

		except KeyboardInterrupt:
			pass

	def render (self, steps: int) -> None:

		"""Play *steps* steps as fast as possible, with MIDI output attached.

		No clock timing, display or OSC - useful for checking a pattern or
		driving an offline MIDI port.
		"""

		self.output.open()

		try:
			self.clock.render(steps)
		finally:
			self.output.close()

	async def _run (self) -> None:

		"""
		Async entry point that opens outputs and runs the clock.
		"""

		if not self.output.open():
			logger.warning("No MIDI output available - triggers will not be sent")

		if self._osc_control is not None:
			await self._osc_control.start()

		if self._display is not None:
			self._display.start()

		try:
			await run_until_stopped(self.clock)

		finally:
			if self._display is not None:
				self._display.stop()

			if self._osc_control is not None:
				await self._osc_control.stop()

			self.output.close()
