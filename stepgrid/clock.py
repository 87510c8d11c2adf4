import asyncio
import logging
import time
import typing

import stepgrid.constants
import stepgrid.event_emitter


logger = logging.getLogger(__name__)


class StepClock:

	"""
	Internal tempo source that publishes one ``tempo.step`` event per step.

	The clock only produces ticks; the pattern store decides what a tick
	means. Timing is best effort - the loop sleeps with ``asyncio.sleep()``
	between steps and catches up if it falls behind, without drifting.
	"""

	def __init__ (
		self,
		events: stepgrid.event_emitter.EventBus,
		bpm: float = stepgrid.constants.DEFAULT_BPM,
		steps_per_beat: int = stepgrid.constants.DEFAULT_STEPS_PER_BEAT,
		max_steps: typing.Optional[int] = None
	) -> None:

		"""Initialize the clock.

		Parameters:
			events: Event bus to publish ``tempo.step`` and transport events on.
			bpm: Tempo in beats per minute.
			steps_per_beat: Steps per beat (4 = sixteenth notes).
			max_steps: Stop automatically after this many steps. None runs until
				``stop()`` is called.
		"""

		if steps_per_beat <= 0:
			raise ValueError("steps_per_beat must be positive")

		if max_steps is not None and max_steps < 0:
			raise ValueError("max_steps cannot be negative")

		self._events = events
		self.steps_per_beat = steps_per_beat
		self.max_steps = max_steps

		self.running: bool = False
		self.task: typing.Optional[asyncio.Task] = None
		self.step_count: int = 0
		self.start_time: float = 0.0

		self.current_bpm: float = 0
		self.seconds_per_step: float = 0.0
		self.set_bpm(bpm)


	def set_bpm (self, bpm: float) -> None:

		"""
		Change the tempo. Takes effect from the next step.
		"""

		if bpm <= 0:
			raise ValueError("BPM must be positive")

		self.current_bpm = bpm
		self.seconds_per_step = 60.0 / bpm / self.steps_per_beat

		logger.info(f"BPM set to {self.current_bpm:.2f}")


	async def start (self) -> None:

		"""
		Start publishing steps in a separate asyncio task.
		"""

		if self.running:
			return

		self.running = True
		self.step_count = 0
		self.task = asyncio.create_task(self._run_loop())

		logger.info("Clock started")

		self._events.publish(stepgrid.constants.TRANSPORT_START)


	async def stop (self) -> None:

		"""
		Stop publishing steps and wait for the loop task to finish.
		"""

		if not self.running and self.task is None:
			return

		self.running = False

		if self.task is not None:

			if self.task is not asyncio.current_task():
				await self.task

			self.task = None

		logger.info(f"Clock stopped after {self.step_count} steps")

		self._events.publish(stepgrid.constants.TRANSPORT_STOP)


	async def play (self) -> None:

		"""
		Convenience method to start the clock and wait until it finishes.
		"""

		await self.start()

		try:
			if self.task:
				await self.task
		except asyncio.CancelledError:
			pass
		finally:
			await self.stop()


	def render (self, steps: int) -> None:

		"""Publish *steps* ticks back to back without waiting.

		Used for offline rendering and tests. Transport events are not
		published.
		"""

		if steps < 0:
			raise ValueError("steps cannot be negative")

		self.step_count = 0

		for _ in range(steps):
			self._advance_step()


	def _advance_step (self) -> None:

		"""Publish one tick and count it."""

		self._events.publish(stepgrid.constants.TEMPO_STEP)
		self.step_count += 1


	def _limit_reached (self) -> bool:

		"""Stop the loop once ``max_steps`` steps have been published."""

		if self.max_steps is None or self.step_count < self.max_steps:
			return False

		if self.running:
			logger.info(f"Reached {self.max_steps} steps")
			self.running = False

		return True


	async def _run_loop (self) -> None:

		"""Playback loop driven by the wall clock."""

		self.start_time = time.perf_counter()
		next_step_time = self.start_time

		while self.running and not self._limit_reached():

			current_time = time.perf_counter()

			while current_time >= next_step_time:

				self._advance_step()
				next_step_time += self.seconds_per_step

				if self._limit_reached() or not self.running:
					break

			if not self.running:
				break

			sleep_time = next_step_time - time.perf_counter()

			if sleep_time > 0:
				await asyncio.sleep(sleep_time)
			else:
				# Let other tasks (OSC, display) run even when behind.
				await asyncio.sleep(0)
