"""The pattern store: every channel's on/off step grid and the playback cursor.

There is exactly one ``PatternStore`` per process. The first construction
creates it and subscribes it to an event bus; every later construction
returns that same instance, so all collaborators see one authoritative
pattern.

The store has no call-and-return API beyond construction and read-only
accessors. It is driven entirely by events:

	steps-per-channel.update (count)          -> set_steps_per_channel()
	channel.added (channel_id)                -> add_channel()
	channel.removed (channel_id)              -> remove_channel()
	ui.step.toggled (channel_id, step, on)    -> set_step()
	ui.pattern.clear                          -> clear_all()
	ui.transport.reset                        -> reset_cursor()
	tempo.step                                -> tick()

and on every tick it publishes ``step.tick`` with the new cursor, followed by
``channel.triggered.channel-<id>`` for each channel whose step is on.

Channel ids are matched by their string form, so ``1`` and ``"1"`` name the
same channel and share one trigger event.

Invalid input (unknown channels, out-of-range steps, repeated adds/removes)
is absorbed silently. Pass ``debug_assertions=True`` to raise
``IgnoredEventError`` instead while developing.
"""

import dataclasses
import logging
import typing

import stepgrid.constants
import stepgrid.event_emitter


logger = logging.getLogger(__name__)


class IgnoredEventError (AssertionError):

	"""Raised in debug assertion mode when an event would otherwise be ignored."""


@dataclasses.dataclass
class ChannelPattern:

	"""
	One instrument's step grid.
	"""

	channel_id: typing.Hashable
	steps: typing.List[bool] = dataclasses.field(default_factory=list)


class PatternStore:

	"""
	Process-wide store of channel step grids and the shared step cursor.
	"""

	_instance: typing.ClassVar[typing.Optional["PatternStore"]] = None

	def __new__ (
		cls,
		events: typing.Optional[stepgrid.event_emitter.EventBus] = None,
		steps_per_channel: int = stepgrid.constants.DEFAULT_STEPS_PER_CHANNEL,
		debug_assertions: bool = False
	) -> "PatternStore":

		"""Return the shared instance, creating it on the first call."""

		if cls._instance is None:

			if events is None:
				raise ValueError("The first PatternStore construction requires an event bus")

			if steps_per_channel < 0:
				raise ValueError("steps_per_channel cannot be negative")

			instance = super().__new__(cls)
			instance._initialized = False
			cls._instance = instance

		return cls._instance

	def __init__ (
		self,
		events: typing.Optional[stepgrid.event_emitter.EventBus] = None,
		steps_per_channel: int = stepgrid.constants.DEFAULT_STEPS_PER_CHANNEL,
		debug_assertions: bool = False
	) -> None:

		"""Initialize state and subscribe to the event bus (first construction only).

		Parameters:
			events: The event bus to subscribe to and publish on. Required the
				first time; ignored afterwards.
			steps_per_channel: Initial grid width (default 16).
			debug_assertions: When True, events that would be silently ignored
				raise ``IgnoredEventError`` instead.
		"""

		if self._initialized:
			logger.debug("PatternStore already exists - returning the shared instance")
			return

		if events is None:
			raise ValueError("The first PatternStore construction requires an event bus")

		self._events = events
		self._debug_assertions = debug_assertions

		self._patterns: typing.List[ChannelPattern] = []
		self._channel_index: typing.Dict[str, int] = {}
		self._steps_per_channel = steps_per_channel
		self._current_step = -1

		events.subscribe(stepgrid.constants.STEPS_PER_CHANNEL_UPDATE, self.set_steps_per_channel)
		events.subscribe(stepgrid.constants.CHANNEL_ADDED, self.add_channel)
		events.subscribe(stepgrid.constants.CHANNEL_REMOVED, self.remove_channel)
		events.subscribe(stepgrid.constants.UI_STEP_TOGGLED, self.set_step)
		events.subscribe(stepgrid.constants.UI_PATTERN_CLEAR, self.clear_all)
		events.subscribe(stepgrid.constants.UI_TRANSPORT_RESET, self.reset_cursor)
		events.subscribe(stepgrid.constants.TEMPO_STEP, self.tick)

		self._initialized = True

		logger.info(f"Pattern store created ({steps_per_channel} steps per channel)")

	# ------------------------------------------------------------------
	# Read-only accessors
	# ------------------------------------------------------------------

	@property
	def events (self) -> stepgrid.event_emitter.EventBus:

		"""The event bus this store is subscribed to."""

		return self._events

	@property
	def steps_per_channel (self) -> int:
		return self._steps_per_channel

	@property
	def current_step (self) -> int:

		"""The step last played, or -1 before the first tick."""

		return self._current_step

	@property
	def patterns (self) -> typing.Tuple[ChannelPattern, ...]:
		return tuple(self._patterns)

	@property
	def channel_index (self) -> typing.Dict[str, int]:
		return dict(self._channel_index)

	def channel_ids (self) -> typing.List[typing.Hashable]:

		"""Registered channel ids in pattern order."""

		return [pattern.channel_id for pattern in self._patterns]

	# ------------------------------------------------------------------
	# Index maintenance
	# ------------------------------------------------------------------

	def rebuild_index (self) -> None:

		"""Recompute the ``channel_key`` -> position index from scratch.

		Only called after a channel is inserted or removed. Content changes
		(toggles, resizes) never move a channel.
		"""

		self._channel_index = {}

		for position, pattern in enumerate(self._patterns):
			self._channel_index[channel_key(pattern.channel_id)] = position

	def lookup (self, channel_id: typing.Hashable) -> typing.Optional[ChannelPattern]:

		"""Return the channel's pattern, or None when it is not registered."""

		position = self._channel_index.get(channel_key(channel_id))

		if position is None:
			return None

		# Stale index guard.
		if position >= len(self._patterns):
			logger.warning(f"Channel index points past the end of patterns for {channel_id!r}")
			return None

		return self._patterns[position]

	# ------------------------------------------------------------------
	# Event handlers
	# ------------------------------------------------------------------

	def set_steps_per_channel (self, desired_count: int) -> None:

		"""Grow or shrink every channel to *desired_count* steps.

		Growing appends steps that are off. Shrinking discards the tail of every
		channel, so shrinking and growing back does not restore it. The cursor is
		left alone; the next tick wraps it if it is now out of range.
		"""

		if desired_count == self._steps_per_channel:
			return

		if desired_count < 0:
			self._ignored(f"negative step count {desired_count}")
			return

		if desired_count > self._steps_per_channel:

			extra = desired_count - self._steps_per_channel

			for pattern in self._patterns:
				pattern.steps.extend([False] * extra)

		else:

			for pattern in self._patterns:
				pattern.steps = pattern.steps[:desired_count]

		logger.debug(f"Steps per channel: {self._steps_per_channel} -> {desired_count}")

		self._steps_per_channel = desired_count

	def add_channel (self, channel_id: typing.Hashable) -> None:

		"""Register a channel with every step off.

		Adding a channel that already exists resets its steps rather than
		creating a second record.
		"""

		pattern = self.lookup(channel_id)

		if pattern is not None:
			logger.debug(f"Channel {channel_id!r} re-added - resetting its steps")
			pattern.steps = [False] * self._steps_per_channel
			return

		self._patterns.append(ChannelPattern(channel_id=channel_id, steps=[False] * self._steps_per_channel))
		self.rebuild_index()

		logger.debug(f"Channel {channel_id!r} added at position {len(self._patterns) - 1}")

	def remove_channel (self, channel_id: typing.Hashable) -> None:

		"""Unregister a channel. Removing an unknown channel does nothing."""

		position = self._channel_index.get(channel_key(channel_id))

		if position is None:
			self._ignored(f"remove for unknown channel {channel_id!r}")
			return

		del self._patterns[position]
		self.rebuild_index()

		logger.debug(f"Channel {channel_id!r} removed")

	def set_step (self, channel_id: typing.Hashable, step_index: int, on: bool) -> None:

		"""Switch one step on or off.

		Unknown channels and out-of-range steps are ignored; toggling never
		changes the grid width.
		"""

		pattern = self.lookup(channel_id)

		if pattern is None:
			self._ignored(f"toggle for unknown channel {channel_id!r}")
			return

		if not 0 <= step_index < len(pattern.steps):
			self._ignored(f"toggle for step {step_index} outside 0..{len(pattern.steps) - 1} on channel {channel_id!r}")
			return

		pattern.steps[step_index] = on

	def clear_all (self) -> None:

		"""Switch every step of every channel off."""

		for pattern in self._patterns:
			pattern.steps = [False] * self._steps_per_channel

	def reset_cursor (self) -> None:

		"""Rewind the cursor so the next tick plays step 0."""

		self._current_step = -1

	def tick (self) -> None:

		"""Advance the cursor one step and announce which channels fire.

		``step.tick`` is always published first, then one
		``channel.triggered.channel-<id>`` per active channel in pattern order.
		"""

		self._current_step += 1

		# Also corrects a cursor left out of range by a shrink.
		if self._current_step > self._steps_per_channel - 1:
			self._current_step = 0

		step = self._current_step

		self._events.publish(stepgrid.constants.STEP_TICK, step)

		for pattern in self._patterns:
			if step < len(pattern.steps) and pattern.steps[step]:
				self._events.publish(stepgrid.constants.channel_triggered_event(pattern.channel_id))

	# ------------------------------------------------------------------
	# Internal helpers
	# ------------------------------------------------------------------

	def _ignored (self, description: str) -> None:

		"""Absorb an invalid event, or raise when debug assertions are enabled."""

		if self._debug_assertions:
			raise IgnoredEventError(f"Ignored event: {description}")

		logger.debug(f"Ignored event: {description}")


def channel_key (channel_id: typing.Hashable) -> str:

	"""Return the index key for *channel_id*."""

	return str(channel_id)


def get_pattern_store (
	events: typing.Optional[stepgrid.event_emitter.EventBus] = None,
	steps_per_channel: int = stepgrid.constants.DEFAULT_STEPS_PER_CHANNEL,
	debug_assertions: bool = False
) -> typing.Optional[PatternStore]:

	"""Return the shared ``PatternStore``.

	When no store exists yet and *events* is given, the store is created with
	the given settings. Without *events* this only looks the store up and
	returns None when nothing has created it.
	"""

	if PatternStore._instance is None and events is None:
		return None

	return PatternStore(events, steps_per_channel=steps_per_channel, debug_assertions=debug_assertions)
