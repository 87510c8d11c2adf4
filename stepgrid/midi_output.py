"""Turn channel trigger events into MIDI notes.

Each pattern channel is assigned a MIDI note (and channel and velocity).
When the pattern store publishes ``channel.triggered.channel-<id>`` the
assigned note starts; it is released on the next ``step.tick``, so every hit
lasts one step.

```python
output = TriggerOutput(events, device_name="TR-8S")
output.assign("kick", note=36)
output.open()
```
"""

import dataclasses
import logging
import typing

import mido

import stepgrid.constants
import stepgrid.event_emitter
import stepgrid.midi_utils
import stepgrid.pattern_store


logger = logging.getLogger(__name__)


@dataclasses.dataclass
class NoteAssignment:

	"""
	The MIDI note a pattern channel plays when it fires.
	"""

	note: int
	midi_channel: int = stepgrid.constants.DEFAULT_MIDI_CHANNEL
	velocity: int = stepgrid.constants.DEFAULT_VELOCITY
	handler: typing.Optional[typing.Callable[[], None]] = dataclasses.field(default=None, compare=False, repr=False)


class TriggerOutput:

	"""
	Sends a MIDI note for every channel trigger.
	"""

	def __init__ (
		self,
		events: stepgrid.event_emitter.EventEmitter,
		device_name: typing.Optional[str] = None,
		midi_out: typing.Any = None
	) -> None:

		"""Subscribe to transport events.

		Parameters:
			events: Event bus the pattern store publishes on.
			device_name: MIDI output device opened by ``open()``. When omitted,
				the device is auto-discovered.
			midi_out: An already-open mido output port. Skips ``open()``.
		"""

		self._events = events
		self.device_name = device_name
		self.midi_out: typing.Any = midi_out

		self.assignments: typing.Dict[str, NoteAssignment] = {}
		self.held_notes: typing.Set[typing.Tuple[int, int]] = set()

		events.subscribe(stepgrid.constants.STEP_TICK, self._on_step_tick)
		events.subscribe(stepgrid.constants.TRANSPORT_STOP, self.release_all)
		events.subscribe(stepgrid.constants.CHANNEL_REMOVED, self._on_channel_removed)


	def assign (
		self,
		channel_id: typing.Hashable,
		note: int,
		midi_channel: int = stepgrid.constants.DEFAULT_MIDI_CHANNEL,
		velocity: int = stepgrid.constants.DEFAULT_VELOCITY
	) -> None:

		"""
		Play *note* whenever the pattern channel *channel_id* fires.
		"""

		if not 0 <= note <= 127:
			raise ValueError(f"MIDI note {note} out of range 0-127")

		if not 0 <= midi_channel <= 15:
			raise ValueError(f"MIDI channel {midi_channel} out of range 0-15")

		if not 0 <= velocity <= 127:
			raise ValueError(f"Velocity {velocity} out of range 0-127")

		key = stepgrid.pattern_store.channel_key(channel_id)

		if key in self.assignments:
			self.unassign(channel_id)

		assignment = NoteAssignment(note=note, midi_channel=midi_channel, velocity=velocity)

		def _on_triggered () -> None:
			self._note_on(assignment)

		assignment.handler = _on_triggered
		self.assignments[key] = assignment

		self._events.subscribe(stepgrid.constants.channel_triggered_event(channel_id), _on_triggered)

		logger.debug(f"Channel {channel_id!r} plays note {note} on MIDI channel {midi_channel + 1}")


	def unassign (self, channel_id: typing.Hashable) -> None:

		"""
		Stop playing a note for *channel_id*. Unknown channels are ignored.
		"""

		assignment = self.assignments.pop(stepgrid.pattern_store.channel_key(channel_id), None)

		if assignment is None or assignment.handler is None:
			return

		self._events.unsubscribe(stepgrid.constants.channel_triggered_event(channel_id), assignment.handler)


	def open (self) -> bool:

		"""Open the MIDI output device. Returns True when a port is available."""

		if self.midi_out is not None:
			return True

		device_name, midi_out = stepgrid.midi_utils.select_output_device(self.device_name)

		if device_name:
			self.device_name = device_name
			self.midi_out = midi_out

		return self.midi_out is not None


	def close (self) -> None:

		"""
		Release held notes and close the output port.
		"""

		self.release_all()

		if self.midi_out is not None:
			self.midi_out.close()
			self.midi_out = None


	def release_all (self) -> None:

		"""
		Send note off for every note still sounding.
		"""

		for midi_channel, note in sorted(self.held_notes):
			self._send(mido.Message('note_off', channel=midi_channel, note=note, velocity=0))

		self.held_notes = set()


	def _note_on (self, assignment: NoteAssignment) -> None:

		"""Start a note, retriggering it if it is still held."""

		key = (assignment.midi_channel, assignment.note)

		if key in self.held_notes:
			self._send(mido.Message('note_off', channel=assignment.midi_channel, note=assignment.note, velocity=0))

		self._send(mido.Message('note_on', channel=assignment.midi_channel, note=assignment.note, velocity=assignment.velocity))
		self.held_notes.add(key)


	def _on_step_tick (self, step: int) -> None:

		"""Notes last one step - release them before the new step's triggers."""

		self.release_all()


	def _on_channel_removed (self, channel_id: typing.Hashable) -> None:

		self.unassign(channel_id)


	def _send (self, message: mido.Message) -> None:

		"""
		Send a MIDI message to the output port.
		"""

		if self.midi_out is None:
			return

		try:
			self.midi_out.send(message)
		except Exception:
			logger.exception("MIDI send failed (device may be disconnected)")
