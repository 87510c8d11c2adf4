"""Event names and defaults shared by every stepgrid component.

Components never call each other directly - they publish and subscribe to
these names on a shared event bus (see ``stepgrid.event_emitter``).
"""

# Consumed by the pattern store

STEPS_PER_CHANNEL_UPDATE = "steps-per-channel.update"
CHANNEL_ADDED = "channel.added"
CHANNEL_REMOVED = "channel.removed"
UI_STEP_TOGGLED = "ui.step.toggled"
UI_PATTERN_CLEAR = "ui.pattern.clear"
UI_TRANSPORT_RESET = "ui.transport.reset"
TEMPO_STEP = "tempo.step"

# Published by the pattern store

STEP_TICK = "step.tick"
CHANNEL_TRIGGERED_PREFIX = "channel.triggered.channel-"

# Published by the clock

TRANSPORT_START = "transport.start"
TRANSPORT_STOP = "transport.stop"

# Defaults

DEFAULT_STEPS_PER_CHANNEL = 16
DEFAULT_BPM = 120
DEFAULT_STEPS_PER_BEAT = 4			# sixteenth-note steps
DEFAULT_MIDI_CHANNEL = 9			# GM drums (zero-indexed)
DEFAULT_VELOCITY = 100


def channel_triggered_event (channel_id: object) -> str:

	"""Return the per-channel event name published when *channel_id* fires."""

	return f"{CHANNEL_TRIGGERED_PREFIX}{channel_id}"
