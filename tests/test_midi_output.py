import mido
import pytest

import conftest
import stepgrid.constants
import stepgrid.event_emitter
import stepgrid.midi_output
import stepgrid.midi_utils
import stepgrid.pattern_store


def _messages (fake: conftest.FakeMidiOut) -> list[tuple]:

	"""Summarise sent messages as (type, channel, note, velocity)."""

	return [(m.type, m.channel, m.note, m.velocity) for m in fake.messages]


@pytest.fixture
def fake_out () -> conftest.FakeMidiOut:

	"""An output port that records messages."""

	return conftest.FakeMidiOut()


@pytest.fixture
def output (events: stepgrid.event_emitter.EventEmitter, fake_out: conftest.FakeMidiOut) -> stepgrid.midi_output.TriggerOutput:

	"""A trigger output writing to the fake port."""

	return stepgrid.midi_output.TriggerOutput(events, midi_out=fake_out)


def test_trigger_sends_note_on_then_off_next_step (
	events: stepgrid.event_emitter.EventEmitter,
	store: stepgrid.pattern_store.PatternStore,
	output: stepgrid.midi_output.TriggerOutput,
	fake_out: conftest.FakeMidiOut
) -> None:

	"""A hit plays for one step and is released on the next tick."""

	output.assign("kick", note=36, midi_channel=9, velocity=110)
	store.add_channel("kick")
	store.set_step("kick", 0, True)

	store.tick()
	assert _messages(fake_out) == [("note_on", 9, 36, 110)]

	store.tick()
	assert _messages(fake_out) == [("note_on", 9, 36, 110), ("note_off", 9, 36, 0)]


def test_consecutive_hits_retrigger (
	store: stepgrid.pattern_store.PatternStore,
	output: stepgrid.midi_output.TriggerOutput,
	fake_out: conftest.FakeMidiOut
) -> None:

	"""Back-to-back hits release the previous note before the next note on."""

	output.assign("hat", note=42)
	store.add_channel("hat")
	store.set_step("hat", 0, True)
	store.set_step("hat", 1, True)

	store.tick()
	store.tick()

	assert [m.type for m in fake_out.messages] == ["note_on", "note_off", "note_on"]


def test_unassigned_channels_are_silent (
	store: stepgrid.pattern_store.PatternStore,
	output: stepgrid.midi_output.TriggerOutput,
	fake_out: conftest.FakeMidiOut
) -> None:

	"""Channels without a note assignment send nothing."""

	store.add_channel("mystery")
	store.set_step("mystery", 0, True)
	store.tick()

	assert fake_out.messages == []


def test_reassign_replaces_note (
	store: stepgrid.pattern_store.PatternStore,
	output: stepgrid.midi_output.TriggerOutput,
	fake_out: conftest.FakeMidiOut
) -> None:

	"""Assigning a channel again changes its note rather than adding a second one."""

	output.assign("kick", note=36)
	output.assign("kick", note=35)
	store.add_channel("kick")
	store.set_step("kick", 0, True)
	store.tick()

	assert _messages(fake_out) == [("note_on", 9, 35, 100)]


def test_channel_removed_unassigns (
	events: stepgrid.event_emitter.EventEmitter,
	output: stepgrid.midi_output.TriggerOutput
) -> None:

	"""Removing a channel drops its note assignment and subscription."""

	output.assign("kick", note=36)
	events.publish(stepgrid.constants.CHANNEL_REMOVED, "kick")

	assert "kick" not in output.assignments
	assert not events.has_subscribers(stepgrid.constants.channel_triggered_event("kick"))


def test_transport_stop_releases_notes (
	events: stepgrid.event_emitter.EventEmitter,
	store: stepgrid.pattern_store.PatternStore,
	output: stepgrid.midi_output.TriggerOutput,
	fake_out: conftest.FakeMidiOut
) -> None:

	"""Stopping the transport sends note off for held notes."""

	output.assign("bass", note=40, midi_channel=1)
	store.add_channel("bass")
	store.set_step("bass", 0, True)
	store.tick()

	events.publish(stepgrid.constants.TRANSPORT_STOP)

	assert _messages(fake_out)[-1] == ("note_off", 1, 40, 0)
	assert output.held_notes == set()


@pytest.mark.parametrize("kwargs", [{"note": 128}, {"note": -1}, {"note": 36, "midi_channel": 16}, {"note": 36, "velocity": 200}])
def test_assign_rejects_out_of_range_values (output: stepgrid.midi_output.TriggerOutput, kwargs: dict) -> None:

	"""Notes, channels and velocities must fit MIDI ranges."""

	with pytest.raises(ValueError):
		output.assign("kick", **kwargs)


def test_send_failure_is_logged_not_raised (
	store: stepgrid.pattern_store.PatternStore,
	output: stepgrid.midi_output.TriggerOutput,
	fake_out: conftest.FakeMidiOut,
	monkeypatch: pytest.MonkeyPatch,
	caplog: pytest.LogCaptureFixture
) -> None:

	"""A disconnected device does not stop playback."""

	def _broken_send (message: mido.Message) -> None:
		raise OSError("device unplugged")

	monkeypatch.setattr(fake_out, "send", _broken_send)

	output.assign("kick", note=36)
	store.add_channel("kick")
	store.set_step("kick", 0, True)

	store.tick()

	assert "MIDI send failed" in caplog.text


def test_open_uses_device_selection (patch_midi: None, events: stepgrid.event_emitter.EventEmitter) -> None:

	"""open() selects the configured device and close() releases it."""

	output = stepgrid.midi_output.TriggerOutput(events, device_name="Dummy MIDI")

	assert output.open() is True
	assert isinstance(output.midi_out, conftest.FakeMidiOut)

	port = output.midi_out
	output.close()

	assert port.closed is True
	assert output.midi_out is None


def test_open_unknown_device_fails_softly (patch_midi: None, events: stepgrid.event_emitter.EventEmitter) -> None:

	"""An unknown device name leaves the output without a port."""

	output = stepgrid.midi_output.TriggerOutput(events, device_name="Nope")

	assert output.open() is False
	assert output.midi_out is None


def test_select_output_device_auto_discovers_single_device (patch_midi: None) -> None:

	"""With one device and no name, that device is used."""

	name, port = stepgrid.midi_utils.select_output_device()

	assert name == "Dummy MIDI"
	assert isinstance(port, conftest.FakeMidiOut)


def test_select_output_device_without_devices (monkeypatch: pytest.MonkeyPatch) -> None:

	"""No devices gives (None, None) without raising."""

	monkeypatch.setattr(mido, "get_output_names", lambda: [])

	assert stepgrid.midi_utils.select_output_device() == (None, None)


def test_select_output_device_prompts_between_several (patch_midi: None, monkeypatch: pytest.MonkeyPatch) -> None:

	"""Several devices are offered on the console until a valid number is entered."""

	answers = iter(["x", "9", "2"])
	monkeypatch.setattr(mido, "get_output_names", lambda: ["Port A", "Port B"])
	monkeypatch.setattr("builtins.input", lambda prompt: next(answers))

	name, port = stepgrid.midi_utils.select_output_device()

	assert name == "Port B"
	assert isinstance(port, conftest.FakeMidiOut)


def test_select_output_device_without_console_input (patch_midi: None, monkeypatch: pytest.MonkeyPatch) -> None:

	"""A closed stdin gives up instead of looping."""

	def _closed (prompt: str) -> str:
		raise EOFError

	monkeypatch.setattr(mido, "get_output_names", lambda: ["Port A", "Port B"])
	monkeypatch.setattr("builtins.input", _closed)

	assert stepgrid.midi_utils.select_output_device() == (None, None)


def test_select_output_device_by_name (patch_midi: None) -> None:

	"""A named device that exists is opened directly."""

	name, port = stepgrid.midi_utils.select_output_device("Dummy MIDI")

	assert name == "Dummy MIDI"
	assert port is not None


def test_ids_with_the_same_string_form_share_one_assignment (
	store: stepgrid.pattern_store.PatternStore,
	output: stepgrid.midi_output.TriggerOutput,
	fake_out: conftest.FakeMidiOut
) -> None:

	"""Assigning "1" after 1 replaces the note instead of playing both."""

	output.assign(1, note=36)
	output.assign("1", note=38)
	store.add_channel(1)
	store.add_channel("1")
	store.set_step("1", 0, True)

	store.tick()

	assert [m.note for m in fake_out.messages if m.type == "note_on"] == [38]
	assert list(output.assignments) == ["1"]
