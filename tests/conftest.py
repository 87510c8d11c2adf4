import typing

import mido
import pytest

import stepgrid.event_emitter
import stepgrid.pattern_store


class FakeMidiOut:

	"""Minimal MIDI output stub that records what it is sent."""

	def __init__ (self) -> None:

		"""Start with no messages."""

		self.messages: typing.List[mido.Message] = []
		self.closed = False

	def send (self, message: mido.Message) -> None:

		"""Record outgoing MIDI messages."""

		self.messages.append(message)

	def close (self) -> None:

		"""Mark the fake device closed."""

		self.closed = True


# Module-level reference so tests can access the most recently opened FakeMidiOut.
_current_fake_output: typing.Optional[FakeMidiOut] = None


def _fake_get_output_names () -> list[str]:

	"""Return a fixed list of MIDI output names for tests."""

	return ["Dummy MIDI"]


def _fake_open_output (name: str) -> FakeMidiOut:

	"""Return a fake MIDI output regardless of the name."""

	global _current_fake_output
	fake = FakeMidiOut()
	_current_fake_output = fake
	return fake


@pytest.fixture
def patch_midi (monkeypatch: pytest.MonkeyPatch) -> None:

	"""Patch mido to use a fake MIDI output for all tests that need it."""

	monkeypatch.setattr(mido, "get_output_names", _fake_get_output_names)
	monkeypatch.setattr(mido, "open_output", _fake_open_output)


@pytest.fixture(autouse=True)
def fresh_pattern_store (monkeypatch: pytest.MonkeyPatch) -> None:

	"""Discard the process-wide PatternStore so each test creates its own."""

	monkeypatch.setattr(stepgrid.pattern_store.PatternStore, "_instance", None)


@pytest.fixture
def events () -> stepgrid.event_emitter.EventEmitter:

	"""A fresh event bus."""

	return stepgrid.event_emitter.EventEmitter()


@pytest.fixture
def store (events: stepgrid.event_emitter.EventEmitter) -> stepgrid.pattern_store.PatternStore:

	"""A fresh pattern store subscribed to ``events``."""

	return stepgrid.pattern_store.PatternStore(events)
