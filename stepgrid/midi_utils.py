"""MIDI output device discovery for ``TriggerOutput.open()``."""

import logging
import typing

import mido


logger = logging.getLogger(__name__)


def select_output_device (device_name: typing.Optional[str] = None) -> typing.Tuple[typing.Optional[str], typing.Any]:

	"""Open the MIDI output that channel triggers are sent to.

	A named device must exist. Without a name, a single available device is
	used as-is and several are offered on the console.

	Returns:
		``(name, port)``, or ``(None, None)`` when nothing could be opened.
		Failures are logged, never raised.
	"""

	try:
		outputs = mido.get_output_names()
		logger.info(f"Available MIDI outputs: {outputs}")

		selected = _choose_device(outputs, device_name)

		if selected is None:
			return None, None

		port = mido.open_output(selected)

	except Exception as e:
		logger.error(f"Failed to open MIDI output: {e}")
		return None, None

	logger.info(f"Opened MIDI output: {selected}")

	return selected, port


def _choose_device (outputs: typing.List[str], device_name: typing.Optional[str]) -> typing.Optional[str]:

	"""Pick one of *outputs*, or None (logged) when no choice is possible."""

	if not outputs:
		logger.error("No MIDI output devices found")
		return None

	if device_name is not None:

		if device_name not in outputs:
			logger.error(f"MIDI output device '{device_name}' not found. Available devices: {outputs}")
			return None

		return device_name

	if len(outputs) == 1:
		return outputs[0]

	print("\nAvailable MIDI output devices:\n")

	for number, name in enumerate(outputs, 1):
		print(f"  {number}. {name}")

	while True:

		try:
			answer = input(f"\nSelect a device (1-{len(outputs)}): ")
		except EOFError:
			logger.error("No device selected - pass output_device to choose one")
			return None

		if answer.strip().isdigit() and 1 <= int(answer) <= len(outputs):
			break

		print(f"Enter a number between 1 and {len(outputs)}.")

	selected = outputs[int(answer) - 1]

	print(f"\nTip: set midi.device_name: \"{selected}\" in the config to skip this prompt.\n")

	return selected
