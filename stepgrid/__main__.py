import argparse
import logging
import os
import typing

import yaml

import stepgrid.constants
import stepgrid.step_sequencer


# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def load_config (config_path: str = 'config.yaml') -> dict:

	"""
	Load configuration from a YAML file.
	"""

	if not os.path.exists(config_path):
		logger.warning(f"Config file {config_path} not found. Using defaults.")
		return {}

	with open(config_path, 'r') as f:
		return yaml.safe_load(f) or {}


def build_sequencer (config: typing.Dict[str, typing.Any]) -> stepgrid.step_sequencer.StepSequencer:

	"""
	Build a sequencer, its channels and optional surfaces from a config dict.
	"""

	midi = config.get('midi') or {}
	sequencer_config = config.get('sequencer') or {}

	seq = stepgrid.step_sequencer.StepSequencer(
		output_device = midi.get('device_name'),
		bpm = sequencer_config.get('bpm', stepgrid.constants.DEFAULT_BPM),
		steps_per_beat = sequencer_config.get('steps_per_beat', stepgrid.constants.DEFAULT_STEPS_PER_BEAT),
		steps_per_channel = sequencer_config.get('steps_per_channel', stepgrid.constants.DEFAULT_STEPS_PER_CHANNEL),
		debug_assertions = sequencer_config.get('debug_assertions', False),
		max_steps = sequencer_config.get('max_steps')
	)

	for channel in config.get('channels') or []:

		if 'id' not in channel or 'note' not in channel:
			raise ValueError(f"Channel config needs 'id' and 'note': {channel!r}")

		seq.channel(
			channel['id'],
			note = channel['note'],
			midi_channel = channel.get('midi_channel', stepgrid.constants.DEFAULT_MIDI_CHANNEL),
			velocity = channel.get('velocity', stepgrid.constants.DEFAULT_VELOCITY),
			hits = channel.get('hits', [])
		)

	osc = config.get('osc')

	if osc:
		seq.osc(
			receive_port = osc.get('receive_port', 9000),
			send_port = osc.get('send_port', 9001),
			send_host = osc.get('send_host', "127.0.0.1")
		)

	display = config.get('display') or {}

	if display.get('enabled', False):
		seq.display(grid=display.get('grid', False))

	return seq


def main () -> None:

	"""
	Main entry point for the stepgrid application.
	"""

	parser = argparse.ArgumentParser(description="stepgrid step sequencer")
	parser.add_argument("--config", default="config.yaml", help="YAML config file (default: config.yaml)")
	args = parser.parse_args()

	logger.info("stepgrid starting...")

	config = load_config(args.config)
	seq = build_sequencer(config)
	seq.play()


if __name__ == "__main__":
	main()
