"""OSC control surface for editing the pattern and following playback.

Start it with ``sequencer.osc()`` before ``sequencer.play()``. The server
listens on a UDP port (default 9000) and republishes incoming messages as
pattern events; the cursor position is sent to a target host/port (default
127.0.0.1:9001) on every step.

Argument coercion happens here, not in the pattern store: step indices and
counts become ``int`` and the on/off flag becomes ``bool``
(strings like ``"false"`` and ``"off"`` are read by name).

Receive Handlers
────────────────
- ``/steps <int>``: Set steps per channel
- ``/channel/add <id>``: Add (or reset) a channel
- ``/channel/remove <id>``: Remove a channel
- ``/step <id> <int> <on>``: Switch a step on or off
- ``/clear``: Switch every step off
- ``/reset``: Rewind the cursor to the first step
- ``/bpm <float>``: Set tempo

Send Events
───────────
- ``/tick <int>``: On every step
"""

import asyncio
import logging
import typing

import pythonosc.dispatcher
import pythonosc.osc_server
import pythonosc.udp_client

import stepgrid.constants
import stepgrid.event_emitter

if typing.TYPE_CHECKING:
	from stepgrid.clock import StepClock


logger = logging.getLogger(__name__)

_TRUE_STRINGS = {"1", "true", "on", "yes"}
_FALSE_STRINGS = {"0", "false", "off", "no", ""}


def _parse_flag (value: typing.Any) -> typing.Optional[bool]:

	"""Turn an OSC on/off argument into a bool, or None when a string is unrecognised.

	Numbers and OSC booleans use their truth value. Strings such as
	``"false"`` or ``"0"`` are read by name rather than by emptiness.
	"""

	if isinstance(value, str):
		flag = value.strip().lower()
		if flag in _TRUE_STRINGS:
			return True
		if flag in _FALSE_STRINGS:
			return False
		return None

	return bool(value)


class OscControl:

	"""Async OSC server/client bridging OSC messages and pattern events."""

	def __init__ (
		self,
		events: stepgrid.event_emitter.EventBus,
		clock: typing.Optional["StepClock"] = None,
		receive_port: int = 9000,
		send_port: int = 9001,
		send_host: str = "127.0.0.1"
	) -> None:

		self._events = events
		self._clock = clock
		self._receive_port = receive_port
		self._send_port = send_port
		self._send_host = send_host

		self._server: typing.Optional[typing.Any] = None
		self._transport: typing.Optional[asyncio.BaseTransport] = None
		self._client: typing.Optional[pythonosc.udp_client.SimpleUDPClient] = None
		self._dispatcher = pythonosc.dispatcher.Dispatcher()

		self._dispatcher.map("/steps", self._handle_steps)
		self._dispatcher.map("/channel/add", self._handle_channel_add)
		self._dispatcher.map("/channel/remove", self._handle_channel_remove)
		self._dispatcher.map("/step", self._handle_step)
		self._dispatcher.map("/clear", self._handle_clear)
		self._dispatcher.map("/reset", self._handle_reset)
		self._dispatcher.map("/bpm", self._handle_bpm)

		events.subscribe(stepgrid.constants.STEP_TICK, self._send_tick)


	async def start (self) -> None:

		"""Start the OSC server and client."""

		self._client = pythonosc.udp_client.SimpleUDPClient(self._send_host, self._send_port)

		self._server = pythonosc.osc_server.AsyncIOOSCUDPServer(
			("0.0.0.0", self._receive_port),
			self._dispatcher,
			asyncio.get_running_loop()  # type: ignore[arg-type]
		)

		transport, _ = await self._server.create_serve_endpoint()
		self._transport = transport

		logger.info(f"OSC listening on :{self._receive_port}, sending to {self._send_host}:{self._send_port}")


	async def stop (self) -> None:

		"""Stop the OSC server."""

		if self._transport:
			self._transport.close()
			self._transport = None
			logger.info("OSC server stopped")

		self._client = None


	def send (self, address: str, *args: typing.Any) -> None:

		"""Send an OSC message."""

		if self._client:
			try:
				self._client.send_message(address, args)
			except Exception as e:
				logger.warning(f"OSC send error: {e}")


	def map (self, address: str, handler: typing.Callable) -> None:

		"""Register a custom OSC handler."""

		self._dispatcher.map(address, handler)


	def _send_tick (self, step: int) -> None:
		self.send("/tick", step)


	# Handlers

	def _handle_steps (self, address: str, *args: typing.Any) -> None:
		if not args:
			return
		try:
			count = int(args[0])
		except (ValueError, TypeError):
			logger.warning(f"Invalid OSC step count: {args[0]}")
			return
		if count < 0:
			logger.warning(f"Invalid OSC step count: {count}")
			return
		self._events.publish(stepgrid.constants.STEPS_PER_CHANNEL_UPDATE, count)

	def _handle_channel_add (self, address: str, *args: typing.Any) -> None:
		if not args:
			logger.warning(f"{address} requires a channel id")
			return
		self._events.publish(stepgrid.constants.CHANNEL_ADDED, args[0])

	def _handle_channel_remove (self, address: str, *args: typing.Any) -> None:
		if not args:
			logger.warning(f"{address} requires a channel id")
			return
		self._events.publish(stepgrid.constants.CHANNEL_REMOVED, args[0])

	def _handle_step (self, address: str, *args: typing.Any) -> None:
		# /step <channel_id> <step_index> [on]
		if len(args) < 2:
			logger.warning(f"{address} requires a channel id and a step index")
			return
		try:
			step_index = int(args[1])
		except (ValueError, TypeError):
			logger.warning(f"Invalid OSC step index: {args[1]}")
			return
		on = _parse_flag(args[2]) if len(args) > 2 else True
		if on is None:
			logger.warning(f"Invalid OSC step flag: {args[2]}")
			return
		self._events.publish(stepgrid.constants.UI_STEP_TOGGLED, args[0], step_index, on)

	def _handle_clear (self, address: str, *args: typing.Any) -> None:
		self._events.publish(stepgrid.constants.UI_PATTERN_CLEAR)

	def _handle_reset (self, address: str, *args: typing.Any) -> None:
		self._events.publish(stepgrid.constants.UI_TRANSPORT_RESET)

	def _handle_bpm (self, address: str, *args: typing.Any) -> None:
		if not args or self._clock is None:
			return
		try:
			self._clock.set_bpm(float(args[0]))
		except (ValueError, TypeError):
			logger.warning(f"Invalid OSC BPM argument: {args[0]}")
