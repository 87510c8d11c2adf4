import asyncio
import typing


HandlerType = typing.Callable[..., typing.Any]


@typing.runtime_checkable
class EventBus (typing.Protocol):

	"""
	The publish/subscribe capability every stepgrid component depends on.

	Ordering contract: ``publish()`` calls each handler registered for the
	event synchronously, in subscription order, and every handler has fully
	returned before ``publish()`` returns. Handlers may publish further events
	from inside a handler; those nested publications complete before the outer
	handler resumes.
	"""

	def subscribe (self, event_name: str, handler: HandlerType) -> None:
		...

	def publish (self, event_name: str, *payload: typing.Any) -> None:
		...


class EventEmitter:

	"""
	A simple named-event bus supporting sync and async handlers.
	"""

	def __init__ (self) -> None:

		"""
		Initialize an empty event registry.
		"""

		self._handlers: typing.Dict[str, typing.List[HandlerType]] = {}


	def subscribe (self, event_name: str, handler: HandlerType) -> None:

		"""
		Register a handler for an event name.
		"""

		if event_name not in self._handlers:
			self._handlers[event_name] = []

		self._handlers[event_name].append(handler)

	def unsubscribe (self, event_name: str, handler: HandlerType) -> None:

		"""
		Unregister a previously registered handler.

		Raises ``ValueError`` if the handler is not registered for the event.
		"""

		if event_name not in self._handlers or handler not in self._handlers[event_name]:
			raise ValueError(f"Handler not registered for event {event_name!r}")

		self._handlers[event_name].remove(handler)

		if not self._handlers[event_name]:
			del self._handlers[event_name]

	def has_subscribers (self, event_name: str) -> bool:

		"""
		Return True when at least one handler is registered for the event.
		"""

		return bool(self._handlers.get(event_name))


	def publish (self, event_name: str, *payload: typing.Any) -> None:

		"""
		Publish an event and call its handlers immediately, in subscription order.
		"""

		if event_name not in self._handlers:
			return

		# Copy so handlers can (un)subscribe while we iterate.
		for handler in list(self._handlers[event_name]):

			if asyncio.iscoroutinefunction(handler):
				raise ValueError(f"Async handler encountered in publish for {event_name!r}")

			handler(*payload)


	async def publish_async (self, event_name: str, *payload: typing.Any) -> None:

		"""
		Publish an event and await async handlers.
		"""

		if event_name not in self._handlers:
			return

		tasks: typing.List[typing.Awaitable[typing.Any]] = []

		for handler in list(self._handlers[event_name]):

			if asyncio.iscoroutinefunction(handler):
				tasks.append(handler(*payload))

			else:
				handler(*payload)

		if tasks:
			await asyncio.gather(*tasks)
