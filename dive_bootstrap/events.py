from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, Optional, Union

logger = logging.getLogger(__name__)

EVENT_NAME = "install-host-dependencies-log"


@dataclass(frozen=True)
class Output:
    text: str

    def to_payload(self) -> Dict[str, Any]:
        return {"type": "output", "text": self.text}


@dataclass(frozen=True)
class Progress:
    downloaded: int
    total: int
    percentage: float
    speed_bps: float
    elapsed_secs: float

    def to_payload(self) -> Dict[str, Any]:
        return {
            "type": "progress",
            "downloaded": self.downloaded,
            "total": self.total,
            "percentage": self.percentage,
            "speed_bps": self.speed_bps,
            "elapsed_secs": self.elapsed_secs,
        }


@dataclass(frozen=True)
class Error:
    text: str

    def to_payload(self) -> Dict[str, Any]:
        return {"type": "error", "text": self.text}


@dataclass(frozen=True)
class Finished:
    def to_payload(self) -> Dict[str, Any]:
        return {"type": "finished"}


Event = Union[Output, Progress, Error, Finished]

_CLOSED = object()


class EventReceiver:
    """Consumer side of an EventChannel. Iteration ends after Finished or close."""

    def __init__(self, channel: "EventChannel") -> None:
        self._channel = channel
        self._done = False

    async def recv(self) -> Optional[Event]:
        if self._done:
            return None
        item = await self._channel._queue.get()
        self._channel._room.set()
        if item is _CLOSED or isinstance(item, Finished):
            self.close()
        return None if item is _CLOSED else item

    def close(self) -> None:
        """Stop listening; later events are dropped instead of waited on."""

        if self._done:
            return
        self._done = True
        self._channel._listening = False
        self._channel._room.set()

    async def __aiter__(self) -> AsyncIterator[Event]:
        while True:
            event = await self.recv()
            if event is None:
                return
            yield event


class EventChannel:
    """Bounded FIFO between the bootstrap (producer) and one UI listener.

    While a listener is attached, send() waits for room in the queue so no
    event is lost. Before anyone attaches, or after the listener closed its
    receiver, a full queue discards its oldest event instead.
    """

    def __init__(self, maxsize: int = 1024) -> None:
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue(maxsize=max(1, maxsize))
        self._room = asyncio.Event()
        self._attached = False
        self._listening = False
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, event: Event) -> None:
        if self._closed:
            logger.debug("Dropping %s sent after close", type(event).__name__)
            return
        await self._wait_for_room()
        self._put(event)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._wait_for_room()
        self._put(_CLOSED)

    def attach(self) -> Optional[EventReceiver]:
        """Hand out the receiver. Only the first caller gets one."""

        if self._attached:
            return None
        self._attached = True
        self._listening = True
        return EventReceiver(self)

    async def relay(
        self,
        emit: Callable[[str, Dict[str, Any]], Any],
        *,
        event_name: str = EVENT_NAME,
    ) -> bool:
        """Forward events to a UI emitter until Finished (or the channel closes).

        Returns False when another listener already attached.
        """

        receiver = self.attach()
        if receiver is None:
            return False

        try:
            async for event in receiver:
                try:
                    result = emit(event_name, event.to_payload())
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    logger.error("failed to emit %s: %s", event_name, e)
                    break
        finally:
            receiver.close()
        return True

    async def _wait_for_room(self) -> None:
        while self._listening and self._queue.full():
            self._room.clear()
            await self._room.wait()

    def _put(self, item: Any) -> None:
        while True:
            try:
                self._queue.put_nowait(item)
                return
            except asyncio.QueueFull:
                try:
                    self._queue.get_nowait()
                except asyncio.QueueEmpty:
                    continue
                self.dropped += 1
