"""
In-process notifications for story, transaction, cache and lifecycle changes.

Events are queued by ``emit`` and delivered by a single processor task, so
emitters never wait on listeners. Listeners may be plain or async callables
taking an ``Event``; a failing listener is logged and does not affect the
others.
"""

import asyncio
import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Listener = Callable[["Event"], Any]

_STOP = object()


def _name(listener: Callable) -> str:
    return getattr(listener, "__qualname__", None) or repr(listener)


@dataclass
class Event:
    type: str
    data: Dict[str, Any]
    timestamp: float = field(default_factory=time.time)
    source: str = "system"


class EventBus:
    def __init__(self):
        self.listeners: Dict[str, List[Listener]] = defaultdict(list)
        self.event_queue: asyncio.Queue = asyncio.Queue()
        self.running = False
        self.processor_task: Optional[asyncio.Task] = None
        self.delivered = 0

    async def start(self):
        if self.running:
            return
        self.running = True
        self.processor_task = asyncio.create_task(self._process_events())
        logger.info("EventBus started")

    async def stop(self):
        """Deliver everything already queued, then stop the processor"""
        if not self.running:
            return
        self.running = False
        await self.event_queue.put(_STOP)
        if self.processor_task is not None:
            await self.processor_task
            self.processor_task = None
        logger.info(f"EventBus stopped after delivering {self.delivered} events")

    async def _process_events(self):
        while True:
            event = await self.event_queue.get()
            if event is _STOP:
                return
            try:
                await self._dispatch_event(event)
            except Exception as e:
                logger.error(f"Error processing event {event.type}: {e}")

    async def _dispatch_event(self, event: Event):
        listeners = list(self.listeners.get(event.type, ()))
        if not listeners:
            logger.debug(f"No listeners for event type: {event.type}")
            return

        results = await asyncio.gather(
            *(self._call_listener(listener, event) for listener in listeners),
            return_exceptions=True,
        )
        for listener, result in zip(listeners, results):
            if isinstance(result, Exception):
                logger.error(f"Listener {_name(listener)} failed on {event.type}: {result}")
        self.delivered += 1

    async def _call_listener(self, listener: Listener, event: Event):
        result = listener(event)
        if asyncio.iscoroutine(result):
            await result

    def subscribe(self, event_type: str, listener: Listener):
        self.listeners[event_type].append(listener)
        logger.debug(f"Subscribed {_name(listener)} to {event_type}")

    def unsubscribe(self, event_type: str, listener: Listener):
        if listener in self.listeners.get(event_type, ()):
            self.listeners[event_type].remove(listener)
            logger.debug(f"Unsubscribed {_name(listener)} from {event_type}")

    async def emit(self, event_type: str, data: Dict[str, Any], source: str = "system"):
        await self.event_queue.put(Event(type=event_type, data=data, source=source))
        logger.debug(f"Emitted event: {event_type} from {source}")


class EventTypes:
    STORY_UPDATED = "story_updated"
    STORIES_SYNCED = "stories_synced"

    TRANSACTION_PENDING = "transaction_pending"
    TRANSACTION_CONFIRMED = "transaction_confirmed"
    TRANSACTION_FAILED = "transaction_failed"

    CACHE_CLEARED = "cache_cleared"

    APP_FOREGROUND = "app_foreground"
    APP_BACKGROUND = "app_background"
