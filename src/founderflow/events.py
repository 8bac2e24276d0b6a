"""
FounderFlow Event Bus

A small publish/subscribe bus connecting the synchronous core to its
collaborators (notification sound, terminal output, a future UI).

Usage:
    from founderflow.events import EventBus, Event

    bus = EventBus()

    def chime(event: Event) -> None:
        print(f"{event.payload['phase']} finished")

    bus.subscribe("focus.phase_ended", chime)
    bus.emit_nowait("focus.phase_ended", {"phase": "focus"})

Handlers may be plain functions or coroutine functions.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Union
from uuid import uuid4

import structlog

logger = structlog.get_logger(__name__)

PHASE_ENDED = "focus.phase_ended"
TASK_CREATED = "task.created"
TASK_RESURFACED = "task.resurfaced"


@dataclass
class Event:
    """An event that can be emitted and handled."""

    name: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
    event_id: str = field(default_factory=lambda: str(uuid4()))

    def __str__(self) -> str:
        return f"Event({self.name}, id={self.event_id[:8]})"


EventHandler = Callable[[Event], Union[None, Awaitable[None]]]


class EventBus:
    """
    Event bus for pub/sub messaging.

    Features:
    - Multiple handlers per event
    - Wildcard subscriptions (e.g., "focus.*" or "*")
    - Timeout protection for async handlers
    - Error isolation (one handler failure doesn't affect others)
    """

    def __init__(self, handler_timeout: float = 30.0):
        self._handlers: dict[str, list[EventHandler]] = {}
        self._handler_timeout = handler_timeout
        self._pending: set[asyncio.Task[None]] = set()

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        """
        Subscribe a handler to an event.

        Args:
            event_name: Event name, "prefix.*" for a namespace or "*" for everything.
            handler: Callable (sync or async) receiving Event objects.
        """
        self._handlers.setdefault(event_name, []).append(handler)
        logger.debug("handler_subscribed", event_name=event_name, handler=_name(handler))

    def unsubscribe(self, event_name: str, handler: EventHandler) -> bool:
        """Remove a handler. Returns True if it was subscribed."""
        handlers = self._handlers.get(event_name)
        if not handlers or handler not in handlers:
            return False
        handlers.remove(handler)
        logger.debug("handler_unsubscribed", event_name=event_name, handler=_name(handler))
        return True

    def _get_handlers(self, event_name: str) -> list[EventHandler]:
        """All handlers matching an event name, including wildcards."""
        handlers = list(self._handlers.get(event_name, []))

        parts = event_name.split(".")
        for i in range(len(parts)):
            wildcard = ".".join(parts[: i + 1]) + ".*"
            handlers.extend(self._handlers.get(wildcard, []))

        handlers.extend(self._handlers.get("*", []))
        return handlers

    def emit_nowait(self, event_name: str, payload: dict[str, Any] | None = None) -> Event:
        """
        Emit from synchronous code.

        Sync handlers run inline. Coroutine handlers are scheduled on the
        running event loop; without one they are dropped with a warning.
        """
        ev = Event(name=event_name, payload=payload or {})
        logger.debug("event_emitted", event_obj=str(ev), payload_keys=list(ev.payload))

        for handler in self._get_handlers(ev.name):
            try:
                result = handler(ev)
            except Exception as e:
                logger.error(
                    "handler_error",
                    event_obj=str(ev),
                    handler=_name(handler),
                    error=str(e),
                    exc_info=True,
                )
                continue

            if inspect.isawaitable(result):
                self._schedule(ev, handler, result)
        return ev

    def _schedule(self, ev: Event, handler: EventHandler, result: Awaitable[None]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(result):
                result.close()
            logger.warning("no_running_loop", event_obj=str(ev), handler=_name(handler))
            return

        task = loop.create_task(self._run_detached(ev, handler, result))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _run_detached(
        self, ev: Event, handler: EventHandler, result: Awaitable[None]
    ) -> None:
        try:
            await asyncio.wait_for(result, timeout=self._handler_timeout)
        except asyncio.TimeoutError:
            logger.error("handler_timeout", event_obj=str(ev), handler=_name(handler))
        except Exception as e:
            logger.error(
                "handler_error",
                event_obj=str(ev),
                handler=_name(handler),
                error=str(e),
                exc_info=True,
            )

    async def drain(self) -> None:
        """Wait for handlers scheduled by emit_nowait."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)


def _name(handler: EventHandler) -> str:
    return getattr(handler, "__name__", repr(handler))
