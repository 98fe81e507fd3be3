"""In-process dispatch of schedule lifecycle events."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, Mapping

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class EventBus:
    """Routes each published event to the handlers registered for its type.

    Dispatch is synchronous and in registration order; a failing handler
    propagates to the publisher.
    """

    def __init__(self) -> None:
        self._routes: dict[type, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: type, handler: Handler) -> None:
        self._routes[event_type].append(handler)

    def subscribe_all(self, routes: Mapping[type, Handler]) -> None:
        for event_type, handler in routes.items():
            self.subscribe(event_type, handler)

    def handlers_for(self, event_type: type) -> list[Handler]:
        return list(self._routes.get(event_type, ()))

    def publish(self, event: Any) -> None:
        handlers = self.handlers_for(type(event))
        if not handlers:
            logger.debug("No handlers for %s", type(event).__name__)
            return
        for handler in handlers:
            logger.debug(
                "Dispatching %s to %s",
                type(event).__name__,
                getattr(handler, "__name__", repr(handler)),
            )
            handler(event)
