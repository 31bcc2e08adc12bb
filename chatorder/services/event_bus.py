from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Callable, DefaultDict, List

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any]], None]


class EventBus:
    """In-process pub/sub for order lifecycle notifications.

    Handlers run synchronously in subscription order. A failing handler is logged and
    skipped so the conversation reply is never lost because of a subscriber.
    """

    def __init__(self) -> None:
        self._handlers: DefaultDict[str, List[Handler]] = defaultdict(list)
        self._lock = Lock()

    def subscribe(self, event_name: str, handler: Handler) -> Callable[[], None]:
        with self._lock:
            self._handlers[event_name].append(handler)

        def _unsubscribe() -> None:
            with self._lock:
                handlers = self._handlers.get(event_name) or []
                if handler in handlers:
                    handlers.remove(handler)

        return _unsubscribe

    def emit(self, event_name: str, payload: dict[str, Any]) -> int:
        with self._lock:
            handlers = list(self._handlers.get(event_name, []))
        if not handlers:
            logger.debug("[EVENTS] no handlers for %s", event_name)
            return 0

        envelope = {
            **payload,
            "event": event_name,
            "emitted_at": datetime.now(timezone.utc).isoformat(),
        }
        delivered = 0
        for handler in handlers:
            try:
                handler(envelope)
                delivered += 1
            except Exception:
                logger.exception("[EVENTS] handler failed for %s", event_name)
        return delivered


event_bus = EventBus()
