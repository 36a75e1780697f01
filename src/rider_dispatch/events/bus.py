"""In-process publish/subscribe for dispatch events."""

import logging
import threading
from collections import defaultdict
from collections.abc import Callable

from pydantic import BaseModel

logger = logging.getLogger(__name__)

Handler = Callable[[BaseModel], None]

WILDCARD = "*"


class EventBus:
    """Synchronous fan-out of events to subscribed handlers.

    Handlers run on the publishing thread after the publisher's transaction
    has committed. A failing handler is logged and does not affect the
    publisher or the remaining handlers; the ledger's backfill pass recovers
    any posting lost this way.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, event_type: str, handler: Handler) -> None:
        with self._lock:
            self._handlers[event_type].append(handler)

    def publish(self, event: BaseModel) -> int:
        """Deliver event to its subscribers; returns how many handlers succeeded."""
        event_type = getattr(event, "event_type", WILDCARD)
        with self._lock:
            handlers = list(self._handlers.get(event_type, [])) + list(
                self._handlers.get(WILDCARD, [])
            )

        delivered = 0
        for handler in handlers:
            try:
                handler(event)
                delivered += 1
            except Exception:
                logger.exception("Event handler failed for %s", event_type)
        return delivered
