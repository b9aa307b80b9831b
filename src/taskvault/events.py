"""
Single-event pub/sub with async handlers.

Handlers run one after another in registration order. A handler that raises
is logged and recorded; the remaining handlers still run.
"""

import logging
from typing import Awaitable, Callable, Generic, List, Optional, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")
EventHandler = Callable[[T], Awaitable[None]]


class UpdateEvent(Generic[T]):
    def __init__(self, name: str = "update", handler: Optional[EventHandler] = None) -> None:
        self._name = name
        self._handlers: List[EventHandler] = []
        if handler is not None:
            self.listen(handler)

    def listen(self, handler: EventHandler) -> Callable[[], None]:
        """Register ``handler``; the returned callable unsubscribes it."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    @property
    def handler_count(self) -> int:
        return len(self._handlers)

    async def fire(self, payload: T) -> List[Exception]:
        """Run every handler with ``payload``. Returns the errors raised, if any."""
        errors: List[Exception] = []
        # Copy so a handler may unsubscribe itself while firing
        for index, handler in enumerate(list(self._handlers)):
            try:
                await handler(payload)
            except Exception as e:
                log.exception("%s handler #%d failed", self._name, index)
                errors.append(e)
        return errors
