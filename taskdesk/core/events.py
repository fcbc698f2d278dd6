import inspect
import logging
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

TASK_SUBMITTED = "task_submitted"

Handler = Callable[..., Any]


class EventBus:
    """In-process pub/sub so independent views can react to store changes."""

    def __init__(self):
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, event: str, handler: Handler) -> Callable[[], None]:
        self._handlers[event].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers[event]:
                self._handlers[event].remove(handler)

        return unsubscribe

    def handler_count(self, event: str) -> int:
        return len(self._handlers[event])

    async def emit(self, event: str, **payload: Any) -> None:
        for handler in list(self._handlers[event]):
            try:
                result = handler(**payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                # listener failures never reach the emitter
                logger.exception("Handler %r failed for event %s", handler, event)
