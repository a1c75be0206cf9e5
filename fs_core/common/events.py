# fs_core/common/events.py
from collections import defaultdict
from typing import Any, Callable, Dict, List

Handler = Callable[[Dict[str, Any]], None]

_registry: Dict[str, List[Handler]] = defaultdict(list)


def subscribe(event_name: str):
    """
    Decorator to register an event handler.
    Usage:
        @subscribe("quote.accepted")
        def handler(payload): ...
    """
    def _decorator(fn: Handler) -> Handler:
        if fn not in _registry[event_name]:
            _registry[event_name].append(fn)
        return fn
    return _decorator


def publish(event_name: str, payload: Dict[str, Any]) -> None:
    """
    Publish an event to in-process subscribers.
    Handlers run synchronously inside the caller's transaction, so a handler
    failure rolls back the publishing write as well.
    Keep payloads ID-based to avoid cross-app imports.
    """
    for handler in list(_registry.get(event_name, [])):
        handler(payload)


def subscribers(event_name: str) -> List[Handler]:
    return list(_registry.get(event_name, []))
