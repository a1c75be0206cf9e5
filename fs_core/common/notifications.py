# fs_core/common/notifications.py
"""
Outbound notifications (email / SMS / webhook senders).

Notifications are dispatched after the originating write has committed. A sender
failure never rolls back that write; it is logged and surfaced to the caller as a
warning string.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Sender = Callable[[str, Dict[str, Any]], None]

_senders: List[Sender] = []


def register_sender(fn: Sender) -> Sender:
    if fn not in _senders:
        _senders.append(fn)
    return fn


def unregister_sender(fn: Sender) -> None:
    if fn in _senders:
        _senders.remove(fn)


@register_sender
def log_sender(event: str, payload: Dict[str, Any]) -> None:
    logger.info("notification %s %s", event, payload)


def dispatch(event: str, payload: Dict[str, Any]) -> List[str]:
    warnings: List[str] = []
    for sender in list(_senders):
        try:
            sender(event, payload)
        except Exception as exc:
            logger.exception("notification sender %s failed for %s", getattr(sender, "__name__", sender), event)
            warnings.append(f"Notification '{event}' was not delivered: {exc}")
    return warnings
