# dx_core/common/events.py
from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable, Dict, List

Handler = Callable[[Dict[str, Any]], None]

_registry: Dict[str, List[Handler]] = defaultdict(list)

CRITICAL_ESCALATED = "diagnostics.critical_escalated"
ESCALATION_ACKNOWLEDGED = "diagnostics.escalation_acknowledged"


def subscribe(event_name: str):
    """
    Decorator to register an in-process event handler.

        @subscribe(CRITICAL_ESCALATED)
        def page_on_call(payload): ...
    """
    def _decorator(fn: Handler) -> Handler:
        _registry[event_name].append(fn)
        return fn
    return _decorator


def unsubscribe(event_name: str, fn: Handler) -> None:
    handlers = _registry.get(event_name, [])
    if fn in handlers:
        handlers.remove(fn)


def publish(event_name: str, payload: Dict[str, Any]) -> None:
    """
    Publish to in-process subscribers. Payloads are ID-based and JSON-safe.
    """
    for handler in list(_registry.get(event_name, [])):
        handler(payload)
