"""
Hook registry for relaycode lifecycle events.

External modules register callbacks for named events. The turn pipeline emits
events at key points (turn start/end, tool before/after, pending edit
transitions, compaction); registered hooks receive event data and can
optionally replace it by returning a new dict.

Usage:
    from relaycode import hooks

    def my_hook(data):
        print(data["kind"])
        return data  # return modified data, or None to keep original

    hooks.register("tool_after", my_hook)
"""

from typing import Any, Callable, Dict, List

HookCallback = Callable[[Dict[str, Any]], Any]

_hooks: Dict[str, List[HookCallback]] = {}


def register(event: str, callback: HookCallback) -> None:
    """Register a callback for a named event."""
    _hooks.setdefault(event, []).append(callback)


def emit(event: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Emit event, passing data through each hook. Hooks can mutate data
    by returning a dict; returning None keeps data unchanged."""
    for cb in _hooks.get(event, []):
        result = cb(data)
        if isinstance(result, dict):
            data = result
    return data


def notify(event: str, **data: Any) -> None:
    """Emit a read-only notification; hook return values are ignored."""
    for cb in list(_hooks.get(event, [])):
        cb(dict(data, event=event))


def unregister(event: str, callback: HookCallback) -> bool:
    """Remove one callback. Returns False if it was not registered."""
    callbacks = _hooks.get(event, [])
    if callback not in callbacks:
        return False
    callbacks.remove(callback)
    return True


def clear() -> None:
    """Remove all registered hooks."""
    _hooks.clear()


def registered_events() -> List[str]:
    """Return list of events that have at least one hook registered."""
    return [ev for ev, cbs in _hooks.items() if cbs]
