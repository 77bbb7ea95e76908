from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

# Signals raised after loaded/finished state changes. Delivery beyond this
# process (home-screen widgets, web clients) is up to the subscribers.
LOADED_FILMS_CHANGED = "loaded-films-changed"
REFRESH_DISPLAY_SURFACES = "refresh-display-surfaces"

_handlers: Dict[str, List[Callable]] = {}
_lock = threading.Lock()


def connect(signal: str, handler: Callable) -> None:
    with _lock:
        lst = _handlers.setdefault(signal, [])
        if handler not in lst:
            lst.append(handler)


def disconnect(signal: str, handler: Callable) -> None:
    with _lock:
        lst = _handlers.get(signal) or []
        if handler in lst:
            lst.remove(handler)


def emit(signal: str, **payload) -> int:
    """Call every handler for `signal`; returns how many ran without error.

    A failing handler is logged and skipped; it never undoes the mutation
    that triggered the signal.
    """
    with _lock:
        handlers = list(_handlers.get(signal) or [])
    ok = 0
    for h in handlers:
        try:
            h(signal, **payload)
            ok += 1
        except Exception:
            logger.exception("Notification handler failed for %s", signal)
    return ok


def loaded_films_changed(**payload) -> None:
    emit(LOADED_FILMS_CHANGED, **payload)
    emit(REFRESH_DISPLAY_SURFACES, **payload)
