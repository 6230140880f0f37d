from __future__ import annotations

import logging
from queue import Full, Queue
from threading import Lock
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

# Simple in-memory pub/sub for SSE. Not suitable for multi-process deployments.
_subs: dict[int, List[Queue]] = {}
_lock = Lock()


def subscribe(user_id: int, maxsize: int = 100) -> Queue:
    q: Queue = Queue(maxsize=maxsize)
    with _lock:
        _subs.setdefault(user_id, []).append(q)
    logger.debug("SSE subscriber added for user %s", user_id)
    return q


def unsubscribe(user_id: int, q: Queue) -> None:
    with _lock:
        arr = _subs.get(user_id)
        if not arr:
            return
        try:
            arr.remove(q)
        except ValueError:
            pass
        if not arr:
            _subs.pop(user_id, None)
    logger.debug("SSE subscriber removed for user %s", user_id)


def subscriber_count(user_id: int) -> int:
    with _lock:
        return len(_subs.get(user_id, []))


def publish(user_id: int, event: Dict[str, Any]) -> int:
    """Push an event to every open stream of a user; returns how many got it."""
    with _lock:
        arr = list(_subs.get(user_id, []))
    delivered = 0
    for q in arr:
        try:
            q.put_nowait(event)
            delivered += 1
        except Full:
            # Slow consumer; drop rather than block the publisher
            logger.warning("SSE queue full for user %s, dropping event", user_id)
    return delivered
