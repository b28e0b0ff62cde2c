"""In-process publish/subscribe transport with one delivery thread per topic."""

from __future__ import annotations

import queue
import threading
from typing import Any, Callable

_STOP = object()


class Topic:
    """Named topic; messages are delivered to subscribers in order on a single daemon thread."""

    def __init__(self, name: str):
        self.name = name
        self._subscribers: list[Callable[[Any], None]] = []
        self._lock = threading.RLock()
        self._queue: queue.Queue = queue.Queue()
        self._cond = threading.Condition()
        self._pending = 0
        self._thread: threading.Thread | None = None

    def subscribe(self, callback: Callable[[Any], None]) -> None:
        with self._lock:
            self._subscribers.append(callback)
            if self._thread is None:
                self._thread = threading.Thread(target=self._run, name=f"topic:{self.name}", daemon=True)
                self._thread.start()

    def unsubscribe(self, callback: Callable[[Any], None]) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, message: Any) -> bool:
        with self._lock:
            if self._thread is None or not self._subscribers:
                return False
        with self._cond:
            self._pending += 1
        self._queue.put(message)
        return True

    def flush(self, timeout: float | None = None) -> bool:
        """Block until every published message has been delivered."""
        with self._cond:
            return self._cond.wait_for(lambda: self._pending == 0, timeout=timeout)

    def close(self, timeout: float = 1.0) -> None:
        with self._lock:
            thread = self._thread
            self._thread = None
        if thread is None:
            return
        self._queue.put(_STOP)
        thread.join(timeout=timeout)

    def _run(self) -> None:
        while True:
            message = self._queue.get()
            if message is _STOP:
                return
            with self._lock:
                subscribers = list(self._subscribers)
            try:
                for callback in subscribers:
                    try:
                        callback(message)
                    except Exception as exc:
                        print(f"topic={self.name} subscriber_error={exc!r}", flush=True)
            finally:
                with self._cond:
                    self._pending -= 1
                    if self._pending == 0:
                        self._cond.notify_all()


class Node:
    """Registry of topics shared by publishers and subscribers."""

    def __init__(self):
        self._topics: dict[str, Topic] = {}
        self._lock = threading.RLock()

    def topic(self, name: str) -> Topic:
        with self._lock:
            t = self._topics.get(name)
            if t is None:
                t = Topic(name)
                self._topics[name] = t
            return t

    def subscribe(self, name: str, callback: Callable[[Any], None]) -> Topic:
        t = self.topic(name)
        t.subscribe(callback)
        return t

    def publish(self, name: str, message: Any) -> bool:
        return self.topic(name).publish(message)

    def flush(self, timeout: float | None = None) -> bool:
        with self._lock:
            topics = list(self._topics.values())
        return all(t.flush(timeout=timeout) for t in topics)

    def close(self) -> None:
        with self._lock:
            topics = list(self._topics.values())
            self._topics = {}
        for t in topics:
            t.close()
