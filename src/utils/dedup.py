"""
In-flight request de-duplication.

When several threads ask for the same key at once (e.g. the same
category page), only the first one calls the providers; the rest wait
on its Future and get the same result or the same exception.
"""
from concurrent.futures import Future
from threading import Lock
from typing import Any, Callable, Dict

from loguru import logger


class RequestDeduplicator:

    def __init__(self):
        self._pending: Dict[str, Future] = {}
        self._lock = Lock()

    def run(self, key: str, fn: Callable[[], Any]) -> Any:
        """Call fn() unless a call for key is already running; share its outcome."""
        with self._lock:
            future = self._pending.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._pending[key] = future

        if not owner:
            logger.debug(f"Deduplicating request: {key}")
            return future.result()

        try:
            result = fn()
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._lock:
                self._pending.pop(key, None)

    def has(self, key: str) -> bool:
        with self._lock:
            return key in self._pending

    def count(self) -> int:
        with self._lock:
            return len(self._pending)

    def clear(self) -> None:
        with self._lock:
            self._pending.clear()
