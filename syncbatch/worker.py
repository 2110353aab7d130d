from collections.abc import Callable
from concurrent.futures import Future
import logging
import queue
import threading
from typing import TypeVar


logger = logging.getLogger(__name__)
T = TypeVar("T")

_STOP = object()


class SerialWorker:
    """A single thread that runs submitted tasks one at a time, first in first out."""

    def __init__(self, name: str = "syncbatch-worker") -> None:
        self._tasks: queue.Queue = queue.Queue()
        self._closed = False
        self._lock = threading.Lock()
        self._thread = threading.Thread(target=self._drain, name=name, daemon=True)
        self._thread.start()

    def submit(self, fn: Callable[[], T]) -> "Future[T]":
        future: Future[T] = Future()
        with self._lock:
            if self._closed:
                raise RuntimeError("worker is closed")
            self._tasks.put((fn, future))
        return future

    def submit_many(self, fns: "list[Callable[[], T]]") -> "list[Future[T]]":
        """Enqueue every task or none of them, with nothing else interleaved."""
        futures: list[Future[T]] = [Future() for _ in fns]
        with self._lock:
            if self._closed:
                raise RuntimeError("worker is closed")
            for fn, future in zip(fns, futures):
                self._tasks.put((fn, future))
        return futures

    def close(self, wait: bool = True) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._tasks.put(_STOP)
        if wait:
            self._thread.join()

    @property
    def closed(self) -> bool:
        return self._closed

    def _drain(self) -> None:
        while True:
            item = self._tasks.get()
            if item is _STOP:
                return
            fn, future = item
            if not future.set_running_or_notify_cancel():
                continue
            try:
                result = fn()
            except Exception as exc:
                logger.exception("worker task failed")
                future.set_exception(exc)
            else:
                future.set_result(result)
