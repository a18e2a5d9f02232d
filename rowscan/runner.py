"""Background event loop that lets synchronous callers drive asyncpg."""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Coroutine, TypeVar

T = TypeVar("T")


class LoopRunner:
    """Owns an asyncio loop running forever on a daemon thread.

    Any thread may submit coroutines with :meth:`run`; the call blocks until
    the coroutine finishes on the loop thread and returns its result.
    """

    def __init__(self, name: str = "rowscan-asyncpg") -> None:
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, name=name, daemon=True)
        self._thread.start()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def run(self, coro: Coroutine[Any, Any, T]) -> T:
        """Run ``coro`` on the loop thread and wait for its result."""

        if threading.current_thread() is self._thread:
            coro.close()
            raise RuntimeError("LoopRunner.run() cannot be called from the loop thread")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    def shutdown(self) -> None:
        """Stop the loop and join its thread."""

        if not self._loop.is_running():
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=1)

    def __del__(self) -> None:  # pragma: no cover - best effort cleanup
        try:
            self.shutdown()
        except Exception:
            pass


_default_runner: LoopRunner | None = None
_default_lock = threading.Lock()


def default_runner() -> LoopRunner:
    """Process-wide runner shared by managers that are not given their own."""

    global _default_runner
    with _default_lock:
        if _default_runner is None:
            _default_runner = LoopRunner()
        return _default_runner


__all__ = ["LoopRunner", "default_runner"]
