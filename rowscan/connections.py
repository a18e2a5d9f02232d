"""Lazy, repairable asyncpg pool for one connection profile."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Coroutine, TypeVar

import asyncpg

from .errors import ConnectFailureError
from .models import ConnectionProfile
from .runner import LoopRunner, default_runner

LOG = logging.getLogger(__name__)

T = TypeVar("T")

CLOSE_TIMEOUT = 5.0


class ConnectionManager:
    """Owns the pool of one profile: Unconnected -> Connected -> Unconnected ...

    The lock guards default application and handle swaps only. Queries read
    :attr:`handle` without it and run concurrently against the current pool.
    """

    def __init__(self, profile: ConnectionProfile, *, runner: LoopRunner | None = None) -> None:
        self._profile = profile
        self._runner = runner or default_runner()
        self._lock = threading.Lock()
        self._handle: asyncpg.Pool | None = None

    @property
    def profile(self) -> ConnectionProfile:
        return self._profile

    @property
    def handle(self) -> asyncpg.Pool | None:
        """The live pool, or ``None`` while unconnected."""

        return self._handle

    @property
    def connected(self) -> bool:
        return self._handle is not None

    def run(self, coro: Coroutine[Any, Any, T]) -> T:
        """Run a driver coroutine on the loop that owns the pool."""

        return self._runner.run(coro)

    def ensure_connected(self) -> asyncpg.Pool:
        """Open the pool if there is none yet and return it.

        Raises:
            ConnectFailureError: the driver could not open the pool.
        """

        handle = self._handle
        if handle is not None:
            return handle
        with self._lock:
            if self._handle is None:
                self._handle = self._open()
            return self._handle

    def reconnect(self, stale: asyncpg.Pool | None = None) -> asyncpg.Pool:
        """Close the current pool (ignoring errors) and open a new one.

        When ``stale`` is given and the current pool is a different object,
        another caller has already replaced it and that pool is returned.
        """

        with self._lock:
            current = self._handle
            if stale is not None and current is not None and current is not stale:
                return current
            self._handle = None
            if current is not None:
                self._discard(current)
            self._handle = self._open()
            return self._handle

    def close(self) -> None:
        """Close the pool, waiting briefly for in-flight queries."""

        with self._lock:
            handle, self._handle = self._handle, None
        if handle is not None:
            self._runner.run(_close_pool(handle))

    def _open(self) -> asyncpg.Pool:
        profile = self._profile
        profile.apply_defaults()
        try:
            return self._runner.run(_create_pool(profile))
        except Exception as exc:
            LOG.warning("connect %s error: %s", profile.database, exc)
            raise ConnectFailureError(f"Failed to connect to profile '{profile.name}': {exc}") from exc

    def _discard(self, handle: asyncpg.Pool) -> None:
        try:
            self._runner.run(_terminate_pool(handle))
        except Exception:
            pass


async def _create_pool(profile: ConnectionProfile) -> asyncpg.Pool:
    return await asyncpg.create_pool(profile.dsn(), **profile.pool_options())


async def _terminate_pool(handle: asyncpg.Pool) -> None:
    handle.terminate()


async def _close_pool(handle: asyncpg.Pool) -> None:
    try:
        await asyncio.wait_for(handle.close(), timeout=CLOSE_TIMEOUT)
    except asyncio.TimeoutError:
        handle.terminate()


__all__ = ["ConnectionManager"]
