"""Query facade composing the connection manager, retry policy and row scanner."""

from __future__ import annotations

from typing import Any, Callable, Coroutine, Iterator, Sequence, TypeVar

import asyncpg

from .connections import ConnectionManager
from .errors import ConnectFailureError, ScanError
from .mapping import MappingCache
from .models import ConnectionProfile
from .retry import with_retry
from .runner import LoopRunner
from .scanner import ScanTarget, list_mapping, record_mapping, scan_all, scan_one

T = TypeVar("T")
R = TypeVar("R")

CLOSED_SIGNATURE = "connection is closed"


def is_connection_closed(exc: BaseException) -> bool:
    """Whether ``exc`` reports that the driver connection has been closed."""

    return CLOSED_SIGNATURE in str(exc)


class RecordCursor:
    """Buffered forward-only cursor over fetched rows.

    The pooled connection has already been released when the cursor is handed
    out, so closing it only drops the buffered rows.
    """

    def __init__(self, columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> None:
        self._columns = tuple(columns)
        self._rows = rows
        self._index = -1
        self._closed = False

    def columns(self) -> tuple[str, ...]:
        return self._columns

    def next(self) -> bool:
        if self._closed:
            return False
        self._index += 1
        if self._index >= len(self._rows):
            self._index = len(self._rows)
            return False
        return True

    def scan(self, targets: Sequence[ScanTarget]) -> None:
        if self._closed:
            raise ScanError("cursor is closed")
        if not 0 <= self._index < len(self._rows):
            raise ScanError("scan called without a current row")
        row = self._rows[self._index]
        if len(targets) != len(self._columns):
            raise ScanError(f"expected {len(self._columns)} destination arguments in scan, not {len(targets)}")
        for position, target in enumerate(targets):
            target.set(row[position])

    def values(self) -> tuple[Any, ...]:
        """Values of the current row."""

        if not 0 <= self._index < len(self._rows):
            raise ScanError("no current row")
        return tuple(self._rows[self._index])

    def close(self) -> None:
        self._closed = True
        self._rows = ()

    @property
    def row_count(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[tuple[Any, ...]]:
        while self.next():
            yield self.values()

    def __enter__(self) -> RecordCursor:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class Database:
    """Runs SQL against one profile and maps rows onto record classes."""

    def __init__(
        self,
        profile: ConnectionProfile,
        *,
        runner: LoopRunner | None = None,
        cache: MappingCache | None = None,
    ) -> None:
        self._manager = ConnectionManager(profile, runner=runner)
        self._cache = cache

    @property
    def profile(self) -> ConnectionProfile:
        return self._manager.profile

    @property
    def manager(self) -> ConnectionManager:
        return self._manager

    def query(self, sql: str, *args: Any) -> RecordCursor:
        """Run ``sql`` with positional ``$n`` parameters and return its rows."""

        columns, rows = self._with_connection(lambda pool: _fetch(pool, sql, args))
        return RecordCursor(columns, rows)

    def query_row(self, destination: object, sql: str, *args: Any) -> None:
        """Scan the first result row into ``destination``.

        Raises ``NoDataError`` when the query returns no rows.
        """

        record_mapping(destination, cache=self._cache)
        with self.query(sql, *args) as cursor:
            scan_one(destination, cursor, cache=self._cache)

    def query_rows(self, destination: list[T], shape: type[T], sql: str, *args: Any) -> None:
        """Append one ``shape`` instance per result row to ``destination``."""

        list_mapping(destination, shape, cache=self._cache)
        with self.query(sql, *args) as cursor:
            scan_all(destination, cursor, shape, cache=self._cache)

    def execute(self, sql: str, *args: Any) -> str:
        """Run a statement and return the driver's status string."""

        return self._with_connection(lambda pool: pool.execute(sql, *args))

    def close(self) -> None:
        self._manager.close()

    def _with_connection(self, call: Callable[[asyncpg.Pool], Coroutine[Any, Any, R]]) -> R:
        manager = self._manager
        if manager.handle is None:
            with_retry(manager.ensure_connected)

        closed: Exception | None = None

        def _attempt() -> R:
            nonlocal closed
            try:
                pool = manager.ensure_connected()
            except ConnectFailureError:
                # A failed rebuild after a dropped connection reports the drop.
                if closed is not None:
                    raise closed
                raise
            try:
                return manager.run(call(pool))
            except Exception as exc:
                if is_connection_closed(exc):
                    closed = exc
                    try:
                        manager.reconnect(stale=pool)
                    except ConnectFailureError:
                        pass
                raise

        return with_retry(_attempt)


async def _fetch(pool: asyncpg.Pool, sql: str, args: Sequence[Any]) -> tuple[tuple[str, ...], list[Any]]:
    async with pool.acquire() as conn:
        statement = await conn.prepare(sql)
        columns = tuple(attribute.name for attribute in statement.get_attributes())
        rows = await statement.fetch(*args)
    return columns, rows


__all__ = ["CLOSED_SIGNATURE", "Database", "RecordCursor", "is_connection_closed"]
