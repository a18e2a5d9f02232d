"""Registry of named databases with an optional routing hook."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable

from .config import EngineConfig, apply_config, load_config
from .errors import NoRouteError, RegistryNotEmptyError, UnknownProfileError
from .mapping import MappingCache
from .models import ConnectionProfile
from .query import Database
from .runner import LoopRunner

RouteFunc = Callable[..., str]


class Registry:
    """Holds one :class:`Database` per alias.

    Build it explicitly and pass it around; profiles come either from a config
    file (once, into an empty registry) or from :meth:`register`.
    """

    def __init__(self, *, runner: LoopRunner | None = None, cache: MappingCache | None = None) -> None:
        self._runner = runner
        self._cache = cache
        self._lock = threading.Lock()
        self._databases: dict[str, Database] = {}
        self._router: RouteFunc | None = None

    @classmethod
    def from_config(cls, config: EngineConfig, **kwargs: object) -> Registry:
        registry = cls(**kwargs)  # type: ignore[arg-type]
        registry.load_config(config)
        return registry

    def load(self, path: Path | str) -> None:
        """Initialise the registry from a config file."""

        self.load_config(load_config(path))

    def load_config(self, config: EngineConfig) -> None:
        """Initialise the registry from parsed config.

        Raises:
            RegistryNotEmptyError: profiles were already registered.
        """

        with self._lock:
            if self._databases:
                raise RegistryNotEmptyError()
            for alias, profile in config.profiles.items():
                self._databases[alias] = self._database(profile.to_profile(alias))
        apply_config(config)

    def register(
        self,
        alias: str,
        *,
        database: str,
        user: str | None = None,
        password: str | None = None,
        charset: str | None = None,
        host: str | None = None,
        port: int | None = None,
        max_idle: int = 0,
        max_open: int = 0,
        timeout: int = 0,
        read_timeout: int = 0,
    ) -> Database:
        """Register (or replace) a profile by hand and return its database."""

        profile = ConnectionProfile(
            name=alias,
            host=host,
            port=port,
            user=user,
            password=password,
            charset=charset,
            database=database,
            max_idle=max_idle,
            max_open=max_open,
            timeout=timeout,
            read_timeout=read_timeout,
        )
        db = self._database(profile)
        with self._lock:
            self._databases[alias] = db
        return db

    def using(self, alias: str) -> Database:
        with self._lock:
            db = self._databases.get(alias)
        if db is None:
            raise UnknownProfileError(f"Profile '{alias}' not found.")
        return db

    def aliases(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._databases)

    def set_route(self, router: RouteFunc | None) -> None:
        """Install the function :meth:`route` uses to pick an alias."""

        with self._lock:
            self._router = router

    def route(self, *args: object) -> Database:
        """Pick a database by passing ``args`` to the route function."""

        with self._lock:
            router = self._router
        if router is None:
            raise NoRouteError("No route function has been set.")
        return self.using(router(*args))

    def close(self) -> None:
        """Close every open pool."""

        with self._lock:
            databases = tuple(self._databases.values())
        for db in databases:
            db.close()

    def __contains__(self, alias: object) -> bool:
        with self._lock:
            return alias in self._databases

    def __len__(self) -> int:
        with self._lock:
            return len(self._databases)

    def _database(self, profile: ConnectionProfile) -> Database:
        return Database(profile, runner=self._runner, cache=self._cache)


__all__ = ["Registry", "RouteFunc"]
