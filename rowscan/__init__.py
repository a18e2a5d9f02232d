"""Map PostgreSQL result rows onto dataclasses and pydantic models."""

from __future__ import annotations

from .config import EngineConfig, ProfileConfig, apply_config, load_config
from .connections import ConnectionManager
from .errors import (
    ConfigError,
    ConnectFailureError,
    InvalidDestinationError,
    NoDataError,
    NoRouteError,
    RegistryError,
    RegistryNotEmptyError,
    RowscanError,
    ScanError,
    UnknownProfileError,
)
from .mapping import FieldMapping, MappingCache, column, get_mapping
from .models import ConnectionProfile
from .query import Database, RecordCursor, is_connection_closed
from .registry import Registry
from .retry import set_max_tries, with_retry
from .scanner import RowCursor, scan_all, scan_one

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "ConnectFailureError",
    "ConnectionManager",
    "ConnectionProfile",
    "Database",
    "EngineConfig",
    "FieldMapping",
    "InvalidDestinationError",
    "MappingCache",
    "NoDataError",
    "NoRouteError",
    "ProfileConfig",
    "RecordCursor",
    "Registry",
    "RegistryError",
    "RegistryNotEmptyError",
    "RowCursor",
    "RowscanError",
    "ScanError",
    "UnknownProfileError",
    "__version__",
    "apply_config",
    "column",
    "get_mapping",
    "is_connection_closed",
    "load_config",
    "scan_all",
    "scan_one",
    "set_max_tries",
    "with_retry",
]
