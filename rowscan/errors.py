"""Error types raised by the mapping, scanning and connection layers."""

from __future__ import annotations


class RowscanError(RuntimeError):
    """Base class for errors raised by rowscan."""


class InvalidDestinationError(RowscanError, TypeError):
    """Raised when a scan destination is not a writable record (or list of records)."""


class NoDataError(RowscanError):
    """Raised when a single-row scan finds an empty result set."""

    def __init__(self, message: str = "empty return") -> None:
        super().__init__(message)


class ScanError(RowscanError):
    """Raised when a column value cannot be stored into its destination field."""


class ConnectFailureError(RowscanError):
    """Raised when the driver cannot open a pool for a profile."""


class ConfigError(RowscanError):
    """Raised when a configuration file cannot be read or validated."""


class RegistryError(RowscanError):
    """Base class for registry failures."""


class RegistryNotEmptyError(RegistryError):
    """Raised when loading profiles into a registry that already holds some."""

    def __init__(self, message: str = "cannot load profiles, registry has already been initialized") -> None:
        super().__init__(message)


class UnknownProfileError(RegistryError, LookupError):
    """Raised when looking up an alias that was never registered."""


class NoRouteError(RegistryError):
    """Raised when routing without a configured route function."""


__all__ = [
    "ConfigError",
    "ConnectFailureError",
    "InvalidDestinationError",
    "NoDataError",
    "NoRouteError",
    "RegistryError",
    "RegistryNotEmptyError",
    "RowscanError",
    "ScanError",
    "UnknownProfileError",
]
