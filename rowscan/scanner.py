"""Generic row scanning into record instances.

Each query binds one target per result column: mapped columns write into the
matching field of a record, the rest are discarded. Targets are bound once per
query and reused for every row.
"""

from __future__ import annotations

import dataclasses
from typing import Any, Protocol, Sequence, TypeVar, runtime_checkable

from pydantic import BaseModel

from .errors import InvalidDestinationError, NoDataError, ScanError
from .mapping import DEFAULT_CACHE, FieldMapping, FieldSpec, MappingCache, is_frozen, is_record_shape

T = TypeVar("T")


class ScanTarget(Protocol):
    """Receives one column value of the current row."""

    def set(self, value: Any) -> None: ...


@runtime_checkable
class RowCursor(Protocol):
    """Forward-only cursor over a result set."""

    def columns(self) -> tuple[str, ...]:
        """Column names of the result set, in order."""

    def next(self) -> bool:
        """Advance to the next row; ``False`` once the rows are exhausted."""

    def scan(self, targets: Sequence[ScanTarget]) -> None:
        """Store the current row's values into ``targets``, one per column."""

    def close(self) -> None:
        """Release the cursor."""


class FieldTarget:
    """Writes a column value into one field of a record."""

    __slots__ = ("_record", "_spec")

    def __init__(self, record: object, spec: FieldSpec) -> None:
        self._record = record
        self._spec = spec

    def set(self, value: Any) -> None:
        spec = self._spec
        try:
            if spec.converter is not None:
                value = spec.converter(value)
            # Models with validate_assignment raise ValidationError (a ValueError) here.
            setattr(self._record, spec.name, value)
        except (TypeError, ValueError, ArithmeticError) as exc:
            raise ScanError(f'column "{spec.column}" into field "{spec.name}": {exc}') from exc


class Discard:
    """Swallows the value of a column that has no matching field."""

    __slots__ = ()

    def set(self, value: Any) -> None:
        return None


DISCARD = Discard()


def bind_targets(record: object, columns: Sequence[str], mapping: FieldMapping) -> list[ScanTarget]:
    """Build one scan target per column for ``record``."""

    targets: list[ScanTarget] = []
    for name in columns:
        spec = mapping.lookup(name)
        targets.append(DISCARD if spec is None else FieldTarget(record, spec))
    return targets


def scan_one(destination: object, cursor: RowCursor, *, cache: MappingCache | None = None) -> None:
    """Scan the first row of ``cursor`` into ``destination``.

    Fields that match a result column are overwritten in place; every other
    field keeps its current value.

    Raises:
        InvalidDestinationError: ``destination`` is not a writable record instance.
            The cursor is left untouched.
        NoDataError: the result set is empty.
        ScanError: a value could not be stored into its field.
    """

    mapping = record_mapping(destination, cache=cache)
    if not cursor.next():
        raise NoDataError()
    targets = bind_targets(destination, cursor.columns(), mapping)
    cursor.scan(targets)


def scan_all(
    destination: list[T],
    cursor: RowCursor,
    shape: type[T],
    *,
    cache: MappingCache | None = None,
) -> None:
    """Append one ``shape`` instance per row of ``cursor`` to ``destination``.

    Rows are scanned into a single buffer record; each appended element is a
    fresh record holding the buffer's column values, so mutable defaults
    such as ``default_factory=list`` are never shared between elements. An
    empty result set leaves ``destination`` empty and is not an error. If a
    row fails to scan, the error propagates and the rows appended before it
    stay in ``destination``.

    Raises:
        InvalidDestinationError: ``destination`` is not a list or ``shape`` is
            not a writable record class. The cursor is left untouched.
        ScanError: a value could not be stored into its field.
    """

    mapping = list_mapping(destination, shape, cache=cache)
    buffer = new_record(shape)
    columns = cursor.columns()
    targets = bind_targets(buffer, columns, mapping)
    bound = tuple(spec.name for spec in map(mapping.lookup, columns) if spec is not None)
    while cursor.next():
        cursor.scan(targets)
        element = new_record(shape)
        for name in bound:
            setattr(element, name, getattr(buffer, name))
        destination.append(element)


def record_mapping(destination: object, *, cache: MappingCache | None = None) -> FieldMapping:
    """Validate a single-row destination and return its mapping."""

    if destination is None or isinstance(destination, type):
        raise InvalidDestinationError("destination must be a record instance")
    return shape_mapping(type(destination), cache=cache)


def list_mapping(destination: object, shape: object, *, cache: MappingCache | None = None) -> FieldMapping:
    """Validate a multi-row destination and its element class."""

    if not isinstance(destination, list):
        raise InvalidDestinationError(
            f"destination must be a list of records, got {type(destination).__name__}"
        )
    return shape_mapping(shape, cache=cache)


def shape_mapping(shape: object, *, cache: MappingCache | None = None) -> FieldMapping:
    """Validate a record class and return its mapping."""

    if not is_record_shape(shape):
        name = shape.__name__ if isinstance(shape, type) else type(shape).__name__
        raise InvalidDestinationError(f"{name} is not a record class")
    if is_frozen(shape):
        raise InvalidDestinationError(f"{shape.__qualname__} is frozen and cannot be scanned into")
    return (DEFAULT_CACHE if cache is None else cache).get(shape)


def new_record(shape: type[T]) -> T:
    """Instantiate ``shape`` with declared defaults, ``None`` for required fields.

    ``__init__`` and validators are bypassed; this is the reusable buffer that
    rows are scanned into.
    """

    if issubclass(shape, BaseModel):
        required = {name: None for name, info in shape.model_fields.items() if info.is_required()}
        return shape.model_construct(**required)
    record = shape.__new__(shape)
    for field in dataclasses.fields(shape):  # type: ignore[arg-type]
        if field.default is not dataclasses.MISSING:
            value = field.default
        elif field.default_factory is not dataclasses.MISSING:
            value = field.default_factory()
        else:
            value = None
        object.__setattr__(record, field.name, value)
    return record


__all__ = [
    "DISCARD",
    "Discard",
    "FieldTarget",
    "RowCursor",
    "ScanTarget",
    "bind_targets",
    "list_mapping",
    "new_record",
    "record_mapping",
    "scan_all",
    "scan_one",
    "shape_mapping",
]
