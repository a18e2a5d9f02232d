"""Tests for record-shape mappings and the mapping cache."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import pytest
from pydantic import BaseModel, Field

from rowscan.errors import InvalidDestinationError
from rowscan.mapping import MappingCache, build_mapping, column, converter_for, lower_first


@dataclass
class Account:
    Id: int = 0
    email: str = ""
    display_name: str = column("displayName", default="")
    password_hash: str = column("-", default="")
    _secret: str = ""
    last_login: Any = None


class Invoice(BaseModel):
    invoice_id: int
    total: Decimal = Decimal("0")
    note: str | None = Field(default=None, json_schema_extra={"orm": "memo"})
    internal: str = Field(default="", json_schema_extra={"orm": "-"})


def test_dataclass_mapping_uses_tags_and_lower_first_names() -> None:
    mapping = build_mapping(Account)

    assert mapping.columns == {"id": 0, "email": 1, "displayName": 2, "last_login": 5}
    assert [spec.name for spec in mapping.fields] == ["Id", "email", "display_name", "last_login"]
    assert "passwordHash" not in mapping
    assert "password_hash" not in mapping
    assert "_secret" not in mapping
    assert mapping.lookup("displayName").name == "display_name"
    assert mapping.lookup("missing") is None


def test_pydantic_mapping_reads_json_schema_extra_tags() -> None:
    mapping = build_mapping(Invoice)

    assert mapping.columns == {"invoice_id": 0, "total": 1, "memo": 2}
    assert len(mapping) == 3


@pytest.mark.parametrize("shape", [int, str, object, list, Account(), None])
def test_non_record_shapes_are_rejected(shape: object) -> None:
    with pytest.raises(InvalidDestinationError):
        build_mapping(shape)  # type: ignore[arg-type]


def test_cache_computes_each_shape_once() -> None:
    cache = MappingCache()

    first = cache.get(Account)
    second = cache.get(Account)
    cache.get(Invoice)

    assert first is second
    assert cache.misses == 2
    assert len(cache) == 2
    assert Account in cache


def test_cached_mapping_is_read_only() -> None:
    mapping = MappingCache().get(Account)

    with pytest.raises(TypeError):
        mapping.by_column["other"] = mapping.fields[0]  # type: ignore[index]


def test_concurrent_first_lookups_share_one_mapping() -> None:
    cache = MappingCache()
    workers = 32
    barrier = threading.Barrier(workers)

    def _lookup(_: int):  # type: ignore[no-untyped-def]
        barrier.wait()
        return cache.get(Account)

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(_lookup, range(workers)))

    assert all(result is results[0] for result in results)
    assert results[0].columns == {"id": 0, "email": 1, "displayName": 2, "last_login": 5}
    assert cache.misses == 1


def test_custom_tag_name() -> None:
    @dataclass
    class Row:
        user_id: int = column("uid", metadata={"db": "user"}, default=0)

    assert build_mapping(Row).columns == {"uid": 0}
    assert build_mapping(Row, tag_name="db").columns == {"user": 0}


def test_lower_first() -> None:
    assert lower_first("UserId") == "userId"
    assert lower_first("user_id") == "user_id"
    assert lower_first("") == ""


def test_converters_follow_annotations() -> None:
    to_int = converter_for(int)
    to_optional_int = converter_for(int | None)
    to_decimal = converter_for(Decimal)
    to_bool = converter_for(bool)

    assert to_int is not None and to_optional_int is not None
    assert to_int("42") == 42
    assert to_int(True) == 1
    assert to_optional_int(None) is None
    assert to_decimal is not None and to_decimal(1.5) == Decimal("1.5")
    assert to_bool is not None and to_bool("t") is True and to_bool(0) is False
    with pytest.raises(TypeError):
        to_int(None)
    with pytest.raises(ValueError):
        to_int(2.5)
    with pytest.raises(ValueError):
        to_int("abc")
    assert converter_for(list[int]) is None
    assert converter_for(Any) is None
