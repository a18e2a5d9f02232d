"""Tests for the profile registry."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from rowscan import retry
from rowscan.config import EngineConfig, ProfileConfig
from rowscan.errors import NoRouteError, RegistryNotEmptyError, UnknownProfileError
from rowscan.registry import Registry
from rowscan.runner import LoopRunner


def test_load_from_file(tmp_path: Path, runner: LoopRunner) -> None:
    path = tmp_path / "db.json"
    path.write_text(json.dumps({"main": {"database": "shop", "user": "root"}, "logs": {"database": "logs"}}))
    registry = Registry(runner=runner)

    registry.load(path)

    assert registry.aliases() == ("main", "logs")
    assert len(registry) == 2
    assert registry.using("main").profile.database == "shop"
    assert registry.using("main").profile.name == "main"


def test_load_only_into_empty_registry(runner: LoopRunner) -> None:
    registry = Registry(runner=runner)
    registry.register("main", database="shop")

    with pytest.raises(RegistryNotEmptyError):
        registry.load_config(EngineConfig(profiles={"other": ProfileConfig(database="x")}))

    assert registry.aliases() == ("main",)


def test_from_config_applies_process_settings(runner: LoopRunner) -> None:
    registry = Registry.from_config(
        EngineConfig(max_tries=2, profiles={"main": ProfileConfig(database="shop")}),
        runner=runner,
    )

    assert "main" in registry
    assert retry.MAX_TRIES == 2


def test_register_replaces_alias(runner: LoopRunner) -> None:
    registry = Registry(runner=runner)
    first = registry.register("main", database="shop")

    second = registry.register("main", database="shop_v2", host="db", port=5433, max_open=4)

    assert first is not second
    assert registry.using("main") is second
    assert second.profile.port == 5433
    assert second.profile.max_open == 4


def test_unknown_alias(runner: LoopRunner) -> None:
    registry = Registry(runner=runner)

    with pytest.raises(UnknownProfileError):
        registry.using("missing")
    with pytest.raises(LookupError):
        registry.using("missing")


def test_route_uses_route_function(runner: LoopRunner) -> None:
    registry = Registry(runner=runner)
    registry.register("shard0", database="s0")
    registry.register("shard1", database="s1")
    seen: list[tuple[Any, ...]] = []

    def _by_user(*args: Any) -> str:
        seen.append(args)
        return f"shard{args[0] % 2}"

    registry.set_route(_by_user)

    assert registry.route(3).profile.database == "s1"
    assert registry.route(4).profile.database == "s0"
    assert seen == [(3,), (4,)]


def test_route_without_function(runner: LoopRunner) -> None:
    registry = Registry(runner=runner)

    with pytest.raises(NoRouteError):
        registry.route("anything")


def test_close_without_connections_is_noop(runner: LoopRunner) -> None:
    registry = Registry(runner=runner)
    db = registry.register("main", database="shop")

    registry.close()

    assert db.manager.connected is False
