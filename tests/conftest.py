"""Shared fixtures."""

from __future__ import annotations

from typing import Iterator

import pytest

from rowscan import retry
from rowscan.runner import LoopRunner


@pytest.fixture
def runner() -> Iterator[LoopRunner]:
    loop_runner = LoopRunner(name="rowscan-test-loop")
    try:
        yield loop_runner
    finally:
        loop_runner.shutdown()


@pytest.fixture(autouse=True)
def _restore_max_tries(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(retry, "MAX_TRIES", retry.MAX_TRIES)
