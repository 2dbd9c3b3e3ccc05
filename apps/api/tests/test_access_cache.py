from __future__ import annotations

import pytest

from newsdesk.access.cache import AccessCache


def test_loader_runs_once_per_key() -> None:
    cache = AccessCache()
    calls: list[str] = []

    def load(value: str) -> str:
        calls.append(value)
        return value.upper()

    assert cache.get_or_load("access.roles", ("u-1",), lambda: load("a")) == "A"
    assert cache.get_or_load("access.roles", ("u-1",), lambda: load("b")) == "A"
    assert cache.get_or_load("access.roles", ("u-2",), lambda: load("c")) == "C"
    assert cache.get_or_load("access.user_menus", ("u-1",), lambda: load("d")) == "D"

    assert calls == ["a", "c", "d"]
    assert len(cache) == 3


def test_failed_load_is_not_cached() -> None:
    cache = AccessCache()

    def broken() -> list[str]:
        raise RuntimeError("store down")

    with pytest.raises(RuntimeError):
        cache.get_or_load("access.roles", ("u-1",), broken)

    assert ("access.roles", ("u-1",)) not in cache
    assert cache.get_or_load("access.roles", ("u-1",), lambda: ["editor"]) == ["editor"]
