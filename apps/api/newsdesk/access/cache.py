from __future__ import annotations

from collections.abc import Callable, Hashable
from typing import Any, TypeVar

from newsdesk.metrics import observe_access_cache_hit, observe_access_cache_miss


T = TypeVar("T")


class AccessCache:
    """Memoizes access-control lookups for the lifetime of one request.

    Entries are keyed by ``(kind, args)``. There is no expiry and no
    invalidation: a fresh instance is built for every inbound request and
    dropped with it, so nothing is shared between requests.
    """

    def __init__(self) -> None:
        self._entries: dict[tuple[str, tuple[Hashable, ...]], Any] = {}

    def get_or_load(self, kind: str, args: tuple[Hashable, ...], loader: Callable[[], T]) -> T:
        key = (kind, args)
        if key in self._entries:
            observe_access_cache_hit(kind)
            return self._entries[key]

        observe_access_cache_miss(kind)
        value = loader()
        self._entries[key] = value
        return value

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def get_access_cache() -> AccessCache:
    return AccessCache()
