"""Keyed cache of host decoration handles."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Collection, Iterator, Protocol, Sequence

from symbol_masks.core.masks import MaskStyle

_LOG = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DecorationRange:
    start: int
    end: int
    hover: str | None = None


@dataclass(frozen=True, slots=True)
class DecorationSpec:
    """How one decoration resource looks."""

    text: str | None = None
    hide_source: bool = False
    style: MaskStyle = field(default_factory=MaskStyle)


class DecorationHost(Protocol):
    def create_decoration_type(self, spec: DecorationSpec) -> Any:
        ...

    def set_decorations(self, handle: Any, ranges: Sequence[DecorationRange]) -> None:
        ...

    def dispose_decoration_type(self, handle: Any) -> None:
        ...


class DecorationCache:
    """At most one live host handle per decoration key.

    Handles are created lazily and reused across update passes; recreating
    them every pass makes the host flicker.
    """

    def __init__(self, host: DecorationHost | None = None):
        self._host = host
        self._handles: dict[str, Any] = {}

    @property
    def host(self) -> DecorationHost | None:
        return self._host

    def set_host(self, host: DecorationHost | None) -> None:
        if host is self._host:
            return
        self.clear()
        self._host = host

    def __contains__(self, key: object) -> bool:
        return key in self._handles

    def __len__(self) -> int:
        return len(self._handles)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._handles))

    def keys(self) -> list[str]:
        return list(self._handles)

    def handle_for(self, key: str) -> Any:
        return self._handles.get(key)

    def get_or_create(self, key: str, spec: DecorationSpec) -> Any:
        if self._host is None:
            return None
        handle = self._handles.get(key)
        if handle is None:
            handle = self._host.create_decoration_type(spec)
            self._handles[key] = handle
            _LOG.debug("Created decoration %r", key)
        return handle

    def render(self, key: str, ranges: Sequence[DecorationRange]) -> None:
        handle = self._handles.get(key)
        if handle is None or self._host is None:
            return
        self._host.set_decorations(handle, list(ranges))

    def evict(self, key: str) -> None:
        handle = self._handles.pop(key, None)
        if handle is None or self._host is None:
            return
        self._host.set_decorations(handle, [])
        self._host.dispose_decoration_type(handle)
        _LOG.debug("Evicted decoration %r", key)

    def evict_all_except(self, keep_keys: Collection[str]) -> list[str]:
        evicted = [key for key in self._handles if key not in keep_keys]
        for key in evicted:
            self.evict(key)
        return evicted

    def clear(self) -> None:
        for key in list(self._handles):
            self.evict(key)
        self._handles.clear()

    def forget_all(self) -> None:
        """Drop every handle without calling the host, for a host that is already gone."""
        self._handles.clear()
