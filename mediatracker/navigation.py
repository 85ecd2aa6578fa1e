"""Drill-down stack and request tokens for overlapping navigations."""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Hashable

from .errors import StaleResolution
from .models import LibraryItem, TabId, TransientEntity


@dataclass(frozen=True, slots=True)
class NavigationStackFrame:
    """A previously displayed entity, restorable without re-resolving it."""

    entity: LibraryItem | TransientEntity
    tab: TabId


class NavigationStack:
    """LIFO of the detail views a user drilled through."""

    def __init__(self, max_depth: int = 50) -> None:
        self._frames: list[NavigationStackFrame] = []
        self._max_depth = max_depth

    def push(self, entity: LibraryItem | TransientEntity, tab: TabId) -> None:
        self._frames.append(NavigationStackFrame(entity=entity, tab=tab))
        if len(self._frames) > self._max_depth:
            del self._frames[0]

    def pop(self) -> NavigationStackFrame | None:
        if not self._frames:
            return None
        return self._frames.pop()

    def peek(self) -> NavigationStackFrame | None:
        return self._frames[-1] if self._frames else None

    def clear(self) -> None:
        self._frames.clear()

    def __len__(self) -> int:
        return len(self._frames)

    def __bool__(self) -> bool:
        return bool(self._frames)


@dataclass(frozen=True, slots=True)
class RequestToken:
    key: Hashable
    sequence: int


class RequestTokens:
    """Issue monotonically increasing tokens; only the latest one is active.

    Cancellation is cooperative: a resolution checks its token before applying
    its result and drops the result when a newer request has been issued.
    """

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._active: RequestToken | None = None

    @property
    def active(self) -> RequestToken | None:
        return self._active

    def issue(self, key: Hashable) -> RequestToken:
        token = RequestToken(key=key, sequence=next(self._counter))
        self._active = token
        return token

    def invalidate(self) -> None:
        """Supersede any pending request without starting a new one."""

        self._active = None

    def is_current(self, token: RequestToken) -> bool:
        return self._active == token

    def ensure_current(self, token: RequestToken) -> None:
        if not self.is_current(token):
            raise StaleResolution(
                f"Request {token.sequence} for {token.key!r} was superseded"
            )
