"""Browser history abstraction and the push/replace policy around it."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Literal, Mapping, Protocol
from urllib.parse import parse_qs, urlencode, urlsplit

from .models import NavigationState, TabId, is_tab
from .paths import build_path, build_root_path, normalize_base_path

logger = logging.getLogger(__name__)

HistoryMode = Literal["push", "replace"]


class BrowserHistory(Protocol):
    """The subset of the browser history API the synchronizer relies on."""

    @property
    def state(self) -> dict[str, Any] | None: ...

    @property
    def pathname(self) -> str: ...

    @property
    def search(self) -> str: ...

    @property
    def length(self) -> int: ...

    def push_state(self, state: dict[str, Any], url: str) -> None: ...

    def replace_state(self, state: dict[str, Any], url: str) -> None: ...


@dataclass(frozen=True, slots=True)
class HistoryWrite:
    mode: HistoryMode
    url: str


class InMemoryHistory:
    """History stack with browser semantics, for servers, tests and tooling.

    States are stored as JSON text, so anything that is not JSON-serialisable
    fails at write time just like ``history.pushState`` would.
    """

    def __init__(self, initial_url: str = "/", initial_state: Mapping[str, Any] | None = None):
        self._entries: list[tuple[str | None, str]] = [
            (self._encode(initial_state), initial_url)
        ]
        self._index = 0
        self.writes: list[HistoryWrite] = []

    @staticmethod
    def _encode(state: Mapping[str, Any] | None) -> str | None:
        if state is None:
            return None
        return json.dumps(state, allow_nan=False)

    @property
    def state(self) -> dict[str, Any] | None:
        encoded, _ = self._entries[self._index]
        return json.loads(encoded) if encoded is not None else None

    @property
    def url(self) -> str:
        return self._entries[self._index][1]

    @property
    def pathname(self) -> str:
        return urlsplit(self.url).path or "/"

    @property
    def search(self) -> str:
        query = urlsplit(self.url).query
        return f"?{query}" if query else ""

    @property
    def length(self) -> int:
        return len(self._entries)

    @property
    def index(self) -> int:
        return self._index

    def push_state(self, state: dict[str, Any], url: str) -> None:
        encoded = self._encode(state)
        del self._entries[self._index + 1:]
        self._entries.append((encoded, url))
        self._index += 1
        self.writes.append(HistoryWrite(mode="push", url=url))

    def replace_state(self, state: dict[str, Any], url: str) -> None:
        self._entries[self._index] = (self._encode(state), url)
        self.writes.append(HistoryWrite(mode="replace", url=url))

    def go(self, delta: int) -> dict[str, Any] | None:
        """Move the cursor and return the state a ``popstate`` event would carry.

        Returns ``None`` without moving when the target is out of range.
        """

        target = self._index + delta
        if delta == 0 or not 0 <= target < len(self._entries):
            return None
        self._index = target
        return self.state

    def back(self) -> dict[str, Any] | None:
        return self.go(-1)

    def forward(self) -> dict[str, Any] | None:
        return self.go(1)

    @property
    def can_go_back(self) -> bool:
        return self._index > 0


class HistorySynchronizer:
    """Decide between pushing and replacing history entries and build their URLs.

    ``last_known_root_tab`` is updated on every write and every observed
    ``popstate``; it is the fallback tab when history state is missing.
    """

    def __init__(self, history: BrowserHistory, base_path: str = ""):
        self.history = history
        self.base_path = normalize_base_path(base_path)
        self.last_known_root_tab: TabId = "home"

    def build_url(self, state: NavigationState) -> str:
        if state.view == "detail" and state.item_type and state.route_id:
            path = build_path(state.item_type, state.route_id, self.base_path)
            if state.tab != state.item_type:
                path = f"{path}?{urlencode({'tab': state.tab})}"
            return path
        return build_root_path(state.tab, self.base_path)

    def current_state(self) -> NavigationState | None:
        return NavigationState.from_history(self.history.state)

    def current_search_tab(self) -> str | None:
        values = parse_qs(self.history.search.lstrip("?")).get("tab")
        return values[0] if values else None

    def sync_root(self, tab: TabId, *, replace: bool = False) -> bool:
        """Make the current entry the root view of ``tab``.

        Idempotent: returns ``False`` without writing when the current entry
        already is that root view at that path.
        """

        target = NavigationState(view="root", tab=tab)
        url = self.build_url(target)
        current = self.history.state
        if (
            isinstance(current, Mapping)
            and current.get("view") == "root"
            and current.get("tab") == tab
            and self.history.pathname == url
        ):
            self._remember(tab)
            return False
        self._write(target, url, "replace" if replace else "push")
        return True

    def record(self, state: NavigationState, *, replace: bool = False) -> HistoryMode:
        """Write ``state``; an entry for the same route is replaced, not duplicated."""

        mode: HistoryMode = "replace" if replace or state.same_route(self.current_state()) else "push"
        self._write(state, self.build_url(state), mode)
        return mode

    def observe(self, state: NavigationState | None) -> None:
        """Track the tab of a state the browser moved to on its own."""

        if state is not None:
            self._remember(state.tab)

    def _write(self, state: NavigationState, url: str, mode: HistoryMode) -> None:
        payload = state.to_history()
        if mode == "push":
            self.history.push_state(payload, url)
        else:
            self.history.replace_state(payload, url)
        logger.debug("History %s %s (%s)", mode, url, state.view)
        self._remember(state.tab)

    def _remember(self, tab: object) -> None:
        if is_tab(tab):
            self.last_known_root_tab = tab  # type: ignore[assignment]
