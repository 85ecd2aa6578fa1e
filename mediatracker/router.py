"""Router that applies planned transitions: history, resolution and views."""

from __future__ import annotations

import logging
from typing import Callable

from .errors import StaleResolution
from .history import HistorySynchronizer
from .models import (
    EntityType,
    LibraryItem,
    NavigationState,
    SearchState,
    TabId,
    TransientEntity,
)
from .navigation import RequestTokens
from .resolver import EntityResolver
from .views import (
    OVERLAYS,
    BackRequested,
    CollectionOpened,
    CollectionView,
    DetailView,
    EntityOpened,
    HistoryPopped,
    InsightsOpened,
    NavigationEvent,
    RelatedEntityOpened,
    RouteLoaded,
    RouterContext,
    SearchOpened,
    SequelsOpened,
    SequelsView,
    TabSelected,
    Transition,
    ViewState,
    ViewStateMachine,
    root_view,
)

logger = logging.getLogger(__name__)

ViewListener = Callable[[ViewState, RouterContext], None]


class Router:
    """Drive navigation for a single client.

    Each transition closes open overlays, writes history before anything is
    awaited, then resolves the target. A resolution is applied only while its
    request token is still the active one, so a slower earlier navigation can
    never overwrite a later one. A target that does not resolve falls back to
    the library of its tab and replaces the broken history entry.
    """

    def __init__(
        self,
        resolver: EntityResolver,
        synchronizer: HistorySynchronizer,
        *,
        machine: ViewStateMachine | None = None,
        context: RouterContext | None = None,
    ) -> None:
        self.resolver = resolver
        self.synchronizer = synchronizer
        self.context = context or RouterContext()
        self._machine = machine or ViewStateMachine()
        self._tokens = RequestTokens()
        self._listeners: list[ViewListener] = []

    @property
    def view(self) -> ViewState:
        return self.context.view

    @property
    def tokens(self) -> RequestTokens:
        return self._tokens

    def subscribe(self, listener: ViewListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def open_overlay(self, name: str) -> None:
        if name not in OVERLAYS:
            raise ValueError(f"Unknown overlay: {name}")
        self.context.open_overlays.add(name)

    def close_overlays(self) -> None:
        self.context.open_overlays.clear()

    # Entry points -----------------------------------------------------------

    async def start(self, path: str | None = None, search_tab: str | None = None) -> ViewState:
        """Restore the view for the current URL, as on a page load."""

        history = self.synchronizer.history
        if path is None:
            path = history.pathname
            search_tab = self.synchronizer.current_search_tab()
        existing = self.synchronizer.current_state()
        return await self.dispatch(
            RouteLoaded(path=path, search_tab=search_tab, existing_state=existing)
        )

    async def switch_tab(self, tab: TabId) -> ViewState:
        return await self.dispatch(TabSelected(tab=tab))

    async def open_entity(
        self,
        entity_type: EntityType,
        route_id: str,
        *,
        item_id: str | None = None,
        entity: LibraryItem | TransientEntity | None = None,
        tab: TabId | None = None,
    ) -> ViewState:
        return await self.dispatch(
            EntityOpened(
                entity_type=entity_type,
                route_id=route_id,
                item_id=item_id,
                entity=entity,
                tab=tab,
            )
        )

    async def open_related(
        self,
        entity_type: EntityType,
        route_id: str,
        *,
        item_id: str | None = None,
        entity: LibraryItem | TransientEntity | None = None,
    ) -> ViewState:
        return await self.dispatch(
            RelatedEntityOpened(
                entity_type=entity_type, route_id=route_id, item_id=item_id, entity=entity
            )
        )

    async def open_sequels(
        self, entity: LibraryItem | TransientEntity | None = None, *, provider: bool = False
    ) -> ViewState:
        entity = entity or self._current_entity()
        return await self.dispatch(
            SequelsOpened(entity=entity, source="provider" if provider else "library")
        )

    async def open_collection(self, collection_id: str) -> ViewState:
        return await self.dispatch(CollectionOpened(collection_id=collection_id))

    async def open_search(
        self,
        query: str,
        *,
        item_type: EntityType | None = None,
        filters: dict[str, str] | None = None,
    ) -> ViewState:
        search_state = SearchState(query=query, item_type=item_type, filters=filters or {})
        self.context.search_state = search_state
        return await self.dispatch(SearchOpened(search_state=search_state))

    async def open_insights(self) -> ViewState:
        return await self.dispatch(InsightsOpened())

    async def go_back(self) -> ViewState:
        return await self.dispatch(BackRequested())

    async def handle_popstate(self, payload: object) -> ViewState:
        """Re-enter the view a ``popstate`` event points at, without writing history."""

        state = NavigationState.from_history(payload)
        self.synchronizer.observe(state)
        return await self.dispatch(
            HistoryPopped(
                payload=state.to_history() if state is not None else None,
                path=self.synchronizer.history.pathname,
                search_tab=self.synchronizer.current_search_tab(),
                fallback_tab=self.synchronizer.last_known_root_tab,
            )
        )

    # Transition machinery ---------------------------------------------------

    async def dispatch(self, event: NavigationEvent) -> ViewState:
        transition = self._machine.plan(self.context, event)
        return await self._apply(transition)

    async def _apply(self, transition: Transition) -> ViewState:
        context = self.context
        previous_view = context.view
        previous_tab = context.tab

        self.close_overlays()
        token = self._tokens.issue(transition.request_key)
        self._write_history(transition)

        state = transition.state
        context.tab = state.tab
        context.current_state = state
        if state.search_state is not None and state.view == "search":
            context.search_state = state.search_state
        if not transition.keeps_back_state:
            context.back_state = transition.back_state
        if transition.clear_stack:
            context.navigation_stack.clear()
        if transition.push_frame and isinstance(previous_view, DetailView):
            context.navigation_stack.push(previous_view.entity, previous_tab)
        if transition.pop_frame:
            context.navigation_stack.pop()

        if not transition.resolve:
            return self._show(transition.view or root_view(state.tab))

        try:
            view = await self._resolve_view(state)
        except Exception:
            logger.exception("Resolving %s view failed", state.view)
            view = None
        try:
            self._tokens.ensure_current(token)
        except StaleResolution as exc:
            logger.debug("Discarding resolution: %s", exc)
            return context.view

        if view is None:
            return self._fall_back(state)
        self._embed_snapshot(state, view)
        return self._show(view)

    def _write_history(self, transition: Transition) -> None:
        mode = transition.history
        if mode == "none":
            return
        if mode == "sync_root":
            self.synchronizer.sync_root(transition.state.tab)
        else:
            self.synchronizer.record(transition.state, replace=mode == "replace")

    async def _resolve_view(self, state: NavigationState) -> ViewState | None:
        if state.view == "collection":
            if not state.collection_id:
                return None
            contents = await self.resolver.resolve_collection(state.collection_id)
            if contents is None:
                return None
            return CollectionView(contents=contents, tab=state.tab)

        entity = await self.resolver.resolve(state)
        if entity is None:
            return None
        if state.view == "detail":
            return DetailView(entity=entity, tab=state.tab)
        if state.view == "malRelated":
            group = await self.resolver.resolve_related(entity)
            return SequelsView(entity=entity, group=group, source="provider", tab=state.tab)
        group = await self.resolver.resolve_franchise(entity)
        return SequelsView(entity=entity, group=group, source="library", tab=state.tab)

    def _fall_back(self, state: NavigationState) -> ViewState:
        logger.info(
            "Could not resolve %s %s; showing the %s root view",
            state.view,
            state.route_id or state.collection_id,
            state.tab,
        )
        self._tokens.invalidate()
        self.synchronizer.sync_root(state.tab, replace=True)
        context = self.context
        context.current_state = NavigationState(view="root", tab=state.tab)
        context.navigation_stack.clear()
        context.back_state = None
        return self._show(root_view(state.tab))

    def _embed_snapshot(self, state: NavigationState, view: ViewState) -> None:
        """Store a freshly fetched transient entity in the current history entry."""

        if not isinstance(view, DetailView) or state.snapshot is not None:
            return
        if not isinstance(view.entity, TransientEntity):
            return
        if not state.same_route(self.synchronizer.current_state()):
            return
        updated = state.model_copy(
            update={"snapshot": view.entity.snapshot(), "external_api_id": view.entity.external_id}
        )
        self.synchronizer.record(updated, replace=True)
        self.context.current_state = updated

    def _show(self, view: ViewState) -> ViewState:
        self.context.view = view
        for listener in list(self._listeners):
            try:
                listener(view, self.context)
            except Exception:  # pragma: no cover - defensive logging branch
                logger.exception("View listener failed")
        return view

    def _current_entity(self) -> LibraryItem | TransientEntity:
        view = self.context.view
        if isinstance(view, (DetailView, SequelsView)):
            return view.entity
        raise ValueError("No entity is currently displayed")
