"""View variants and the pure transition planner behind the router.

``ViewStateMachine.plan`` maps the current :class:`RouterContext` and an event
to a :class:`Transition`. It performs no I/O and mutates nothing; the
:class:`~mediatracker.router.Router` applies the plan.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Literal, Mapping, Union

from .matching import FranchiseGroup
from .models import (
    EntityType,
    HistoryView,
    LibraryItem,
    NavigationState,
    SearchState,
    TabId,
    TransientEntity,
)
from .navigation import NavigationStack, NavigationStackFrame
from .paths import parse_path, parse_route_identifier
from .resolver import CollectionContents

ViewKind = Literal["home", "library", "detail", "sequels", "collection", "search", "insights"]
HistoryPlan = Literal["push", "replace", "sync_root", "none"]

OVERLAYS: frozenset[str] = frozenset({"settings", "add", "sort", "filter"})
RESOLVING_VIEWS: frozenset[str] = frozenset({"detail", "sequels", "collection"})
# Views a detail page returns to instead of popping the navigation stack.
BACK_TARGET_VIEWS: frozenset[str] = frozenset({"search", "sequels", "malRelated", "collection"})


@dataclass(frozen=True, slots=True)
class HomeView:
    kind: ClassVar[ViewKind] = "home"
    tab: TabId = "home"


@dataclass(frozen=True, slots=True)
class LibraryView:
    kind: ClassVar[ViewKind] = "library"
    tab: TabId


@dataclass(frozen=True, slots=True)
class DetailView:
    kind: ClassVar[ViewKind] = "detail"
    entity: LibraryItem | TransientEntity
    tab: TabId


@dataclass(frozen=True, slots=True)
class SequelsView:
    kind: ClassVar[ViewKind] = "sequels"
    entity: LibraryItem | TransientEntity
    group: FranchiseGroup
    source: Literal["library", "provider"]
    tab: TabId


@dataclass(frozen=True, slots=True)
class CollectionView:
    kind: ClassVar[ViewKind] = "collection"
    contents: CollectionContents
    tab: TabId


@dataclass(frozen=True, slots=True)
class SearchView:
    kind: ClassVar[ViewKind] = "search"
    search_state: SearchState
    tab: TabId


@dataclass(frozen=True, slots=True)
class InsightsView:
    kind: ClassVar[ViewKind] = "insights"
    tab: TabId


ViewState = Union[
    HomeView, LibraryView, DetailView, SequelsView, CollectionView, SearchView, InsightsView
]


def root_view(tab: TabId) -> HomeView | LibraryView:
    return HomeView() if tab == "home" else LibraryView(tab=tab)


@dataclass
class RouterContext:
    """Everything the router knows about the current navigation."""

    view: ViewState = field(default_factory=HomeView)
    tab: TabId = "home"
    navigation_stack: NavigationStack = field(default_factory=NavigationStack)
    current_state: NavigationState | None = None
    back_state: NavigationState | None = None
    search_state: SearchState | None = None
    open_overlays: set[str] = field(default_factory=set)

    @property
    def view_kind(self) -> ViewKind:
        return self.view.kind


# Events -------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TabSelected:
    tab: TabId


@dataclass(frozen=True, slots=True)
class EntityOpened:
    """A card was clicked in a list, search result, franchise or collection."""

    entity_type: EntityType
    route_id: str
    item_id: str | None = None
    entity: LibraryItem | TransientEntity | None = None
    tab: TabId | None = None


@dataclass(frozen=True, slots=True)
class RelatedEntityOpened:
    """A linked entity was opened from a detail view (cast member, sequel...)."""

    entity_type: EntityType
    route_id: str
    item_id: str | None = None
    entity: LibraryItem | TransientEntity | None = None


@dataclass(frozen=True, slots=True)
class RouteLoaded:
    """Initial load or deep link."""

    path: str
    search_tab: str | None = None
    existing_state: NavigationState | None = None


@dataclass(frozen=True, slots=True)
class BackRequested:
    pass


@dataclass(frozen=True, slots=True)
class HistoryPopped:
    payload: Mapping[str, Any] | None
    path: str = "/"
    search_tab: str | None = None
    fallback_tab: TabId = "home"


@dataclass(frozen=True, slots=True)
class SequelsOpened:
    entity: LibraryItem | TransientEntity
    source: Literal["library", "provider"] = "library"


@dataclass(frozen=True, slots=True)
class CollectionOpened:
    collection_id: str


@dataclass(frozen=True, slots=True)
class SearchOpened:
    search_state: SearchState


@dataclass(frozen=True, slots=True)
class InsightsOpened:
    pass


NavigationEvent = Union[
    TabSelected,
    EntityOpened,
    RelatedEntityOpened,
    RouteLoaded,
    BackRequested,
    HistoryPopped,
    SequelsOpened,
    CollectionOpened,
    SearchOpened,
    InsightsOpened,
]


_KEEP = object()


@dataclass(frozen=True)
class Transition:
    """The router's instructions for one navigation."""

    target: ViewKind
    state: NavigationState
    history: HistoryPlan
    view: ViewState | None = None
    clear_stack: bool = False
    push_frame: bool = False
    pop_frame: bool = False
    back_state: Any = _KEEP

    @property
    def resolve(self) -> bool:
        return self.view is None and self.target in RESOLVING_VIEWS

    @property
    def keeps_back_state(self) -> bool:
        return self.back_state is _KEEP

    @property
    def request_key(self) -> tuple[Any, ...]:
        state = self.state
        return (state.view, state.item_type, state.route_id or state.item_id, state.collection_id)


def _history_view_for(kind: ViewKind) -> HistoryView:
    if kind in ("home", "library"):
        return "root"
    return kind  # type: ignore[return-value]


def _entity_state(
    entity: LibraryItem | TransientEntity,
    *,
    view: HistoryView,
    tab: TabId,
    previous_view: HistoryView | None = None,
    search_state: SearchState | None = None,
) -> NavigationState:
    if isinstance(entity, TransientEntity):
        return NavigationState(
            view=view,
            item_type=entity.type,
            route_id=entity.route_id,
            external_api_id=entity.external_id,
            snapshot=entity.snapshot(),
            tab=tab,
            previous_view=previous_view,
            search_state=search_state,
        )
    return NavigationState(
        view=view,
        item_type=entity.type,
        route_id=entity.route_id,
        item_id=entity.id,
        external_api_id=entity.external_api_id,
        tab=tab,
        previous_view=previous_view,
        search_state=search_state,
    )


def _route_state(
    entity_type: EntityType,
    route_id: str,
    *,
    item_id: str | None,
    entity: LibraryItem | TransientEntity | None,
    tab: TabId,
    previous_view: HistoryView | None,
    search_state: SearchState | None,
) -> NavigationState:
    if entity is not None:
        return _entity_state(
            entity,
            view="detail",
            tab=tab,
            previous_view=previous_view,
            search_state=search_state,
        )
    return NavigationState(
        view="detail",
        item_type=entity_type,
        route_id=route_id,
        item_id=item_id,
        external_api_id=parse_route_identifier(route_id, entity_type),
        tab=tab,
        previous_view=previous_view,
        search_state=search_state,
    )


class ViewStateMachine:
    """Plans transitions between the application's views."""

    def __init__(self) -> None:
        self._planners: dict[type, Callable[[RouterContext, Any], Transition]] = {
            TabSelected: self._plan_tab,
            EntityOpened: self._plan_entity,
            RelatedEntityOpened: self._plan_related,
            RouteLoaded: self._plan_route_loaded,
            BackRequested: self._plan_back,
            HistoryPopped: self._plan_popstate,
            SequelsOpened: self._plan_sequels,
            CollectionOpened: self._plan_collection,
            SearchOpened: self._plan_search,
            InsightsOpened: self._plan_insights,
        }
        # Keyed on NavigationState.view; every branch re-enters without writing history.
        self._popstate_handlers: dict[str, Callable[[RouterContext, NavigationState], Transition]] = {
            "detail": self._pop_detail,
            "sequels": self._pop_sequels,
            "malRelated": self._pop_sequels,
            "collection": self._pop_collection,
            "search": self._pop_search,
            "insights": self._pop_insights,
            "root": self._pop_root,
        }

    def plan(self, context: RouterContext, event: NavigationEvent) -> Transition:
        planner = self._planners.get(type(event))
        if planner is None:
            raise TypeError(f"Unsupported navigation event: {event!r}")
        return planner(context, event)

    # Root views -------------------------------------------------------------

    def _root(self, tab: TabId, history: HistoryPlan) -> Transition:
        view = root_view(tab)
        return Transition(
            target=view.kind,
            state=NavigationState(view="root", tab=tab),
            history=history,
            view=view,
            clear_stack=True,
            back_state=None,
        )

    def _plan_tab(self, context: RouterContext, event: TabSelected) -> Transition:
        return self._root(event.tab, "sync_root")

    # Entity views -----------------------------------------------------------

    def _plan_entity(self, context: RouterContext, event: EntityOpened) -> Transition:
        tab = event.tab or context.tab
        previous = _history_view_for(context.view_kind)
        returns_here = previous in BACK_TARGET_VIEWS
        state = _route_state(
            event.entity_type,
            event.route_id,
            item_id=event.item_id,
            entity=event.entity,
            tab=tab,
            previous_view=previous,
            search_state=context.search_state if previous == "search" else None,
        )
        return Transition(
            target="detail",
            state=state,
            history="push",
            clear_stack=context.view_kind != "detail",
            back_state=context.current_state if returns_here else None,
        )

    def _plan_related(self, context: RouterContext, event: RelatedEntityOpened) -> Transition:
        state = _route_state(
            event.entity_type,
            event.route_id,
            item_id=event.item_id,
            entity=event.entity,
            tab=context.tab,
            previous_view="detail",
            search_state=None,
        )
        return Transition(
            target="detail",
            state=state,
            history="push",
            push_frame=isinstance(context.view, DetailView),
        )

    def _plan_route_loaded(self, context: RouterContext, event: RouteLoaded) -> Transition:
        route = parse_path(event.path, event.search_tab)
        if not route.is_detail:
            return self._root(route.tab, "replace")

        existing = event.existing_state
        if (
            existing is not None
            and existing.view == "detail"
            and existing.item_type == route.entity_type
            and existing.route_id == route.route_id
        ):
            state = existing
        else:
            state = NavigationState(
                view="detail",
                item_type=route.entity_type,
                route_id=route.route_id,
                external_api_id=route.external_id,
                tab=route.tab,
            )
        return Transition(
            target="detail",
            state=state,
            history="replace",
            clear_stack=True,
            back_state=None,
        )

    def _plan_sequels(self, context: RouterContext, event: SequelsOpened) -> Transition:
        view: HistoryView = "malRelated" if event.source == "provider" else "sequels"
        return Transition(
            target="sequels",
            state=_entity_state(
                event.entity,
                view=view,
                tab=context.tab,
                previous_view=_history_view_for(context.view_kind),
            ),
            history="push",
        )

    def _plan_collection(self, context: RouterContext, event: CollectionOpened) -> Transition:
        return Transition(
            target="collection",
            state=NavigationState(
                view="collection",
                collection_id=event.collection_id,
                tab=context.tab,
                previous_view=_history_view_for(context.view_kind),
            ),
            history="push",
            clear_stack=True,
            back_state=None,
        )

    def _plan_search(self, context: RouterContext, event: SearchOpened) -> Transition:
        return Transition(
            target="search",
            state=NavigationState(
                view="search",
                tab=context.tab,
                search_state=event.search_state,
                previous_view=_history_view_for(context.view_kind),
            ),
            history="push",
            view=SearchView(search_state=event.search_state, tab=context.tab),
            clear_stack=True,
            back_state=None,
        )

    def _plan_insights(self, context: RouterContext, event: InsightsOpened) -> Transition:
        return Transition(
            target="insights",
            state=NavigationState(
                view="insights",
                tab=context.tab,
                previous_view=_history_view_for(context.view_kind),
            ),
            history="push",
            view=InsightsView(tab=context.tab),
            clear_stack=True,
            back_state=None,
        )

    # Back navigation --------------------------------------------------------

    def _plan_back(self, context: RouterContext, event: BackRequested) -> Transition:
        view = context.view
        if isinstance(view, DetailView):
            # The view this detail was opened from wins over the drill-down stack.
            current = context.current_state
            returning = self._return_to(context.back_state)
            if returning is not None and current is not None and current.previous_view in BACK_TARGET_VIEWS:
                return returning

            frame = context.navigation_stack.peek()
            if frame is not None:
                return self._restore_frame(frame, history="replace")
            if returning is not None:
                return returning

            tab = context.tab if context.tab != "home" else view.entity.type
            return self._root(tab, "sync_root")

        if view.kind in ("sequels", "collection", "search", "insights"):
            return self._root(context.tab, "sync_root")

        return Transition(
            target=view.kind,
            state=context.current_state or NavigationState(view="root", tab=context.tab),
            history="none",
            view=view,
        )

    def _return_to(self, back: NavigationState | None) -> Transition | None:
        if back is None or back.view not in BACK_TARGET_VIEWS:
            return None
        if back.view == "search":
            if back.search_state is None:
                return None
            return Transition(
                target="search",
                state=back,
                history="push",
                view=SearchView(search_state=back.search_state, tab=back.tab),
                clear_stack=True,
                back_state=None,
            )
        return Transition(
            target="collection" if back.view == "collection" else "sequels",
            state=back,
            history="push",
            clear_stack=True,
            back_state=None,
        )

    def _restore_frame(self, frame: NavigationStackFrame, *, history: HistoryPlan) -> Transition:
        return Transition(
            target="detail",
            state=_entity_state(frame.entity, view="detail", tab=frame.tab, previous_view="detail"),
            history=history,
            view=DetailView(entity=frame.entity, tab=frame.tab),
            pop_frame=True,
        )

    # Popstate ---------------------------------------------------------------

    def _plan_popstate(self, context: RouterContext, event: HistoryPopped) -> Transition:
        state = NavigationState.from_history(event.payload)
        if state is None:
            route = parse_path(event.path, event.search_tab)
            if route.is_detail:
                state = NavigationState(
                    view="detail",
                    item_type=route.entity_type,
                    route_id=route.route_id,
                    external_api_id=route.external_id,
                    tab=route.tab,
                )
            else:
                state = NavigationState(view="root", tab=event.fallback_tab)

        handler = self._popstate_handlers.get(state.view, self._pop_root)
        return handler(context, state)

    def _pop_detail(self, context: RouterContext, state: NavigationState) -> Transition:
        frame = context.navigation_stack.peek()
        if (
            frame is not None
            and frame.entity.type == state.item_type
            and frame.entity.route_id == state.route_id
        ):
            return self._restore_frame(frame, history="none")
        return Transition(target="detail", state=state, history="none")

    def _pop_sequels(self, context: RouterContext, state: NavigationState) -> Transition:
        return Transition(target="sequels", state=state, history="none", clear_stack=True)

    def _pop_collection(self, context: RouterContext, state: NavigationState) -> Transition:
        if not state.collection_id:
            return self._pop_root(context, state)
        return Transition(target="collection", state=state, history="none", clear_stack=True)

    def _pop_search(self, context: RouterContext, state: NavigationState) -> Transition:
        search_state = state.search_state or SearchState()
        return Transition(
            target="search",
            state=state,
            history="none",
            view=SearchView(search_state=search_state, tab=state.tab),
            clear_stack=True,
            back_state=None,
        )

    def _pop_insights(self, context: RouterContext, state: NavigationState) -> Transition:
        return Transition(
            target="insights",
            state=state,
            history="none",
            view=InsightsView(tab=state.tab),
            clear_stack=True,
            back_state=None,
        )

    def _pop_root(self, context: RouterContext, state: NavigationState) -> Transition:
        return self._root(state.tab, "none")
