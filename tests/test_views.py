"""Tests for the pure transition planner."""

from __future__ import annotations

import pytest

from mediatracker.models import LibraryItem, NavigationState, SearchState, TransientEntity
from mediatracker.views import (
    BackRequested,
    DetailView,
    EntityOpened,
    HistoryPopped,
    HomeView,
    InsightsOpened,
    LibraryView,
    RelatedEntityOpened,
    RouteLoaded,
    RouterContext,
    SearchOpened,
    SearchView,
    SequelsOpened,
    TabSelected,
    ViewStateMachine,
)

MATRIX = LibraryItem(id="m1", type="movies", name="The Matrix", external_api_id="603")
KEANU = TransientEntity(type="actors", name="Keanu Reeves", external_id="6384")


@pytest.fixture
def machine() -> ViewStateMachine:
    return ViewStateMachine()


def test_tab_selection_syncs_root_and_clears_stack(machine: ViewStateMachine) -> None:
    transition = machine.plan(RouterContext(), TabSelected(tab="games"))

    assert transition.history == "sync_root"
    assert transition.view == LibraryView(tab="games")
    assert transition.clear_stack
    assert not transition.resolve
    assert transition.state.view == "root"


def test_home_tab_selects_home_view(machine: ViewStateMachine) -> None:
    transition = machine.plan(RouterContext(tab="movies"), TabSelected(tab="home"))

    assert transition.view == HomeView()


def test_opening_transient_entity_embeds_snapshot(machine: ViewStateMachine) -> None:
    context = RouterContext(view=LibraryView(tab="actors"), tab="actors")

    transition = machine.plan(
        context, EntityOpened(entity_type="actors", route_id=KEANU.route_id, entity=KEANU)
    )

    assert transition.target == "detail"
    assert transition.resolve
    assert transition.history == "push"
    assert transition.state.snapshot == KEANU.snapshot()
    assert transition.state.external_api_id == "6384"
    assert transition.state.previous_view == "root"
    assert transition.back_state is None


def test_opening_from_search_remembers_the_search(machine: ViewStateMachine) -> None:
    search_state = SearchState(query="matrix")
    current = NavigationState(view="search", tab="movies", search_state=search_state)
    context = RouterContext(
        view=SearchView(search_state=search_state, tab="movies"),
        tab="movies",
        current_state=current,
        search_state=search_state,
    )

    transition = machine.plan(context, EntityOpened(entity_type="movies", route_id="m1", item_id="m1"))

    assert transition.state.previous_view == "search"
    assert transition.state.search_state == search_state
    assert transition.back_state == current


def test_related_entity_pushes_a_stack_frame_from_detail(machine: ViewStateMachine) -> None:
    context = RouterContext(view=DetailView(entity=MATRIX, tab="movies"), tab="movies")

    transition = machine.plan(
        context, RelatedEntityOpened(entity_type="actors", route_id=KEANU.route_id, entity=KEANU)
    )

    assert transition.push_frame
    assert transition.keeps_back_state
    assert transition.state.previous_view == "detail"


def test_back_from_detail_prefers_stack_frame(machine: ViewStateMachine) -> None:
    context = RouterContext(view=DetailView(entity=KEANU, tab="movies"), tab="movies")
    context.navigation_stack.push(MATRIX, "movies")

    transition = machine.plan(context, BackRequested())

    assert transition.view == DetailView(entity=MATRIX, tab="movies")
    assert transition.pop_frame
    assert not transition.resolve
    assert transition.history == "replace"


def test_back_from_detail_on_home_tab_falls_to_entity_library(machine: ViewStateMachine) -> None:
    context = RouterContext(view=DetailView(entity=MATRIX, tab="home"), tab="home")

    transition = machine.plan(context, BackRequested())

    assert transition.view == LibraryView(tab="movies")
    assert transition.history == "sync_root"


def test_back_from_root_view_is_a_no_op(machine: ViewStateMachine) -> None:
    transition = machine.plan(RouterContext(), BackRequested())

    assert transition.history == "none"
    assert transition.view == HomeView()


def test_route_loaded_replaces_malformed_urls(machine: ViewStateMachine) -> None:
    transition = machine.plan(RouterContext(), RouteLoaded(path="/what/ever", search_tab="anime"))

    assert transition.history == "replace"
    assert transition.view == LibraryView(tab="anime")


def test_route_loaded_reuses_matching_history_state(machine: ViewStateMachine) -> None:
    existing = NavigationState(
        view="detail",
        item_type="actors",
        route_id=KEANU.route_id,
        tab="actors",
        snapshot=KEANU.snapshot(),
    )

    transition = machine.plan(
        RouterContext(), RouteLoaded(path="/actors/tmdb_person_6384", existing_state=existing)
    )

    assert transition.state is existing
    assert transition.history == "replace"


@pytest.mark.parametrize(
    ("payload", "target", "resolves"),
    [
        ({"view": "detail", "itemType": "movies", "routeId": "m1", "tab": "movies"}, "detail", True),
        ({"view": "sequels", "itemType": "movies", "routeId": "m1", "tab": "movies"}, "sequels", True),
        ({"view": "malRelated", "itemType": "anime", "routeId": "mal_1", "tab": "anime"}, "sequels", True),
        ({"view": "collection", "collectionId": "c1", "tab": "home"}, "collection", True),
        ({"view": "collection", "tab": "games"}, "library", False),
        ({"view": "search", "tab": "home", "searchState": {"query": "x"}}, "search", False),
        ({"view": "insights", "tab": "tv"}, "insights", False),
        ({"view": "root", "tab": "home"}, "home", False),
    ],
)
def test_popstate_dispatch_never_writes_history(
    machine: ViewStateMachine, payload: dict, target: str, resolves: bool
) -> None:
    transition = machine.plan(RouterContext(), HistoryPopped(payload=payload))

    assert transition.target == target
    assert transition.resolve is resolves
    assert transition.history == "none"


def test_popstate_without_state_uses_fallback_tab(machine: ViewStateMachine) -> None:
    transition = machine.plan(
        RouterContext(), HistoryPopped(payload=None, path="/garbage", fallback_tab="games")
    )

    assert transition.view == LibraryView(tab="games")
    assert transition.history == "none"


def test_popstate_without_state_on_detail_path_resolves_it(machine: ViewStateMachine) -> None:
    transition = machine.plan(
        RouterContext(), HistoryPopped(payload=None, path="/anime/mal_16498", fallback_tab="games")
    )

    assert transition.target == "detail"
    assert transition.state.external_api_id == "16498"


def test_popstate_to_parent_detail_restores_stack_frame(machine: ViewStateMachine) -> None:
    context = RouterContext(view=DetailView(entity=KEANU, tab="movies"), tab="movies")
    context.navigation_stack.push(MATRIX, "movies")

    transition = machine.plan(
        context,
        HistoryPopped(payload={"view": "detail", "itemType": "movies", "routeId": "m1", "tab": "movies"}),
    )

    assert transition.view == DetailView(entity=MATRIX, tab="movies")
    assert transition.pop_frame
    assert transition.history == "none"


def test_overlay_views_are_pushed(machine: ViewStateMachine) -> None:
    context = RouterContext(view=DetailView(entity=MATRIX, tab="movies"), tab="movies")

    sequels = machine.plan(context, SequelsOpened(entity=MATRIX, source="provider"))
    search = machine.plan(context, SearchOpened(search_state=SearchState(query="neo")))
    insights = machine.plan(context, InsightsOpened())

    assert sequels.state.view == "malRelated"
    assert sequels.state.item_id == "m1"
    assert search.view == SearchView(search_state=SearchState(query="neo"), tab="movies")
    assert insights.state.view == "insights"
    assert {sequels.history, search.history, insights.history} == {"push"}


def test_unknown_events_are_rejected(machine: ViewStateMachine) -> None:
    with pytest.raises(TypeError):
        machine.plan(RouterContext(), object())  # type: ignore[arg-type]
