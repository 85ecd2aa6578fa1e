"""Tests for history entries and the push/replace policy."""

from __future__ import annotations

import pytest

from mediatracker.history import HistorySynchronizer, HistoryWrite, InMemoryHistory
from mediatracker.models import NavigationState


def test_in_memory_history_truncates_forward_entries() -> None:
    history = InMemoryHistory()
    history.push_state({"view": "root", "tab": "movies"}, "/movies")
    history.push_state({"view": "root", "tab": "games"}, "/games")

    assert history.back() == {"view": "root", "tab": "movies"}
    history.push_state({"view": "root", "tab": "anime"}, "/anime")

    assert history.length == 3
    assert history.forward() is None
    assert history.pathname == "/anime"
    assert history.can_go_back


def test_in_memory_history_rejects_non_json_state() -> None:
    history = InMemoryHistory()

    with pytest.raises(ValueError):
        history.push_state({"value": float("nan")}, "/")


def test_in_memory_history_exposes_query_string() -> None:
    history = InMemoryHistory("/actors/tmdb_person_287?tab=movies")

    assert history.pathname == "/actors/tmdb_person_287"
    assert history.search == "?tab=movies"
    assert history.state is None


def test_sync_root_is_idempotent() -> None:
    history = InMemoryHistory()
    synchronizer = HistorySynchronizer(history)

    assert synchronizer.sync_root("games") is True
    assert synchronizer.sync_root("games") is False
    assert synchronizer.sync_root("games", replace=True) is False

    assert history.writes == [HistoryWrite(mode="push", url="/games")]
    assert history.length == 2
    assert synchronizer.last_known_root_tab == "games"


def test_sync_root_home_uses_base_path() -> None:
    history = InMemoryHistory("/tracker/movies")
    synchronizer = HistorySynchronizer(history, "/tracker/")

    synchronizer.sync_root("home", replace=True)

    assert history.url == "/tracker"
    assert history.state["view"] == "root"
    assert history.length == 1


def test_record_pushes_new_routes_and_replaces_same_route() -> None:
    history = InMemoryHistory()
    synchronizer = HistorySynchronizer(history)
    detail = NavigationState(view="detail", item_type="games", route_id="steam_292030", tab="games")

    assert synchronizer.record(detail) == "push"
    assert synchronizer.record(detail.model_copy(update={"snapshot": {"name": "x"}})) == "replace"
    assert synchronizer.record(NavigationState(view="root", tab="games"), replace=True) == "replace"

    assert [write.mode for write in history.writes] == ["push", "replace", "replace"]
    assert history.length == 2


def test_detail_urls_carry_the_tab_only_when_it_differs() -> None:
    synchronizer = HistorySynchronizer(InMemoryHistory(), "/tracker")

    same_tab = NavigationState(view="detail", item_type="movies", route_id="tmdb_603", tab="movies")
    other_tab = same_tab.model_copy(update={"tab": "home"})
    overlay = NavigationState(view="sequels", item_type="movies", route_id="tmdb_603", tab="movies")

    assert synchronizer.build_url(same_tab) == "/tracker/movies/tmdb_603"
    assert synchronizer.build_url(other_tab) == "/tracker/movies/tmdb_603?tab=home"
    assert synchronizer.build_url(overlay) == "/tracker/movies"


def test_current_state_and_search_tab() -> None:
    state = NavigationState(view="detail", item_type="actors", route_id="tmdb_person_287", tab="movies")
    history = InMemoryHistory("/actors/tmdb_person_287?tab=movies", state.to_history())
    synchronizer = HistorySynchronizer(history)

    assert synchronizer.current_state() == state
    assert synchronizer.current_search_tab() == "movies"


def test_observe_tracks_tab_of_popped_states() -> None:
    synchronizer = HistorySynchronizer(InMemoryHistory())

    synchronizer.observe(NavigationState(view="root", tab="anime"))
    synchronizer.observe(None)

    assert synchronizer.last_known_root_tab == "anime"
