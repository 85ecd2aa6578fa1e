"""Tests for URL path parsing and building."""

from __future__ import annotations

import pytest

from mediatracker.models import LibraryItem, TransientEntity
from mediatracker.paths import (
    build_path,
    build_root_path,
    build_route_id,
    is_known_route,
    normalize_base_path,
    parse_path,
    parse_route_identifier,
    split_path,
)


@pytest.mark.parametrize(
    ("entity_type", "route_id"),
    [
        ("movies", "tmdb_603"),
        ("tv", "tmdb_1396"),
        ("anime", "mal_16498"),
        ("games", "steam_292030"),
        ("actors", "tmdb_person_287"),
        ("movies", "local-42"),
        ("games", "name with spaces/and slash"),
    ],
)
def test_detail_paths_round_trip(entity_type: str, route_id: str) -> None:
    path = build_path(entity_type, route_id, "/tracker")
    route = parse_path(path)

    assert route.is_detail
    assert route.entity_type == entity_type
    assert route.route_id == route_id


def test_parse_path_extracts_external_ids() -> None:
    route = parse_path("/games/steam_292030")

    assert route.external_id == "292030"
    assert route.tab == "games"
    assert route.is_external


def test_parse_path_honours_search_tab() -> None:
    route = parse_path("/actors/tmdb_person_287?tab=movies", "movies")

    assert route.entity_type == "actors"
    assert route.tab == "movies"


def test_parse_path_ignores_invalid_search_tab() -> None:
    route = parse_path("/anime/mal_1", "bogus")

    assert route.tab == "anime"


def test_local_ids_have_no_external_id() -> None:
    route = parse_path("/movies/3f1c2a")

    assert route.is_detail
    assert route.external_id is None


def test_root_tabs_parse_to_root_views() -> None:
    assert parse_path("/").tab == "home"
    assert parse_path("/tracker/anime").tab == "anime"
    assert parse_path("/tracker/anime").view_kind == "root"


def test_unknown_paths_fall_back_without_raising() -> None:
    assert parse_path("/definitely/not/a/route").tab == "home"
    assert parse_path("/nope", "games").tab == "games"
    assert not is_known_route("/nope")
    assert is_known_route("/movies/tmdb_1")
    assert is_known_route("/")


def test_route_identifier_prefixes_are_type_specific() -> None:
    assert parse_route_identifier("tmdb_person_287", "actors") == "287"
    assert parse_route_identifier("tmdb_person_287", "movies") is None
    assert parse_route_identifier("tmdb_603", "actors") is None
    assert parse_route_identifier("mal_5", "games") is None
    assert parse_route_identifier("tmdb_", "movies") is None
    assert parse_route_identifier(None, "movies") is None


def test_route_identifier_without_type_prefers_longest_prefix() -> None:
    assert parse_route_identifier("tmdb_person_287") == "287"
    assert parse_route_identifier("tmdb_603") == "603"
    assert parse_route_identifier("abc") is None


def test_build_route_id_for_library_and_transient_entities() -> None:
    library = LibraryItem(id="abc", type="movies", name="The Matrix", external_api_id="603")
    transient = TransientEntity(type="actors", name="Brad Pitt", external_id="287")

    assert build_route_id(library) == "abc"
    assert build_route_id(transient) == "tmdb_person_287"


def test_build_path_rejects_invalid_input() -> None:
    with pytest.raises(ValueError):
        build_path("books", "1")  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        build_path("movies", "")


def test_root_paths_respect_base_path() -> None:
    assert build_root_path("home") == "/"
    assert build_root_path("home", "/tracker/") == "/tracker"
    assert build_root_path("games", "tracker") == "/tracker/games"


def test_normalize_base_path_and_split_path() -> None:
    assert normalize_base_path("  /a/b/ ") == "/a/b"
    assert normalize_base_path("/") == ""
    assert normalize_base_path(None) == ""
    assert split_path("/movies/tmdb%5F1?tab=home#top") == ["movies", "tmdb_1"]
