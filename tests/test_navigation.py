from __future__ import annotations

import pytest

from mediatracker.errors import StaleResolution
from mediatracker.models import LibraryItem
from mediatracker.navigation import NavigationStack, RequestTokens


def _item(item_id: str) -> LibraryItem:
    return LibraryItem(id=item_id, type="movies", name=item_id.title())


def test_navigation_stack_is_lifo() -> None:
    stack = NavigationStack()
    assert not stack
    assert stack.pop() is None

    stack.push(_item("a"), "movies")
    stack.push(_item("b"), "home")

    assert len(stack) == 2
    assert stack.peek().entity.id == "b"
    assert stack.pop().tab == "home"
    assert stack.pop().entity.id == "a"
    assert stack.peek() is None


def test_navigation_stack_drops_oldest_frames_past_max_depth() -> None:
    stack = NavigationStack(max_depth=2)
    for name in ("a", "b", "c"):
        stack.push(_item(name), "movies")

    assert [stack.pop().entity.id for _ in range(len(stack))] == ["c", "b"]


def test_request_tokens_only_latest_is_current() -> None:
    tokens = RequestTokens()
    first = tokens.issue(("detail", "games", "steam_1"))
    second = tokens.issue(("detail", "games", "steam_2"))

    assert second.sequence > first.sequence
    assert not tokens.is_current(first)
    assert tokens.is_current(second)
    tokens.ensure_current(second)
    with pytest.raises(StaleResolution):
        tokens.ensure_current(first)


def test_invalidate_supersedes_pending_requests() -> None:
    tokens = RequestTokens()
    token = tokens.issue("key")

    tokens.invalidate()

    assert tokens.active is None
    assert not tokens.is_current(token)


def test_reissuing_the_same_key_still_supersedes() -> None:
    tokens = RequestTokens()
    first = tokens.issue("same")
    second = tokens.issue("same")

    assert first != second
    assert not tokens.is_current(first)
