"""Error kinds raised inside the navigation engine."""

from __future__ import annotations


class NavigationError(Exception):
    """Base class for navigation and resolution failures."""


class RouteNotFound(NavigationError):
    """A path could not be mapped to a known route."""

    def __init__(self, path: str):
        super().__init__(f"No route matches {path!r}")
        self.path = path


class EntityNotFound(NavigationError):
    """A valid route did not resolve to a local or external entity."""

    def __init__(self, entity_type: str | None, identifier: str | None):
        super().__init__(f"No {entity_type or 'entity'} found for {identifier!r}")
        self.entity_type = entity_type
        self.identifier = identifier


class ExternalFetchFailed(NavigationError):
    """An external catalog provider errored or timed out."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class StaleResolution(NavigationError):
    """A resolution finished after the user had already navigated elsewhere."""
