"""Title normalisation and fuzzy matching for franchise and collection grouping.

Base-name extraction applies an ordered list of regex rules per title kind.
Order matters: every rule sees the string left behind by the previous ones,
so ``"Attack on Titan: The Final Season Part 2"`` first loses ``Part 2`` and
only then ``The Final Season``.

Candidate scoring:

* ``1000`` when the normalised names are equal;
* ``500`` when one is a whitespace/colon-bounded prefix of the other;
* ``word_match_score * 10`` when the first words match positionally;
* the raw ``word_match_score`` otherwise.

A candidate is accepted only when its first words match positionally or its
word score is at least ``MIN_WORD_SCORE``. This keeps a single shared leading
word ("The Office" / "The Walking Dead") from counting as a match.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Literal, Sequence, TypeVar

from .models import Collection, EntityType, LibraryItem, TransientEntity

TitleKind = Literal["anime", "game", "movie_or_series"]

EXACT_MATCH_SCORE = 1000
PREFIX_MATCH_SCORE = 500
POSITIONAL_MULTIPLIER = 10
MIN_WORD_SCORE = 2

_SEPARATOR = r"\s*[:\-–]?\s*"
_ROMAN_SEQUEL = r"(?:II|III|IV|V|VI|VII|VIII|IX|X)"

_TRAILING_YEAR = (re.compile(r"\s*\(\d{4}\)\s*$"), "")
_NUMBERED_SUBTITLE = (
    re.compile(rf"^(.*?\s(?:\d+|{_ROMAN_SEQUEL}))\s*[:\-–]\s+.+$"),
    r"\1",
)
_TRAILING_ROMAN = (re.compile(rf"\s+{_ROMAN_SEQUEL}\s*$"), "")
_TRAILING_DIGIT = (re.compile(r"\s+\d+\s*$"), "")
_TRAILING_SEPARATOR = (re.compile(r"\s*[:\-–]\s*$"), "")

_ANIME_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    _TRAILING_YEAR,
    (re.compile(rf"{_SEPARATOR}(?:Part|Cour)\s+\d+\s*$", re.IGNORECASE), ""),
    (re.compile(rf"{_SEPARATOR}(?:The\s+)?Final\s+Season\s*$", re.IGNORECASE), ""),
    (
        re.compile(
            rf"{_SEPARATOR}(?:\d+(?:st|nd|rd|th)\s+Season|Season\s+\d+)\s*$",
            re.IGNORECASE,
        ),
        "",
    ),
    (re.compile(r"\s+S\d+\s*$", re.IGNORECASE), ""),
    _TRAILING_ROMAN,
    _TRAILING_DIGIT,
    _TRAILING_SEPARATOR,
)

_GAME_EDITIONS = (
    r"Game\s+of\s+the\s+Year|GOTY|Remastered|Remaster|Definitive|Complete|Deluxe"
    r"|Ultimate|Gold|Enhanced|Anniversary|Director'?s\s+Cut|Special|Legendary"
)

_GAME_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    _TRAILING_YEAR,
    (
        re.compile(
            rf"{_SEPARATOR}(?:{_GAME_EDITIONS})(?:\s+Edition)?\s*$", re.IGNORECASE
        ),
        "",
    ),
    _NUMBERED_SUBTITLE,
    _TRAILING_ROMAN,
    _TRAILING_DIGIT,
    _TRAILING_SEPARATOR,
)

_MOVIE_OR_SERIES_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    _TRAILING_YEAR,
    _NUMBERED_SUBTITLE,
    (
        re.compile(
            rf"{_SEPARATOR}(?:Part|Chapter|Vol\.?|Volume)\s+(?:\d+|One|Two|Three|{_ROMAN_SEQUEL})\s*$",
            re.IGNORECASE,
        ),
        "",
    ),
    (re.compile(rf"{_SEPARATOR}(?:Season|Series)\s+\d+\s*$", re.IGNORECASE), ""),
    _TRAILING_ROMAN,
    _TRAILING_DIGIT,
    _TRAILING_SEPARATOR,
)

_RULES_BY_KIND: dict[str, tuple[tuple[re.Pattern[str], str], ...]] = {
    "anime": _ANIME_RULES,
    "game": _GAME_RULES,
    "movie_or_series": _MOVIE_OR_SERIES_RULES,
}

_FRANCHISE_SUFFIX = re.compile(r"\s+(?:Super|Z|GT|Kai)\s*$")
_MATCH_PUNCTUATION = re.compile("[®™©:'\"]")


def title_kind(entity_type: EntityType) -> TitleKind:
    """Return the base-name rule set used for ``entity_type``."""

    if entity_type == "anime":
        return "anime"
    if entity_type == "games":
        return "game"
    return "movie_or_series"


def extract_base_name(title: str, kind: TitleKind) -> str:
    """Strip season, sequel and edition markers from ``title``."""

    original = (title or "").strip()
    rules = _RULES_BY_KIND.get(kind)
    if rules is None:
        raise ValueError(f"Unknown title kind: {kind!r}")

    current = original
    for pattern, replacement in rules:
        current = pattern.sub(replacement, current).strip()
    return current or original


def extract_franchise_base_name(title: str) -> str:
    """Reduce an anime title to its franchise, e.g. ``Dragon Ball Z`` to ``Dragon Ball``."""

    current = (title or "").strip()
    while True:
        reduced = _FRANCHISE_SUFFIX.sub("", current).strip() or current
        reduced = extract_base_name(reduced, "anime")
        if reduced == current:
            return current
        current = reduced


def normalize_for_matching(text: str) -> str:
    lowered = (text or "").lower()
    return " ".join(_MATCH_PUNCTUATION.sub("", lowered).split())


def title_overlap(a: str, b: str) -> int:
    """Return the length of the common character prefix of ``a`` and ``b``."""

    length = 0
    for left, right in zip(a, b):
        if left != right:
            break
        length += 1
    return length


def _leading_word_matches(a_words: Sequence[str], b_words: Sequence[str]) -> int:
    count = 0
    for left, right in zip(a_words, b_words):
        if left != right:
            break
        count += 1
    return count


def word_match_score(a: str, b: str) -> int:
    """Count positionally matching leading words, else any shared words.

    Positional matches come first so that a true prefix ("dragon ball" in
    "dragon ball z") outranks an unordered overlap of the same size.
    """

    a_words, b_words = a.split(), b.split()
    positional = _leading_word_matches(a_words, b_words)
    if positional:
        return positional
    return len(set(a_words) & set(b_words))


def first_words_match(a: str, b: str) -> bool:
    """Return whether the leading words agree across ``min(2, shorter)`` words."""

    a_words, b_words = a.split(), b.split()
    shortest = min(len(a_words), len(b_words))
    if shortest == 0:
        return False
    return _leading_word_matches(a_words, b_words) >= min(2, shortest)


def _is_bounded_prefix(prefix: str, value: str) -> bool:
    if len(value) <= len(prefix) or not value.startswith(prefix):
        return False
    return value[len(prefix)] in " :"


@dataclass(frozen=True, slots=True)
class NameMatch:
    score: int
    accepted: bool


def match_names(a: str, b: str, *, normalized: bool = False) -> NameMatch:
    """Score how closely two titles match and decide whether to accept it."""

    left = a if normalized else normalize_for_matching(a)
    right = b if normalized else normalize_for_matching(b)
    if not left or not right:
        return NameMatch(score=0, accepted=False)
    if left == right:
        return NameMatch(score=EXACT_MATCH_SCORE, accepted=True)
    if _is_bounded_prefix(left, right) or _is_bounded_prefix(right, left):
        return NameMatch(score=PREFIX_MATCH_SCORE, accepted=True)

    words = word_match_score(left, right)
    if first_words_match(left, right):
        return NameMatch(score=words * POSITIONAL_MULTIPLIER, accepted=True)
    return NameMatch(score=words, accepted=words >= MIN_WORD_SCORE)


def base_name_for(entity: LibraryItem | TransientEntity) -> str:
    """Return the grouping key for ``entity`` based on its type."""

    if entity.type == "anime":
        return extract_franchise_base_name(entity.name)
    return extract_base_name(entity.name, title_kind(entity.type))


T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class ScoredCandidate:
    item: LibraryItem
    score: int


@dataclass(frozen=True, slots=True)
class FranchiseGroup:
    """A set of library entries sharing a franchise base name."""

    base_name: str
    entity_type: EntityType
    entries: tuple[LibraryItem | TransientEntity, ...]


def _chronological(entity: LibraryItem | TransientEntity) -> tuple[int, str]:
    return (entity.year if entity.year is not None else 9999, entity.name.lower())


def rank_candidates(
    query: str,
    candidates: Iterable[T],
    key: Callable[[T], Iterable[str]],
) -> list[tuple[T, int]]:
    """Return accepted candidates ordered by their best score, highest first.

    ``key`` yields every name a candidate may be matched under; the best
    accepted score across those names is kept.
    """

    normalized_query = normalize_for_matching(query)
    ranked: list[tuple[T, int]] = []
    for candidate in candidates:
        best: NameMatch | None = None
        for name in key(candidate):
            result = match_names(normalized_query, normalize_for_matching(name), normalized=True)
            if result.accepted and (best is None or result.score > best.score):
                best = result
        if best is not None:
            ranked.append((candidate, best.score))
    ranked.sort(key=lambda entry: -entry[1])
    return ranked


def group_franchises(
    items: Iterable[LibraryItem],
    entity_type: EntityType,
    *,
    min_size: int = 2,
) -> list[FranchiseGroup]:
    """Cluster items of ``entity_type`` into franchise groups."""

    clusters: list[tuple[str, list[LibraryItem]]] = []
    for item in sorted((i for i in items if i.type == entity_type), key=_chronological):
        base = normalize_for_matching(base_name_for(item))
        best_index: int | None = None
        best_score = -1
        for index, (cluster_base, _) in enumerate(clusters):
            result = match_names(cluster_base, base, normalized=True)
            if result.accepted and result.score > best_score:
                best_index, best_score = index, result.score
        if best_index is None:
            clusters.append((base, [item]))
        else:
            clusters[best_index][1].append(item)

    groups = [
        FranchiseGroup(
            base_name=base_name_for(members[0]),
            entity_type=entity_type,
            entries=tuple(members),
        )
        for _, members in clusters
        if len(members) >= min_size
    ]
    groups.sort(key=lambda group: group.base_name.lower())
    return groups


def find_franchise(
    entity: LibraryItem | TransientEntity,
    candidates: Iterable[LibraryItem],
) -> FranchiseGroup:
    """Return the franchise group ``entity`` belongs to among ``candidates``.

    The entity itself is always part of the group, even when it is transient.
    """

    base = normalize_for_matching(base_name_for(entity))
    entries: list[LibraryItem | TransientEntity] = []
    seen_ids: set[str] = set()
    for candidate in candidates:
        if candidate.type != entity.type or candidate.id in seen_ids:
            continue
        candidate_base = normalize_for_matching(base_name_for(candidate))
        if match_names(base, candidate_base, normalized=True).accepted:
            entries.append(candidate)
            seen_ids.add(candidate.id)

    if isinstance(entity, TransientEntity) or entity.id not in seen_ids:
        entries.append(entity)
    entries.sort(key=_chronological)
    return FranchiseGroup(
        base_name=base_name_for(entity),
        entity_type=entity.type,
        entries=tuple(entries),
    )


def auto_match_collection(
    collection: Collection,
    candidates: Iterable[LibraryItem],
) -> list[ScoredCandidate]:
    """Return items whose titles match the collection name, best first.

    Explicit members are skipped; ``match_types`` restricts the candidate types
    when it is set.
    """

    explicit = set(collection.item_ids)
    eligible = [
        item
        for item in candidates
        if item.id not in explicit
        and (not collection.match_types or item.type in collection.match_types)
    ]
    ranked = rank_candidates(
        collection.name,
        eligible,
        key=lambda item: (item.name, base_name_for(item)),
    )
    return [ScoredCandidate(item=item, score=score) for item, score in ranked]
