"""
Fuzzy record search.

Approximate matching over arbitrary records, keyed by dotted field paths.
Scores follow the registry search convention: 0.0 is an exact match,
1.0 is the worst possible match.
"""

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from difflib import SequenceMatcher
from typing import Any, Generic, List, Optional, Sequence, TypeVar

from bitte_mcp.exceptions import InvalidInputError

T = TypeVar("T")

WILDCARD = "*"

DEFAULT_LIMIT = 10
DEFAULT_THRESHOLD = 0.3

# A contiguous substring never scores worse than this
_SUBSTRING_WEIGHT = 0.3
# Floor for non-identical text so only identical text scores 0
_MIN_FUZZY_SCORE = 0.01

_TOKEN_RE = re.compile(r"[a-z0-9]+")


@dataclass
class SearchOptions:
    """Options for a fuzzy search"""
    keys: Sequence[str] = field(default_factory=tuple)
    limit: int = DEFAULT_LIMIT
    threshold: float = DEFAULT_THRESHOLD

    def __post_init__(self):
        if isinstance(self.limit, bool) or not isinstance(self.limit, int) or self.limit <= 0:
            raise InvalidInputError(f"limit must be a positive integer, got {self.limit!r}", field="limit")
        try:
            threshold = float(self.threshold)
        except (TypeError, ValueError):
            raise InvalidInputError(f"threshold must be a number, got {self.threshold!r}", field="threshold")
        if math.isnan(threshold):
            raise InvalidInputError("threshold must not be NaN", field="threshold")
        self.threshold = min(max(threshold, 0.0), 1.0)
        if isinstance(self.keys, str):
            self.keys = (self.keys,)


@dataclass
class SearchResult(Generic[T]):
    """A scored match (lower score is better)"""
    item: T
    score: float = 1.0
    ref_index: int = 0

    def to_dict(self) -> dict:
        item = self.item
        if hasattr(item, "to_dict"):
            item = item.to_dict()
        elif hasattr(item, "model_dump"):
            item = item.model_dump(by_alias=True, exclude_none=True)
        return {
            "item": item,
            "score": self.score,
            "refIndex": self.ref_index
        }


def search(records: Sequence[T], query: str,
           options: Optional[SearchOptions] = None) -> List[SearchResult[T]]:
    """
    Search ``records`` for ``query``.

    The wildcard query ``"*"`` accepts every record in its original order
    with a score of 1.0. Any other query is matched approximately against
    the fields named by ``options.keys``; matches scoring above
    ``options.threshold`` are dropped, the rest are sorted best first and
    truncated to ``options.limit``.

    Raises:
        InvalidInputError: if ``records`` is not a sequence or ``query`` is
            not a string.
    """
    if isinstance(records, (str, bytes, Mapping)) or not isinstance(records, Sequence):
        raise InvalidInputError("The data must be a sequence of records", field="records")
    if not isinstance(query, str):
        raise InvalidInputError("The query must be a string", field="query")

    options = options or SearchOptions()

    if query == WILDCARD:
        return [SearchResult(item=record, score=1.0, ref_index=index)
                for index, record in enumerate(records)]

    needle = _normalize(query)
    if not needle:
        return []

    matches = []
    for index, record in enumerate(records):
        score = _score_record(record, needle, options.keys)
        if score <= options.threshold:
            matches.append(SearchResult(item=record, score=score, ref_index=index))

    matches.sort(key=lambda result: (result.score, result.ref_index))
    return matches[:options.limit]


def _normalize(text: str) -> str:
    return " ".join(text.lower().split())


def _tokens(text: str) -> List[str]:
    return _TOKEN_RE.findall(text)


def _score_record(record: Any, needle: str, keys: Sequence[str]) -> float:
    if keys:
        texts = []
        for key in keys:
            texts.extend(_field_texts(record, key))
    else:
        texts = _as_texts(record)

    best = 1.0
    for text in texts:
        best = min(best, _score_text(needle, _normalize(text)))
        if best == 0.0:
            break
    return best


def _score_text(needle: str, text: str) -> float:
    if not text:
        return 1.0
    if needle == text:
        return 0.0

    if needle in text:
        coverage = len(needle) / len(text)
        return round(max(_SUBSTRING_WEIGHT * (1.0 - coverage), _MIN_FUZZY_SCORE), 6)

    whole = 1.0 - SequenceMatcher(None, needle, text).ratio()

    terms = _tokens(needle)
    words = _tokens(text)
    if terms and words:
        distance = 0.0
        for term in terms:
            if term in words:
                continue
            distance += 1.0 - max(SequenceMatcher(None, term, word).ratio() for word in words)
        whole = min(whole, distance / len(terms))

    return round(max(whole, _MIN_FUZZY_SCORE), 6)


def _field_texts(record: Any, path: str) -> List[str]:
    values = [record]
    for segment in path.split("."):
        next_values = []
        for value in values:
            for candidate in _expand(value):
                child = _lookup(candidate, segment)
                if child is not None:
                    next_values.append(child)
        values = next_values
        if not values:
            return []

    texts = []
    for value in values:
        texts.extend(_as_texts(value))
    return texts


def _expand(value: Any) -> List[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _lookup(value: Any, segment: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(segment)
    return getattr(value, segment, None)


def _as_texts(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, bool):
        return [str(value).lower()]
    if isinstance(value, (int, float)):
        return [str(value)]
    if isinstance(value, (list, tuple)):
        texts = []
        for element in value:
            texts.extend(_as_texts(element))
        return texts
    return []
