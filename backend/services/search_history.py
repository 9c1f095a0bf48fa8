"""
Recent and trending search suggestions for the search field.

History lives in memory only; it is not persisted across restarts.
"""
from dataclasses import dataclass
from typing import List, Optional

MAX_RECENT = 10
MAX_SUGGESTIONS = 8

TRENDING_SEARCHES = [
    "Live Music",
    "Happy Hour",
    "Rooftop Bar",
    "Comedy Show",
    "Dance Club",
    "Craft Beer",
    "Wine Tasting",
    "Karaoke Night",
]


@dataclass(frozen=True)
class SearchSuggestion:
    text: str
    kind: str  # "recent" or "trending"


class SearchHistory:
    def __init__(self, max_recent: int = MAX_RECENT, trending: Optional[List[str]] = None):
        self.max_recent = max_recent
        self.trending = list(TRENDING_SEARCHES if trending is None else trending)
        self._recent: List[str] = []

    @property
    def recent(self) -> List[str]:
        return list(self._recent)

    def add(self, text: str) -> None:
        """Move `text` to the front, dropping older copies and the overflow."""
        text = text.strip()
        if not text:
            return
        self._recent = [text] + [t for t in self._recent if t != text]
        del self._recent[self.max_recent:]

    def remove(self, text: str) -> None:
        self._recent = [t for t in self._recent if t != text]

    def clear(self) -> None:
        self._recent = []

    def suggestions(self, query: str = "") -> List[SearchSuggestion]:
        """
        Recent searches first, then trending ones.

        With an empty query everything is offered; otherwise only entries
        containing the query (case-insensitive).
        """
        needle = query.strip().lower()
        recent = [t for t in self._recent if needle in t.lower()]
        trending = [t for t in self.trending if needle in t.lower() and t not in recent]
        merged = [SearchSuggestion(t, "recent") for t in recent]
        merged += [SearchSuggestion(t, "trending") for t in trending]
        return merged[:MAX_SUGGESTIONS]
