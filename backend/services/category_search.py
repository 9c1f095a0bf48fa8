"""
Category search: maps UI categories onto provider category tags.

Some UI categories are a single provider request; composite ones fan out
into several concurrent requests whose results are merged.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from domain.models import Coordinates, Place, SearchQuery
from services.places_client import PlacesClient, ProviderError
from settings import settings

logger = logging.getLogger(__name__)


class UnknownCategoryError(KeyError):
    """The UI category name is not in the static table."""


@dataclass(frozen=True)
class CategoryGroup:
    label: str
    # One inner tuple per provider request.
    tag_groups: Tuple[Tuple[str, ...], ...]

    @property
    def tags(self) -> Tuple[str, ...]:
        seen: List[str] = []
        for group in self.tag_groups:
            for tag in group:
                if tag not in seen:
                    seen.append(tag)
        return tuple(seen)

    @property
    def is_composite(self) -> bool:
        return len(self.tag_groups) > 1


RESTAURANT_TAGS = ("catering.restaurant", "catering.cafe", "catering.fast_food")
PARTY_VENUE_TAGS = (
    "entertainment.nightclub",
    "catering.bar",
    "catering.pub",
    "entertainment.activity",
    "entertainment.culture",
)

# Bars and Pubs are separate buttons in the app even though their tags overlap.
CATEGORY_GROUPS: Dict[str, CategoryGroup] = {
    group.label.lower(): group
    for group in (
        CategoryGroup("Restaurants", (RESTAURANT_TAGS,)),
        CategoryGroup("Party Venues", (PARTY_VENUE_TAGS,)),
        CategoryGroup("Beer", (("catering.pub", "catering.biergarten"), ("catering.bar",))),
        CategoryGroup("Pubs", (("catering.pub",),)),
        CategoryGroup("Bars", (("catering.bar", "catering.pub"),)),
        CategoryGroup("Disco", (("entertainment.nightclub",),)),
        CategoryGroup("Music", (("entertainment.culture",), ("entertainment.nightclub",))),
    )
}


def get_category(name: str) -> CategoryGroup:
    try:
        return CATEGORY_GROUPS[name.strip().lower()]
    except KeyError:
        raise UnknownCategoryError(name) from None


def list_categories() -> List[CategoryGroup]:
    return list(CATEGORY_GROUPS.values())


def merge_places(result_sets: Iterable[Sequence[Place]]) -> List[Place]:
    """Concatenate result sets in order, keeping the first Place per id."""
    merged: List[Place] = []
    seen = set()
    for places in result_sets:
        for place in places:
            if place.id in seen:
                continue
            seen.add(place.id)
            merged.append(place)
    return merged


class CategoryAggregator:
    def __init__(self, client: PlacesClient, limit: Optional[int] = None):
        self.client = client
        self.limit = limit or settings.PLACES_SEARCH_LIMIT

    async def search_category(
        self,
        name: str,
        origin: Coordinates,
        radius_meters: float,
        text: Optional[str] = None,
    ) -> List[Place]:
        """
        Run every provider request for a UI category concurrently.

        Failed requests are dropped and the remaining results returned; only
        when every request fails is the first ProviderError raised.
        """
        group = get_category(name)
        queries = [
            SearchQuery(
                radius_meters=radius_meters,
                text=text,
                origin=origin,
                categories=tags,
                limit=self.limit,
            )
            for tags in group.tag_groups
        ]
        outcomes = await asyncio.gather(
            *(self.client.search(q) for q in queries), return_exceptions=True
        )

        succeeded: List[List[Place]] = []
        errors: List[ProviderError] = []
        for query, outcome in zip(queries, outcomes):
            if isinstance(outcome, ProviderError):
                logger.warning(
                    "Category %s: request for %s failed: %s",
                    group.label,
                    ",".join(query.categories),
                    outcome,
                )
                errors.append(outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                succeeded.append(outcome)

        if errors and not succeeded:
            raise errors[0]

        merged = merge_places(succeeded)
        logger.debug(
            "Category %s: %d/%d requests ok, %d places",
            group.label,
            len(succeeded),
            len(queries),
            len(merged),
        )
        return merged
