import asyncio

import pytest

from domain.models import Coordinates
from places_fakes import FakePlacesClient, make_place
from services.category_search import (
    PARTY_VENUE_TAGS,
    RESTAURANT_TAGS,
    CategoryAggregator,
    UnknownCategoryError,
    get_category,
    list_categories,
    merge_places,
)
from services.places_client import ProviderError

MILAN = Coordinates(45.4642, 9.1900)


def test_restaurants_issue_one_request_with_restaurant_tags_only():
    client = FakePlacesClient(search_handler=lambda q: [make_place("r1")])
    aggregator = CategoryAggregator(client, limit=50)

    places = asyncio.run(aggregator.search_category("Restaurants", MILAN, 5000))

    assert [p.id for p in places] == ["r1"]
    assert len(client.search_calls) == 1
    query = client.search_calls[0]
    assert query.categories == RESTAURANT_TAGS
    assert not set(query.categories) & {"entertainment.nightclub", "catering.bar", "catering.pub"}
    assert query.text is None
    assert query.origin == MILAN
    assert query.radius_meters == 5000
    assert query.limit == 50


def test_party_venues_is_a_single_request():
    client = FakePlacesClient()
    asyncio.run(CategoryAggregator(client).search_category("party venues", MILAN, 1000))
    assert [q.categories for q in client.search_calls] == [PARTY_VENUE_TAGS]


def test_composite_category_requests_run_concurrently():
    state = {"in_flight": 0, "max_in_flight": 0}

    async def slow_search(query):
        state["in_flight"] += 1
        state["max_in_flight"] = max(state["max_in_flight"], state["in_flight"])
        await asyncio.sleep(0.02)
        state["in_flight"] -= 1
        return [make_place(query.categories[0])]

    client = FakePlacesClient(search_handler=slow_search)
    group = get_category("Music")
    assert group.is_composite

    places = asyncio.run(CategoryAggregator(client).search_category("Music", MILAN, 5000))

    assert state["max_in_flight"] == len(group.tag_groups)
    # concatenated in call-issue order
    assert [p.id for p in places] == [tags[0] for tags in group.tag_groups]


def test_duplicates_keep_first_occurrence_in_issue_order():
    def handler(query):
        if "catering.biergarten" in query.categories:
            return [make_place("shared", name="From first call"), make_place("a")]
        return [make_place("b"), make_place("shared", name="From second call")]

    client = FakePlacesClient(search_handler=handler)
    places = asyncio.run(CategoryAggregator(client).search_category("Beer", MILAN, 5000))

    assert [p.id for p in places] == ["shared", "a", "b"]
    assert places[0].name == "From first call"


def test_one_failed_request_still_returns_the_rest():
    def handler(query):
        if query.categories == ("entertainment.culture",):
            raise ProviderError("boom", status_code=500)
        return [make_place("club-1"), make_place("club-2")]

    client = FakePlacesClient(search_handler=handler)
    places = asyncio.run(CategoryAggregator(client).search_category("Music", MILAN, 5000))

    assert [p.id for p in places] == ["club-1", "club-2"]
    assert len({p.id for p in places}) == len(places)


def test_all_requests_failing_raises_provider_error():
    def handler(query):
        raise ProviderError("down", status_code=503)

    client = FakePlacesClient(search_handler=handler)
    with pytest.raises(ProviderError):
        asyncio.run(CategoryAggregator(client).search_category("Beer", MILAN, 5000))


def test_unknown_category():
    with pytest.raises(UnknownCategoryError):
        get_category("Bowling")


def test_bars_and_pubs_stay_distinct_categories():
    labels = [g.label for g in list_categories()]
    assert "Bars" in labels and "Pubs" in labels
    assert get_category("bars") is not get_category("PUBS")
    assert "catering.pub" in get_category("Bars").tags


def test_merge_places_preserves_provider_order():
    merged = merge_places([[make_place("c"), make_place("a")], [make_place("a"), make_place("b")]])
    assert [p.id for p in merged] == ["c", "a", "b"]
