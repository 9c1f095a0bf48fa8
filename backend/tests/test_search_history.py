from services.search_history import MAX_SUGGESTIONS, TRENDING_SEARCHES, SearchHistory


def test_add_moves_to_front_and_dedupes():
    history = SearchHistory()
    history.add("sushi")
    history.add("rooftop")
    history.add("  sushi ")
    history.add("")
    assert history.recent == ["sushi", "rooftop"]


def test_recent_is_capped():
    history = SearchHistory(max_recent=3)
    for text in ["a", "b", "c", "d"]:
        history.add(text)
    assert history.recent == ["d", "c", "b"]


def test_remove_and_clear():
    history = SearchHistory()
    history.add("gin bar")
    history.add("karaoke")
    history.remove("gin bar")
    assert history.recent == ["karaoke"]
    history.clear()
    assert history.recent == []


def test_suggestions_recent_first_then_trending():
    history = SearchHistory()
    history.add("Beer garden")
    suggestions = history.suggestions("bee")
    assert [(s.text, s.kind) for s in suggestions] == [
        ("Beer garden", "recent"),
        ("Craft Beer", "trending"),
    ]


def test_empty_query_offers_everything_up_to_the_cap():
    history = SearchHistory()
    history.add("Karaoke Night")
    suggestions = history.suggestions()
    assert len(suggestions) == MAX_SUGGESTIONS
    assert suggestions[0].kind == "recent"
    # a trending entry already in recents is not repeated
    assert [s.text for s in suggestions].count("Karaoke Night") == 1
    assert len(TRENDING_SEARCHES) == 8
