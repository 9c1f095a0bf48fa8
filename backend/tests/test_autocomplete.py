import asyncio
import random

from domain.models import Coordinates
from places_fakes import FakePlacesClient, make_place
from services.autocomplete import AutocompleteController, AutocompleteState
from services.places_client import ProviderError


def test_two_keystrokes_within_debounce_window_issue_one_request():
    client = FakePlacesClient()

    async def run():
        controller = AutocompleteController(client, debounce_sec=0.3, min_chars=2)
        controller.on_text_changed("sus")
        await asyncio.sleep(0.1)
        controller.on_text_changed("sush")
        await controller.drain()
        return controller

    controller = asyncio.run(run())
    assert [text for text, _ in client.autocomplete_calls] == ["sush"]
    assert [p.id for p in controller.suggestions] == ["ac-sush"]
    assert controller.state is AutocompleteState.IDLE


def test_state_transitions():
    seen_states = []

    async def run():
        controller = AutocompleteController(FakePlacesClient(), debounce_sec=0.01)

        def handler(text, bias):
            seen_states.append(controller.state)
            return [make_place("x")]

        controller.client.autocomplete_handler = handler
        assert controller.state is AutocompleteState.IDLE
        controller.on_text_changed("bar")
        assert controller.state is AutocompleteState.DEBOUNCING
        await controller.drain()
        return controller

    controller = asyncio.run(run())
    assert seen_states == [AutocompleteState.IN_FLIGHT]
    assert controller.state is AutocompleteState.IDLE


def test_stale_response_is_discarded():
    delays = {"sus": 0.15, "sush": 0.0}
    updates = []

    async def handler(text, bias):
        await asyncio.sleep(delays[text])
        return [make_place(f"ac-{text}")]

    client = FakePlacesClient(autocomplete_handler=handler)

    async def run():
        controller = AutocompleteController(
            client,
            debounce_sec=0.01,
            on_suggestions=lambda places: updates.append([p.id for p in places]),
        )
        controller.on_text_changed("sus")
        await asyncio.sleep(0.05)  # first request now in flight
        controller.on_text_changed("sush")
        await controller.drain()
        return controller

    controller = asyncio.run(run())
    assert [text for text, _ in client.autocomplete_calls] == ["sus", "sush"]
    assert updates == [["ac-sush"]]
    assert controller.applied_sequence == controller.latest_sequence == 2


def test_short_text_clears_immediately_and_cancels_timer():
    client = FakePlacesClient()

    async def run():
        controller = AutocompleteController(client, debounce_sec=0.01, min_chars=2)
        controller.on_text_changed("gin")
        await controller.drain()
        assert controller.suggestions

        controller.on_text_changed("ginx")
        controller.on_text_changed("gi")
        assert controller.suggestions == []
        assert controller.state is AutocompleteState.IDLE
        await controller.drain()
        return controller

    controller = asyncio.run(run())
    assert [text for text, _ in client.autocomplete_calls] == ["gin"]
    assert controller.suggestions == []


def test_clearing_text_drops_in_flight_response():
    async def slow(text, bias):
        await asyncio.sleep(0.05)
        return [make_place("late")]

    client = FakePlacesClient(autocomplete_handler=slow)

    async def run():
        controller = AutocompleteController(client, debounce_sec=0.0)
        controller.on_text_changed("club")
        await asyncio.sleep(0.01)
        controller.on_text_changed("")
        await controller.drain()
        return controller

    controller = asyncio.run(run())
    assert len(client.autocomplete_calls) == 1
    assert controller.suggestions == []


def test_provider_failure_yields_empty_suggestions():
    def failing(text, bias):
        raise ProviderError("unavailable", status_code=503)

    async def run():
        controller = AutocompleteController(FakePlacesClient(autocomplete_handler=failing), debounce_sec=0.0)
        controller.suggestions = [make_place("old")]
        controller.on_text_changed("disco")
        await controller.drain()
        return controller

    controller = asyncio.run(run())
    assert controller.suggestions == []
    assert controller.state is AutocompleteState.IDLE


def test_bias_comes_from_the_shared_origin():
    origin = Coordinates(41.9028, 12.4964)
    client = FakePlacesClient()

    async def run():
        controller = AutocompleteController(client, bias_provider=lambda: origin, debounce_sec=0.0)
        controller.on_text_changed("trastevere")
        await controller.drain()

    asyncio.run(run())
    assert client.autocomplete_calls == [("trastevere", origin)]


def test_applied_sequence_is_monotonic_under_random_latency():
    rng = random.Random(7)
    texts = ["roo", "roof", "rooft", "roofto", "rooftop", "rooftop ", "rooftop b"]
    applied = []

    async def handler(text, bias):
        await asyncio.sleep(rng.uniform(0.0, 0.04))
        return [make_place(f"ac-{text}")]

    async def run():
        controller = AutocompleteController(FakePlacesClient(autocomplete_handler=handler), debounce_sec=0.005)
        controller.on_suggestions = lambda places: applied.append(controller.applied_sequence)
        for text in texts:
            controller.on_text_changed(text)
            await asyncio.sleep(0.01)  # longer than the debounce: every keystroke fires
        await controller.drain()
        return controller

    controller = asyncio.run(run())
    assert applied == sorted(set(applied))
    assert applied[-1] == controller.latest_sequence
    assert [p.id for p in controller.suggestions] == ["ac-rooftop b"]


def test_invalidate_drops_pending_and_in_flight_requests():
    async def slow(text, bias):
        await asyncio.sleep(0.03)
        return [make_place(f"ac-{text}")]

    client = FakePlacesClient(autocomplete_handler=slow)

    async def run():
        controller = AutocompleteController(client, debounce_sec=0.0)
        controller.on_text_changed("mojito")
        await asyncio.sleep(0.01)
        controller.on_text_changed("mojitos")  # still debouncing
        controller.invalidate()
        assert controller.state is AutocompleteState.IDLE
        await controller.drain()
        return controller

    controller = asyncio.run(run())
    assert [text for text, _ in client.autocomplete_calls] == ["mojito"]
    assert controller.suggestions == []
    assert controller.applied_sequence == 0
