"""
Search-as-you-type controller.

Keystrokes restart a trailing-edge debounce timer; when it elapses a single
autocomplete request is issued, tagged with a sequence number. A response is
applied only if no newer request has been issued since, so the visible
suggestions never go backwards even when responses arrive out of order.
Nothing is aborted on the network: stale responses are simply dropped.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, List, Optional, Set

from domain.models import Coordinates, Place
from services.places_client import PlacesClient, ProviderError
from settings import settings

logger = logging.getLogger(__name__)

SuggestionListener = Callable[[List[Place]], None]
BiasProvider = Callable[[], Optional[Coordinates]]


class AutocompleteState(str, Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    IN_FLIGHT = "in_flight"


class AutocompleteController:
    def __init__(
        self,
        client: PlacesClient,
        bias_provider: Optional[BiasProvider] = None,
        on_suggestions: Optional[SuggestionListener] = None,
        debounce_sec: Optional[float] = None,
        min_chars: Optional[int] = None,
    ):
        self.client = client
        self.bias_provider = bias_provider
        self.on_suggestions = on_suggestions
        self.debounce_sec = (
            debounce_sec if debounce_sec is not None else settings.AUTOCOMPLETE_DEBOUNCE_MS / 1000.0
        )
        self.min_chars = min_chars if min_chars is not None else settings.AUTOCOMPLETE_MIN_CHARS

        self.state = AutocompleteState.IDLE
        self.text = ""
        self.suggestions: List[Place] = []
        self.applied_sequence = 0
        self._sequence = 0
        self._debounce_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def latest_sequence(self) -> int:
        return self._sequence

    def on_text_changed(self, text: str) -> None:
        """Feed one keystroke. Must be called from inside the running event loop."""
        self.text = text
        self._cancel_debounce()

        if len(text.strip()) <= self.min_chars:
            # Invalidate anything still in flight and clear right away.
            self._sequence += 1
            self.state = AutocompleteState.IDLE
            self._set_suggestions([])
            return

        self.state = AutocompleteState.DEBOUNCING
        self._debounce_task = self._spawn(self._debounce_then_fetch(text))

    def invalidate(self) -> None:
        """
        Drop pending and in-flight requests and clear the suggestions.

        Called when the proximity bias changes: responses biased to the old
        origin must never be applied.
        """
        self._cancel_debounce()
        self._sequence += 1
        self.state = AutocompleteState.IDLE
        self._set_suggestions([])

    async def drain(self) -> None:
        """Wait until no timer or request is outstanding."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        self._debounce_task = None
        self.state = AutocompleteState.IDLE

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _cancel_debounce(self) -> None:
        if self._debounce_task is not None:
            self._debounce_task.cancel()
            self._debounce_task = None

    async def _debounce_then_fetch(self, text: str) -> None:
        await asyncio.sleep(self.debounce_sec)
        # Past this point the request is issued and can no longer be cancelled.
        self._debounce_task = None
        self._sequence += 1
        sequence = self._sequence
        self.state = AutocompleteState.IN_FLIGHT

        bias = self.bias_provider() if self.bias_provider else None
        logger.debug("autocomplete #%d text=%r", sequence, text)
        try:
            places = await self.client.autocomplete(text, bias=bias)
        except ProviderError as exc:
            logger.info("autocomplete #%d failed, showing no suggestions: %s", sequence, exc)
            places = []

        if sequence != self._sequence:
            logger.debug("discarding stale autocomplete #%d (latest #%d)", sequence, self._sequence)
            return

        self.applied_sequence = sequence
        if self._debounce_task is None:
            self.state = AutocompleteState.IDLE
        self._set_suggestions(places)

    def _set_suggestions(self, places: List[Place]) -> None:
        self.suggestions = list(places)
        if self.on_suggestions is not None:
            self.on_suggestions(self.suggestions)
