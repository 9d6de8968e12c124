"""Typed callback registry for the extension points of the indexing engine."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

LOGGER = logging.getLogger(__name__)

BEFORE_ATTRIBUTES = "before_attributes"
UPDATE_ATTRIBUTES = "update_attributes"
UPDATE_DEPENDENTS = "update_dependents"
CAN_INDEX = "can_index"
UPDATE_INDEXES = "update_indexes"

EVENTS = (BEFORE_ATTRIBUTES, UPDATE_ATTRIBUTES, UPDATE_DEPENDENTS, CAN_INDEX, UPDATE_INDEXES)


class HookRegistry:
    """Ordered callbacks per event.

    Callbacks bound to a record type run for that type and its subtypes,
    before the universal ones. Within each group registration order is kept.

    * ``before_attributes(document)`` observes only.
    * ``update_attributes(document, attributes)`` mutates the attribute dict.
    * ``update_dependents(document, documents)`` mutates the dependent list.
    * ``can_index(document)`` returning ``False`` vetoes indexing.
    * ``update_indexes(document, indexes)`` mutates the applicable indexes.
    """

    def __init__(self) -> None:
        self._callbacks: Dict[str, List[Tuple[Optional[str], Callable[..., Any]]]] = {
            event: [] for event in EVENTS
        }

    def register(
        self, event: str, callback: Callable[..., Any], *, record_type: Optional[str] = None
    ) -> Callable[..., Any]:
        if event not in self._callbacks:
            raise ValueError(f"Unknown hook event: {event}")
        self._callbacks[event].append((record_type, callback))
        return callback

    def callbacks(self, event: str, ancestry: Sequence[str] = ()) -> List[Callable[..., Any]]:
        entries = self._callbacks[event]
        typed = [callback for bound, callback in entries if bound is not None and bound in ancestry]
        universal = [callback for bound, callback in entries if bound is None]
        return typed + universal

    def invoke(self, event: str, ancestry: Sequence[str], *args: Any) -> List[Any]:
        """Run every matching callback and return their results in order."""
        results = []
        for callback in self.callbacks(event, ancestry):
            LOGGER.debug("Running %s hook %r", event, callback)
            results.append(callback(*args))
        return results
