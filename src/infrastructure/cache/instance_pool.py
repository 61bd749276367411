"""
Keyed pool of detached map controllers.

A controller stored here keeps its engine map and interception layer alive so
a later mount with the same key can reattach it to a new container instead of
constructing a new map.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from collections.abc import Hashable, Iterator
from typing import Any

from src.domain.interfaces import Poolable
from src.domain.lifecycle import (
    CONTROLLER_TRANSITIONS,
    ControllerState,
    LifecycleError,
    check_transition,
)

logger = logging.getLogger(__name__)


class InstancePool:
    """
    Detached controllers keyed by mount identity.

    At most one controller is held per key. With ``max_size`` set, storing
    beyond capacity evicts (and destroys) the least recently stored entry.
    """

    def __init__(self, *, max_size: int | None = None):
        if max_size is not None and max_size < 1:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.max_size = max_size
        self._entries: OrderedDict[Hashable, Poolable] = OrderedDict()

        logger.debug("[InstancePool] Initialized (max_size=%s)", max_size or "unbounded")

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def store(self, key: Hashable, controller: Poolable) -> Hashable:
        """
        Store a detaching controller under ``key``.

        A controller already held under the same key is destroyed.

        Returns
        -------
        Hashable
            The key the controller was stored under

        Raises
        ------
        LifecycleError
            If the controller was destroyed
        InvalidStateTransitionError
            If the controller was not recycled first. The pool is left unchanged.
        """
        if controller.state is ControllerState.DESTROYED:
            raise LifecycleError("Cannot pool a destroyed controller", controller.state)
        check_transition(CONTROLLER_TRANSITIONS, controller.state, ControllerState.POOLED)

        previous = self._entries.pop(key, None)
        if previous is not None and previous is not controller:
            logger.debug("[InstancePool] Replacing pooled map for key %r", key)
            previous.destroy()

        controller.mark_pooled()
        self._entries[key] = controller
        self._evict_over_capacity()

        logger.debug("[InstancePool] Stored map for key %r (%d pooled)", key, len(self._entries))
        return key

    def reuse(self, key: Hashable, props: dict[str, Any], container: Any) -> Poolable | None:
        """
        Reattach the controller pooled under ``key`` to ``container``.

        Returns
        -------
        Poolable | None
            The reattached controller, or None on a miss (construct fresh)
        """
        controller = self._entries.pop(key, None)
        if controller is None:
            logger.debug("[InstancePool] Miss for key %r", key)
            return None

        try:
            controller.reattach(props, container)
        except Exception:
            controller.destroy()
            raise

        logger.debug("[InstancePool] Reused map for key %r", key)
        return controller

    def discard(self, key: Hashable) -> bool:
        """Destroy and remove the controller under ``key``, if any."""
        controller = self._entries.pop(key, None)
        if controller is None:
            return False
        controller.destroy()
        return True

    def clear(self) -> None:
        """Destroy every pooled controller."""
        while self._entries:
            _, controller = self._entries.popitem(last=False)
            controller.destroy()
        logger.info("[InstancePool] Cleared all pooled maps")

    def keys(self) -> list[Hashable]:
        return list(self._entries)

    def get_stats(self) -> dict:
        return {
            "pooled": len(self._entries),
            "max_size": self.max_size,
            "keys": [repr(k) for k in self._entries],
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[Hashable]:
        return iter(list(self._entries))

    # ------------------------------------------------------------------ #
    # Capacity
    # ------------------------------------------------------------------ #
    def _evict_over_capacity(self) -> None:
        if self.max_size is None:
            return
        while len(self._entries) > self.max_size:
            key, evicted = self._entries.popitem(last=False)
            logger.debug("[InstancePool] Evicted pooled map for key %r", key)
            evicted.destroy()


__all__ = ["InstancePool"]
