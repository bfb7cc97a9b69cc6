"""Application state and its undo/redo history.

:class:`StateManager` holds the in-memory view state (current page, product
and sales listings, settings) and snapshots the whole state before every
change. Snapshots are deep copies, so the cost of each change is linear in
the state size; keep the state small (listings, not the workbook).

The manager is an ordinary object owned by the composition root
(:class:`wolo_pos.app.PharmacyApp`) rather than a module-level singleton.
"""

from __future__ import annotations

import copy
from collections import deque
from typing import Any, Callable, Deque, Dict, Mapping, Optional, Set

from . import log
from .constants import DEFAULT_HISTORY_LENGTH


State = Dict[str, Any]
Listener = Callable[[str, Any, State], None]

# Key passed to listeners when the whole state was replaced.
WILDCARD = "*"

INITIAL_STATE: Mapping[str, Any] = {
    "current_page": "dashboard",
    "products": [],
    "sales": [],
    "settings": {},
}


def snapshot(state: Mapping[str, Any]) -> State:
    """Return a structurally independent deep copy of ``state``."""

    return copy.deepcopy(dict(state))


class UndoHistory:
    """Bounded past/future stacks of full-state snapshots.

    Both stacks hold at most ``max_length`` entries; when a push overflows a
    stack its oldest entry is evicted. ``validator``, when given, vets a
    snapshot before it is restored; rejected snapshots are discarded.
    """

    def __init__(
        self,
        max_length: int = DEFAULT_HISTORY_LENGTH,
        *,
        validator: Optional[Callable[[Any], bool]] = None,
    ) -> None:
        if max_length <= 0:
            raise ValueError("max_length must be greater than zero")
        self.max_length = max_length
        self._validator = validator
        self._past: Deque[State] = deque(maxlen=max_length)
        self._future: Deque[State] = deque(maxlen=max_length)

    @property
    def past_length(self) -> int:
        return len(self._past)

    @property
    def future_length(self) -> int:
        return len(self._future)

    def can_undo(self) -> bool:
        return bool(self._past)

    def can_redo(self) -> bool:
        return bool(self._future)

    def clear(self) -> None:
        self._past.clear()
        self._future.clear()

    def push(self, state: Mapping[str, Any]) -> bool:
        """Snapshot ``state`` onto the past stack and drop the redo history.

        Returns ``False`` and leaves both stacks untouched when the state
        cannot be copied; the caller carries on without an undo point.
        """

        try:
            copied = snapshot(state)
        except (TypeError, copy.Error, RecursionError) as exc:
            log.warning("Unable to snapshot state for undo history: %s", exc)
            return False
        self._past.append(copied)
        self._future.clear()
        return True

    def undo(self, current: Mapping[str, Any]) -> Optional[State]:
        """Pop the latest snapshot, parking ``current`` on the future stack.

        Returns ``None`` when there is nothing to undo or ``current`` cannot
        be copied. A snapshot rejected by the validator is dropped and
        ``None`` is returned.
        """

        if not self._past:
            return None
        if not self._accepts(self._past[-1]):
            self._past.pop()
            return None
        try:
            parked = snapshot(current)
        except (TypeError, copy.Error, RecursionError) as exc:
            log.warning("Unable to snapshot state before undo: %s", exc)
            return None
        previous = self._past.pop()
        self._future.appendleft(parked)
        return previous

    def redo(self, current: Mapping[str, Any]) -> Optional[State]:
        """Mirror of :meth:`undo` using the future stack."""

        if not self._future:
            return None
        if not self._accepts(self._future[0]):
            self._future.popleft()
            return None
        try:
            parked = snapshot(current)
        except (TypeError, copy.Error, RecursionError) as exc:
            log.warning("Unable to snapshot state before redo: %s", exc)
            return None
        following = self._future.popleft()
        self._past.append(parked)
        return following

    def _accepts(self, candidate: Any) -> bool:
        if self._validator is None or self._validator(candidate):
            return True
        log.error("Discarding corrupt snapshot from undo history")
        return False


class StateManager:
    """In-memory application state with change listeners and undo/redo."""

    def __init__(
        self,
        initial_state: Optional[Mapping[str, Any]] = None,
        *,
        max_history: int = DEFAULT_HISTORY_LENGTH,
    ) -> None:
        self._initial: State = snapshot(initial_state if initial_state is not None else INITIAL_STATE)
        self._state: State = snapshot(self._initial)
        self._listeners: Set[Listener] = set()
        self.history = UndoHistory(max_history, validator=self._is_valid_snapshot)

    @property
    def current(self) -> State:
        return self._state

    def get(self, key: str, default: Any = None) -> Any:
        return self._state.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Replace one key, snapshotting the previous state first."""

        self.save_to_history()
        self._state = {**self._state, key: value}
        self._notify(key, value)

    def update(self, changes: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> None:
        """Replace several keys as one undoable step."""

        merged = {**(changes or {}), **kwargs}
        if not merged:
            return
        self.save_to_history()
        self._state = {**self._state, **merged}
        for key, value in merged.items():
            self._notify(key, value)

    def save_to_history(self) -> bool:
        """Record the current state as an undo point."""

        return self.history.push(self._state)

    def reset(self) -> None:
        """Return to the initial state and forget all history."""

        self._state = snapshot(self._initial)
        self.history.clear()
        self._notify(WILDCARD, self._state)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener(key, value, state)``; returns an unsubscribe callable."""

        self._listeners.add(listener)
        return lambda: self._listeners.discard(listener)

    def can_undo(self) -> bool:
        return self.history.can_undo()

    def can_redo(self) -> bool:
        return self.history.can_redo()

    def undo(self) -> bool:
        """Restore the previous snapshot. Returns ``False`` when nothing changed."""

        return self._restore(self.history.undo(self._state), action="undo")

    def redo(self) -> bool:
        """Reapply the most recently undone snapshot."""

        return self._restore(self.history.redo(self._state), action="redo")

    def _restore(self, candidate: Optional[State], *, action: str) -> bool:
        if candidate is None:
            log.debug("Nothing to %s", action)
            return False
        self._state = candidate
        self._notify(WILDCARD, self._state)
        return True

    def _is_valid_snapshot(self, candidate: Any) -> bool:
        return isinstance(candidate, dict) and all(key in candidate for key in self._initial)

    def _notify(self, key: str, value: Any) -> None:
        for listener in list(self._listeners):
            try:
                listener(key, value, self._state)
            except Exception:
                log.exception("Error in state listener for key '%s'", key)
