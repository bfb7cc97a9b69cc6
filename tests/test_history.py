"""Unit tests for the application state manager and its undo history."""

from __future__ import annotations

import threading

import pytest

from wolo_pos.history import INITIAL_STATE, StateManager, UndoHistory, WILDCARD


# ---------------------------------------------------------------------------
# UndoHistory
# ---------------------------------------------------------------------------


def test_push_deep_copies_state():
    history = UndoHistory()
    state = {"products": [{"id": "P1"}]}

    history.push(state)
    state["products"][0]["id"] = "mutated"

    restored = history.undo({"products": []})
    assert restored == {"products": [{"id": "P1"}]}


def test_push_clears_future():
    history = UndoHistory()
    history.push({"n": 1})
    history.undo({"n": 2})
    assert history.can_redo()

    history.push({"n": 3})

    assert not history.can_redo()


def test_undo_on_empty_history_returns_none():
    history = UndoHistory()
    assert history.undo({"n": 1}) is None
    assert history.redo({"n": 1}) is None


def test_history_bound_evicts_oldest_first():
    history = UndoHistory(max_length=50)
    for n in range(51):
        history.push({"n": n})

    assert history.past_length == 50
    undone = []
    current = {"n": 51}
    while history.can_undo():
        previous = history.undo(current)
        undone.append(previous["n"])
        current = previous
    assert undone[-1] == 1
    assert 0 not in undone


def test_future_stack_is_bounded():
    history = UndoHistory(max_length=2)
    for n in range(3):
        history.push({"n": n})
    # Only two snapshots survive; undo both, parking two states in the future.
    history.undo({"n": 3})
    history.undo({"n": 2})
    assert history.future_length == 2


def test_push_failure_is_reported_and_leaves_stacks_untouched():
    history = UndoHistory()
    history.push({"n": 1})

    assert history.push({"lock": threading.Lock()}) is False
    assert history.past_length == 1


def test_rejects_non_positive_length():
    with pytest.raises(ValueError):
        UndoHistory(max_length=0)


def test_validator_discards_rejected_snapshot():
    history = UndoHistory(validator=lambda candidate: "ok" in candidate)
    history.push({"ok": 1})
    history.push({"broken": 2})

    assert history.undo({"ok": 3}) is None
    assert history.past_length == 1
    assert history.future_length == 0
    assert history.undo({"ok": 3}) == {"ok": 1}


# ---------------------------------------------------------------------------
# StateManager
# ---------------------------------------------------------------------------


def test_state_manager_starts_from_initial_state():
    manager = StateManager()
    assert manager.current == dict(INITIAL_STATE)
    assert not manager.can_undo()


def test_undo_then_redo_restores_the_same_state():
    manager = StateManager()
    manager.set("current_page", "products")
    manager.update(products=[{"id": "P1"}], sales=[{"id": "S1"}])
    after = manager.current

    assert manager.undo() is True
    assert manager.current["products"] == []
    assert manager.current["current_page"] == "products"
    assert manager.redo() is True
    assert manager.current == after


@pytest.mark.parametrize("steps", [1, 7, 50])
def test_n_changes_then_n_undos_restore_the_starting_state(steps):
    manager = StateManager({**INITIAL_STATE, "settings": {"currency": "GHS"}})
    before = dict(manager.current)

    for n in range(steps):
        manager.update(products=[{"id": f"P{n}"}], current_page=f"page-{n}")
    for _ in range(steps):
        assert manager.undo() is True

    assert manager.current == before
    assert not manager.can_undo()


def test_undo_walks_back_to_initial_state():
    manager = StateManager()
    manager.set("current_page", "sales")
    manager.set("current_page", "reports")

    assert manager.undo() and manager.undo()
    assert manager.current == dict(INITIAL_STATE)
    assert manager.undo() is False


def test_update_without_changes_does_not_snapshot():
    manager = StateManager()
    manager.update()
    assert not manager.can_undo()


def test_listeners_receive_keys_and_wildcard():
    manager = StateManager()
    events = []
    manager.subscribe(lambda key, value, state: events.append(key))

    manager.update(products=[], sales=[])
    manager.undo()

    assert events == ["products", "sales", WILDCARD]


def test_unsubscribe_stops_notifications():
    manager = StateManager()
    events = []
    unsubscribe = manager.subscribe(lambda key, value, state: events.append(key))
    unsubscribe()

    manager.set("current_page", "sales")

    assert events == []


def test_listener_errors_are_logged_not_raised(caplog):
    manager = StateManager()
    seen = []

    def broken(key, value, state):
        raise RuntimeError("listener failed")

    manager.subscribe(broken)
    manager.subscribe(lambda key, value, state: seen.append(value))

    manager.set("current_page", "sales")

    assert manager.get("current_page") == "sales"
    assert seen == ["sales"]
    assert "Error in state listener" in caplog.text


def test_corrupt_snapshot_is_discarded():
    manager = StateManager()
    manager.set("current_page", "sales")
    # Simulate a damaged history entry.
    manager.history._past[-1] = {"current_page": "dashboard"}

    assert manager.undo() is False
    assert manager.get("current_page") == "sales"
    assert not manager.can_undo()


def test_reset_restores_initial_state_and_clears_history():
    manager = StateManager()
    manager.set("current_page", "sales")
    events = []
    manager.subscribe(lambda key, value, state: events.append(key))

    manager.reset()

    assert manager.current == dict(INITIAL_STATE)
    assert not manager.can_undo() and not manager.can_redo()
    assert events == [WILDCARD]


def test_state_manager_history_length_is_configurable():
    manager = StateManager(max_history=2)
    for page in ("a", "b", "c"):
        manager.set("current_page", page)

    assert manager.history.past_length == 2
