import pytest

from soprano.agent.context import ScreenContext, build_snapshot
from soprano.agent.state import GuidedDialogueState


def test_snapshot_outside_guided_mode():
    context = ScreenContext("Transactions")
    context.update_screen_data({"totalTransactions": 42})

    snapshot = build_snapshot(context, GuidedDialogueState())

    assert snapshot.screen == "Transactions"
    assert snapshot.screen_data["totalTransactions"] == 42
    assert not snapshot.is_guided
    assert dict(snapshot.available_elements) == {}


def test_snapshot_is_detached_from_screen_context():
    context = ScreenContext()
    context.update_form_state({"upiId": "a@paytm"})
    snapshot = build_snapshot(context, GuidedDialogueState())

    context.update_form_state({"upiId": "b@paytm"})

    assert snapshot.form_state["upiId"] == "a@paytm"
    with pytest.raises(TypeError):
        snapshot.form_state["upiId"] = "c@paytm"


def test_snapshot_trims_history(simple_fields):
    state = GuidedDialogueState()
    state.start(simple_fields)
    for attempt in range(4):
        state.record_answer("name", f"try {attempt}", f"Name {attempt}")

    snapshot = build_snapshot(ScreenContext(), state, history_window=2)

    assert snapshot.is_guided
    assert snapshot.guided.current_field.name == "name"
    assert [e.user_utterance for e in snapshot.guided.recent_history] == ["try 2", "try 3"]
    assert snapshot.guided.completed_fields == ("name",)
