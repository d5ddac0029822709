import pytest

from compass.chat.frames import AppendEvent, DoneEvent, ErrorEvent
from compass.chat.transcript import (
    ASSISTED,
    FALLBACK_ACTION_ID,
    QUICK,
    Message,
    TranscriptStore,
    apply_event,
)


def test_apply_event_is_pure():
    m = Message(role="assistant", streaming=True)
    out = apply_event(m, AppendEvent("abc"))
    assert out.content == "abc"
    assert m.content == ""

    done = apply_event(out, DoneEvent())
    assert done.streaming is False and done.error is False and done.content == "abc"

    failed = apply_event(out, ErrorEvent("boom"))
    assert failed.streaming is False
    assert failed.error is True
    assert failed.content == ""
    assert failed.quick_actions[0].id == FALLBACK_ACTION_ID


def test_modes_are_isolated():
    store = TranscriptStore()
    store.append_message(QUICK, Message(role="user", content="q1"))
    store.append_message(ASSISTED, Message(role="user", content="a1"))
    store.append_message(QUICK, Message(role="user", content="q2"))

    assert [m.content for m in store.get_conversation(QUICK).messages] == ["q1", "q2"]
    assert [m.content for m in store.get_conversation(ASSISTED).messages] == ["a1"]

    store.reset(QUICK)
    assert store.get_conversation(QUICK).messages == ()
    assert [m.content for m in store.get_conversation(ASSISTED).messages] == ["a1"]


def test_update_message_with_mapping_and_callable():
    store = TranscriptStore()
    m = store.append_message(ASSISTED, Message(role="assistant", streaming=True))

    store.update_message(ASSISTED, m.id, lambda cur: apply_event(cur, AppendEvent("hi")))
    updated = store.update_message(ASSISTED, m.id, {"streaming": False})

    assert updated.content == "hi" and updated.streaming is False
    assert store.update_message(ASSISTED, "missing", {"content": "x"}) is None


def test_only_one_streaming_message_per_conversation():
    store = TranscriptStore()
    store.append_message(ASSISTED, Message(role="assistant", streaming=True))
    with pytest.raises(ValueError):
        store.append_message(ASSISTED, Message(role="assistant", streaming=True))
    # The other conversation is unaffected
    store.append_message(QUICK, Message(role="assistant", streaming=True))


def test_subscribers_see_each_change_until_unsubscribed():
    store = TranscriptStore()
    seen = []
    unsubscribe = store.subscribe(lambda mode, conv: seen.append((mode, len(conv.messages))))

    m = store.append_message(QUICK, Message(role="user", content="x"))
    store.remove_message(QUICK, m.id)
    unsubscribe()
    store.append_message(QUICK, Message(role="user", content="y"))

    assert seen == [(QUICK, 1), (QUICK, 0)]


def test_unknown_mode_rejected():
    with pytest.raises(ValueError):
        TranscriptStore().get_conversation("voice")
