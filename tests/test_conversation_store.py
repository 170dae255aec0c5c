import pytest

from models.planner_errors import ErrorKind, ErrorState, PlannerError
from models.session_models import ConfirmedRef, Message, MessageStatus, PendingRef, Session, SessionContext
from services.planner.conversation_store import ConversationState, ConversationStore, LoadingState


def _message(temp_id, role="user", **fields):
    return Message(ref=PendingRef(temp_id), session_id="sess-1", role=role, **fields)


def _session(session_id, title="Plan"):
    return Session(id=session_id, user_id="user-1", title=title, context=SessionContext("SaaS", "SMBs", "retention"))


def test_read_after_write():
    store = ConversationStore()
    store.append_message(_message("temp-1", content="Hello there"))
    assert store.state.find_message("temp-1").content == "Hello there"


def test_patch_unknown_message_is_a_noop():
    store = ConversationStore()
    store.append_message(_message("temp-1"))
    before = store.state
    store.patch_message("missing", content="x")
    assert store.state.messages == before.messages


def test_confirm_promotes_pending_reference():
    store = ConversationStore()
    store.append_message(_message("temp-1"))

    store.confirm_message("temp-1", "msg-42", status=MessageStatus.COMPLETED)

    message = store.state.find_message("temp-1")
    assert message.ref == ConfirmedRef(id="msg-42", temp_id="temp-1")
    assert message.id == "msg-42"
    assert not message.optimistic
    assert message.status is MessageStatus.COMPLETED


def test_reply_for_finds_assistant_placeholder():
    store = ConversationStore()
    store.append_message(_message("temp-user"))
    store.append_message(_message("temp-assistant", role="assistant", reply_to="temp-user"))
    assert store.state.reply_for("temp-user").temp_id == "temp-assistant"


def test_listeners_see_every_snapshot_in_order():
    store = ConversationStore()
    seen = []
    unsubscribe = store.subscribe(lambda state: seen.append(len(state.messages)))

    store.append_message(_message("temp-1"))
    store.append_message(_message("temp-2"))
    unsubscribe()
    store.append_message(_message("temp-3"))

    assert seen == [1, 2]


def test_remove_active_session_clears_conversation():
    store = ConversationStore()
    session = _session("sess-1")
    store.replace_sessions([session, _session("sess-2")])
    store.set_active_session(session)
    store.append_message(_message("temp-1"))

    store.remove_session("sess-1")

    assert [item.id for item in store.state.sessions] == ["sess-2"]
    assert store.state.current_session is None
    assert store.state.messages == ()


def test_patch_session_updates_active_copy():
    store = ConversationStore()
    session = _session("sess-1")
    store.replace_sessions([session])
    store.set_active_session(session)

    store.patch_session(_session("sess-1", title="Churn plan"))

    assert store.state.current_session.title == "Churn plan"
    assert store.state.sessions[0].title == "Churn plan"


def test_transform_must_return_state():
    store = ConversationStore()
    with pytest.raises(TypeError):
        store.apply(lambda state: None)
    assert isinstance(store.state, ConversationState)


def test_independent_stores_do_not_share_state():
    first, second = ConversationStore(), ConversationStore()
    first.append_message(_message("temp-1"))
    assert second.state.messages == ()


def test_message_list_replace_and_clear():
    store = ConversationStore()
    store.append_message(_message("temp-1"))

    store.replace_messages([_message("temp-2"), _message("temp-3", role="assistant")])
    assert [message.temp_id for message in store.state.messages] == ["temp-2", "temp-3"]
    assert store.state.messages_loaded

    store.clear_messages()
    assert store.state.messages == ()
    assert not store.state.messages_loaded


def test_add_session_appends_without_selecting():
    store = ConversationStore()
    store.replace_sessions([_session("sess-1")])

    store.add_session(_session("sess-2"))

    assert [item.id for item in store.state.sessions] == ["sess-1", "sess-2"]
    assert store.state.current_session is None


def test_error_and_flag_helpers():
    store = ConversationStore()
    failure = ErrorState.from_error(PlannerError(ErrorKind.SERVER_ERROR, "Server error. Please try again."))

    store.set_error(failure)
    store.set_ai_error(ErrorState.cancelled())
    store.set_ai_loading(True, "Waiting for AI response...")
    store.set_typing(True)

    state = store.state
    assert state.error.message == "Server error. Please try again."
    assert state.ai_response_error.error.kind is ErrorKind.CANCELLED
    assert state.ai_response_loading == LoadingState(True, "Waiting for AI response...")
    assert state.is_typing

    store.clear_error()
    store.clear_ai_error()
    store.set_ai_loading(False, "ignored")
    store.set_typing(False)

    state = store.state
    assert not state.error.has_error
    assert not state.ai_response_error.has_error
    assert state.ai_response_loading == LoadingState()
    assert not state.is_typing
