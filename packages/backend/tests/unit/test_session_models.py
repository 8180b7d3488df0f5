import pytest

from clarifier.models.errors import SessionStateError, SessionStateErrorCode
from clarifier.models.session import ConversationTurn, Domain, Role, Session, SessionStatus


def make_session(**kwargs) -> Session:
    return Session(user_id="user-1", domain=Domain.PRODUCT, **kwargs)


def test_new_session_is_questioning():
    session = make_session()
    assert session.status == SessionStatus.QUESTIONING
    assert session.history == []
    assert session.brief is None
    assert len(session.session_id) == 36  # UUID length


def test_transitions_move_forward_one_step():
    session = make_session()
    generating = session.advance_to(SessionStatus.GENERATING)
    completed = generating.advance_to(SessionStatus.COMPLETED)

    assert generating.status == SessionStatus.GENERATING
    assert completed.status == SessionStatus.COMPLETED
    # advance_to returns copies
    assert session.status == SessionStatus.QUESTIONING


def test_transition_cannot_skip_generating():
    with pytest.raises(SessionStateError) as exc_info:
        make_session().advance_to(SessionStatus.COMPLETED)
    assert exc_info.value.code == SessionStateErrorCode.INVALID_TRANSITION


def test_transition_cannot_move_backward():
    generating = make_session().advance_to(SessionStatus.GENERATING)
    with pytest.raises(SessionStateError):
        generating.advance_to(SessionStatus.QUESTIONING)


@pytest.mark.parametrize("target", list(SessionStatus))
def test_completed_is_terminal(target):
    completed = make_session(status=SessionStatus.COMPLETED)
    with pytest.raises(SessionStateError) as exc_info:
        completed.advance_to(target)
    assert exc_info.value.code == SessionStateErrorCode.SESSION_COMPLETED


def test_question_count_and_can_generate():
    history = [
        ConversationTurn(role=Role.USER, content="idea"),
        ConversationTurn(role=Role.ASSISTANT, content="q1"),
        ConversationTurn(role=Role.USER, content="a1"),
        ConversationTurn(role=Role.ASSISTANT, content="q2"),
    ]
    session = make_session(history=history)

    assert session.question_count == 2
    assert session.can_generate(3) is False
    assert session.can_generate(2) is True
    assert session.can_generate(0) is True
    assert make_session(status=SessionStatus.COMPLETED, history=history).can_generate(0) is False


def test_session_json_dump_uses_plain_values():
    data = make_session().model_dump(mode="json")
    assert data["domain"] == "product"
    assert data["status"] == "questioning"
    assert data["question_count"] == 0
