import pytest

from petship.errors import NotFoundError, UnauthorizedError
from petship.services import visibility


@pytest.fixture
def inbox(users, make_shipment):
    """Two shipments: one with the client, one with the other client and the partner."""
    mine = make_shipment(participants=[users.client, users.staff])
    theirs = make_shipment(participants=[users.other_client, users.partner], pet_name="Max")
    return mine, theirs


def test_staff_and_admin_see_everything(users, inbox):
    for user in (users.admin, users.staff):
        assert len(visibility.visible_conversations(user)) == 2
        assert len(visibility.visible_shipments(user)) == 2


def test_participants_see_only_their_conversations(users, inbox):
    mine, theirs = inbox

    assert [c.id for c in visibility.visible_conversations(users.client)] == [mine.conversation_id]
    assert [s.id for s in visibility.visible_shipments(users.client)] == [mine.id]

    assert [c.id for c in visibility.visible_conversations(users.partner)] == [theirs.conversation_id]
    assert [s.id for s in visibility.visible_shipments(users.partner)] == [theirs.id]


def test_visibility_follows_new_participation(db, users, inbox):
    _, theirs = inbox
    assert theirs.id not in [s.id for s in visibility.visible_shipments(users.client)]

    theirs.conversation.add_participant(users.client.id)
    db.session.commit()

    assert theirs.id in [s.id for s in visibility.visible_shipments(users.client)]


def test_require_conversation_access(users, inbox):
    mine, _ = inbox

    assert visibility.require_conversation_access(users.client, mine.conversation_id).id == mine.conversation_id
    with pytest.raises(UnauthorizedError):
        visibility.require_conversation_access(users.other_client, mine.conversation_id)
    with pytest.raises(NotFoundError):
        visibility.require_conversation_access(users.client, 987654)


def test_require_shipment_access(users, inbox):
    mine, _ = inbox
    with pytest.raises(UnauthorizedError):
        visibility.require_shipment_access(users.partner, mine.id)
    assert visibility.require_shipment_access(users.staff, mine.id) is mine


def test_inbox_ordering_newest_activity_first(db, users, make_conversation):
    older = make_conversation(title="older", participants=[users.client])
    newer = make_conversation(title="newer", participants=[users.client])
    older.touch()
    db.session.commit()

    assert [c.title for c in visibility.visible_conversations(users.client)] == ["older", "newer"]
    assert newer.id in [c.id for c in visibility.visible_conversations(users.client)]


def test_list_all_documents_is_staff_only(users):
    assert visibility.list_all_documents(users.staff) == []
    with pytest.raises(UnauthorizedError):
        visibility.list_all_documents(users.client)
