from chavrusa.domain.conversations.repository import ConversationRepository
from chavrusa.domain.posts.repository import PostRepository
from chavrusa.domain.posts.validation import validate_post_payload
from chavrusa.shared.validators import parse_slots_from_row

PAST = "2020-01-01T00:00:00.000Z"


def test_created_post_round_trips_slots(db_session, post_payload):
    slots = [{"day": "Mon", "start": "18:00", "end": "20:00", "flexible": False}]

    post = PostRepository.create_post(
        db_session, validate_post_payload(post_payload(availabilitySlots=slots))
    )
    fetched = PostRepository.get_public_post(db_session, post.id)

    assert parse_slots_from_row(fetched.availability_slots) == slots


def test_ids_and_tokens_are_random_and_distinct(db_session, post_payload):
    posts = [
        PostRepository.create_post(db_session, validate_post_payload(post_payload()))
        for _ in range(3)
    ]

    ids = {p.id for p in posts}
    tokens = {p.manage_token for p in posts}
    assert len(ids) == 3 and len(tokens) == 3
    assert all(len(p.id) == 16 and len(p.manage_token) == 32 for p in posts)
    assert ids.isdisjoint(tokens)


def test_sweep_is_idempotent(db_session, make_post):
    already = make_post(status="expired", expires_at=PAST)
    due = make_post(expires_at=PAST)
    live = make_post()

    assert PostRepository.sweep_expired(db_session) == 1
    assert PostRepository.sweep_expired(db_session) == 0

    db_session.expire_all()
    assert [already.status, due.status, live.status] == ["expired", "expired", "active"]
    assert already.expires_at == PAST


def test_manage_token_lookup_ignores_status(db_session, make_post):
    post = make_post(status="inactive")

    assert PostRepository.get_post_by_manage_token(db_session, post.manage_token).id == post.id
    assert PostRepository.get_public_post(db_session, post.id) is None
    assert PostRepository.get_post_by_manage_token(db_session, "") is None


def test_conversations_listed_newest_first_with_reply_counts(db_session, make_post):
    post = make_post()
    first = ConversationRepository.create_conversation(db_session, post, "a@b.test", "First")
    first.created_at = "2026-01-01T00:00:00.000Z"
    second = ConversationRepository.create_conversation(db_session, post, "c@d.test", "Second")
    second.created_at = "2026-01-02T00:00:00.000Z"
    db_session.commit()
    ConversationRepository.create_reply(db_session, first, "One")
    ConversationRepository.create_reply(db_session, first, "Two")

    rows = ConversationRepository.list_with_reply_counts(db_session, post.id)

    assert [(c.id, count) for c, count in rows] == [(second.id, 0), (first.id, 2)]
