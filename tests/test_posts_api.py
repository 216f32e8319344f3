from chavrusa.domain.posts.service import (
    CONFIRMATION_FAILED_WARNING,
    NO_EMAIL_WARNING,
    RELAY_FAILED_WARNING,
    RELAY_NOT_CONFIGURED_WARNING,
)
from chavrusa.models import Conversation, Post
from chavrusa.shared.clock import iso_after_days

PAST = "2020-01-01T00:00:00.000Z"


def test_create_post_returns_public_post_and_manage_url(client, post_payload, db_session):
    response = client.post("/api/posts", json=post_payload())

    assert response.status_code == 201
    body = response.json()
    post = body["post"]
    assert "warning" not in body
    assert "email" not in post
    assert "manageToken" not in post
    assert post["postCode"] == "CB-" + post["id"][:6].upper()
    assert post["posterName"] == "Sara Cohen"
    assert post["availabilitySlots"] == [
        {"day": "Mon", "start": "18:00", "end": "20:00", "flexible": False}
    ]

    stored = db_session.query(Post).filter(Post.id == post["id"]).one()
    assert body["manageUrl"] == f"http://testserver/manage/{stored.manage_token}"
    assert stored.status == "active"
    assert stored.duration_days == 14
    assert stored.manage_token != stored.id


def test_manage_url_uses_configured_base_url(client, post_payload, monkeypatch):
    monkeypatch.setenv("BASE_URL", "https://chavrusa.example.org/")

    response = client.post("/api/posts", json=post_payload())

    assert response.json()["manageUrl"].startswith("https://chavrusa.example.org/manage/")


def test_create_post_accepts_form_bodies(client):
    form = {
        "topic": "Mesillas Yesharim",
        "format": "in_person_only",
        "city": "Lakewood",
        "state": "NJ",
        "email": "poster@chavrusa.test",
        "durationDays": "7",
        "availabilitySlots": '[{"day": "Sun", "flexible": true}]',
    }

    response = client.post("/api/posts", data=form)

    assert response.status_code == 201
    post = response.json()["post"]
    assert (post["city"], post["state"]) == ("Lakewood", "NJ")
    assert post["availabilitySlots"][0]["flexible"] is True


def test_create_post_rejects_invalid_payload(client, post_payload, db_session):
    response = client.post("/api/posts", json=post_payload(format="in_person_only", city=""))

    assert response.status_code == 400
    assert response.json() == {"error": "City and state are required for in-person learning."}
    assert db_session.query(Post).count() == 0


def test_create_post_sends_confirmation_with_manage_link(client, post_payload, sent_emails):
    response = client.post("/api/posts", json=post_payload())

    assert response.status_code == 201
    assert len(sent_emails) == 1
    sent = sent_emails[0]
    assert sent["to"] == "poster@chavrusa.test"
    assert sent["from"] == "relay@chavrusa.test"
    assert sent["email"].subject == "[Chavrusashaft] Your post is live"
    assert response.json()["manageUrl"] in sent["email"].text


def test_create_post_survives_failed_confirmation(client, post_payload, failing_smtp, db_session):
    response = client.post("/api/posts", json=post_payload())

    assert response.status_code == 201
    assert response.json()["warning"] == CONFIRMATION_FAILED_WARNING
    assert db_session.query(Post).count() == 1


def test_listing_shows_only_active_unexpired_posts(client, make_post, db_session):
    live = make_post(topic="Live")
    make_post(topic="Stopped", status="inactive")
    expired = make_post(topic="Old", expires_at=PAST)

    response = client.get("/api/posts")

    assert response.status_code == 200
    assert [p["id"] for p in response.json()["posts"]] == [live.id]
    db_session.expire_all()
    assert db_session.get(Post, expired.id).status == "expired"


def test_listing_filters(client, make_post):
    make_post(topic="Gemara one", category="Gemara", time_zone="America/New_York")
    make_post(topic="Halacha one", category="Halacha", time_zone="America/New_York")
    make_post(topic="Gemara far", category="Gemara", time_zone="Asia/Jerusalem", sefer_name="Bava Kamma")

    def topics(**params):
        return sorted(p["topic"] for p in client.get("/api/posts", params=params).json()["posts"])

    assert topics(category="Gemara") == ["Gemara far", "Gemara one"]
    assert topics(category="Gemara", timeZone="Asia/Jerusalem") == ["Gemara far"]
    assert topics(format="in_person_only") == []
    assert topics(q="bava") == ["Gemara far"]


def test_listing_orders_by_availability_match(client, make_post):
    monday = make_post(topic="Monday", created_at="2026-01-01T10:00:00.000Z")
    tuesday = make_post(
        topic="Tuesday",
        created_at="2026-01-02T10:00:00.000Z",
        availability_slots=[{"day": "Tue", "start": "09:00", "end": "10:00", "flexible": False}],
    )

    unfiltered = client.get("/api/posts").json()["posts"]
    filtered = client.get("/api/posts", params={"day": "Mon", "time": "19:00"}).json()["posts"]

    assert [p["id"] for p in unfiltered] == [tuesday.id, monday.id]
    assert "matchesAvailability" not in unfiltered[0]
    assert [(p["id"], p["matchesAvailability"]) for p in filtered] == [
        (monday.id, True),
        (tuesday.id, False),
    ]


def test_listing_drops_malformed_stored_slots(client, make_post):
    imported = make_post(
        topic="Imported",
        availability_slots=(
            '[{"start": "10:00", "end": "11:00"}, {"day": null, "flexible": true},'
            ' {"day": "Wed", "start": null, "end": "21:00"}, "Thu",'
            ' {"day": "Sun", "start": "08:00", "end": "09:00", "flexible": null}]'
        ),
    )
    unreadable = make_post(topic="Unreadable", availability_slots="{not json")

    response = client.get("/api/posts", params={"day": "Sun", "time": "08:30"})

    assert response.status_code == 200
    posts = {p["id"]: p for p in response.json()["posts"]}
    assert posts[imported.id]["availabilitySlots"] == [
        {"day": "Sun", "start": "08:00", "end": "09:00", "flexible": False}
    ]
    assert posts[imported.id]["matchesAvailability"] is True
    assert posts[unreadable.id]["availabilitySlots"] == []
    assert client.get(f"/api/posts/{imported.id}").status_code == 200


def test_location_only_public_for_in_person_posts(client, make_post):
    remote = make_post(format="remote_only", city="Lakewood", state="NJ")
    local = make_post(format="in_person_preferred", city="Lakewood", state="NJ")

    remote_view = client.get(f"/api/posts/{remote.id}").json()["post"]
    local_view = client.get(f"/api/posts/{local.id}").json()["post"]

    assert (remote_view["city"], remote_view["state"]) == ("", "")
    assert (local_view["city"], local_view["state"]) == ("Lakewood", "NJ")


def test_post_detail_not_found(client, make_post):
    inactive = make_post(status="inactive")
    expired = make_post(expires_at=PAST)

    for post_id in ("does-not-exist", inactive.id, expired.id):
        response = client.get(f"/api/posts/{post_id}")
        assert response.status_code == 404
        assert response.json() == {"error": "Post not found."}


def test_respond_without_relay_saves_and_warns(client, make_post, db_session):
    post = make_post()

    response = client.post(
        f"/api/posts/{post.id}/respond",
        json={"message": " Count me in ", "responderEmail": "learner@chavrusa.test"},
    )

    assert response.status_code == 200
    assert response.json() == {"ok": True, "warning": RELAY_NOT_CONFIGURED_WARNING}
    conversation = db_session.query(Conversation).filter(Conversation.post_id == post.id).one()
    assert conversation.message == "Count me in"
    assert conversation.responder_email == "learner@chavrusa.test"


def test_respond_relays_message_without_exposing_responder(client, make_post, sent_emails):
    post = make_post(topic="Nefesh HaChaim")

    response = client.post(
        f"/api/posts/{post.id}/respond",
        json={
            "message": "I learn evenings",
            "timeZone": "Europe/London",
            "availability": "Mon 20:00",
            "responderEmail": "learner@chavrusa.test",
        },
    )

    assert response.json() == {"ok": True}
    sent = sent_emails[0]
    assert sent["to"] == post.email
    assert sent["email"].subject == "[Chavrusashaft] New response to: Nefesh HaChaim"
    assert "I learn evenings" in sent["email"].text
    assert "Responder time zone: Europe/London" in sent["email"].text
    assert "learner@chavrusa.test" not in sent["email"].text
    assert "learner@chavrusa.test" not in sent["email"].mjml


def test_respond_to_post_without_email_warns(client, make_post, sent_emails, db_session):
    post = make_post(email="")

    response = client.post(
        f"/api/posts/{post.id}/respond",
        json={"message": "Hello", "responderEmail": "learner@chavrusa.test"},
    )

    assert response.json() == {"ok": True, "warning": NO_EMAIL_WARNING}
    assert sent_emails == []
    assert db_session.query(Conversation).count() == 1


def test_respond_when_delivery_fails_keeps_conversation(client, make_post, failing_smtp, db_session):
    post = make_post()

    response = client.post(
        f"/api/posts/{post.id}/respond",
        json={"message": "Hello", "responderEmail": "learner@chavrusa.test"},
    )

    assert response.status_code == 200
    assert response.json()["warning"] == RELAY_FAILED_WARNING
    assert db_session.query(Conversation).count() == 1


def test_respond_validation_and_not_found(client, make_post):
    post = make_post()
    expired = make_post(expires_at=PAST)

    missing_message = client.post(
        f"/api/posts/{post.id}/respond", json={"message": "  ", "responderEmail": "a@b.test"}
    )
    missing_email = client.post(f"/api/posts/{post.id}/respond", json={"message": "Hi"})
    unknown = client.post(
        f"/api/posts/{expired.id}/respond", json={"message": "Hi", "responderEmail": "a@b.test"}
    )

    assert (missing_message.status_code, missing_message.json()) == (
        400,
        {"error": "Message is required."},
    )
    assert (missing_email.status_code, missing_email.json()) == (
        400,
        {"error": "Your email is required for relay replies."},
    )
    assert (unknown.status_code, unknown.json()) == (404, {"error": "Post not found."})


def test_ninth_post_from_same_ip_is_rate_limited(client, post_payload, db_session):
    headers = {"X-Forwarded-For": "198.51.100.20"}
    for _ in range(8):
        assert client.post("/api/posts", json=post_payload(), headers=headers).status_code == 201

    blocked = client.post("/api/posts", json=post_payload(), headers=headers)
    other_ip = client.post(
        "/api/posts", json=post_payload(), headers={"X-Forwarded-For": "198.51.100.21"}
    )

    assert blocked.status_code == 429
    assert blocked.json() == {"error": "Too many posts. Try again later."}
    assert "Retry-After" in blocked.headers
    assert other_ip.status_code == 201
    assert db_session.query(Post).count() == 9


def test_responses_are_rate_limited(client, make_post, db_session):
    post = make_post()
    body = {"message": "Hi", "responderEmail": "a@b.test"}

    for _ in range(20):
        assert client.post(f"/api/posts/{post.id}/respond", json=body).status_code == 200
    blocked = client.post(f"/api/posts/{post.id}/respond", json=body)

    assert blocked.status_code == 429
    assert blocked.json() == {"error": "Too many responses. Try again later."}
    assert db_session.query(Conversation).count() == 20


def test_renewed_post_reappears_in_listing(client, make_post, db_session):
    post = make_post(status="expired", expires_at=PAST)
    assert client.get("/api/posts").json()["posts"] == []

    post.status = "active"
    post.expires_at = iso_after_days(7)
    db_session.commit()

    assert [p["id"] for p in client.get("/api/posts").json()["posts"]] == [post.id]


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
