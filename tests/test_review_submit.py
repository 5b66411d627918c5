from datetime import datetime, timedelta, timezone

import pytest

from db.records import get_study_record, state_from_row, update_study_record
from models.review import Rating
from utils.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from utils.reviews import process_review
from utils.session import initialize_session
from utils.sm2 import compute_next_state
from utils.timestamps import parse_iso, to_iso

from conftest import auth_headers, insert_deck, insert_flashcards, insert_user


def _start(conn, now, cards=1):
    user_id = insert_user(conn)
    deck_id = insert_deck(conn, user_id)
    insert_flashcards(conn, deck_id, cards)
    session = initialize_session(conn, user_id, deck_id, now=now)
    return user_id, session.cards_due


def test_good_then_good_follows_one_then_six(conn, now):
    user_id, (card,) = _start(conn, now)

    first = process_review(conn, user_id, card.study_record_id, card.flashcard_id, Rating.GOOD, now=now)
    assert first.interval_days == 1
    assert first.repetitions == 1
    assert first.next_review_date == to_iso(now + timedelta(days=1))
    assert first.last_review_date == to_iso(now)

    later = now + timedelta(days=1)
    second = process_review(conn, user_id, card.study_record_id, card.flashcard_id, Rating.GOOD, now=later)
    assert second.interval_days == 6
    assert second.repetitions == 2
    assert second.next_review_date == to_iso(later + timedelta(days=6))

    stored = get_study_record(conn, card.study_record_id)
    assert stored["interval_days"] == 6
    assert stored["repetitions"] == 2
    assert stored["state"] == "learning"


def test_again_on_mature_record(conn, now):
    user_id, (card,) = _start(conn, now)
    conn.execute(
        "UPDATE study_records SET repetitions = 5, interval_days = 10, ease_factor = 2.0, state = 'review' WHERE id = ?",
        (card.study_record_id,),
    )
    conn.commit()

    result = process_review(conn, user_id, card.study_record_id, card.flashcard_id, Rating.AGAIN, now=now)

    assert result.repetitions == 0
    assert result.interval_days == 1
    assert result.ease_factor == pytest.approx(1.8)
    assert result.lapses == 1
    assert result.state == "relearning"


def test_next_review_date_derives_from_last_review_and_interval(conn, now):
    user_id, (card,) = _start(conn, now)
    for offset, rating in enumerate([Rating.GOOD, Rating.EASY, Rating.AGAIN, Rating.GOOD]):
        process_review(conn, user_id, card.study_record_id, card.flashcard_id, rating, now=now + timedelta(days=offset))
        stored = get_study_record(conn, card.study_record_id)
        last = parse_iso(stored["last_review_date"])
        assert parse_iso(stored["next_review_date"]) == last + timedelta(days=stored["interval_days"])


def test_review_is_logged(conn, now):
    user_id, (card,) = _start(conn, now)

    process_review(conn, user_id, card.study_record_id, card.flashcard_id, Rating.EASY, now=now)

    rows = conn.execute("SELECT rating, reviewed_at FROM reviews WHERE study_record_id = ?", (card.study_record_id,)).fetchall()
    assert [(row["rating"], row["reviewed_at"]) for row in rows] == [("easy", to_iso(now))]


def test_mismatched_flashcard_is_a_validation_error(conn, now):
    user_id, cards = _start(conn, now, cards=2)

    with pytest.raises(ValidationError):
        process_review(conn, user_id, cards[0].study_record_id, cards[1].flashcard_id, Rating.GOOD, now=now)
    assert get_study_record(conn, cards[0].study_record_id)["repetitions"] == 0


def test_unknown_record_is_not_found(conn, now):
    user_id, (card,) = _start(conn, now)

    with pytest.raises(NotFoundError):
        process_review(conn, user_id, "00000000-0000-4000-8000-000000000000", card.flashcard_id, Rating.GOOD, now=now)


def test_someone_elses_record_is_forbidden(conn, now):
    _, (card,) = _start(conn, now)
    other = insert_user(conn, "other@example.com")

    with pytest.raises(ForbiddenError):
        process_review(conn, other, card.study_record_id, card.flashcard_id, Rating.GOOD, now=now)


def test_stale_update_is_rejected(conn, now):
    user_id, (card,) = _start(conn, now)
    record = get_study_record(conn, card.study_record_id)
    new_state = compute_next_state(state_from_row(record), Rating.GOOD, now=now)

    assert update_study_record(conn, card.study_record_id, new_state, record["last_review_date"], check_stale=True)
    conn.commit()
    # a second writer that read the same snapshot loses
    assert not update_study_record(conn, card.study_record_id, new_state, record["last_review_date"], check_stale=True)


def test_concurrent_duplicate_submission_raises_conflict(conn, now, monkeypatch):
    user_id, (card,) = _start(conn, now)
    snapshot = get_study_record(conn, card.study_record_id)
    process_review(conn, user_id, card.study_record_id, card.flashcard_id, Rating.GOOD, now=now)

    import utils.reviews as reviews

    monkeypatch.setattr(reviews, "get_study_record", lambda _conn, _record_id: dict(snapshot))
    with pytest.raises(ConflictError):
        process_review(conn, user_id, card.study_record_id, card.flashcard_id, Rating.GOOD, now=now + timedelta(seconds=1))
    assert conn.execute("SELECT COUNT(*) FROM reviews").fetchone()[0] == 1


def test_review_submit_over_http(client):
    headers = auth_headers(client)
    deck = client.post("/decks", json={"name": "Algebra"}, headers=headers).json()
    card = client.post(
        f"/decks/{deck['id']}/flashcards",
        json={"front": "1+1?", "back": "2"},
        headers=headers,
    ).json()

    session = client.get(f"/study/session/{deck['id']}", headers=headers)
    assert session.status_code == 200
    assert session.headers["cache-control"] == "no-store"
    (due,) = session.json()["cards_due"]
    assert due["flashcard_id"] == card["id"]
    assert due["front"] == "1+1?"

    response = client.post(
        "/study/review",
        json={"study_record_id": due["study_record_id"], "flashcard_id": card["id"], "rating": "good"},
        headers=headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["interval_days"] == 1
    assert body["repetitions"] == 1
    assert body["ease_factor"] == 2.5
    assert body["state"] == "learning"
    next_review = parse_iso(body["next_review_date"])
    last_review = parse_iso(body["last_review_date"])
    assert next_review - last_review == timedelta(days=1)
    assert abs(datetime.now(timezone.utc) - last_review) < timedelta(minutes=1)


def test_review_rejects_invalid_rating(client):
    headers = auth_headers(client)
    response = client.post(
        "/study/review",
        json={
            "study_record_id": "00000000-0000-4000-8000-000000000000",
            "flashcard_id": "00000000-0000-4000-8000-000000000001",
            "rating": "hard",
        },
        headers=headers,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Validation failed"


def test_review_rejects_malformed_ids(client):
    headers = auth_headers(client)
    response = client.post(
        "/study/review",
        json={"study_record_id": "not-a-uuid", "flashcard_id": "also-not", "rating": "good"},
        headers=headers,
    )

    assert response.status_code == 400


def test_review_http_error_mapping(client):
    headers = auth_headers(client)
    deck = client.post("/decks", json={"name": "Algebra"}, headers=headers).json()
    cards = [
        client.post(f"/decks/{deck['id']}/flashcards", json={"front": f"Q{i}", "back": "A"}, headers=headers).json()
        for i in range(2)
    ]
    due = client.get(f"/study/session/{deck['id']}", headers=headers).json()["cards_due"]

    missing = client.post(
        "/study/review",
        json={"study_record_id": "00000000-0000-4000-8000-000000000000", "flashcard_id": cards[0]["id"], "rating": "good"},
        headers=headers,
    )
    assert missing.status_code == 404
    assert missing.json() == {"error": "Study record not found"}

    mismatch = client.post(
        "/study/review",
        json={"study_record_id": due[0]["study_record_id"], "flashcard_id": due[1]["flashcard_id"], "rating": "good"},
        headers=headers,
    )
    assert mismatch.status_code == 400
    assert mismatch.json() == {"error": "Flashcard ID does not match study record"}

    other_headers = auth_headers(client, email="eve@example.com")
    forbidden = client.post(
        "/study/review",
        json={"study_record_id": due[0]["study_record_id"], "flashcard_id": due[0]["flashcard_id"], "rating": "good"},
        headers=other_headers,
    )
    assert forbidden.status_code == 403
    assert forbidden.json() == {"error": "Access denied"}


def test_repeated_easy_reviews_over_http_stay_scheduled(client):
    headers = auth_headers(client)
    deck = client.post("/decks", json={"name": "Algebra"}, headers=headers).json()
    card = client.post(f"/decks/{deck['id']}/flashcards", json={"front": "Q", "back": "A"}, headers=headers).json()
    (due,) = client.get(f"/study/session/{deck['id']}", headers=headers).json()["cards_due"]
    payload = {"study_record_id": due["study_record_id"], "flashcard_id": card["id"], "rating": "easy"}

    for _ in range(20):
        response = client.post("/study/review", json=payload, headers=headers)
        assert response.status_code == 200

    assert response.json()["interval_days"] == 36500
    again = client.post("/study/review", json={**payload, "rating": "again"}, headers=headers)
    assert again.status_code == 200
    assert again.json()["interval_days"] == 1


@pytest.mark.parametrize("rating", [["good"], {"value": "good"}, 3, None])
def test_review_rejects_non_string_rating(client, rating):
    headers = auth_headers(client)
    response = client.post(
        "/study/review",
        json={
            "study_record_id": "00000000-0000-4000-8000-000000000000",
            "flashcard_id": "00000000-0000-4000-8000-000000000001",
            "rating": rating,
        },
        headers=headers,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Validation failed"
