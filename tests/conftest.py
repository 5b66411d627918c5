import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

import config
from db import database
from utils.timestamps import to_iso


def _write_test_config(config_path: Path) -> None:
    config_path.write_text(
        "\n".join(
            [
                "[auth]",
                "secret_key = \"test-secret\"",
                "token_minutes = 60",
                "",
                "[study]",
                "default_limit = 20",
                "max_limit = 50",
                "",
                "[logging]",
                "level = \"DEBUG\"",
            ]
        ),
        encoding="utf-8",
    )


@pytest.fixture
def app_env(tmp_path, monkeypatch):
    config_dir = tmp_path / ".flashdeck"
    config_dir.mkdir()
    config_path = config_dir / "config.toml"
    _write_test_config(config_path)

    for name in ("FLASHDECK_SECRET_KEY", "FLASHDECK_TOKEN_MINUTES", "FLASHDECK_DEFAULT_LIMIT", "FLASHDECK_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(config, "CONFIG_PATH", config_path)
    monkeypatch.setattr(database, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(database, "DB_PATH", config_dir / "flashdeck.db")

    database.init_db()
    return config_dir


@pytest.fixture
def conn(app_env):
    with database.get_conn() as connection:
        yield connection


@pytest.fixture
def client(app_env):
    from main import app

    return TestClient(app)


@pytest.fixture
def now():
    return datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def insert_user(conn, email="ada@example.com") -> str:
    user_id = str(uuid.uuid4())
    conn.execute(
        "INSERT INTO users (id, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
        (user_id, email, "x", to_iso(datetime.now(timezone.utc))),
    )
    conn.commit()
    return user_id


def insert_deck(conn, user_id: str, name="Algebra") -> str:
    deck_id = str(uuid.uuid4())
    stamp = to_iso(datetime.now(timezone.utc))
    conn.execute(
        "INSERT INTO decks (id, user_id, name, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
        (deck_id, user_id, name, stamp, stamp),
    )
    conn.commit()
    return deck_id


def insert_flashcards(conn, deck_id: str, count: int, start: datetime = None) -> list:
    start = start or datetime(2026, 1, 1, tzinfo=timezone.utc)
    ids = []
    for index in range(count):
        card_id = str(uuid.uuid4())
        stamp = to_iso(start + timedelta(minutes=index))
        conn.execute(
            """
            INSERT INTO flashcards (id, deck_id, front, back, is_ai_generated, created_at, updated_at)
            VALUES (?, ?, ?, ?, 0, ?, ?)
            """,
            (card_id, deck_id, f"Q{index}", f"A{index}", stamp, stamp),
        )
        ids.append(card_id)
    conn.commit()
    return ids


def auth_headers(client, email="ada@example.com", password="correct horse") -> dict:
    client.post("/auth/register", json={"email": email, "password": password})
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200
    client.cookies.clear()
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
