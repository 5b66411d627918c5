# SQL schema for FlashDeck database

SCHEMA_VERSION = 2

SCHEMA_SQL = """
-- Users
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT UNIQUE NOT NULL,
    username TEXT,
    password_hash TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT
);

-- Decks (owned by one user, names unique per user)
CREATE TABLE IF NOT EXISTS decks (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL CHECK(length(name) BETWEEN 1 AND 255),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (user_id, name),
    FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
);

-- Flashcards
CREATE TABLE IF NOT EXISTS flashcards (
    id TEXT PRIMARY KEY,
    deck_id TEXT NOT NULL,
    front TEXT NOT NULL CHECK(length(front) BETWEEN 1 AND 5000),
    back TEXT NOT NULL CHECK(length(back) BETWEEN 1 AND 5000),
    is_ai_generated INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (deck_id) REFERENCES decks (id) ON DELETE CASCADE
);

-- Study records (SM-2 state per user/flashcard)
CREATE TABLE IF NOT EXISTS study_records (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    flashcard_id TEXT NOT NULL,
    ease_factor REAL NOT NULL DEFAULT 2.5 CHECK(ease_factor >= 1.3),
    interval_days INTEGER NOT NULL DEFAULT 0 CHECK(interval_days >= 0),
    repetitions INTEGER NOT NULL DEFAULT 0 CHECK(repetitions >= 0),
    lapses INTEGER NOT NULL DEFAULT 0 CHECK(lapses >= 0),
    state TEXT NOT NULL DEFAULT 'new' CHECK(state IN ('new', 'learning', 'review', 'relearning')),
    next_review_date TEXT NOT NULL,
    last_review_date TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (user_id, flashcard_id),
    FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE,
    FOREIGN KEY (flashcard_id) REFERENCES flashcards (id) ON DELETE CASCADE
);

-- Review log
CREATE TABLE IF NOT EXISTS reviews (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    study_record_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    rating TEXT NOT NULL CHECK(rating IN ('again', 'good', 'easy')),
    reviewed_at TEXT NOT NULL,
    FOREIGN KEY (study_record_id) REFERENCES study_records (id) ON DELETE CASCADE,
    FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
);
"""

# Indexes for performance
INDEXES_SQL = """
CREATE UNIQUE INDEX IF NOT EXISTS idx_users_username ON users (username COLLATE NOCASE);
CREATE INDEX IF NOT EXISTS idx_decks_user ON decks (user_id);
CREATE INDEX IF NOT EXISTS idx_flashcards_deck ON flashcards (deck_id, created_at);
CREATE INDEX IF NOT EXISTS idx_study_records_flashcard ON study_records (flashcard_id);
CREATE INDEX IF NOT EXISTS idx_study_records_user_due ON study_records (user_id, next_review_date);
CREATE INDEX IF NOT EXISTS idx_reviews_user_ts ON reviews (user_id, reviewed_at);
CREATE INDEX IF NOT EXISTS idx_reviews_record ON reviews (study_record_id);
"""
