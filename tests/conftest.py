"""Pytest configuration and fixtures."""

import pytest

from recordkit import SQLiteConnection

SCHEMA = [
    """
    CREATE TABLE users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        email TEXT,
        created_at TEXT,
        updated_at TEXT
    )
    """,
    """
    CREATE TABLE profiles (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER REFERENCES users(id),
        bio TEXT,
        created_at TEXT,
        updated_at TEXT
    )
    """,
    """
    CREATE TABLE posts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER REFERENCES users(id),
        title TEXT NOT NULL,
        body TEXT,
        status TEXT DEFAULT 'draft',
        views INTEGER DEFAULT 0,
        meta TEXT,
        published_at TEXT,
        created_at TEXT,
        updated_at TEXT
    )
    """,
    """
    CREATE TABLE comments (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        post_id INTEGER REFERENCES posts(id),
        user_id INTEGER REFERENCES users(id),
        content TEXT NOT NULL,
        created_at TEXT,
        updated_at TEXT
    )
    """,
    """
    CREATE TABLE tags (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        created_at TEXT,
        updated_at TEXT
    )
    """,
    """
    CREATE TABLE post_tag (
        post_id INTEGER NOT NULL REFERENCES posts(id),
        tag_id INTEGER NOT NULL REFERENCES tags(id),
        position INTEGER
    )
    """,
]

SEED = [
    ("INSERT INTO users (name, email) VALUES (?, ?)", ["Alice", "alice@example.com"]),
    ("INSERT INTO users (name, email) VALUES (?, ?)", ["Bob", "bob@example.com"]),
    ("INSERT INTO profiles (user_id, bio) VALUES (?, ?)", [1, "Writes about databases"]),
    ("INSERT INTO posts (user_id, title, status, views) VALUES (?, ?, ?, ?)", [1, "Hello", "published", 10]),
    ("INSERT INTO posts (user_id, title, status, views) VALUES (?, ?, ?, ?)", [1, "Draft", "draft", 0]),
    ("INSERT INTO posts (user_id, title, status, views) VALUES (?, ?, ?, ?)", [2, "World", "published", 5]),
    ("INSERT INTO comments (post_id, user_id, content) VALUES (?, ?, ?)", [1, 2, "Nice post"]),
    ("INSERT INTO comments (post_id, user_id, content) VALUES (?, ?, ?)", [1, 1, "Thanks"]),
    ("INSERT INTO comments (post_id, user_id, content) VALUES (?, ?, ?)", [3, 1, "Cool"]),
    ("INSERT INTO tags (name) VALUES (?)", ["python"]),
    ("INSERT INTO tags (name) VALUES (?)", ["sql"]),
    ("INSERT INTO tags (name) VALUES (?)", ["orm"]),
    ("INSERT INTO post_tag (post_id, tag_id, position) VALUES (?, ?, ?)", [1, 1, 1]),
    ("INSERT INTO post_tag (post_id, tag_id, position) VALUES (?, ?, ?)", [1, 2, 2]),
    ("INSERT INTO post_tag (post_id, tag_id, position) VALUES (?, ?, ?)", [3, 2, 1]),
]


class RecordingConnection:
    """Wraps a connection and records every statement sent through it."""

    def __init__(self, inner):
        self.inner = inner
        self.queries = []

    def _record(self, sql, bindings):
        self.queries.append((sql, list(bindings or [])))

    def execute(self, sql, bindings=None):
        self._record(sql, bindings)
        return self.inner.execute(sql, bindings)

    def execute_statement(self, sql, bindings=None):
        self._record(sql, bindings)
        return self.inner.execute_statement(sql, bindings)

    def insert(self, sql, bindings=None):
        self._record(sql, bindings)
        return self.inner.insert(sql, bindings)

    def last_insert_id(self):
        return self.inner.last_insert_id()

    def begin_transaction(self):
        self.inner.begin_transaction()

    def commit(self):
        self.inner.commit()

    def rollback(self):
        self.inner.rollback()

    def sql(self):
        """Just the SQL text of the recorded statements."""
        return [sql for sql, _ in self.queries]

    def reset(self):
        self.queries.clear()


@pytest.fixture
def conn():
    """An in-memory SQLite connection with the blog schema."""
    connection = SQLiteConnection(":memory:")
    for statement in SCHEMA:
        connection.execute_statement(statement)
    yield connection
    connection.close()


@pytest.fixture
def seeded(conn):
    """The blog schema with two users, three posts, comments and tags."""
    for sql, bindings in SEED:
        conn.insert(sql, bindings)
    return conn


@pytest.fixture
def recorder(seeded):
    """A recording wrapper around the seeded connection."""
    return RecordingConnection(seeded)
