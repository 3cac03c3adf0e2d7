"""SQLite persistence for sortbox feedback and rules."""

import json
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime

from .config import get_db_path
from .models import ClassifiableItem, FeedbackRecord, Rule


def get_connection() -> sqlite3.Connection:
    """Get a database connection."""
    conn = sqlite3.connect(get_db_path())
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def get_db() -> Iterator[sqlite3.Connection]:
    """Context manager for database connections."""
    conn = get_connection()
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def init_db() -> None:
    """Initialize the database schema."""
    with get_db() as conn:
        conn.executescript("""
            -- User corrections, one per sender and subject
            CREATE TABLE IF NOT EXISTS feedback (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                sender_address TEXT NOT NULL,
                subject TEXT NOT NULL,
                body TEXT,
                correct_bucket TEXT NOT NULL,
                recorded_at TEXT,
                UNIQUE (sender_address, subject)
            );

            -- Active folder rules (defaults, custom and derived)
            CREATE TABLE IF NOT EXISTS rules (
                bucket_key TEXT PRIMARY KEY,
                bucket_name TEXT NOT NULL,
                keywords TEXT,
                known_senders TEXT,
                known_domains TEXT,
                priority INTEGER,
                source TEXT,
                position INTEGER
            );
        """)


_UPSERT_FEEDBACK = """
    INSERT INTO feedback (sender_address, subject, body, correct_bucket, recorded_at)
    VALUES (?, ?, ?, ?, ?)
    ON CONFLICT(sender_address, subject) DO UPDATE SET
        body = excluded.body,
        correct_bucket = excluded.correct_bucket,
        recorded_at = excluded.recorded_at
"""


def _feedback_params(record: FeedbackRecord) -> tuple:
    return (
        record.item.sender_address,
        record.item.subject,
        record.item.body,
        record.correct_bucket,
        record.recorded_at.isoformat(),
    )


def save_feedback(records: Iterable[FeedbackRecord]) -> None:
    """Insert or update feedback records in one transaction.

    An updated record keeps its original position.
    """
    with get_db() as conn:
        conn.executemany(_UPSERT_FEEDBACK, [_feedback_params(record) for record in records])


def get_feedback() -> list[FeedbackRecord]:
    """Get all feedback records in insertion order."""
    with get_db() as conn:
        rows = conn.execute("SELECT * FROM feedback ORDER BY id").fetchall()
        return [_row_to_feedback(row) for row in rows]


def _row_to_feedback(row: sqlite3.Row) -> FeedbackRecord:
    return FeedbackRecord(
        item=ClassifiableItem(
            subject=row["subject"],
            body=row["body"] or "",
            sender_address=row["sender_address"],
        ),
        correct_bucket=row["correct_bucket"],
        recorded_at=(
            datetime.fromisoformat(row["recorded_at"]) if row["recorded_at"] else datetime.now()
        ),
    )


def save_rules(rules: Iterable[Rule]) -> None:
    """Replace the stored rule set."""
    with get_db() as conn:
        conn.execute("DELETE FROM rules")
        conn.executemany(
            """
            INSERT OR REPLACE INTO rules
                (bucket_key, bucket_name, keywords, known_senders, known_domains,
                 priority, source, position)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
            [
                (
                    rule.key,
                    rule.bucket_name,
                    json.dumps(list(rule.keywords)),
                    json.dumps(list(rule.known_senders)),
                    json.dumps(list(rule.known_domains)),
                    rule.priority,
                    rule.source,
                    position,
                )
                for position, rule in enumerate(rules)
            ],
        )


def get_rules() -> list[Rule]:
    """Get the stored rule set in its saved order."""
    with get_db() as conn:
        rows = conn.execute("SELECT * FROM rules ORDER BY position").fetchall()
        return [
            Rule(
                bucket_name=row["bucket_name"],
                keywords=tuple(json.loads(row["keywords"] or "[]")),
                known_senders=tuple(json.loads(row["known_senders"] or "[]")),
                known_domains=tuple(json.loads(row["known_domains"] or "[]")),
                priority=row["priority"],
                source=row["source"] or "custom",
            )
            for row in rows
        ]


def clear() -> None:
    """Delete all stored feedback and rules."""
    with get_db() as conn:
        conn.execute("DELETE FROM feedback")
        conn.execute("DELETE FROM rules")


def get_stats() -> dict:
    """Get overall statistics."""
    with get_db() as conn:
        feedback = conn.execute("SELECT COUNT(*) as count FROM feedback").fetchone()
        buckets = conn.execute(
            "SELECT COUNT(DISTINCT correct_bucket) as count FROM feedback"
        ).fetchone()
        rules = conn.execute("SELECT COUNT(*) as count FROM rules").fetchone()
        derived = conn.execute(
            "SELECT COUNT(*) as count FROM rules WHERE source = 'derived'"
        ).fetchone()
        last = conn.execute(
            "SELECT recorded_at FROM feedback ORDER BY recorded_at DESC LIMIT 1"
        ).fetchone()

        return {
            "feedback_records": feedback["count"],
            "feedback_buckets": buckets["count"],
            "rules": rules["count"],
            "derived_rules": derived["count"],
            "last_feedback": last["recorded_at"] if last else None,
        }
