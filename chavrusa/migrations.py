"""
Schema migrations and legacy data import

Migrations are an explicit, ordered ledger recorded in ``schema_migrations``.
Each pending version runs once at startup in its own transaction:

1. create_base_tables - create any missing table
2. add_missing_post_columns - bring an older physical schema up to date
3. backfill_availability_notes - move the legacy ``availability`` column

The legacy ``posts.json`` import is recorded in the same ledger under
LEGACY_IMPORT_VERSION so it happens at most once per database.
"""

import json
import logging
import secrets
from pathlib import Path
from typing import Any, Callable, Optional

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection, Engine

from .database import Base
from .shared.clock import now_iso
from .shared.validators import parse_availability_slots

logger = logging.getLogger(__name__)

LEGACY_IMPORT_VERSION = 1000
LEGACY_IMPORT_NAME = "legacy_json_import"

# Columns added to the boards over time: (column, DDL fragment)
POST_COLUMNS = [
    ("seferName", "TEXT NOT NULL DEFAULT ''"),
    ("availabilityNotes", "TEXT NOT NULL DEFAULT ''"),
    ("availabilitySlots", "TEXT NOT NULL DEFAULT '[]'"),
    ("openToOtherTimes", "INTEGER NOT NULL DEFAULT 0"),
    ("posterName", "TEXT NOT NULL DEFAULT ''"),
    ("durationDays", "INTEGER NOT NULL DEFAULT 30"),
    ("createdAt", "TEXT NOT NULL DEFAULT ''"),
    ("expiresAt", "TEXT NOT NULL DEFAULT ''"),
    ("status", "TEXT NOT NULL DEFAULT 'active'"),
]

CONVERSATION_COLUMNS = [
    ("timeZone", "TEXT NOT NULL DEFAULT ''"),
    ("availability", "TEXT NOT NULL DEFAULT ''"),
]


def _column_names(conn: Connection, table: str) -> set[str]:
    return {column["name"] for column in inspect(conn).get_columns(table)}


def _add_missing_columns(conn: Connection, table: str, columns: list[tuple[str, str]]) -> list[str]:
    existing = _column_names(conn, table)
    added = []
    for name, ddl in columns:
        if name not in existing:
            conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {name} {ddl}"))
            added.append(name)
    return added


def create_base_tables(conn: Connection) -> None:
    """Create missing tables; existing tables are left untouched"""
    # Registers the model classes on Base.metadata
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=conn, checkfirst=True)


def add_missing_post_columns(conn: Connection) -> None:
    added = _add_missing_columns(conn, "posts", POST_COLUMNS)
    added += _add_missing_columns(conn, "conversations", CONVERSATION_COLUMNS)
    if added:
        logger.info(f"✅ Added missing column(s): {', '.join(added)}")
    else:
        logger.info("ℹ️  All expected columns already exist")


def backfill_availability_notes(conn: Connection) -> None:
    """Copy the pre-slots free text ``availability`` column into availabilityNotes"""
    if "availability" not in _column_names(conn, "posts"):
        return
    result = conn.execute(
        text(
            "UPDATE posts SET availabilityNotes = availability "
            "WHERE TRIM(availabilityNotes) = '' AND availability IS NOT NULL"
        )
    )
    logger.info(f"✅ Backfilled availability notes on {result.rowcount} post(s)")


MIGRATIONS: list[tuple[int, str, Callable[[Connection], None]]] = [
    (1, "create_base_tables", create_base_tables),
    (2, "add_missing_post_columns", add_missing_post_columns),
    (3, "backfill_availability_notes", backfill_availability_notes),
]


def _ensure_ledger(conn: Connection) -> None:
    conn.execute(
        text(
            "CREATE TABLE IF NOT EXISTS schema_migrations ("
            "version INTEGER PRIMARY KEY, name VARCHAR(100) NOT NULL, appliedAt TEXT NOT NULL)"
        )
    )


def _applied_versions(conn: Connection) -> set[int]:
    return {row[0] for row in conn.execute(text("SELECT version FROM schema_migrations"))}


def _record(conn: Connection, version: int, name: str) -> None:
    conn.execute(
        text("INSERT INTO schema_migrations (version, name, appliedAt) VALUES (:v, :n, :a)"),
        {"v": version, "n": name, "a": now_iso()},
    )


def applied_migrations(engine: Engine) -> list[tuple[int, str, str]]:
    """Ledger rows as (version, name, appliedAt), oldest version first"""
    with engine.begin() as conn:
        _ensure_ledger(conn)
        rows = conn.execute(
            text("SELECT version, name, appliedAt FROM schema_migrations ORDER BY version")
        ).fetchall()
    return [tuple(row) for row in rows]


def run_migrations(engine: Engine) -> list[str]:
    """Apply pending migrations in order. Returns the names applied."""
    with engine.begin() as conn:
        _ensure_ledger(conn)
        applied = _applied_versions(conn)

    ran = []
    for version, name, migration in MIGRATIONS:
        if version in applied:
            continue
        logger.info(f"🚀 Applying migration {version}: {name}")
        with engine.begin() as conn:
            migration(conn)
            _record(conn, version, name)
        ran.append(name)

    if not ran:
        logger.info("ℹ️  Database schema is up to date")
    return ran


def default_for_required_column(name: str, column_type: Any, row: dict) -> Any:
    """Fill value for a NOT NULL column without a default that the model does not map"""
    if name == "postCode":
        return f"CB-{str(row.get('id') or '')[:6].upper()}"
    # Reflected type class, e.g. INTEGER, REAL, or NullType for unknown declarations
    type_name = type(column_type).__name__.upper()
    if any(marker in type_name for marker in ("INT", "REAL", "FLOA", "DOUB")):
        return 0
    return ""


def insert_post_row(engine: Engine, row: dict) -> None:
    """
    Live repair for inserts against an outdated physical schema.

    Missing columns are added first. Columns the model does not know about
    that are NOT NULL without a default get a typed fill value.

    Args:
        row: Post values keyed by physical column name
    """
    with engine.begin() as conn:
        add_missing_post_columns(conn)

        values = dict(row)
        for column in inspect(conn).get_columns("posts"):
            name = column["name"]
            if name in values or column["nullable"] or column.get("default") is not None:
                continue
            values[name] = default_for_required_column(name, column["type"], values)
            logger.info(f"ℹ️  Filling required legacy column {name}")

        names = list(values)
        conn.execute(
            text(
                f"INSERT INTO posts ({', '.join(names)}) "
                f"VALUES ({', '.join(':' + name for name in names)})"
            ),
            values,
        )


def _legacy_post_row(post: dict) -> dict:
    return {
        "id": post.get("id") or secrets.token_hex(8),
        "manageToken": post.get("manageToken") or secrets.token_hex(16),
        "category": post.get("category") or "Other",
        "seferName": post.get("seferName") or post.get("topic") or "",
        "topic": post.get("topic") or "Untitled",
        "learningStyle": post.get("learningStyle") or "",
        "familiarityLevel": post.get("familiarityLevel") or "Beginner",
        "timeZone": post.get("timeZone") or "America/New_York",
        "availabilityNotes": post.get("availabilityNotes") or post.get("availability") or "",
        "availabilitySlots": json.dumps(parse_availability_slots(post.get("availabilitySlots"))),
        "openToOtherTimes": 1 if post.get("openToOtherTimes") else 0,
        "format": post.get("format") or "flexible",
        "city": post.get("city") or "",
        "state": post.get("state") or "",
        "contactMethod": post.get("contactMethod") or "relay",
        "posterName": post.get("posterName") or "",
        "email": post.get("email") or "missing@example.com",
        "durationDays": int(post.get("durationDays") or 7),
        "createdAt": post.get("createdAt") or now_iso(),
        "expiresAt": post.get("expiresAt") or now_iso(),
        "status": post.get("status") or "active",
    }


INSERT_POST = text(
    """
    INSERT INTO posts (
      id, manageToken, category, seferName, topic, learningStyle, familiarityLevel, timeZone,
      availabilityNotes, availabilitySlots, openToOtherTimes, format, city, state, contactMethod,
      posterName, email, durationDays, createdAt, expiresAt, status
    ) VALUES (
      :id, :manageToken, :category, :seferName, :topic, :learningStyle, :familiarityLevel, :timeZone,
      :availabilityNotes, :availabilitySlots, :openToOtherTimes, :format, :city, :state, :contactMethod,
      :posterName, :email, :durationDays, :createdAt, :expiresAt, :status
    )
    """
)

INSERT_CONVERSATION = text(
    """
    INSERT INTO conversations (id, postId, responderEmail, message, timeZone, availability, createdAt)
    VALUES (:id, :postId, :responderEmail, :message, :timeZone, :availability, :createdAt)
    """
)

INSERT_REPLY = text(
    "INSERT INTO replies (conversationId, message, createdAt) VALUES (:conversationId, :message, :createdAt)"
)


def import_legacy_posts(engine: Engine, json_path: Optional[str]) -> int:
    """
    Load the flat-file board into an empty database exactly once.

    The whole file (posts, nested conversations, nested replies) is written in
    one transaction together with the ledger marker.

    Returns:
        Number of posts imported (0 when skipped)
    """
    if not json_path:
        return 0
    path = Path(json_path)

    with engine.begin() as conn:
        _ensure_ledger(conn)
        if LEGACY_IMPORT_VERSION in _applied_versions(conn):
            return 0
        post_count = conn.execute(text("SELECT COUNT(*) FROM posts")).scalar()

    if post_count or not path.exists():
        return 0

    legacy_posts = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(legacy_posts, list) or not legacy_posts:
        return 0

    with engine.begin() as conn:
        for post in legacy_posts:
            row = _legacy_post_row(post)
            conn.execute(INSERT_POST, row)

            conversations = post.get("conversations")
            for conversation in conversations if isinstance(conversations, list) else []:
                conversation_id = conversation.get("id") or secrets.token_hex(6)
                conn.execute(
                    INSERT_CONVERSATION,
                    {
                        "id": conversation_id,
                        "postId": row["id"],
                        "responderEmail": conversation.get("responderEmail") or "missing@example.com",
                        "message": conversation.get("message") or "",
                        "timeZone": conversation.get("timeZone") or "",
                        "availability": conversation.get("availability") or "",
                        "createdAt": conversation.get("createdAt") or now_iso(),
                    },
                )

                replies = conversation.get("replies")
                for reply in replies if isinstance(replies, list) else []:
                    conn.execute(
                        INSERT_REPLY,
                        {
                            "conversationId": conversation_id,
                            "message": reply.get("message") or "",
                            "createdAt": reply.get("createdAt") or now_iso(),
                        },
                    )

        _record(conn, LEGACY_IMPORT_VERSION, LEGACY_IMPORT_NAME)

    logger.info(f"✅ Migrated {len(legacy_posts)} post(s) from {path.name} to SQLite")
    return len(legacy_posts)
