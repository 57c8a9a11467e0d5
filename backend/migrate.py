# backend/migrate.py
# Database migration module for the Shelf SQLite store
# Run: python -m backend.migrate

import sqlite3

from backend.db import get_db_connection


def run_migrations() -> None:
    """
    Run all database migrations (idempotent).
    Creates tables, adds columns, and creates indexes if missing.
    Safe to run multiple times.
    """
    print("[MIGRATE] Starting database migrations...")

    with get_db_connection() as conn:
        _run_sqlite_migrations(conn)
        conn.commit()

    print("[MIGRATE] All migrations complete!")


def _run_sqlite_migrations(conn: sqlite3.Connection) -> None:
    cur = conn.cursor()

    # Users table (rows are provisioned by the identity service)
    cur.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            email TEXT UNIQUE NOT NULL,
            tier TEXT DEFAULT 'free',
            is_active BOOLEAN DEFAULT 1,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
    """)
    _ensure_sqlite_column(cur, conn, "users", "tier", "TEXT DEFAULT 'free'")

    cur.execute("""
        CREATE TABLE IF NOT EXISTS categories (
            id TEXT PRIMARY KEY,
            user_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            description TEXT,
            color TEXT DEFAULT '#808080',
            created_at TEXT NOT NULL,
            FOREIGN KEY (user_id) REFERENCES users (id)
        )
    """)
    cur.execute("CREATE INDEX IF NOT EXISTS idx_categories_user_id ON categories(user_id)")

    cur.execute("""
        CREATE TABLE IF NOT EXISTS locations (
            id TEXT PRIMARY KEY,
            user_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            address TEXT,
            created_at TEXT NOT NULL,
            FOREIGN KEY (user_id) REFERENCES users (id)
        )
    """)
    cur.execute("CREATE INDEX IF NOT EXISTS idx_locations_user_id ON locations(user_id)")

    cur.execute("""
        CREATE TABLE IF NOT EXISTS tags (
            id TEXT PRIMARY KEY,
            user_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            created_at TEXT NOT NULL,
            FOREIGN KEY (user_id) REFERENCES users (id)
        )
    """)
    cur.execute("CREATE INDEX IF NOT EXISTS idx_tags_user_id ON tags(user_id)")

    cur.execute("""
        CREATE TABLE IF NOT EXISTS team_members (
            id TEXT PRIMARY KEY,
            user_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            created_at TEXT NOT NULL,
            FOREIGN KEY (user_id) REFERENCES users (id)
        )
    """)
    cur.execute("CREATE INDEX IF NOT EXISTS idx_team_members_user_id ON team_members(user_id)")

    # Items (assets). state is the lifecycle, status the custody availability.
    cur.execute("""
        CREATE TABLE IF NOT EXISTS items (
            id TEXT PRIMARY KEY,
            user_id INTEGER NOT NULL,
            title TEXT NOT NULL,
            description TEXT,
            category_id TEXT,
            location_id TEXT,
            state TEXT NOT NULL DEFAULT 'active'
                CHECK (state IN ('active', 'inactive', 'archived', 'cancelled')),
            status TEXT NOT NULL DEFAULT 'available'
                CHECK (status IN ('available', 'in_custody')),
            main_image TEXT,
            main_image_expiration TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            FOREIGN KEY (user_id) REFERENCES users (id),
            FOREIGN KEY (category_id) REFERENCES categories (id) ON DELETE SET NULL,
            FOREIGN KEY (location_id) REFERENCES locations (id) ON DELETE SET NULL
        )
    """)
    cur.execute("CREATE INDEX IF NOT EXISTS idx_items_user_created ON items(user_id, created_at)")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_items_category_id ON items(category_id)")

    cur.execute("""
        CREATE TABLE IF NOT EXISTS item_tags (
            item_id TEXT NOT NULL,
            tag_id TEXT NOT NULL,
            PRIMARY KEY (item_id, tag_id),
            FOREIGN KEY (item_id) REFERENCES items (id) ON DELETE CASCADE,
            FOREIGN KEY (tag_id) REFERENCES tags (id) ON DELETE CASCADE
        )
    """)

    cur.execute("""
        CREATE TABLE IF NOT EXISTS custody (
            id TEXT PRIMARY KEY,
            item_id TEXT UNIQUE NOT NULL,
            team_member_id TEXT NOT NULL,
            created_at TEXT NOT NULL,
            FOREIGN KEY (item_id) REFERENCES items (id) ON DELETE CASCADE,
            FOREIGN KEY (team_member_id) REFERENCES team_members (id) ON DELETE CASCADE
        )
    """)

    cur.execute("""
        CREATE TABLE IF NOT EXISTS notes (
            id TEXT PRIMARY KEY,
            user_id INTEGER NOT NULL,
            item_id TEXT NOT NULL,
            content TEXT NOT NULL,
            created_at TEXT NOT NULL,
            FOREIGN KEY (user_id) REFERENCES users (id),
            FOREIGN KEY (item_id) REFERENCES items (id) ON DELETE CASCADE
        )
    """)
    cur.execute("CREATE INDEX IF NOT EXISTS idx_notes_item_id ON notes(item_id)")

    cur.execute("""
        CREATE TABLE IF NOT EXISTS qr_codes (
            id TEXT PRIMARY KEY,
            user_id INTEGER NOT NULL,
            item_id TEXT,
            version INTEGER NOT NULL DEFAULT 0,
            error_correction TEXT NOT NULL DEFAULT 'L',
            created_at TEXT NOT NULL,
            FOREIGN KEY (user_id) REFERENCES users (id),
            FOREIGN KEY (item_id) REFERENCES items (id) ON DELETE SET NULL
        )
    """)
    cur.execute("CREATE INDEX IF NOT EXISTS idx_qr_codes_item_id ON qr_codes(item_id)")

    print("[MIGRATE] SQLite migrations complete")


def _ensure_sqlite_column(cur, conn, table: str, column: str, ddl: str) -> None:
    """Add column to SQLite table if missing (idempotent)."""
    cur.execute(f"PRAGMA table_info({table})")
    columns = {row[1] for row in cur.fetchall()}

    if column not in columns:
        try:
            cur.execute(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}")
            conn.commit()
            print(f"[MIGRATE] Added column {table}.{column}")
        except sqlite3.OperationalError as e:
            if "duplicate column" not in str(e).lower():
                raise


if __name__ == "__main__":
    run_migrations()
