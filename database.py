import sqlite3
from typing import Optional

from config import settings

# Default database file. BOOKS_DB_FILE (via config) overrides it; Host(db_file=...)
# overrides both for a single host instance.
DATABASE_FILE = settings.db_file


def _casefold(value: Optional[str]) -> Optional[str]:
    return value.casefold() if isinstance(value, str) else value


def get_db_connection(db_file: Optional[str] = None) -> sqlite3.Connection:
    """Open a connection to the SQLite database with foreign keys enforced."""
    conn = sqlite3.connect(db_file or DATABASE_FILE)
    conn.row_factory = sqlite3.Row
    # SQLite's LIKE and lower() only fold ASCII letters
    conn.create_function("casefold", 1, _casefold, deterministic=True)
    # Needed per connection for the ON DELETE CASCADE on item_terms
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def create_tables(db_file: Optional[str] = None) -> None:
    """Creates the host tables if they don't exist."""
    conn = get_db_connection(db_file)
    try:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_login TEXT UNIQUE NOT NULL,
                user_pass TEXT NOT NULL,
                first_name TEXT NOT NULL DEFAULT '',
                last_name TEXT NOT NULL DEFAULT '',
                display_name TEXT NOT NULL DEFAULT '',
                role TEXT NOT NULL DEFAULT 'subscriber',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # Generic content items; author_id is a plain reference, like the host's
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS content_items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                content_type TEXT NOT NULL,
                title TEXT NOT NULL DEFAULT '',
                excerpt TEXT NOT NULL DEFAULT '',
                author_id INTEGER,
                status TEXT NOT NULL DEFAULT 'draft',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS terms (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                taxonomy TEXT NOT NULL,
                name TEXT NOT NULL,
                slug TEXT NOT NULL,
                UNIQUE (taxonomy, slug)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS item_terms (
                item_id INTEGER NOT NULL,
                term_id INTEGER NOT NULL,
                PRIMARY KEY (item_id, term_id),
                FOREIGN KEY (item_id) REFERENCES content_items(id) ON DELETE CASCADE,
                FOREIGN KEY (term_id) REFERENCES terms(id) ON DELETE CASCADE
            )
        """)

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_users_display_name ON users(display_name)")
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_content_items_type_status ON content_items(content_type, status)"
        )
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_item_terms_term_id ON item_terms(term_id)")
        conn.commit()
    finally:
        conn.close()


def initialize_database(db_file: Optional[str] = None) -> None:
    """Initializes the database, creating tables if needed."""
    create_tables(db_file)
