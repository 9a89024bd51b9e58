"""Host platform adapter.

The Book API is a thin layer over a generic content platform. This module is
that platform: a content-item store, a taxonomy store, a user directory and a
registry of content types and taxonomies, all backed by SQLite. Only the
operations the Book API consumes are exposed.
"""

from __future__ import annotations

import hashlib
import logging
import re
import secrets
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import database
from database import get_db_connection, initialize_database

logger = logging.getLogger(__name__)


class HostError(Exception):
    """Raised when a host storage or directory call fails."""


class UnknownContentTypeError(HostError):
    pass


class UnknownTaxonomyError(HostError):
    pass


class UserProvisioningError(HostError):
    pass


@dataclass
class ContentTypeSchema:
    name: str
    labels: Dict[str, str] = field(default_factory=dict)
    supports: Tuple[str, ...] = ("title",)
    public: bool = True
    hierarchical: bool = False
    rewrite_slug: Optional[str] = None


@dataclass
class TaxonomySchema:
    name: str
    object_types: Tuple[str, ...]
    labels: Dict[str, str] = field(default_factory=dict)
    hierarchical: bool = False
    rewrite_slug: Optional[str] = None


@dataclass
class ContentItem:
    id: int
    content_type: str
    title: str
    excerpt: str
    author_id: Optional[int]
    status: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class User:
    id: int
    user_login: str
    first_name: str
    last_name: str
    display_name: str
    role: str


def slugify(text: str) -> str:
    """Lowercase ``text`` and collapse anything but letters and digits into single hyphens."""
    slug = re.sub(r"[\W_]+", "-", (text or "").strip().lower())
    return slug.strip("-")


def hash_password(password: str, iterations: int = 120000) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations)
    return f"pbkdf2_sha256${iterations}${salt}${digest.hex()}"


class Host:
    """Entry point to the host services for one database file."""

    def __init__(self, db_file: Optional[str] = None) -> None:
        self.db_file = db_file or database.DATABASE_FILE
        initialize_database(self.db_file)
        self.content_types: Dict[str, ContentTypeSchema] = {}
        self.taxonomies: Dict[str, TaxonomySchema] = {}
        self.content = ContentStore(self)
        self.taxonomy = TaxonomyStore(self)
        self.users = UserDirectory(self)

    def register_content_type(self, schema: ContentTypeSchema) -> None:
        self.content_types[schema.name] = schema
        logger.debug(f"Registered content type {schema.name!r}")

    def register_taxonomy(self, schema: TaxonomySchema) -> None:
        missing = [t for t in schema.object_types if t not in self.content_types]
        if missing:
            raise UnknownContentTypeError(f"Taxonomy {schema.name!r} targets unknown content types: {missing}")
        self.taxonomies[schema.name] = schema
        logger.debug(f"Registered taxonomy {schema.name!r} for {list(schema.object_types)}")

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection that commits on success; sqlite errors become HostError."""
        conn = get_db_connection(self.db_file)
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise HostError(str(e)) from e
        finally:
            conn.close()


def _row_to_item(row: sqlite3.Row) -> ContentItem:
    return ContentItem(
        id=row["id"],
        content_type=row["content_type"],
        title=row["title"],
        excerpt=row["excerpt"],
        author_id=row["author_id"],
        status=row["status"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class ContentStore:
    """Typed content items (title, excerpt, author, status)."""

    _UPDATABLE = ("title", "excerpt", "author_id", "status")

    def __init__(self, host: Host) -> None:
        self.host = host

    def create_item(self, content_type: str, title: str, excerpt: str = "",
                    author_id: Optional[int] = None, status: str = "draft") -> int:
        if content_type not in self.host.content_types:
            raise UnknownContentTypeError(f"Content type {content_type!r} is not registered.")
        with self.host.connection() as conn:
            cursor = conn.execute(
                "INSERT INTO content_items (content_type, title, excerpt, author_id, status) VALUES (?, ?, ?, ?, ?)",
                (content_type, title, excerpt, author_id, status),
            )
            return cursor.lastrowid

    def get_item(self, item_id: int) -> Optional[ContentItem]:
        with self.host.connection() as conn:
            row = conn.execute("SELECT * FROM content_items WHERE id = ?", (item_id,)).fetchone()
        return _row_to_item(row) if row else None

    def get_content_type(self, item_id: int) -> Optional[str]:
        item = self.get_item(item_id)
        return item.content_type if item else None

    def update_item(self, item_id: int, content_type: str, **fields) -> bool:
        """Update the given columns of an item of ``content_type``. Returns False if no such item."""
        unknown = set(fields) - set(self._UPDATABLE)
        if unknown:
            raise ValueError(f"Cannot update content item fields: {sorted(unknown)}")
        with self.host.connection() as conn:
            if not fields:
                row = conn.execute(
                    "SELECT 1 FROM content_items WHERE id = ? AND content_type = ?", (item_id, content_type)
                ).fetchone()
                return row is not None
            assignments = ", ".join(f"{name} = ?" for name in fields)
            cursor = conn.execute(
                f"UPDATE content_items SET {assignments}, updated_at = CURRENT_TIMESTAMP "
                "WHERE id = ? AND content_type = ?",
                (*fields.values(), item_id, content_type),
            )
            return cursor.rowcount > 0

    def delete_item(self, item_id: int) -> bool:
        """Permanently delete an item; its term links go with it."""
        with self.host.connection() as conn:
            cursor = conn.execute("DELETE FROM content_items WHERE id = ?", (item_id,))
            return cursor.rowcount > 0

    def list_items(self, content_type: str, status: Optional[str] = None) -> List[ContentItem]:
        query = "SELECT * FROM content_items WHERE content_type = ?"
        params: list = [content_type]
        if status is not None:
            query += " AND status = ?"
            params.append(status)
        query += " ORDER BY created_at DESC, id DESC"
        with self.host.connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_item(row) for row in rows]


class TaxonomyStore:
    """Terms of registered taxonomies and their links to content items."""

    def __init__(self, host: Host) -> None:
        self.host = host

    def _require(self, taxonomy: str) -> TaxonomySchema:
        schema = self.host.taxonomies.get(taxonomy)
        if schema is None:
            raise UnknownTaxonomyError(f"Taxonomy {taxonomy!r} is not registered.")
        return schema

    def set_item_terms(self, item_id: int, taxonomy: str, names: Sequence[str], append: bool = False) -> List[int]:
        """Attach terms by name, creating missing ones. Without ``append`` the previous set is replaced."""
        self._require(taxonomy)
        term_ids: List[int] = []
        with self.host.connection() as conn:
            for name in names:
                name = name.strip()
                if not name:
                    continue
                slug = slugify(name) or name.lower()
                row = conn.execute(
                    "SELECT id FROM terms WHERE taxonomy = ? AND slug = ?", (taxonomy, slug)
                ).fetchone()
                if row:
                    term_id = row["id"]
                else:
                    term_id = conn.execute(
                        "INSERT INTO terms (taxonomy, name, slug) VALUES (?, ?, ?)", (taxonomy, name, slug)
                    ).lastrowid
                if term_id not in term_ids:
                    term_ids.append(term_id)

            if not append:
                conn.execute(
                    "DELETE FROM item_terms WHERE item_id = ? "
                    "AND term_id IN (SELECT id FROM terms WHERE taxonomy = ?)",
                    (item_id, taxonomy),
                )
            conn.executemany(
                "INSERT OR IGNORE INTO item_terms (item_id, term_id) VALUES (?, ?)",
                [(item_id, term_id) for term_id in term_ids],
            )
        return term_ids

    def get_term_names(self, item_id: int, taxonomy: str) -> List[str]:
        self._require(taxonomy)
        with self.host.connection() as conn:
            rows = conn.execute(
                """
                SELECT t.name FROM terms t
                JOIN item_terms it ON it.term_id = t.id
                WHERE it.item_id = ? AND t.taxonomy = ?
                ORDER BY t.name COLLATE NOCASE
                """,
                (item_id, taxonomy),
            ).fetchall()
        return [row["name"] for row in rows]


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        user_login=row["user_login"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        display_name=row["display_name"],
        role=row["role"],
    )


class UserDirectory:
    """User records with display-name search."""

    _SEARCHABLE = ("display_name", "user_login")
    _META = ("first_name", "last_name", "display_name", "user_login", "role")

    def __init__(self, host: Host) -> None:
        self.host = host

    def search(self, term: str, search_fields: Sequence[str] = ("display_name",)) -> List[User]:
        """Users whose fields contain ``term``, case-insensitively, lowest id first."""
        fields = [f for f in search_fields if f in self._SEARCHABLE]
        if not fields:
            raise ValueError(f"Unsupported search fields: {list(search_fields)}")
        escaped = term.casefold().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        where = " OR ".join(f"casefold({f}) LIKE ? ESCAPE '\\'" for f in fields)
        with self.host.connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM users WHERE {where} ORDER BY id", [f"%{escaped}%"] * len(fields)
            ).fetchall()
        return [_row_to_user(row) for row in rows]

    def _unique_login(self, conn: sqlite3.Connection, login: str) -> str:
        candidate, suffix = login, 2
        while conn.execute("SELECT 1 FROM users WHERE user_login = ?", (candidate,)).fetchone():
            candidate = f"{login}-{suffix}"
            suffix += 1
        return candidate

    def create_user(self, user_login: str, password: str, first_name: str = "", last_name: str = "",
                    display_name: str = "", role: str = "subscriber") -> int:
        login = slugify(user_login)
        if not login:
            raise UserProvisioningError(f"Cannot derive a login from {user_login!r}.")
        try:
            with self.host.connection() as conn:
                login = self._unique_login(conn, login)
                cursor = conn.execute(
                    """
                    INSERT INTO users (user_login, user_pass, first_name, last_name, display_name, role)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (login, hash_password(password), first_name, last_name, display_name or login, role),
                )
                return cursor.lastrowid
        except HostError as e:
            raise UserProvisioningError(f"Could not create user {login!r}: {e}") from e

    def get_user(self, user_id: Optional[int]) -> Optional[User]:
        if not user_id:
            return None
        with self.host.connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return _row_to_user(row) if row else None

    def get_user_meta(self, user_id: Optional[int], key: str) -> str:
        """A single profile field, or an empty string for unknown users or keys."""
        if key not in self._META:
            return ""
        user = self.get_user(user_id)
        return getattr(user, key) if user else ""
