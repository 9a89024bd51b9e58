from __future__ import annotations

from typing import List, Optional, Union

from host import ContentItem, User

# Genre value shown when a book has no terms or the term lookup failed
GENRE_FALLBACK = "N/A"


def normalize_genres(value) -> List[str]:
    """Turn a genre parameter into a list of labels.

    Strings are split on commas; lists keep one label per entry. Blank labels
    are dropped.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        raw = [str(v) for v in value if v is not None]
    else:
        raw = str(value).split(",")
    return [label.strip() for label in raw if label.strip()]


class Book:
    """A book as stored on the host: a ``books`` content item plus its genres."""

    def __init__(self, title: str = "", description: str = "", genre: Union[List[str], str] = GENRE_FALLBACK,
                 author_id: Optional[int] = None, book_id: Optional[int] = None) -> None:
        self.book_id = book_id
        self.title = title
        self.description = description
        self.genre = genre
        self.author_id = author_id

    @property
    def exists(self) -> bool:
        return self.book_id is not None

    def to_dict(self, author: Optional[User] = None) -> dict:
        """Public representation; an unknown author serializes with empty names."""
        return {
            "title": self.title,
            "description": self.description,
            "genre": list(self.genre) if isinstance(self.genre, list) else self.genre,
            "author": {
                "first_name": author.first_name if author else "",
                "last_name": author.last_name if author else "",
            },
        }

    @staticmethod
    def from_item(item: Optional[ContentItem], genres: Optional[List[str]] = None) -> "Book":
        """Build a Book from a host content item. A missing item gives an empty book."""
        genre = genres if genres else GENRE_FALLBACK
        if item is None:
            return Book(genre=genre)
        return Book(
            title=item.title,
            description=item.excerpt,
            genre=genre,
            author_id=item.author_id,
            book_id=item.id,
        )
