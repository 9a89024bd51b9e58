import logging
from typing import Any, Dict, Iterable, List, Optional

from authors import resolve_or_create_author
from book import Book, normalize_genres
from config import settings
from host import ContentTypeSchema, Host, HostError, TaxonomySchema, User

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("title", "description", "genre", "author")


class MissingRequiredFieldError(ValueError):
    """Raised when a create request lacks one of the required book fields."""

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"Missing required book fields: {', '.join(self.missing)}")


class BookNotFoundError(LookupError):
    pass


def require_fields(params: Dict[str, Any], fields: Iterable[str] = REQUIRED_FIELDS) -> None:
    """Presence check only: a field counts as supplied unless it is absent or None."""
    missing = [name for name in fields if params.get(name) is None]
    if missing:
        raise MissingRequiredFieldError(missing)


def register_book_types(host: Host) -> None:
    """Register the ``books`` content type and its genre taxonomy with the host."""
    host.register_content_type(ContentTypeSchema(
        name=settings.content_type,
        labels={
            "name": "Books",
            "singular_name": "Book",
            "add_new_item": "Add new Book",
            "edit_item": "Edit Book",
            "search_items": "Search Books",
            "not_found": "No Books found",
        },
        supports=("title", "excerpt", "author"),
        public=True,
        hierarchical=False,
        rewrite_slug="book",
    ))
    host.register_taxonomy(TaxonomySchema(
        name=settings.genre_taxonomy,
        object_types=(settings.content_type,),
        labels={"name": "Book Genres", "singular_name": "Book Genre"},
        hierarchical=False,
        rewrite_slug="book-genre",
    ))


class Library:
    """Book operations expressed as host content, taxonomy and user calls."""

    def __init__(self, host: Host) -> None:
        self.host = host

    # ------------------------- Core operations ------------------------- #
    def create(self, title: Optional[str], description: Optional[str], genre: Any,
               author_id: Optional[int]) -> int:
        """Publish a new book and tag it with its genres. Returns the new book id."""
        require_fields(
            {"title": title, "description": description, "genre": genre, "author": author_id}
        )
        book_id = self.host.content.create_item(
            settings.content_type,
            title=str(title),
            excerpt=str(description),
            author_id=author_id,
            status=settings.publish_status,
        )
        self.host.taxonomy.set_item_terms(book_id, settings.genre_taxonomy, normalize_genres(genre))
        logger.info(f"Created book {book_id} ({title!r})")
        return book_id

    def read(self, book_id: Optional[int]) -> Book:
        """Fetch a book. Ids that are not books give an empty, default-filled Book."""
        item = None
        if book_id:
            try:
                item = self.host.content.get_item(book_id)
            except HostError as e:
                logger.warning(f"Could not load book {book_id}: {e}")
        if item is None or item.content_type != settings.content_type:
            return Book.from_item(None)
        return Book.from_item(item, self._genres(item.id))

    def list(self) -> List[Book]:
        """All published books, newest first, no pagination."""
        items = self.host.content.list_items(settings.content_type, status=settings.publish_status)
        return [Book.from_item(item, self._genres(item.id)) for item in items]

    def update(self, book_id: Optional[int], fields: Dict[str, Any]) -> int:
        """Apply the supplied fields to a book; anything falsy or absent is left as is."""
        if not book_id:
            raise BookNotFoundError("Book not found!")

        changes: Dict[str, Any] = {}
        if fields.get("title"):
            changes["title"] = str(fields["title"])
        if fields.get("description"):
            changes["excerpt"] = str(fields["description"])
        genre = fields.get("genre")
        author = fields.get("author")

        if not (changes or genre or author):
            return book_id

        if self.host.content.get_content_type(book_id) != settings.content_type:
            # Matches the host: the update is acknowledged but touches nothing
            logger.warning(f"Update for {book_id} ignored: not a book")
            return book_id

        if genre:
            self.host.taxonomy.set_item_terms(book_id, settings.genre_taxonomy, normalize_genres(genre))
        if author:
            try:
                changes["author_id"] = resolve_or_create_author(str(author), self.host.users)
            except HostError as e:
                logger.warning(f"Author of book {book_id} left unchanged: {e}")

        if changes:
            self.host.content.update_item(book_id, settings.content_type, **changes)
        logger.info(f"Updated book {book_id}: {[k for k in REQUIRED_FIELDS if fields.get(k)]}")
        return book_id

    def delete(self, book_id: Optional[int]) -> None:
        """Permanently delete a book. There is no trash stage."""
        if not book_id or self.host.content.get_content_type(book_id) != settings.content_type:
            raise BookNotFoundError("No book found with the provided ID.")
        self.host.content.delete_item(book_id)
        logger.info(f"Deleted book {book_id}")

    # ------------------------- Serialization ------------------------- #
    def author_of(self, book: Book) -> Optional[User]:
        try:
            return self.host.users.get_user(book.author_id)
        except HostError as e:
            logger.warning(f"Could not load author {book.author_id}: {e}")
            return None

    def serialize(self, book: Book) -> dict:
        return book.to_dict(self.author_of(book))

    # ------------------------- Helpers ------------------------- #
    def _genres(self, book_id: int) -> List[str]:
        try:
            return self.host.taxonomy.get_term_names(book_id, settings.genre_taxonomy)
        except HostError as e:
            logger.warning(f"Genre lookup failed for book {book_id}: {e}")
            return []
