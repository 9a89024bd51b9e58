import logging
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from authors import resolve_or_create_author
from config import settings
from host import Host, HostError
from library import (
    BookNotFoundError,
    Library,
    MissingRequiredFieldError,
    register_book_types,
    require_fields,
)

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

UPDATE_NOT_FOUND_MESSAGE = "Book not found!"
NOT_FOUND_MESSAGE = "No book found with the provided ID."
DELETE_SUCCESS_MESSAGE = "The book has been deleted successfully."

BOOK_ID_PATTERN = re.compile(r"\d+", re.ASCII)
# Largest value SQLite stores in an INTEGER column
MAX_BOOK_ID = 2 ** 63 - 1


# --- Models ---
class AuthorNameModel(BaseModel):
    first_name: str = ""
    last_name: str = ""


class BookModel(BaseModel):
    title: str
    description: str
    genre: Union[List[str], str]
    author: AuthorNameModel


# --- Dependencies ---
def get_library(request: Request) -> Library:
    return request.app.state.library


def _collect(items: Iterable[Tuple[str, Any]]) -> Dict[str, Any]:
    """Fold multi-valued pairs into a dict; repeated keys and ``key[]`` become lists."""
    collected: Dict[str, Any] = {}
    for key, value in items:
        if key.endswith("[]"):
            key = key[:-2]
            collected.setdefault(key, [])
        if key in collected:
            existing = collected[key]
            collected[key] = (existing if isinstance(existing, list) else [existing]) + [value]
        else:
            collected[key] = value
    return collected


async def request_params(request: Request) -> Dict[str, Any]:
    """Request parameters with JSON body over form body over query string."""
    params = _collect(request.query_params.multi_items())
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            params.update(body)
    elif content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        form = await request.form()
        params.update(_collect(form.multi_items()))
    return params


# --- Helpers ---
def _parse_book_id(raw: Any) -> Optional[int]:
    """ASCII digit ids in SQLite's integer range only; anything else is treated as no id."""
    if raw is None:
        return None
    text = str(raw).strip()
    if not BOOK_ID_PATTERN.fullmatch(text):
        return None
    book_id = int(text)
    return book_id if 0 < book_id <= MAX_BOOK_ID else None


def _envelope(status: int, **data: Any) -> JSONResponse:
    return JSONResponse(status_code=status, content={"status": status, "data": data})


# --- Route handlers ---
def create_book(params: Dict[str, Any] = Depends(request_params), library: Library = Depends(get_library)):
    """Create a book, resolving or provisioning its author by name."""
    try:
        require_fields(params)
        author_id = resolve_or_create_author(str(params["author"]), library.host.users)
        book_id = library.create(params["title"], params["description"], params["genre"], author_id)
    except MissingRequiredFieldError as e:
        logger.info(f"Book not created: {e}")
        return JSONResponse(content={})
    except HostError as e:
        logger.warning(f"Book not created: {e}")
        return JSONResponse(content={})
    return _envelope(200, success=True, book_id=book_id)


def get_book(book_id: str, request: Request, library: Library = Depends(get_library)):
    parsed_id = _parse_book_id(book_id)
    if parsed_id is None:
        return _envelope(404, success=False, message=NOT_FOUND_MESSAGE)
    book = library.read(parsed_id)
    if not book.exists and request.app.state.strict_not_found:
        return _envelope(404, success=False, message=NOT_FOUND_MESSAGE)
    return library.serialize(book)


def get_books(library: Library = Depends(get_library)):
    try:
        books = library.list()
    except HostError as e:
        logger.warning(f"Listing books failed: {e}")
        return []
    return [library.serialize(book) for book in books]


def _update(raw_id: Any, params: Dict[str, Any], library: Library) -> JSONResponse:
    book_id = _parse_book_id(raw_id)
    try:
        library.update(book_id, params)
    except BookNotFoundError:
        return _envelope(404, success=False, message=UPDATE_NOT_FOUND_MESSAGE)
    except HostError as e:
        logger.warning(f"Update of book {book_id} incomplete: {e}")
    return _envelope(200, success=True, book_id=book_id)


def update_book(book_id: str, params: Dict[str, Any] = Depends(request_params),
                library: Library = Depends(get_library)):
    return _update(book_id, params, library)


def update_book_from_params(params: Dict[str, Any] = Depends(request_params),
                            library: Library = Depends(get_library)):
    return _update(params.get("book_id"), params, library)


def _delete(raw_id: Any, library: Library) -> JSONResponse:
    book_id = _parse_book_id(raw_id)
    try:
        library.delete(book_id)
    except BookNotFoundError:
        return _envelope(404, success=False, message=NOT_FOUND_MESSAGE)
    except HostError as e:
        logger.warning(f"Delete of book {book_id} failed: {e}")
        return _envelope(404, success=False, message=NOT_FOUND_MESSAGE)
    return _envelope(200, success=True, message=DELETE_SUCCESS_MESSAGE)


def delete_book(book_id: str, library: Library = Depends(get_library)):
    return _delete(book_id, library)


def delete_book_from_params(params: Dict[str, Any] = Depends(request_params),
                            library: Library = Depends(get_library)):
    return _delete(params.get("book_id"), library)


def health(library: Library = Depends(get_library)):
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "total_books": len(library.list()),
    }


# --- Route registration ---
ROUTES = (
    ("POST", "/book/create", create_book, None),
    ("GET", "/book/get/{book_id}", get_book, BookModel),
    ("GET", "/book/get", get_books, List[BookModel]),
    ("PUT", "/book/update/{book_id}", update_book, None),
    ("PUT", "/book/update", update_book_from_params, None),
    ("DELETE", "/book/delete/{book_id}", delete_book, None),
    ("DELETE", "/book/delete", delete_book_from_params, None),
)


def register_route(router: APIRouter, method: str, path: str, handler, response_model=None) -> None:
    router.add_api_route(path, handler, methods=[method], response_model=response_model)


def register_routes(router: APIRouter) -> None:
    for method, path, handler, response_model in ROUTES:
        register_route(router, method, path, handler, response_model)


def create_app(db_file: Optional[str] = None, strict_not_found: Optional[bool] = None) -> FastAPI:
    """Build the API: open the host, register the book types, then mount the routes."""
    host = Host(db_file or settings.db_file)
    register_book_types(host)

    app = FastAPI(title=settings.app_name, version=settings.app_version, debug=settings.debug)
    app.state.host = host
    app.state.library = Library(host)
    app.state.strict_not_found = settings.strict_not_found if strict_not_found is None else strict_not_found

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    router = APIRouter(prefix=f"/{settings.rest_namespace.strip('/')}", tags=["books"])
    register_routes(router)
    app.include_router(router)
    app.add_api_route("/health", health, methods=["GET"])

    logger.info(f"Books API ready on /{settings.rest_namespace.strip('/')} using {host.db_file}")
    return app
