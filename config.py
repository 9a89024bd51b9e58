import os
from dataclasses import dataclass, field
from typing import List
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # API settings
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    rest_namespace: str = os.getenv("BOOKS_REST_NAMESPACE", "books/v1")
    cors_origins: List[str] = field(
        default_factory=lambda: [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    )

    # Storage
    db_file: str = os.getenv("BOOKS_DB_FILE", "books_online.db")

    # Book content type
    content_type: str = "books"
    genre_taxonomy: str = "book_genres"
    author_role: str = "author"
    publish_status: str = "publish"

    # get-one answers 404 instead of a default-filled book when enabled
    strict_not_found: bool = _env_flag("BOOKS_STRICT_NOT_FOUND")

    # Application settings
    app_name: str = os.getenv("APP_NAME", "Books Online")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    debug: bool = _env_flag("DEBUG")
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
