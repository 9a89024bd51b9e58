import logging
import secrets
from typing import Tuple

from config import settings
from host import UserDirectory, UserProvisioningError

logger = logging.getLogger(__name__)


def split_author_name(name: str) -> Tuple[str, str]:
    """Split a display name at its first space into (first_name, last_name).

    Everything after the first space is the last name, so "Ursula K. Le Guin"
    gives ("Ursula", "K. Le Guin"). A single word has an empty last name.
    """
    first, _, last = name.strip().partition(" ")
    return first, last.strip()


def resolve_or_create_author(name: str, users: UserDirectory) -> int:
    """Return the id of the first user whose display name contains ``name``,
    provisioning a new author account when nobody matches.

    Raises HostError (UserProvisioningError) if the account cannot be created.
    """
    name = name.strip()
    if not name:
        raise UserProvisioningError("An author name is required.")
    matches = users.search(name, search_fields=("display_name",))
    if matches:
        return matches[0].id

    first_name, last_name = split_author_name(name)
    author_id = users.create_user(
        user_login=name,
        password=secrets.token_urlsafe(24),
        first_name=first_name,
        last_name=last_name,
        display_name=name,
        role=settings.author_role,
    )
    logger.info(f"Provisioned author {name!r} as user {author_id}")
    return author_id
