"""Author mapping between source usernames and Git identities.

Source systems such as CVS only record a login name.  ``AuthorMap``
turns that into a ``(name, email)`` pair using a configured
``{"user": "Full Name <email>"}`` mapping, with a deterministic synthetic
email for anyone not in the map.
"""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

DEFAULT_EMAIL_DOMAIN = "users.noreply.cvs.example.org"

_AUTHOR_PATTERN = re.compile(r"^(.+?)\s*<(.+?)>$")


def parse_author(value: str) -> tuple[str, str]:
    """Split a ``"Name <email>"`` string into its parts.

    Raises:
        ValueError: If *value* is not in ``Name <email>`` form.
    """
    match = _AUTHOR_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"invalid author format: {value!r}")
    name = match.group(1).strip()
    email = match.group(2).strip()
    if not name or not email:
        raise ValueError(f"invalid author format: {value!r}")
    return name, email


class AuthorMap:
    """Resolve source usernames to Git author identities.

    Args:
        mapping: ``{"username": "Full Name <email>"}`` entries.
        default_domain: Domain used for synthetic emails of unmapped users.
    """

    def __init__(
        self,
        mapping: dict[str, str] | None = None,
        default_domain: str = DEFAULT_EMAIL_DOMAIN,
    ) -> None:
        self._mapping = dict(mapping or {})
        self._default_domain = default_domain

    def get(self, username: str) -> tuple[str, str]:
        """Return ``(name, email)`` for *username*.

        Mapped users get their configured identity.  Unmapped users, and
        users whose mapping is malformed, keep their username and receive
        ``username@<default_domain>``.
        """
        entry = self._mapping.get(username)
        if entry is not None:
            try:
                return parse_author(entry)
            except ValueError:
                logger.warning(
                    "Ignoring malformed author mapping for %s: %r",
                    username,
                    entry,
                )
        return username, f"{username}@{self._default_domain}"

    def __contains__(self, username: str) -> bool:
        return username in self._mapping

    def __len__(self) -> int:
        return len(self._mapping)


class AuthorExtractor:
    """Collect unique author usernames, e.g. to seed an author map."""

    def __init__(self) -> None:
        self._authors: set[str] = set()

    def add(self, username: str) -> None:
        if username:
            self._authors.add(username)

    def authors(self) -> list[str]:
        """Unique usernames in sorted order."""
        return sorted(self._authors)

    def template(self) -> dict[str, str]:
        """A mapping template with a placeholder identity per author."""
        return {
            author: f"{author} <{author}@example.com>"
            for author in self.authors()
        }
