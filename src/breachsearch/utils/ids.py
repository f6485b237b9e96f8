"""Content-derived identifiers for breach records."""

from __future__ import annotations

import hashlib

RECORD_ID_LENGTH = 24


def normalize_part(value: str | None) -> str:
    return (value or "").strip()


def compute_record_id(login: str | None, password: str | None, url: str | None) -> str:
    """Derive the stable record id from the (login, password, url) triple.

    Login and url are compared case-insensitively; the password is kept verbatim.
    """
    composite = "\x1f".join(
        (
            normalize_part(login).lower(),
            normalize_part(password),
            normalize_part(url).lower(),
        )
    )
    return hashlib.sha256(composite.encode("utf-8")).hexdigest()[:RECORD_ID_LENGTH]
