"""Helpers for classifying logins, urls and domains."""

from __future__ import annotations

import re
from urllib.parse import urlsplit

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}$")
DOMAIN_PATTERN = re.compile(r"^(?=.{1,253}$)([A-Za-z0-9](?:[A-Za-z0-9\-]{0,61}[A-Za-z0-9])?\.)+[A-Za-z]{2,}$")
WILDCARD_CHARS = frozenset("*?")


def is_email(value: str | None) -> bool:
    return bool(value) and EMAIL_PATTERN.match(value.strip()) is not None


def is_domain(value: str | None) -> bool:
    return bool(value) and DOMAIN_PATTERN.match(value.strip()) is not None


def looks_like_url(value: str | None) -> bool:
    if not value:
        return False
    value = value.strip()
    return "://" in value or ("/" in value and "@" not in value)


def has_wildcards(value: str) -> bool:
    return any(char in WILDCARD_CHARS for char in value)


def email_local_part(login: str | None) -> str | None:
    if not is_email(login):
        return None
    return login.strip().split("@", 1)[0]


def email_domain(login: str | None) -> str | None:
    if not is_email(login):
        return None
    return login.strip().split("@", 1)[1].lower()


def extract_domain(url: str | None) -> str | None:
    """Return the lowercase host of ``url``, tolerating missing schemes.

    >>> extract_domain("https://Mail.Example.com:443/login")
    'mail.example.com'
    >>> extract_domain("example.org/path")
    'example.org'
    """
    if not url or not url.strip():
        return None
    candidate = url.strip()
    if "://" not in candidate:
        candidate = f"//{candidate}"
    try:
        host = urlsplit(candidate).hostname
    except ValueError:
        return None
    if not host:
        return None
    host = host.lower()
    if host.startswith("www."):
        host = host[4:]
    return host or None


def derive_domain(url: str | None, login: str | None = None) -> str | None:
    """Domain shown for a record: the url host, else the login's email domain."""
    return extract_domain(url) or email_domain(login)
