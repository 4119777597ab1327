"""Session credential providers for authenticated Ozon requests."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol


class CredentialProvider(Protocol):
    """Supplies the cookies of a logged-in Ozon browser session."""

    def get_cookies(self) -> dict[str, str]:
        """Return cookie name -> value, or an empty dict when logged out."""
        ...


class StaticCookieProvider:
    """Credential provider backed by an explicit cookie mapping."""

    def __init__(self, cookies: Mapping[str, str] | None = None) -> None:
        self._cookies = dict(cookies or {})

    def get_cookies(self) -> dict[str, str]:
        return dict(self._cookies)


class CookieHeaderProvider:
    """Credential provider parsing a raw ``Cookie`` header copied from a browser.

    Example: ``"__Secure-access-token=abc; __Secure-user-id=1234567"``
    """

    def __init__(self, header: str | None) -> None:
        self._cookies = parse_cookie_header(header or "")

    def get_cookies(self) -> dict[str, str]:
        return dict(self._cookies)


def parse_cookie_header(header: str) -> dict[str, str]:
    """Split a ``name=value; name2=value2`` header into a dict.

    Fragments without ``=`` or with an empty name are ignored.
    """
    cookies: dict[str, str] = {}
    for fragment in header.split(";"):
        name, sep, value = fragment.strip().partition("=")
        if not sep or not name.strip():
            continue
        cookies[name.strip()] = value.strip()
    return cookies


def format_cookie_header(cookies: Mapping[str, str]) -> str:
    return "; ".join(f"{name}={value}" for name, value in cookies.items())
