"""URL helpers shared by the controller and environments."""

import re

_ABSOLUTE_URL_RE = re.compile(r"^([a-z][a-z\d+\-.]*:)?//", re.IGNORECASE)


def is_absolute_url(url: str) -> bool:
    """Check whether *url* carries a scheme or is protocol-relative.

    Examples::

        >>> is_absolute_url("https://cdn.example.com/a.css")
        True
        >>> is_absolute_url("//cdn.example.com/a.css")
        True
        >>> is_absolute_url("/static/a.css")
        False
    """
    return bool(_ABSOLUTE_URL_RE.match(url))


def strip_query(url: str) -> str:
    """Return *url* without its query string or fragment."""
    return url.split("?", 1)[0].split("#", 1)[0]
