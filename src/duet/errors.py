"""Duet exception hierarchy.

Shared across the controller, preload loader, and environments so every
module raises and catches the same types.

Guard aborts are not errors: ``Controller.init()`` returns ``None``.
Timeouts surface as the builtin ``TimeoutError`` raised by
``anyio.fail_after`` and are propagated unchanged.
"""


class DuetError(Exception):
    """Base for all duet-specific errors."""


class ConfigurationError(DuetError):
    """Raised when local configuration is invalid.

    Always raised before any network effect, e.g. a cookie ``expires``
    value that is not a ``datetime``.
    """


class PreloadError(DuetError):
    """Raised when a preload resource cannot be fetched.

    A missing preload resource is fatal to the render attempt that
    requested it.
    """

    def __init__(self, name: str, url: str, status: int) -> None:
        self.name = name
        self.url = url
        self.status = status
        super().__init__(f"preload {name!r} from {url} returned {status}")


class FetchError(DuetError):
    """Raised when ``Controller.fetch`` gets a non-2xx response to decode."""

    def __init__(self, url: str, status: int, detail: str = "") -> None:
        self.url = url
        self.status = status
        self.detail = detail
        message = f"{url} returned {status}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
