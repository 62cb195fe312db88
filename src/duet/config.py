"""Controller configuration.

ControllerConfig is a frozen dataclass; it is immutable after creation.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ControllerConfig:
    """Per-deployment settings shared by every controller. Immutable.

    All fields have sensible defaults. Override what you need::

        config = ControllerConfig(basename="/shop", restapi="https://api.example.com")
    """

    # URL prefixes
    basename: str = ""  # Deployment path prefix for app URLs
    public_path: str = ""  # Client base URL for static resources
    server_public_path: str = ""  # Server-local base URL for the same resources
    restapi: str = ""  # Base URL for REST calls

    # Timeouts (seconds); None disables
    fetch_timeout: float | None = None
    preload_timeout: float | None = None

    # Preload content from these extensions has carriage returns stripped
    stylesheet_suffixes: tuple[str, ...] = (".css",)

    # Naming convention used by combine_handlers() for plain mappings
    handler_prefix: str = "handle_"
