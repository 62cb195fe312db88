"""ASGI middleware that prepares requests for server-side controllers."""

from duet.middleware.share_root import ShareRoot, strip_root

__all__ = ["ShareRoot", "strip_root"]
