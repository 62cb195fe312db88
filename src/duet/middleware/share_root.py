"""Deployment-path remapping.

Lets one build serve under any path prefix. A request for
``/shop/detail`` with root ``/shop`` reaches the app as ``/detail`` and
``scope["root_path"]`` carries ``/shop``, which ``ServerEnvironment``
exposes as the controller's ``basename``.

Usage::

    app = ShareRoot(app, "/shop")
"""

import re

from duet._internal.asgi import ASGIApp, Receive, Scope, Send


def _normalize(root_path: str) -> str:
    return root_path[:-1] if root_path.endswith("/") else root_path


def strip_root(root_path: str, path: str) -> tuple[str, str | None]:
    """Remove *root_path* from the front of *path*.

    Matching is case-insensitive and stops at a segment boundary, so
    ``/shop`` does not match ``/shopping``.

    Returns:
        ``(path, basename)``; ``basename`` is ``None`` when *path* is
        not under *root_path*.

    Examples::

        >>> strip_root("/shop/", "/SHOP/detail")
        ('/detail', '/shop')
        >>> strip_root("/shop", "/shop")
        ('/', '/shop')
        >>> strip_root("/shop", "/other")
        ('/other', None)
    """
    root = _normalize(root_path)
    pattern = re.compile("^" + re.escape(root) + "(?=/|$)", re.IGNORECASE)
    if not pattern.match(path):
        return path, None
    stripped = pattern.sub("", path, count=1)
    if not stripped.startswith("/"):
        stripped = "/" + stripped
    return stripped, root


class ShareRoot:
    """ASGI middleware stripping a deployment prefix from request paths.

    Non-matching requests pass through untouched, with ``root_path``
    defaulting to ``""`` when the server did not set one.
    """

    __slots__ = ("app", "root_path")

    def __init__(self, app: ASGIApp, root_path: str) -> None:
        self.app = app
        self.root_path = _normalize(root_path)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        scope = dict(scope)
        path, basename = strip_root(self.root_path, scope.get("path", "/"))
        if basename is not None:
            scope["path"] = path
            scope["root_path"] = basename
        else:
            scope.setdefault("root_path", "")
        await self.app(scope, receive, send)
