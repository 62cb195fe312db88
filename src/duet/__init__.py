"""Duet: page controllers that run the same lifecycle on both sides.

A controller renders once on the server, hands its state to the client
through a one-shot hydration channel, and keeps running there as an
interactive page: bound to its store, listening to navigation, and torn
down cleanly when the user moves on.

Basic usage::

    from duet import Controller, Location, ServerEnvironment

    class HomeController(Controller):
        View = "home.html"
        initial_state = {"greeting": "Hello"}

    env = ServerEnvironment()
    view = await HomeController(Location.from_url("/"), env).init()
    html = view.to_html(kida_env, hydrate=True)
"""

__version__ = "0.1.0-dev"
__all__ = [
    "ClientEnvironment",
    "ConfigurationError",
    "Controller",
    "ControllerConfig",
    "ControllerMeta",
    "DisposerList",
    "DuetError",
    "Environment",
    "Fallback",
    "FetchError",
    "HydrationChannel",
    "Location",
    "PageView",
    "PreloadCache",
    "PreloadError",
    "ServerEnvironment",
    "Store",
    "create_store",
    "handler",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import duet`` fast while providing a clean top-level API.
    """
    if name in ("Controller", "ControllerMeta"):
        from duet import controller as _controller

        return getattr(_controller, name)

    if name == "ControllerConfig":
        from duet.config import ControllerConfig

        return ControllerConfig

    if name in ("Environment", "ServerEnvironment", "ClientEnvironment"):
        from duet import environment as _env

        return getattr(_env, name)

    if name == "Location":
        from duet.location import Location

        return Location

    if name == "DisposerList":
        from duet.disposers import DisposerList

        return DisposerList

    if name == "HydrationChannel":
        from duet.hydration import HydrationChannel

        return HydrationChannel

    if name == "PreloadCache":
        from duet.preload import PreloadCache

        return PreloadCache

    if name in ("Store", "create_store"):
        from duet import store as _store

        return getattr(_store, name)

    if name == "handler":
        from duet.handlers import handler

        return handler

    if name in ("PageView", "Fallback"):
        from duet import view as _view

        return getattr(_view, name)

    if name in ("DuetError", "ConfigurationError", "FetchError", "PreloadError"):
        from duet import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
