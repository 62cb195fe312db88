"""Render output of a controller.

``Controller.render()`` does not produce markup itself. It returns a
``PageView``: a frozen snapshot of everything the view layer needs. A
kida template can turn it into HTML with ``to_html()``; other view
layers read the fields directly.

``Fallback`` is what a server render returns when the controller's
``SSR`` guard suppresses server rendering: the loading view, no state.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from kida import Environment

from duet.hydration import state_script

# A view is a kida template name; None renders nothing.
EMPTY_VIEW: None = None


@dataclass(frozen=True, slots=True)
class PageView:
    """Snapshot handed to the view layer after ``init``/``restore``.

    Attributes:
        key: ``"[<controller id>]<location.raw>"``. Changes whenever a
            different controller or URL is shown.
        view: Template name of the page view.
        state: Current store state.
        actions: The store's bound dispatchers.
        handlers: Bound event handlers.
        preload: Preloaded resource contents by name.
        location: The location in state form (no history key).
    """

    key: str
    view: str | None
    state: Mapping[str, Any]
    actions: Mapping[str, Callable[..., Any]] = field(default_factory=dict)
    handlers: Mapping[str, Callable[..., Any]] = field(default_factory=dict)
    preload: Mapping[str, str] = field(default_factory=dict)
    location: Mapping[str, Any] = field(default_factory=dict)

    def context(self) -> dict[str, Any]:
        """Template context: state keys at top level plus the view extras."""
        return {
            **self.state,
            "state": self.state,
            "actions": self.actions,
            "handlers": self.handlers,
            "preload": self.preload,
            "location": self.location,
        }

    def to_html(self, env: Environment, *, hydrate: bool = False) -> str:
        """Render the view template.

        With ``hydrate=True`` (server renders), the state is appended as
        a hydration ``<script>`` so the client can skip its data hooks.
        """
        html = ""
        if self.view is not None:
            html = env.get_template(self.view).render(self.context())
        if hydrate:
            html += state_script(dict(self.state))
        return html


@dataclass(frozen=True, slots=True)
class Fallback:
    """Returned instead of a ``PageView`` when server rendering is suppressed."""

    view: str | None = EMPTY_VIEW

    def to_html(self, env: Environment) -> str:
        if self.view is None:
            return ""
        return env.get_template(self.view).render({})
