"""Text renderers for configured sink fields.

A renderer is any callable taking a :class:`~loghouse.events.LogEvent` and
returning text. :class:`Layout` builds one from a ``str.format`` template::

    Layout("{level}")
    Layout("{timestamp:%Y-%m-%d %H:%M:%S}")
    Layout("{properties[request_id]}")
    Layout("{guid}")
"""

from __future__ import annotations

import string
import uuid
from typing import Any, Callable, Dict

from .events import LogEvent


def _exception_text(event: LogEvent) -> str:
    if event.exception is None:
        return ""
    return f"{type(event.exception).__name__}: {event.exception}"


# Values resolved per render; ``guid`` yields a fresh UUID each time.
_RESOLVERS: Dict[str, Callable[[LogEvent], Any]] = {
    "timestamp": lambda event: event.timestamp,
    "date": lambda event: event.timestamp,
    "level": lambda event: event.level or "",
    "logger": lambda event: event.logger_name or "",
    "message": lambda event: event.message or "",
    "exception": _exception_text,
    "properties": lambda event: event.properties,
    "guid": lambda event: uuid.uuid4(),
}


class _EventFormatter(string.Formatter):
    def __init__(self, event: LogEvent):
        super().__init__()
        self._event = event

    def get_value(self, key, args, kwargs):
        if isinstance(key, str):
            resolver = _RESOLVERS.get(key)
            if resolver is not None:
                return resolver(self._event)
            if key in self._event.properties:
                return self._event.properties[key]
            raise KeyError(key)
        return super().get_value(key, args, kwargs)


class Layout:
    """Renderer driven by a ``str.format`` template over event attributes.

    Bare names that are not built-ins resolve against the event properties, so
    ``"{user_id}"`` and ``"{properties[user_id]}"`` are equivalent. Unknown
    names raise :class:`KeyError` at render time.
    """

    def __init__(self, template: str):
        self.template = template or ""
        # Fail fast on malformed templates such as unbalanced braces.
        list(string.Formatter().parse(self.template))

    def __call__(self, event: LogEvent) -> str:
        return _EventFormatter(event).vformat(self.template, (), {})

    def __repr__(self) -> str:
        return f"Layout({self.template!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Layout) and other.template == self.template

    def __hash__(self) -> int:
        return hash(self.template)


def guid_renderer(event: LogEvent) -> str:
    """Render a new random UUID; typical renderer for an ``Id`` column."""
    return str(uuid.uuid4())


def property_renderer(key: str) -> Callable[[LogEvent], Any]:
    """Render the event property ``key``, or an empty string when missing."""

    def render(event: LogEvent) -> Any:
        value = event.properties.get(key)
        return "" if value is None else value

    return render
