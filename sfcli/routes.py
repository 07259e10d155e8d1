"""Routes of a deployed project, in their declared order."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any
from urllib.parse import SplitResult, urlsplit


@dataclass
class Route:
    """One route: its resolved URL key and its declaration."""

    key: str = ""
    kind: str = ""
    to: str = ""
    upstream: str = ""
    original_url: str = ""

    @property
    def url(self) -> SplitResult:
        """The parsed form of the route key."""
        return urlsplit(self.key)


_FIELDS = {"type": "kind", "to": "to", "upstream": "upstream", "original_url": "original_url"}


def _route_from(key: str, value: Any) -> Route:
    route = Route(key=key)
    if value is None:
        return route
    if not isinstance(value, dict):
        raise ValueError(f"route {key!r} must be an object")
    for name, item in value.items():
        attribute = _FIELDS.get(name.lower())
        if attribute is None or item is None:
            continue
        if not isinstance(item, str):
            raise ValueError(f"route {key!r}: field {name!r} must be a string")
        setattr(route, attribute, item)
    return route


def parse_routes(data: str | bytes) -> list[Route]:
    """Parse a JSON object of routes, keeping the order of its keys."""
    try:
        document = json.loads(data)
    except json.JSONDecodeError as exc:
        raise ValueError(f"invalid routes JSON: {exc}") from exc
    if not isinstance(document, dict):
        raise ValueError("expected start of object")
    return [_route_from(key, value) for key, value in document.items()]