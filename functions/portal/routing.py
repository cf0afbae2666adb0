"""
Static route table with ``:param`` path segments.

Routes are declared once and matched by method and path. A route matches when
the path equals its pattern exactly, or when segment counts agree, literal
segments are equal and ``:name`` segments bind positionally. Overlapping
patterns for the same method are rejected when the table is built, so at most
one route can match any request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from portal.errors import RouteNotFound

PARAM_MARKER = ":"


def split_path(path: str) -> list[str]:
    """``"/api/users/:id"`` -> ``["api", "users", ":id"]``; empty segments dropped."""
    return [part for part in path.split("/") if part]


@dataclass(frozen=True)
class Route:
    method: str
    pattern: str
    handler: Callable[..., Any]
    name: Optional[str] = None
    segments: tuple[str, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "method", self.method.upper())
        segments = tuple(split_path(self.pattern))
        seen: set[str] = set()
        for segment in segments:
            if not segment.startswith(PARAM_MARKER):
                continue
            param = segment[len(PARAM_MARKER):]
            if not param:
                raise ValueError(f"Unnamed parameter in route pattern {self.pattern!r}")
            if param in seen:
                raise ValueError(
                    f"Duplicate parameter {param!r} in route pattern {self.pattern!r}"
                )
            seen.add(param)
        object.__setattr__(self, "segments", segments)

    def match(self, method: str, path: str) -> Optional[dict[str, str]]:
        """Return bound parameters if this route serves ``method path``."""
        if method.upper() != self.method:
            return None
        if path == self.pattern and not self.param_names:
            return {}
        parts = split_path(path)
        if len(parts) != len(self.segments):
            return None
        params: dict[str, str] = {}
        for segment, part in zip(self.segments, parts):
            if segment.startswith(PARAM_MARKER):
                params[segment[len(PARAM_MARKER):]] = part
            elif segment != part:
                return None
        return params

    @property
    def param_names(self) -> list[str]:
        return [
            segment[len(PARAM_MARKER):]
            for segment in self.segments
            if segment.startswith(PARAM_MARKER)
        ]

    def overlaps(self, other: "Route") -> bool:
        if self.method != other.method or len(self.segments) != len(other.segments):
            return False
        for mine, theirs in zip(self.segments, other.segments):
            if mine.startswith(PARAM_MARKER) or theirs.startswith(PARAM_MARKER):
                continue
            if mine != theirs:
                return False
        return True


@dataclass(frozen=True)
class RouteMatch:
    route: Route
    params: dict[str, str]


class RouteTable:
    """Ordered collection of routes; ``match`` returns the first full match."""

    def __init__(self, routes: Iterable[Route] = ()):
        self._routes: list[Route] = []
        for route in routes:
            self.add(route)

    def add(self, route: Route) -> Route:
        for existing in self._routes:
            if existing.overlaps(route):
                raise ValueError(
                    f"Route {route.method} {route.pattern} overlaps "
                    f"{existing.method} {existing.pattern}"
                )
        self._routes.append(route)
        return route

    def match(self, method: str, path: str) -> RouteMatch:
        for route in self._routes:
            params = route.match(method, path)
            if params is not None:
                return RouteMatch(route=route, params=params)
        raise RouteNotFound(method.upper(), path)
