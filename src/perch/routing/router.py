"""Compiled router with exact path matching.

Paths are compared after collapsing repeated slashes and dropping a
trailing one, so ``/api/items`` and ``/api/items/`` are the same route.
"""

from perch.errors import MethodNotAllowed, NotFound
from perch.routing.route import Route, RouteMatch


def normalize_path(path: str) -> str:
    """Canonical form used as the lookup key::

        "/api//items/" -> "/api/items"
        ""             -> "/"
    """
    parts = [p for p in path.split("/") if p]
    return "/" + "/".join(parts)


class Router:
    """Compiled router.

    Usage::

        router = Router()
        router.add(Route("/health", handler, frozenset({"GET"})))
        router.compile()
        match = router.match("GET", "/health")
    """

    __slots__ = ("_compiled", "_table")

    def __init__(self) -> None:
        self._table: dict[str, dict[str, Route]] = {}
        self._compiled = False

    def add(self, route: Route) -> None:
        """Add a route to the router. Must be called before compile()."""
        if self._compiled:
            msg = "Cannot add routes after compilation."
            raise RuntimeError(msg)
        by_method = self._table.setdefault(normalize_path(route.path), {})
        for method in route.methods:
            by_method[method] = route

    @property
    def routes(self) -> list[Route]:
        """Return all registered routes, each once, in registration order."""
        seen: set[int] = set()
        result: list[Route] = []
        for by_method in self._table.values():
            for route in by_method.values():
                if id(route) not in seen:
                    seen.add(id(route))
                    result.append(route)
        return result

    def compile(self) -> None:
        """Freeze the router. No more routes can be added."""
        self._compiled = True

    def match(self, method: str, path: str) -> RouteMatch:
        """Match a request path and method against compiled routes.

        Returns a ``RouteMatch`` on success.
        Raises ``NotFound`` if no route matches the path.
        Raises ``MethodNotAllowed`` if the path matches but the method doesn't.
        """
        by_method = self._table.get(normalize_path(path))
        if not by_method:
            raise NotFound(f"No route matches {method} {path!r}")

        if method in by_method:
            return RouteMatch(route=by_method[method])
        # HEAD falls back to GET, body dropped by the sender
        if method == "HEAD" and "GET" in by_method:
            return RouteMatch(route=by_method["GET"])

        raise MethodNotAllowed(frozenset(by_method))
