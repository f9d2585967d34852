"""``perch routes``: list registered routes.

Resolves an import string to a perch App and prints every route with
its verbs, pattern, name, handler, and middleware.
"""

import argparse

from perch.cli._resolve import load_app
from perch.routing.route import Route


def _row(route: Route, middleware: str) -> tuple[str, str, str, str, str]:
    verbs = ", ".join(sorted(route.verbs))
    pattern = f"{route.pattern} [fallback]" if route.fallback else route.pattern
    return verbs, pattern, route.name or "", route.handler.display_name, middleware


def run_routes(args: argparse.Namespace) -> None:
    """Print a table of VERB, PATTERN, NAME, HANDLER and MIDDLEWARE."""
    app = load_app(args.app, args.log_level)
    if args.cache:
        app.load_from_cache(args.cache)
    registry = app.registry

    routes = registry.routes
    if args.verb:
        routes = [r for r in routes if r.answers(args.verb)]
    if args.name:
        routes = [r for r in routes if r.name and r.name.startswith(args.name)]
    if not routes:
        print("No routes registered.")
        return

    rows = [
        _row(route, ", ".join(str(spec) for spec in app.middleware.build(route)))
        for route in routes
    ]
    headers = ("VERB", "PATTERN", "NAME", "HANDLER", "MIDDLEWARE")
    widths = [max(len(headers[i]), *(len(r[i]) for r in rows)) for i in range(len(headers) - 1)]

    fmt = "  ".join(f"{{:<{w}}}" for w in widths) + "  {}"
    print(fmt.format(*headers))
    print("-" * min(sum(widths) + 2 * len(widths) + len(headers[-1]), 100))
    for row in rows:
        print(fmt.format(*row).rstrip())
