"""Perch CLI: route listing and route cache management.

Entry point registered as ``perch`` in ``pyproject.toml``::

    [project.scripts]
    perch = "perch.cli:main"
"""

import argparse
import sys


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ``perch`` command."""
    parser = argparse.ArgumentParser(
        prog="perch",
        description="Perch: a router and dispatch kernel for chat bots.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: AppConfig.log_level)",
    )
    subparsers = parser.add_subparsers(dest="command")

    # -- perch routes -----------------------------------------------------
    routes_parser = subparsers.add_parser("routes", help="List registered routes")
    routes_parser.add_argument("app", help="Import string (e.g. mybot:app)")
    routes_parser.add_argument("--verb", default=None, help="Only routes answering this verb")
    routes_parser.add_argument("--name", default=None, help="Only routes whose name starts with this")
    routes_parser.add_argument("--cache", default=None, help="Read routes from a cache file")

    # -- perch route-cache ------------------------------------------------
    cache_parser = subparsers.add_parser("route-cache", help="Write the route cache")
    cache_parser.add_argument("app", help="Import string (e.g. mybot:app)")
    cache_parser.add_argument("--output", default=None, help="Cache file (default: AppConfig.route_cache)")

    # -- perch route-clear ------------------------------------------------
    clear_parser = subparsers.add_parser("route-clear", help="Delete the route cache")
    clear_parser.add_argument("app", help="Import string (e.g. mybot:app)")
    clear_parser.add_argument("--path", default=None, help="Cache file (default: AppConfig.route_cache)")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "routes":
        from perch.cli._routes import run_routes

        run_routes(args)
    elif args.command == "route-cache":
        from perch.cli._cache import run_route_cache

        run_route_cache(args)
    elif args.command == "route-clear":
        from perch.cli._cache import run_route_clear

        run_route_clear(args)
