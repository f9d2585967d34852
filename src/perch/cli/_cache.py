"""``perch route-cache`` and ``perch route-clear``."""

import argparse
import sys
from pathlib import Path

from perch.cli._resolve import load_app
from perch.errors import ConfigurationError


def _target(path: str | Path | None, configured: str | Path | None) -> Path:
    path = path or configured
    if path is None:
        print("Error: no cache path given and AppConfig.route_cache is not set", file=sys.stderr)
        raise SystemExit(1)
    return Path(path)


def run_route_cache(args: argparse.Namespace) -> None:
    """Compile the app's routes and write them to the cache file."""
    app = load_app(args.app, args.log_level)
    target = _target(args.output, app.config.route_cache)
    try:
        written = app.cache_routes(target)
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc
    print(f"Routes cached to {written}")


def run_route_clear(args: argparse.Namespace) -> None:
    """Delete the route cache file, if present."""
    app = load_app(args.app, args.log_level)
    target = _target(args.path, app.config.route_cache)
    if target.is_file():
        target.unlink()
        print(f"Route cache {target} cleared")
    else:
        print(f"No route cache at {target}")
