from __future__ import annotations

import argparse
import datetime as dt
import sys
from pathlib import Path

from .aggregate import finalize, year_to_date
from .authorize import AuthorizationFlow
from .client import ActivityFetcher
from .config import REQUIRED_STRAVA_VARS, OPTIONAL_VARS, Settings, resolve_settings, resolve_values
from .credentials import CredentialStore
from .errors import StravaYtdError
from .gist import update_gist
from .history import HISTORY_START, rewrite_history
from .render import render_summary
from .tokens import TokenManager


def parse_date(value: str) -> dt.datetime:
    try:
        parsed = dt.datetime.strptime(value, "%Y-%m-%d")
    except ValueError as exc:
        raise argparse.ArgumentTypeError("Dates must be YYYY-MM-DD") from exc
    return parsed.replace(tzinfo=dt.UTC)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="strava-ytd", description="Year-to-date Strava stats for a GitHub gist")
    parser.add_argument("--auth-file", help="Credential cache path (default: ./strava-auth.json).")
    parser.add_argument("--units", choices=("meters", "km", "miles"), help="Distance units for the table.")
    parser.add_argument(
        "--auth-timeout",
        type=float,
        default=None,
        help="Give up on browser authorization after this many seconds (default: wait forever).",
    )
    parser.add_argument("--open-browser", action="store_true", help="Open the authorization URL automatically.")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("stats", help="Print the year-to-date table (default).")
    subparsers.add_parser("update-gist", help="Write the table into GIST_ID.")
    subparsers.add_parser("authorize", help="Run browser authorization and print the refresh token.")
    subparsers.add_parser("check-config", help="Show where each setting was found and exit.")

    history_parser = subparsers.add_parser("rewrite-history", help="Commit one table per activity into a gist checkout.")
    history_parser.add_argument("repo_dir", type=Path)
    history_parser.add_argument("--start-date", type=parse_date, default=HISTORY_START)

    args = parser.parse_args(argv)
    if args.command is None:
        args.command = "stats"
    return args


def build_token_manager(settings: Settings, args: argparse.Namespace) -> TokenManager:
    flow = AuthorizationFlow(settings.client_id, open_browser=args.open_browser)
    return TokenManager(
        settings.client_id,
        settings.client_secret,
        CredentialStore(settings.auth_file),
        flow,
        seed_refresh_token=settings.refresh_token,
        auth_timeout=args.auth_timeout,
    )


def check_config() -> int:
    values, sources, _ = resolve_values()
    for var in REQUIRED_STRAVA_VARS + OPTIONAL_VARS:
        print(f"- {var}: {sources.get(var, 'missing')}")
    return 0 if all(var in values for var in REQUIRED_STRAVA_VARS) else 1


def run(args: argparse.Namespace) -> int:
    if args.command == "check-config":
        return check_config()

    settings = resolve_settings(auth_file=args.auth_file, units=args.units)
    tokens = build_token_manager(settings, args)

    if args.command == "authorize":
        tokens.reauthorize()
        if tokens.credentials is None:
            raise StravaYtdError("Authorization finished without storing credentials")
        print(f"Refresh token: {tokens.credentials.refresh_token}")
        return 0

    if args.command == "update-gist" and not (settings.gist_id and settings.github_token):
        raise SystemExit("GIST_ID and GITHUB_TOKEN are required for update-gist")

    fetcher = ActivityFetcher(tokens)

    if args.command == "rewrite-history":
        after = int(args.start_date.timestamp())
        snapshots = year_to_date(fetcher, stepped=True, after=after)
        count = rewrite_history(args.repo_dir, snapshots, settings.units)
        print(f"Committed {count} snapshots to {args.repo_dir}")
        return 0

    (snapshot,) = year_to_date(fetcher)
    body = render_summary(finalize(snapshot), settings.units)

    if args.command == "update-gist":
        changed = update_gist(settings.gist_id, settings.github_token, body)
        print("Gist updated." if changed else "Gist already up to date.")
        return 0

    print(body)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        return run(args)
    except StravaYtdError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
