from __future__ import annotations

import os
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path

REQUIRED_STRAVA_VARS = (
    "STRAVA_CLIENT_ID",
    "STRAVA_CLIENT_SECRET",
)
OPTIONAL_VARS = (
    "STRAVA_REFRESH_TOKEN",
    "GIST_ID",
    "GITHUB_TOKEN",
    "UNITS",
    "STRAVA_AUTH_FILE",
)
# Only secrets are worth a keychain round-trip.
KEYCHAIN_VARS = (
    "STRAVA_CLIENT_SECRET",
    "STRAVA_REFRESH_TOKEN",
    "GITHUB_TOKEN",
)
DEFAULT_AUTH_FILE = "strava-auth.json"
DEFAULT_UNITS = "meters"


@dataclass(frozen=True)
class Settings:
    client_id: str
    client_secret: str
    refresh_token: str | None = None
    gist_id: str | None = None
    github_token: str | None = None
    units: str = DEFAULT_UNITS
    auth_file: Path = Path(DEFAULT_AUTH_FILE)


def parse_dotenv(path: Path) -> dict[str, str]:
    values: dict[str, str] = {}
    if not path.is_file():
        return values

    try:
        with path.open("r", encoding="utf-8") as handle:
            for raw_line in handle:
                line = raw_line.strip()
                if not line or line.startswith("#"):
                    continue
                if line.startswith("export "):
                    line = line[len("export ") :].strip()
                key, sep, value = line.partition("=")
                key = key.strip()
                if not sep or not key:
                    continue
                value = value.strip()
                if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
                    value = value[1:-1]
                values[key] = value
    except OSError:
        return {}
    return values


def discover_env_files() -> list[Path]:
    paths = [Path.cwd() / ".env"]
    explicit_env_file = os.getenv("STRAVA_ENV_FILE")
    if explicit_env_file:
        paths.insert(0, Path(explicit_env_file).expanduser())
    return paths


def load_keychain_secret(var_name: str) -> str | None:
    cmd = ["security", "find-generic-password", "-w", "-s", "strava-ytd", "-a", var_name]
    try:
        result = subprocess.run(cmd, check=False, capture_output=True, text=True, timeout=10)
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def resolve_values() -> tuple[dict[str, str], dict[str, str], list[Path]]:
    """Collect config values with their source: environment, then .env files, then keychain."""
    wanted = REQUIRED_STRAVA_VARS + OPTIONAL_VARS
    values: dict[str, str] = {}
    sources: dict[str, str] = {}

    for var_name in wanted:
        env_value = os.getenv(var_name)
        if env_value:
            values[var_name] = env_value
            sources[var_name] = "environment"

    env_files = discover_env_files()
    for env_file in env_files:
        if all(var_name in values for var_name in wanted):
            break
        env_values = parse_dotenv(env_file)
        for var_name in wanted:
            if var_name not in values and env_values.get(var_name):
                values[var_name] = env_values[var_name]
                sources[var_name] = f"dotenv:{env_file}"

    for var_name in KEYCHAIN_VARS:
        if var_name in values:
            continue
        keychain_value = load_keychain_secret(var_name)
        if keychain_value:
            values[var_name] = keychain_value
            sources[var_name] = "keychain"

    return values, sources, env_files


def format_missing_message(missing_vars: list[str], searched_env_files: list[Path]) -> str:
    env_locations = ", ".join(shlex.quote(str(path)) for path in searched_env_files)
    return (
        f"Missing configuration: {', '.join(missing_vars)}\n"
        "Lookup order: environment variables -> .env files -> macOS keychain.\n"
        f"Searched .env paths: {env_locations}"
    )


def resolve_settings(
    *,
    auth_file: str | None = None,
    units: str | None = None,
) -> Settings:
    values, _, env_files = resolve_values()
    missing = [var for var in REQUIRED_STRAVA_VARS if var not in values]
    if missing:
        raise SystemExit(format_missing_message(missing, env_files))

    return Settings(
        client_id=values["STRAVA_CLIENT_ID"],
        client_secret=values["STRAVA_CLIENT_SECRET"],
        refresh_token=values.get("STRAVA_REFRESH_TOKEN"),
        gist_id=values.get("GIST_ID"),
        github_token=values.get("GITHUB_TOKEN"),
        units=units or values.get("UNITS") or DEFAULT_UNITS,
        auth_file=Path(auth_file or values.get("STRAVA_AUTH_FILE") or DEFAULT_AUTH_FILE).expanduser(),
    )
