from __future__ import annotations

import requests

from .errors import GistError

GITHUB_API_BASE = "https://api.github.com"


def _headers(token: str) -> dict[str, str]:
    return {
        "Authorization": f"token {token}",
        "Accept": "application/vnd.github+json",
    }


def update_gist(gist_id: str, token: str, body: str, session: requests.Session | None = None) -> bool:
    """Write ``body`` into the gist's first file. Returns False when it already matches."""
    session = session or requests.Session()
    url = f"{GITHUB_API_BASE}/gists/{gist_id}"

    try:
        response = session.get(url, headers=_headers(token), timeout=30)
        response.raise_for_status()
        files = response.json()["files"]
        filename = sorted(files)[0]
    except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as exc:
        raise GistError(f"Unable to get gist {gist_id}: {exc}") from exc

    if files[filename].get("content") == body:
        return False

    try:
        response = session.patch(
            url,
            headers=_headers(token),
            json={"files": {filename: {"content": body}}},
            timeout=30,
        )
        response.raise_for_status()
    except requests.RequestException as exc:
        raise GistError(f"Unable to update gist {gist_id}: {exc}") from exc
    return True
