from __future__ import annotations

import datetime as dt
import sys
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

import requests

from .errors import ApiError, TokenRefreshFailed
from .tokens import TokenManager

STRAVA_API_BASE = "https://www.strava.com/api/v3"
PER_PAGE = 200


@dataclass(frozen=True)
class Activity:
    category: str
    distance_m: float
    moving_time_s: float
    elapsed_time_s: float
    start: dt.datetime

    @property
    def effective_date(self) -> dt.datetime:
        return self.start + dt.timedelta(seconds=self.elapsed_time_s)


def parse_start_date(value: Any) -> dt.datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.UTC)
    return parsed


def parse_activity(record: Any) -> Activity:
    if not isinstance(record, dict):
        raise ApiError(200, "Unexpected activity record from Strava API", repr(record))

    category = record.get("type")
    start = parse_start_date(record.get("start_date"))
    numbers = {key: record.get(key) for key in ("distance", "moving_time", "elapsed_time")}
    bad = [key for key, value in numbers.items() if isinstance(value, bool) or not isinstance(value, (int, float))]
    if not isinstance(category, str) or not category:
        bad.append("type")
    if start is None:
        bad.append("start_date")
    if bad:
        raise ApiError(
            200,
            f"Activity {record.get('id', '?')} is missing or has invalid fields: {', '.join(sorted(bad))}",
            repr(record),
        )

    return Activity(
        category=category,
        distance_m=float(numbers["distance"]),
        moving_time_s=float(numbers["moving_time"]),
        elapsed_time_s=float(numbers["elapsed_time"]),
        start=start,
    )


class ActivityFetcher:
    """Pages through /athlete/activities, reauthorizing once per page on a 401."""

    def __init__(self, tokens: TokenManager, session: requests.Session | None = None) -> None:
        self.tokens = tokens
        self.session = session or requests.Session()

    def _bearer(self) -> str:
        try:
            return self.tokens.get_access_token()
        except TokenRefreshFailed as exc:
            print(f"Token refresh failed ({exc}); starting browser authorization.", file=sys.stderr)
            self.tokens.reauthorize()
            return self.tokens.get_access_token()

    def _get(self, params: dict[str, int]) -> requests.Response:
        url = f"{STRAVA_API_BASE}/athlete/activities"
        try:
            return self.session.get(
                url,
                headers={"Authorization": f"Bearer {self._bearer()}"},
                params=params,
                timeout=30,
            )
        except requests.RequestException as exc:
            raise ApiError(None, f"Request to {url} failed: {exc}") from exc

    def fetch_page(self, page: int, after: int) -> list[Activity]:
        params = {"after": after, "per_page": PER_PAGE, "page": page}
        response = self._get(params)
        if response.status_code == 401:
            print(f"Strava rejected the access token on page {page}; reauthorizing.", file=sys.stderr)
            self.tokens.reauthorize()
            response = self._get(params)

        if response.status_code >= 400:
            print(f"Request failed ({response.status_code}) for page {page}: {response.text}", file=sys.stderr)
            raise ApiError(
                response.status_code,
                f"Strava activities request failed (HTTP {response.status_code})",
                response.text,
            )

        try:
            batch = response.json()
        except ValueError as exc:
            raise ApiError(response.status_code, "Activities response was not valid JSON", response.text) from exc
        if not isinstance(batch, list):
            raise ApiError(response.status_code, "Unexpected activities response from Strava API", response.text)
        return [parse_activity(record) for record in batch]

    def iter_activities(self, after: int) -> Iterator[Activity]:
        page = 1
        while True:
            batch = self.fetch_page(page, after)
            if not batch:
                return
            yield from batch
            page += 1
