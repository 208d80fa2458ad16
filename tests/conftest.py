import datetime as dt
import json
import sys
from pathlib import Path

# Allow importing the package from a plain checkout without installing it
sys.path.insert(0, str(Path(__file__).parent.parent))

from strava_ytd.client import Activity  # noqa: E402


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)

    def json(self):
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            import requests

            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    """Replays queued responses and records every call."""

    def __init__(self, get=None, post=None, patch=None):
        self.queues = {"get": list(get or []), "post": list(post or []), "patch": list(patch or [])}
        self.calls = []

    def _next(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        queue = self.queues[method]
        if not queue:
            raise AssertionError(f"unexpected {method.upper()} {url}")
        response = queue.pop(0)
        return response(url, kwargs) if callable(response) else response

    def get(self, url, **kwargs):
        return self._next("get", url, kwargs)

    def post(self, url, **kwargs):
        return self._next("post", url, kwargs)

    def patch(self, url, **kwargs):
        return self._next("patch", url, kwargs)


def make_activity(category="Run", start="2024-03-01T08:00:00Z", moving=1800, distance=5000.0, elapsed=None):
    start_dt = dt.datetime.fromisoformat(start.replace("Z", "+00:00"))
    return Activity(
        category=category,
        distance_m=float(distance),
        moving_time_s=float(moving),
        elapsed_time_s=float(moving if elapsed is None else elapsed),
        start=start_dt,
    )


def activity_record(activity_type="Run", start="2024-03-01T08:00:00Z", moving=1800, distance=5000.0, elapsed=None):
    return {
        "id": 1,
        "type": activity_type,
        "start_date": start,
        "moving_time": moving,
        "elapsed_time": moving if elapsed is None else elapsed,
        "distance": distance,
    }
