"""Year-to-date Strava activity stats for a pinned GitHub gist."""

__version__ = "0.3.0"
