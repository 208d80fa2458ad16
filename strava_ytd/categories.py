from __future__ import annotations

import re

GROUPED_TYPES = {
    "Walk": "Hike",
    "Snowshoe": "Hike",
}


def group_type(raw_type: str) -> str:
    """Collapse a Strava activity type into the category it is counted under."""
    if re.search(r"ski$", raw_type, re.IGNORECASE):
        return "Ski"
    if re.match(r"virtual", raw_type, re.IGNORECASE):
        return re.sub(r"^virtual", "", raw_type, flags=re.IGNORECASE)
    return GROUPED_TYPES.get(raw_type, raw_type)


def rename_type(category: str) -> str:
    """Turn a category into a verb for display, e.g. ``Ride`` -> ``Cycling``."""
    if category == "EBikeRide":
        return "E-biking"
    if category.endswith("Ride"):
        category = category[: -len("Ride")] + "Cycle"
    category = re.sub(r"([a-z])([A-Z])", lambda m: f"{m.group(1)} {m.group(2).lower()}", category)

    if re.search(r"(ski|surf|board|sail|walk|shoe)$", category, re.IGNORECASE):
        return f"{category}ing"
    if re.search(r"(skate|ride|cycle|hike)$", category, re.IGNORECASE):
        return f"{category[:-1]}ing"
    if re.search(r"(swim|run)$", category, re.IGNORECASE):
        return f"{category}{category[-1]}ing"
    return category
