from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from .aggregate import RankedCategory
from .categories import rename_type

BAR_WIDTH = 28
METERS_TO_MILES = 0.000621371192
TIME_PERIODS = (("s", 60), ("m", 60), ("h", 24), ("d", 7), ("w", None))


@dataclass(frozen=True)
class Column:
    key: str
    align: str = "left"
    transform: Callable[[Any], Any] = str


def format_table(rows: Sequence[dict[str, Any]], columns: Sequence[Column], sep: str = "  ") -> str:
    cells = [[str(column.transform(row[column.key])) for column in columns] for row in rows]
    widths = [max((len(line[i]) for line in cells), default=0) for i in range(len(columns))]
    lines = []
    for line in cells:
        padded = [
            value.rjust(width) if column.align.lower().startswith("r") else value.ljust(width)
            for value, width, column in zip(line, widths, columns)
        ]
        lines.append(sep.join(padded))
    return "\n".join(lines)


def generate_bar_chart(percent: float, size: int = BAR_WIDTH) -> str:
    full = min(size, max(0, math.floor(size * percent / 100 + 0.5)))
    return ("█" * full).ljust(size, "░")


def format_distance(meters: float, units: str = "meters") -> str:
    if units == "km":
        return f"{meters / 1000:.1f} km"
    if units == "miles":
        return f"{meters * METERS_TO_MILES:.1f} mi"
    return f"{meters:.2f} m"


def format_time(seconds: float) -> str:
    parts: list[str] = []
    carry = int(seconds)
    for symbol, divisor in TIME_PERIODS:
        if divisor is None:
            parts.append(f"{carry}{symbol}")
            break
        parts.append(f"{carry % divisor}{symbol}")
        carry //= divisor
        if not carry:
            break
    return " ".join(reversed(parts[-2:]))


def render_summary(ranked: Sequence[RankedCategory], units: str = "meters") -> str:
    rows = [
        {
            "category": item.category,
            "distance": item.total_distance_m,
            "time": item.total_time_s,
            "percent": item.percent,
        }
        for item in ranked
    ]
    return format_table(
        rows,
        [
            Column("category", transform=rename_type),
            Column("distance", align="right", transform=lambda value: format_distance(value, units)),
            Column("time", transform=format_time),
            Column("percent", transform=generate_bar_chart),
        ],
    )
