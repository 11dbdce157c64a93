"""
Jinja2 templates and filters for the status page.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

from fastapi.templating import Jinja2Templates

TEMPLATES_DIR = Path(__file__).parent / "templates"

SPARKLINE_WIDTH = 100
SPARKLINE_HEIGHT = 20


def timeago(value: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Relative time like '5 minutes ago'"""
    if value is None:
        return "never"
    if now is None:
        now = datetime.now(timezone.utc)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)

    seconds = int((now - value).total_seconds())
    if seconds < 0:
        return "just now"
    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        if seconds >= size:
            count = seconds // size
            return f"{count} {unit}{'s' if count != 1 else ''} ago"
    return f"{seconds} second{'s' if seconds != 1 else ''} ago"


def human_bytes(value: Optional[int]) -> str:
    """Decimal byte size like '3.2 GB'"""
    if value is None:
        return "-"
    size = float(value)
    for unit in ("B", "kB", "MB", "GB", "TB"):
        if size < 1000 or unit == "TB":
            if unit == "B":
                return f"{int(size)} B"
            return f"{size:.1f} {unit}"
        size /= 1000
    return f"{size:.1f} TB"


def fmt_number(value: Optional[float], digits: int = 2) -> str:
    if value is None:
        return "-"
    return f"{value:.{digits}f}"


def sparkline(values: Sequence[float], width: int = SPARKLINE_WIDTH, height: int = SPARKLINE_HEIGHT) -> str:
    """SVG polyline points for a series, scaled to its own min/max"""
    if not values:
        return ""
    if len(values) == 1:
        values = [values[0], values[0]]

    low, high = min(values), max(values)
    spread = (high - low) or 1.0
    step = width / (len(values) - 1)

    points: List[str] = []
    for i, value in enumerate(values):
        x = i * step
        y = height - (value - low) / spread * height
        points.append(f"{x:.1f},{y:.1f}")
    return " ".join(points)


templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["timeago"] = timeago
templates.env.filters["human_bytes"] = human_bytes
templates.env.filters["fmt_number"] = fmt_number
templates.env.filters["sparkline"] = sparkline
