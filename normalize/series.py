import re
from typing import Dict, List, Optional, Tuple


_DURATION_RE = re.compile(r'^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h|d|w|y)\s*$')

_UNIT_SECONDS = {
    'ms': 0.001,
    's': 1,
    'm': 60,
    'h': 3600,
    'd': 86400,
    'w': 7 * 86400,
    'y': 365 * 86400,
}


def parse_duration(text: str) -> Optional[float]:
    """Parse a Prometheus-style duration ("90s", "5m", "48h", "7d") into seconds.

    Returns None when the text is not a single-unit duration.
    """
    if not isinstance(text, str):
        return None
    m = _DURATION_RE.match(text.lower())
    if not m:
        return None
    return float(m.group(1)) * _UNIT_SECONDS[m.group(2)]


def values_from_series(series: List[Tuple[float, float]]) -> List[float]:
    """Extract numeric values from a list of (timestamp, value) tuples.
    Drops NaNs and non-finite values.
    """
    vals: List[float] = []
    for ts, v in series:
        if v is None:
            continue
        try:
            fv = float(v)
        except (TypeError, ValueError):
            continue
        if fv != fv or fv in (float('inf'), float('-inf')):
            continue
        vals.append(fv)
    return vals


def merge_series(all_series: List[List[Tuple[float, float]]]) -> List[Tuple[float, float]]:
    """Sum several series sample-wise by timestamp, ordered by time."""
    merged: Dict[float, float] = {}
    for series in all_series:
        for ts, v in series:
            merged[ts] = merged.get(ts, 0.0) + v
    return sorted(merged.items())
