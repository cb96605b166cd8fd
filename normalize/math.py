from typing import List


def avg(samples: List[float]) -> float:
    if not samples:
        raise ValueError("samples must not be empty")
    return sum(samples) / len(samples)


def percentile(samples: List[float], percent: float) -> float:
    if not samples:
        raise ValueError("samples must not be empty")
    if not (0 <= percent <= 100):
        raise ValueError("percent must be between 0 and 100")
    s = sorted(samples)
    n = len(s)
    if n == 1:
        return float(s[0])
    # rank using linear interpolation (0-based index)
    idx = (percent / 100.0) * (n - 1)
    lower = int(idx // 1)
    upper = int(idx // 1 + (0 if idx.is_integer() else 1))
    if upper >= n:
        return float(s[-1])
    if lower == upper:
        return float(s[lower])
    frac = idx - lower
    return float(s[lower] + frac * (s[upper] - s[lower]))


def p95(samples: List[float]) -> float:
    return percentile(samples, 95.0)


def p99(samples: List[float]) -> float:
    return percentile(samples, 99.0)


def p100(samples: List[float]) -> float:
    return percentile(samples, 100.0)


def growth_rate(samples: List[float]) -> float:
    """Endpoint-delta growth: (last - first) / first.

    Zero when there are fewer than two samples or the first sample is zero.
    """
    if len(samples) < 2:
        return 0.0
    first, last = samples[0], samples[-1]
    if first == 0:
        return 0.0
    return (last - first) / first


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
