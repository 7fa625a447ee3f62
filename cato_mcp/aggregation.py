"""Aggregation helpers shared by the response policies.

Pure functions for turning metric values and bucketed timeseries into
summaries, grouping keys, formatted byte strings and health flags.
A timeseries is a list of ``[timestamp_millis, value]`` points as returned by
the GraphQL API; values may be null.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Sequence

DEFAULT_TIMEFRAME = "last.P1D"
DEFAULT_BUCKETS = 24
DEFAULT_TOP_N = 5

HEALTH_THRESHOLDS = {
    "rtt": 150,
    "packetLoss": 2,
    "jitter": 30,
}

# Fallback group keys when the grouped attribute is missing
UNKNOWN = "Unknown"
NONE = "NONE"
PRIMARY = "PRIMARY"
SECONDARY = "SECONDARY"
IN_OFFICE = "In-Office"
REMOTE = "Remote"

BYTE_UNITS = ["Bytes", "KiB", "MiB", "GiB", "TiB", "PiB"]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def dig(obj: Any, path: str, default: Any = None) -> Any:
    """Follow a dotted path through nested dicts, returning default on any miss."""
    current = obj
    for part in path.split("."):
        if not isinstance(current, dict):
            return default
        current = current.get(part)
        if current is None:
            return default
    return current


def is_number(value: Any) -> bool:
    """True for real int/float values that are not NaN."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


def format_number(value: float) -> str:
    """Render a number the way a JSON consumer would print it (150, not 150.0)."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def to_iso_millis(timestamp_ms: float) -> str:
    """Convert epoch milliseconds to an ISO-8601 UTC string with millisecond precision."""
    moment = _EPOCH + timedelta(milliseconds=timestamp_ms)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


# ---------------------------------------------------------------------------
# Metric calculations
# ---------------------------------------------------------------------------


def calculate_bytes_total(bytes_upstream: Any, bytes_downstream: Any) -> float:
    return (bytes_upstream or 0) + (bytes_downstream or 0)


def calculate_host_utilization(host_count: Any, host_limit: Any) -> float:
    """Host count as a percentage of the host limit (0 when the limit is not positive)."""
    if not is_number(host_limit) or host_limit <= 0:
        return 0
    return ((host_count or 0) / host_limit) * 100


def calculate_upstream_downstream_ratio(bytes_upstream: Any, bytes_downstream: Any) -> float:
    if not is_number(bytes_downstream) or bytes_downstream <= 0:
        return 0
    return (bytes_upstream or 0) / bytes_downstream


AGGREGATION_FUNCTIONS: dict[str, Callable[[list[float]], float]] = {
    "sum": lambda values: sum(values),
    "avg": lambda values: sum(values) / len(values),
    "max": max,
    "min": min,
}


def aggregate_values(values: Sequence[Any], aggregation_fn: str) -> float:
    """Aggregate numeric values with sum/avg/max/min.

    Null and NaN values are ignored. An empty set aggregates to 0, and an
    unknown function name falls back to avg.
    """
    valid = [v for v in values if is_number(v)]
    if not valid:
        return 0
    fn = AGGREGATION_FUNCTIONS.get(aggregation_fn, AGGREGATION_FUNCTIONS["avg"])
    return fn(valid)


# ---------------------------------------------------------------------------
# Timeseries
# ---------------------------------------------------------------------------


def _point_value(point: Any) -> Any:
    if isinstance(point, (list, tuple)) and len(point) > 1:
        return point[1]
    return None


def _point_timestamp(point: Any) -> Any:
    if isinstance(point, (list, tuple)) and point:
        return point[0]
    return None


def empty_summary() -> dict[str, Any]:
    return {"min": 0, "max": 0, "avg": 0, "peak": {"value": 0, "timestamp": None}}


def calculate_summary(data_points: Sequence[Any] | None) -> dict[str, Any]:
    """Summarize a timeseries as min/max/avg plus the peak point.

    Null and negative values are skipped. The peak is the first point whose
    value equals the maximum.
    """
    if not data_points:
        return empty_summary()

    values = [v for v in (_point_value(p) for p in data_points) if is_number(v) and v >= 0]
    if not values:
        return empty_summary()

    maximum = max(values)
    peak_timestamp = None
    for point in data_points:
        if _point_value(point) == maximum:
            ts = _point_timestamp(point)
            peak_timestamp = to_iso_millis(ts) if is_number(ts) else None
            break

    return {
        "min": min(values),
        "max": maximum,
        "avg": sum(values) / len(values),
        "peak": {"value": maximum, "timestamp": peak_timestamp},
    }


def host_utilization_series(
    host_count_data: Sequence[Any], host_limit_data: Sequence[Any]
) -> list[list[Any]]:
    """Derive a utilization percentage series from host count and limit series.

    Points are paired by bucket index over the shorter series; indexes where
    either point is missing are skipped.
    """
    series: list[list[Any]] = []
    for i in range(min(len(host_count_data), len(host_limit_data))):
        count_point = host_count_data[i]
        limit_point = host_limit_data[i]
        if not count_point or not limit_point:
            continue
        host_count = _point_value(count_point) or 0
        host_limit = _point_value(limit_point) or 1
        series.append([_point_timestamp(count_point), calculate_host_utilization(host_count, host_limit)])
    return series


def sum_aligned_series(series_list: Sequence[Sequence[Any]]) -> list[list[Any]]:
    """Sum several bucketed series position by position.

    Each output point takes the timestamp of the first contributor that has
    a point at that index; buckets are not matched by absolute time.
    """
    if not series_list:
        return []
    result: list[list[Any]] = []
    max_buckets = max(len(series or []) for series in series_list)
    for i in range(max_buckets):
        timestamp = None
        total = 0
        for series in series_list:
            if not series or i >= len(series) or not series[i]:
                continue
            if timestamp is None:
                timestamp = _point_timestamp(series[i])
            total += _point_value(series[i]) or 0
        if timestamp is not None:
            result.append([timestamp, total])
    return result


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------


def _site_name(site: dict[str, Any]) -> str:
    return f"{dig(site, 'info.name') or site.get('id')}"


GROUP_KEYS: dict[str, Callable[[dict[str, Any]], str]] = {
    "site": _site_name,
    "siteType": lambda site: dig(site, "info.type") or UNKNOWN,
    "connType": lambda site: dig(site, "info.connType") or UNKNOWN,
    "region": lambda site: dig(site, "info.region") or UNKNOWN,
    "interfaceRole": lambda intf: dig(intf, "interfaceInfo.wanRole") or NONE,
    "interfaceName": lambda intf: intf.get("name") or UNKNOWN,
    "socketHA": lambda intf: PRIMARY if dig(intf, "socketInfo.isPrimary") else SECONDARY,
    "user": lambda user: f"{dig(user, 'info.name') or user.get('name') or user.get('id')}",
    "osType": lambda user: dig(user, "info.osType") or UNKNOWN,
    "clientVersion": lambda user: dig(user, "info.version") or UNKNOWN,
    "popName": lambda user: dig(user, "info.popName") or UNKNOWN,
    "connectionStatus": lambda user: dig(user, "info.connectivityStatus") or UNKNOWN,
    "inOffice": lambda user: IN_OFFICE if dig(user, "info.connectedInOffice") else REMOTE,
}

INTERFACE_DIMENSIONS = {"interfaceRole", "interfaceName", "socketHA"}


def group_key(dimension: str, entity: dict[str, Any]) -> str:
    """Grouping key of an entity for a dimension; unknown dimensions map to Unknown."""
    generator = GROUP_KEYS.get(dimension)
    if generator is None:
        return UNKNOWN
    return generator(entity)


# ---------------------------------------------------------------------------
# Presentation
# ---------------------------------------------------------------------------


def format_bytes(num_bytes: Any, decimals: int = 2) -> str:
    """Format a byte count with binary (1024-based) units, e.g. '1.5 KiB'."""
    if not is_number(num_bytes) or num_bytes == 0:
        return "0 Bytes"

    dm = max(decimals, 0)
    magnitude = abs(num_bytes)
    i = int(math.floor(math.log(magnitude) / math.log(1024))) if magnitude >= 1 else 0
    i = min(i, len(BYTE_UNITS) - 1)

    converted = round(num_bytes / math.pow(1024, i), dm)
    text = f"{converted:.{dm}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{text} {BYTE_UNITS[i]}"


def generate_health_flags(metrics: dict[str, Any], thresholds: dict[str, Any]) -> list[str]:
    """Describe every aggregated metric that crosses its threshold.

    Thresholds: rtt (ms), packetLoss (%), jitter (ms), hostUtilization (%).
    A missing or zero threshold disables the check.
    """
    flags: list[str] = []

    def over(name: str, limit: Any) -> bool:
        value = metrics.get(name)
        return is_number(value) and value > limit

    rtt = thresholds.get("rtt")
    if rtt and over("rtt", rtt):
        flags.append(f"High RTT ({metrics['rtt']:.1f}ms > {format_number(rtt)}ms)")

    loss = thresholds.get("packetLoss")
    if loss:
        if over("lostUpstreamPcnt", loss):
            flags.append(
                f"High upstream packet loss ({metrics['lostUpstreamPcnt']:.1f}% > {format_number(loss)}%)"
            )
        if over("lostDownstreamPcnt", loss):
            flags.append(
                f"High downstream packet loss ({metrics['lostDownstreamPcnt']:.1f}% > {format_number(loss)}%)"
            )

    jitter = thresholds.get("jitter")
    if jitter:
        if over("jitterUpstream", jitter):
            flags.append(
                f"High upstream jitter ({metrics['jitterUpstream']:.1f}ms > {format_number(jitter)}ms)"
            )
        if over("jitterDownstream", jitter):
            flags.append(
                f"High downstream jitter ({metrics['jitterDownstream']:.1f}ms > {format_number(jitter)}ms)"
            )

    utilization = thresholds.get("hostUtilization")
    if utilization and over("hostUtilizationPct", utilization):
        flags.append(
            f"High capacity utilization ({metrics['hostUtilizationPct']:.1f}% > {format_number(utilization)}%)"
        )

    return flags


def sort_results(results: list[dict[str, Any]], sort_by: str | None, sort_order: str = "desc") -> list[dict[str, Any]]:
    """Sort result rows by one field; rows keep their order on ties.

    Leaves the list untouched when the field is not present on the first row.
    Missing values sort as "" in text columns and as 0 otherwise.
    """
    if not sort_by or not results or sort_by not in results[0]:
        return results
    present = next((row[sort_by] for row in results if row.get(sort_by) is not None), None)
    fallback: Any = "" if isinstance(present, str) else 0
    return sorted(
        results,
        key=lambda row: fallback if row.get(sort_by) is None else row[sort_by],
        reverse=(sort_order == "desc"),
    )
