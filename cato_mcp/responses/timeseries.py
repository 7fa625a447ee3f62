"""Summaries of bucketed timeseries for sites and users.

Every series is returned as ``{label, units, sum, summary, buckets, data}``
where summary is min/max/avg/peak over the non-null, non-negative points.
Host count and host limit series produce a derived hostUtilizationPct
series. With groupInterfaces, per-interface series of a site are also
summed bucket by bucket into aggregatedMetrics.
"""

from __future__ import annotations

from typing import Any

from ..aggregation import (
    DEFAULT_BUCKETS,
    calculate_summary,
    dig,
    host_utilization_series,
    sum_aligned_series,
)
from .base import ResponsePolicy, register_policy, time_frame

CAPACITY_FIELDS = ("hostCount", "flowCount", "hostLimit")

SITE_NOTE = (
    "Account timeseries represents aggregated data. Site data shows per-site metrics "
    "(hostCount, flowCount, hostLimit) and per-interface metrics, with aggregated site "
    "metrics when groupInterfaces=true."
)
USER_NOTE = (
    "Returns timeseries data for users and their interfaces. User-level metrics include "
    "hostCount, flowCount, hostLimit, and calculated hostUtilizationPct."
)
USER_FILTER_NOTE = (
    " User-specific timeseries are reflected in account timeseries when userIDs filter is applied."
)
USER_REF_NOTE = "User timeseries data comes from account-level timeseries when userIDs filter is applied"


def series_entry(ts: dict[str, Any], include_info: bool = False) -> dict[str, Any]:
    """Summarize one GraphQL timeseries object."""
    points = ts.get("data") or []
    entry = {
        "label": ts.get("label"),
        "units": ts.get("units"),
        "sum": ts.get("sum"),
        "summary": calculate_summary(points),
        "buckets": len(points),
        "data": points,
    }
    if include_info:
        entry["info"] = ts.get("info")
    return entry


def utilization_entry(count_entry: dict[str, Any], limit_entry: dict[str, Any]) -> dict[str, Any] | None:
    """Derived host utilization series, or None when no bucket pairs up."""
    points = host_utilization_series(count_entry["data"], limit_entry["data"])
    if not points:
        return None
    return {
        "label": "hostUtilizationPct",
        "units": "percent",
        "sum": None,
        "summary": calculate_summary(points),
        "buckets": len(points),
        "data": points,
    }


def capacity_series(entity: dict[str, Any]) -> dict[str, Any]:
    """Host count, flow count and host limit series plus derived utilization."""
    result: dict[str, Any] = {}
    for field_name in CAPACITY_FIELDS:
        ts = entity.get(field_name)
        if ts:
            result[ts.get("label") or field_name] = series_entry(ts)

    if result.get("hostCount") and result.get("hostLimit"):
        utilization = utilization_entry(result["hostCount"], result["hostLimit"])
        if utilization is not None:
            result["hostUtilizationPct"] = utilization
    return result


def aggregate_interface_series(interfaces: list[dict[str, Any]]) -> dict[str, Any]:
    """Combine the series of several interfaces label by label."""
    labels: dict[str, None] = {}
    for intf in interfaces:
        for label in intf.get("metrics", {}):
            labels[label] = None

    aggregated: dict[str, Any] = {}
    for label in labels:
        entries = [intf["metrics"][label] for intf in interfaces if intf["metrics"].get(label)]
        if not entries:
            continue
        points = sum_aligned_series([entry["data"] for entry in entries])
        aggregated[label] = {
            "label": label,
            "units": entries[0]["units"],
            "sum": sum(entry["sum"] or 0 for entry in entries),
            "summary": calculate_summary(points),
            "buckets": len(points),
            "data": points,
        }
    return aggregated


def site_timeseries(site: dict[str, Any], group_interfaces: bool) -> dict[str, Any]:
    interfaces = [
        {
            "name": intf.get("name"),
            "metrics": {
                ts.get("label"): series_entry(ts) for ts in intf.get("timeseries") or []
            },
        }
        for intf in site.get("interfaces") or []
    ]
    result = {
        "siteId": site.get("id"),
        "siteName": site.get("name") or dig(site, "info.name"),
        "siteType": dig(site, "info.type"),
        "connType": dig(site, "info.connType"),
        "region": dig(site, "info.region"),
        "siteMetrics": capacity_series(site),
        "interfaces": interfaces,
    }
    if group_interfaces and interfaces:
        result["aggregatedMetrics"] = aggregate_interface_series(interfaces)
    return result


def user_timeseries(user: dict[str, Any]) -> dict[str, Any]:
    return {
        "userId": user.get("id"),
        "userName": user.get("name"),
        "userTimeseries": capacity_series(user),
        "interfaces": [
            {
                "name": intf.get("name"),
                "remoteIP": intf.get("remoteIP"),
                "remoteIPInfo": intf.get("remoteIPInfo"),
                "timeseries": {
                    ts.get("label"): series_entry(ts, include_info=True)
                    for ts in intf.get("timeseries") or []
                },
            }
            for intf in user.get("interfaces") or []
        ],
    }


@register_policy
class TimeseriesSummary(ResponsePolicy):
    """Per-entity timeseries summaries.

    Options:
        labels_arg: argument holding the requested metric labels
        include_user_refs: also list the users returned next to the sites
    """

    name = "timeseries"

    def __init__(
        self,
        root: str | None = None,
        collection: str | None = None,
        labels_arg: str = "labels",
        include_user_refs: bool = False,
    ):
        super().__init__(root, collection)
        self.labels_arg = labels_arg
        self.include_user_refs = include_user_refs

    def reshape(self, args: dict[str, Any], node: dict[str, Any], items: list[Any]) -> dict[str, Any]:
        if self.scope.collection == "users":
            return self._reshape_users(args, node, items)
        return self._reshape_sites(args, node, items)

    def _reshape_sites(self, args: dict[str, Any], node: dict[str, Any], sites: list[Any]) -> dict[str, Any]:
        requested = args.get(self.labels_arg) or ["bytesTotal"]
        group_interfaces = args.get("groupInterfaces") is not False

        account_series = [series_entry(ts) for ts in node.get("timeseries") or []]
        site_series = [site_timeseries(site, group_interfaces) for site in sites]

        summary: dict[str, Any] = {
            "accountTimeseriesReturned": len(account_series),
            "sitesReturned": len(site_series),
        }
        data: dict[str, Any] = {
            "timeFrame": time_frame(node),
            "granularity": node.get("granularity"),
            "bucketCount": args.get("buckets") or DEFAULT_BUCKETS,
            "summary": summary,
            "accountTimeseries": account_series,
            "sites": site_series,
        }

        note = SITE_NOTE
        if self.include_user_refs:
            users = [
                {"userId": user.get("id"), "userName": user.get("name"), "note": USER_REF_NOTE}
                for user in node.get("users") or []
            ]
            summary["usersReturned"] = len(users)
            note += USER_FILTER_NOTE
            data["users"] = users
        summary["metricsRequested"] = requested
        summary["note"] = note

        return {"data": data}

    def _reshape_users(self, args: dict[str, Any], node: dict[str, Any], users: list[Any]) -> dict[str, Any]:
        user_series = [user_timeseries(user) for user in users]
        total_interfaces = sum(len(user["interfaces"]) for user in user_series)
        total_metrics = sum(
            len(user["userTimeseries"]) + sum(len(intf["timeseries"]) for intf in user["interfaces"])
            for user in user_series
        )
        return {
            "data": {
                "timeFrame": time_frame(node),
                "granularity": node.get("granularity"),
                "bucketCount": args.get("buckets") or DEFAULT_BUCKETS,
                "summary": {
                    "usersReturned": len(user_series),
                    "totalInterfaces": total_interfaces,
                    "totalTimeseriesMetrics": total_metrics,
                    "timeseriesMetricsRequested": args.get(self.labels_arg) or [],
                    "note": USER_NOTE,
                },
                "users": user_series,
            }
        }
