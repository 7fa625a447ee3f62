"""Grouped site metrics with cross-entity aggregation and health flags."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..aggregation import (
    INTERFACE_DIMENSIONS,
    aggregate_values,
    calculate_bytes_total,
    calculate_host_utilization,
    calculate_upstream_downstream_ratio,
    dig,
    format_bytes,
    generate_health_flags,
    group_key,
    sort_results,
)
from .base import ResponsePolicy, register_policy, time_frame

DEFAULT_GROUP_BY = "site"
DEFAULT_AGGREGATION = "avg"
DEFAULT_METRICS = ["bytesTotal", "rtt", "lostUpstreamPcnt", "lostDownstreamPcnt"]


@dataclass
class GroupedAggregate:
    """Accumulates the metric samples of one group."""

    group_key: str
    group_type: str
    samples: list[dict[str, Any]] = field(default_factory=list)
    count: int = 0
    members: dict[str, None] | None = None
    context: dict[str, Any] | None = None

    def add(self, sample: dict[str, Any], member: str | None = None) -> None:
        self.samples.append(sample)
        self.count += 1
        if self.members is not None and member is not None:
            self.members[member] = None

    def values(self, metric: str) -> list[Any]:
        return [sample.get(metric) for sample in self.samples]


def with_bytes_total(metrics: dict[str, Any] | None) -> dict[str, Any]:
    metrics = metrics or {}
    return {
        **metrics,
        "bytesTotal": calculate_bytes_total(metrics.get("bytesUpstream"), metrics.get("bytesDownstream")),
    }


def site_context(site: dict[str, Any]) -> dict[str, Any]:
    return {
        "siteId": site.get("id"),
        "siteName": dig(site, "info.name"),
        "siteType": dig(site, "info.type"),
        "connType": dig(site, "info.connType"),
        "region": dig(site, "info.region"),
        "isHA": dig(site, "info.isHA"),
    }


def group_sites(sites: list[dict[str, Any]], group_by: str) -> dict[str, GroupedAggregate]:
    """Partition sites, or their interfaces, by a grouping dimension."""
    groups: dict[str, GroupedAggregate] = {}

    def group_for(key: str, **kwargs: Any) -> GroupedAggregate:
        if key not in groups:
            groups[key] = GroupedAggregate(group_key=key, **kwargs)
        return groups[key]

    for site in sites:
        site_label = f"{dig(site, 'info.name') or site.get('id')}"
        if group_by == "site":
            key = group_key("site", site)
            group_for(key, group_type="site", context=site_context(site)).add(
                with_bytes_total(site.get("metrics"))
            )
        elif group_by in INTERFACE_DIMENSIONS:
            for intf in site.get("interfaces") or []:
                key = group_key(group_by, intf)
                group_for(key, group_type=group_by, members={}).add(
                    with_bytes_total(intf.get("metrics")), member=site_label
                )
        else:
            key = group_key(group_by, site)
            group_for(key, group_type=group_by, members={}).add(
                with_bytes_total(site.get("metrics")), member=site_label
            )
    return groups


def summarize_group(
    group: GroupedAggregate,
    metrics: list[str],
    aggregation_fn: str,
    thresholds: dict[str, Any],
    include_capacity: bool,
) -> dict[str, Any]:
    """Aggregate the requested metrics of a group and derive flags from them."""
    row: dict[str, Any] = {
        "group": group.group_key,
        "groupType": group.group_type,
        "count": group.count,
    }
    if group.members is not None:
        row["sitesInGroup"] = list(group.members)
    if group.context:
        row.update(group.context)

    for metric in metrics:
        value = aggregate_values(group.values(metric), aggregation_fn)
        row[metric] = value
        if "bytes" in metric:
            row[f"{metric}Formatted"] = format_bytes(value)

    if include_capacity and row.get("hostCount") and row.get("hostLimit"):
        row["hostUtilizationPct"] = calculate_host_utilization(row["hostCount"], row["hostLimit"])

    if row.get("bytesUpstream") and row.get("bytesDownstream"):
        row["upstreamDownstreamRatio"] = calculate_upstream_downstream_ratio(
            row["bytesUpstream"], row["bytesDownstream"]
        )

    row["healthFlags"] = generate_health_flags(row, thresholds)
    return row


@register_policy
class GroupSummary(ResponsePolicy):
    """Group sites by a caller-chosen dimension and aggregate their metrics."""

    name = "group_summary"

    def reshape(self, args: dict[str, Any], node: dict[str, Any], items: list[Any]) -> dict[str, Any]:
        group_by = args.get("groupBy") or DEFAULT_GROUP_BY
        aggregation_fn = args.get("aggregationFunction") or DEFAULT_AGGREGATION
        metrics = args.get("metrics") or DEFAULT_METRICS
        thresholds = args.get("thresholds") or {}

        groups = group_sites(items, group_by)
        rows = [
            summarize_group(
                group,
                metrics,
                aggregation_fn,
                thresholds,
                bool(args.get("includeCapacityAnalysis")),
            )
            for group in groups.values()
        ]
        rows = sort_results(rows, args.get("sortBy") or "bytesTotal", args.get("sortOrder") or "desc")

        return {
            "data": {
                "timeFrame": time_frame(node),
                "summary": {
                    "groupBy": group_by,
                    "aggregationFunction": aggregation_fn,
                    "groupsReturned": len(rows),
                    "metricsAnalyzed": metrics,
                    "thresholdsApplied": list(thresholds.keys()),
                },
                "results": rows,
            }
        }
