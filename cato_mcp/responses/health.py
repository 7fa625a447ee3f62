"""Threshold scan of per-interface network metrics."""

from __future__ import annotations

from typing import Any

from ..aggregation import HEALTH_THRESHOLDS, dig, format_number, is_number
from .base import ResponsePolicy, register_policy, time_frame

HEALTH_METRICS = ("rtt", "jitterUpstream", "jitterDownstream", "lostUpstreamPcnt", "lostDownstreamPcnt")

# metric -> threshold family
METRIC_FAMILIES = {
    "rtt": "rtt",
    "jitterUpstream": "jitter",
    "jitterDownstream": "jitter",
    "lostUpstreamPcnt": "packetLoss",
    "lostDownstreamPcnt": "packetLoss",
}


def resolve_thresholds(args: dict[str, Any]) -> dict[str, float]:
    return {
        "rtt": args.get("rttThreshold") or HEALTH_THRESHOLDS["rtt"],
        "packetLoss": args.get("packetLossThreshold") or HEALTH_THRESHOLDS["packetLoss"],
        "jitter": args.get("jitterThreshold") or HEALTH_THRESHOLDS["jitter"],
    }


def is_unhealthy(metrics: dict[str, Any], thresholds: dict[str, float]) -> bool:
    for metric, family in METRIC_FAMILIES.items():
        value = metrics.get(metric)
        if is_number(value) and value > thresholds[family]:
            return True
    return False


def scan_site(site: dict[str, Any], thresholds: dict[str, float]) -> dict[str, Any] | None:
    """The unhealthy interfaces of a site, or None when all are within thresholds."""
    unhealthy = []
    for intf in site.get("interfaces") or []:
        metrics = intf.get("metrics") or {}
        if is_unhealthy(metrics, thresholds):
            unhealthy.append({
                "interfaceName": intf.get("name"),
                "metrics": {metric: metrics.get(metric) for metric in HEALTH_METRICS},
            })
    if not unhealthy:
        return None
    return {
        "siteId": site.get("id"),
        "siteName": dig(site, "info.name"),
        "unhealthyInterfaces": unhealthy,
    }


@register_policy
class NetworkHealthScan(ResponsePolicy):
    """Report the sites with at least one interface above an RTT, loss or jitter threshold."""

    name = "network_health"

    def reshape(self, args: dict[str, Any], node: dict[str, Any], items: list[Any]) -> dict[str, Any]:
        thresholds = resolve_thresholds(args)
        unhealthy_sites = [
            report for report in (scan_site(site, thresholds) for site in items) if report is not None
        ]
        return {
            "data": {
                "timeFrame": time_frame(node),
                "summary": {
                    "sitesScanned": len(items),
                    "unhealthySiteCount": len(unhealthy_sites),
                    "thresholds": {
                        "rtt": f"{format_number(thresholds['rtt'])}ms",
                        "packetLoss": f"{format_number(thresholds['packetLoss'])}%",
                        "jitter": f"{format_number(thresholds['jitter'])}ms",
                    },
                },
                "unhealthySites": unhealthy_sites,
            }
        }
