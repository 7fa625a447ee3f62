"""Counting of interface annotation events (PoP, remote IP and HA role changes)."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from ..aggregation import dig, is_number, to_iso_millis
from .base import ResponsePolicy, register_policy, time_frame

logger = logging.getLogger(__name__)

DEFAULT_ANNOTATION_TYPES = ["popChange", "remoteIPChange", "roleChange"]
DEFAULT_GROUP_BY = "site"
DEFAULT_MIN_EVENT_COUNT = 1

SITE_FIELDS = ("siteId", "siteName", "siteType", "connType", "region", "isHA")


def event_timestamp(value: Any) -> str | None:
    """Normalize an annotation time (epoch millis or ISO string) to ISO-8601 UTC."""
    if is_number(value):
        return to_iso_millis(value)
    if isinstance(value, str) and value:
        try:
            moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.debug("Unparseable annotation time: %s", value)
            return None
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        millis = moment.astimezone(timezone.utc).timestamp() * 1000
        return to_iso_millis(millis)
    return None


def site_label(site: dict[str, Any]) -> str:
    return f"{dig(site, 'info.name') or site.get('id')}"


def build_event(site: dict[str, Any], intf: dict[str, Any], annotation: dict[str, Any]) -> dict[str, Any]:
    return {
        "siteId": site.get("id"),
        "siteName": dig(site, "info.name"),
        "siteType": dig(site, "info.type"),
        "connType": dig(site, "info.connType"),
        "region": dig(site, "info.region"),
        "isHA": dig(site, "info.isHA"),
        "interfaceName": intf.get("name"),
        "annotationType": annotation.get("type"),
        "timestamp": event_timestamp(annotation.get("time")),
        "label": annotation.get("label"),
        "shortLabel": annotation.get("shortLabel"),
    }


def event_group_key(site: dict[str, Any], intf: dict[str, Any], annotation: dict[str, Any], group_by: str) -> str:
    if group_by == "site":
        return site_label(site)
    if group_by == "interface":
        return f"{site_label(site)}:{intf.get('name')}"
    if group_by == "annotationType":
        return f"{annotation.get('type')}"
    return ""


def count_events(
    sites: list[dict[str, Any]],
    annotation_types: list[str],
    group_by: str = DEFAULT_GROUP_BY,
    include_timestamps: bool = False,
    min_event_count: int = DEFAULT_MIN_EVENT_COUNT,
) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """Count annotation events per group.

    Returns:
        (groups at or above min_event_count sorted by count descending,
         every matching event)
    """
    events: list[dict[str, Any]] = []
    groups: dict[str, dict[str, Any]] = {}
    affected: dict[str, tuple[dict[str, None], dict[str, None]]] = {}

    for site in sites:
        for intf in site.get("interfaces") or []:
            for annotation in intf.get("annotations") or []:
                if annotation.get("type") not in annotation_types:
                    continue
                event = build_event(site, intf, annotation)
                events.append(event)

                key = event_group_key(site, intf, annotation, group_by)
                group = groups.get(key)
                if group is None:
                    group = {
                        "group": key,
                        "groupType": group_by,
                        "totalEvents": 0,
                        "eventsByType": {},
                        "events": [],
                    }
                    if group_by in ("site", "interface"):
                        group.update({name: event[name] for name in SITE_FIELDS})
                    if group_by == "interface":
                        group["interfaceName"] = intf.get("name")
                    if group_by == "annotationType":
                        group["annotationType"] = annotation.get("type")
                        affected[key] = ({}, {})
                    groups[key] = group

                group["totalEvents"] += 1
                by_type = group["eventsByType"]
                by_type[event["annotationType"]] = by_type.get(event["annotationType"], 0) + 1

                if group_by == "annotationType":
                    sites_seen, interfaces_seen = affected[key]
                    sites_seen[site_label(site)] = None
                    interfaces_seen[f"{site_label(site)}:{intf.get('name')}"] = None

                if include_timestamps:
                    group["events"].append(event)

    results = []
    for key, group in groups.items():
        if group["totalEvents"] < min_event_count:
            continue
        group_events = group.pop("events")
        if key in affected:
            sites_seen, interfaces_seen = affected[key]
            group["affectedSitesCount"] = len(sites_seen)
            group["affectedInterfacesCount"] = len(interfaces_seen)
            group["affectedSites"] = list(sites_seen)
        if include_timestamps and group_events:
            group["events"] = sorted(group_events, key=lambda e: e["timestamp"] or "", reverse=True)
        results.append(group)

    results.sort(key=lambda group: group["totalEvents"], reverse=True)
    return results, events


@register_policy
class AnnotationEventCounter(ResponsePolicy):
    """Count change events per site, interface or event type."""

    name = "event_counter"

    def reshape(self, args: dict[str, Any], node: dict[str, Any], items: list[Any]) -> dict[str, Any]:
        group_by = args.get("groupBy") or DEFAULT_GROUP_BY
        annotation_types = args.get("annotationTypes")
        if annotation_types is None:
            annotation_types = DEFAULT_ANNOTATION_TYPES

        results, events = count_events(
            items,
            annotation_types,
            group_by=group_by,
            include_timestamps=bool(args.get("includeTimestamps")),
            min_event_count=args.get("minEventCount") or DEFAULT_MIN_EVENT_COUNT,
        )

        distribution: dict[str, int] = {}
        for event in events:
            distribution[event["annotationType"]] = distribution.get(event["annotationType"], 0) + 1
        unique_sites = {f"{e['siteName'] or e['siteId']}" for e in events}
        unique_interfaces = {f"{e['siteName'] or e['siteId']}:{e['interfaceName']}" for e in events}

        return {
            "data": {
                "timeFrame": time_frame(node),
                "summary": {
                    "totalEvents": len(events),
                    "groupBy": group_by,
                    "annotationTypesAnalyzed": annotation_types,
                    "uniqueSitesAffected": len(unique_sites),
                    "uniqueInterfacesAffected": len(unique_interfaces),
                    "eventTypeDistribution": distribution,
                    "resultsReturned": len(results),
                },
                "results": results,
            }
        }
