"""Per-entity metric listings and the entity lookup pass-through."""

from __future__ import annotations

import logging
from typing import Any

from ..aggregation import calculate_host_utilization, dig
from ..models import DownstreamEnvelope
from ..pipeline.inputs import DEFAULT_LOOKUP_LIMIT
from .base import EnvelopePolicy, ResponsePolicy, register_policy, time_frame

logger = logging.getLogger(__name__)

LOOKUP_LIMIT_NOTICE = (
    "Clearly and politely notify the user that in order to comply with the models "
    "context window, the amount of entities was limited to {limit} out of {total} items"
)


def site_row(site: dict[str, Any]) -> dict[str, Any]:
    metrics = dict(site.get("metrics") or {})
    # a null counter still yields a utilization figure
    if "hostCount" in metrics and "hostLimit" in metrics:
        metrics["hostUtilizationPct"] = calculate_host_utilization(metrics["hostCount"], metrics["hostLimit"])
    return {
        "siteId": site.get("id"),
        "siteName": site.get("name") or dig(site, "info.name"),
        "siteType": dig(site, "info.type"),
        "connType": dig(site, "info.connType"),
        "region": dig(site, "info.region"),
        "metrics": metrics,
        "interfaces": [
            {
                "name": intf.get("name"),
                "remoteIP": intf.get("remoteIP"),
                "remoteIPInfo": intf.get("remoteIPInfo"),
                "interfaceInfo": intf.get("interfaceInfo"),
                "metrics": intf.get("metrics") or {},
            }
            for intf in site.get("interfaces") or []
        ],
    }


def user_row(user: dict[str, Any]) -> dict[str, Any]:
    return {
        "userId": user.get("id"),
        "userName": user.get("name"),
        "metrics": user.get("metrics") or {},
        "interfaces": [
            {
                "name": intf.get("name"),
                "remoteIP": intf.get("remoteIP"),
                "remoteIPInfo": intf.get("remoteIPInfo"),
                "metrics": intf.get("metrics") or {},
            }
            for intf in user.get("interfaces") or []
        ],
    }


@register_policy
class EntityMetrics(ResponsePolicy):
    """Flatten the aggregated metrics of each site or user with its interfaces."""

    name = "entity_metrics"

    def __init__(self, root: str | None = None, collection: str | None = None, timeseries_tool: str | None = None):
        super().__init__(root, collection)
        self.timeseries_tool = timeseries_tool or f"{self.entity}_metrics_timeseries"

    @property
    def entity(self) -> str:
        return "user" if self.scope.collection == "users" else "site"

    def reshape(self, args: dict[str, Any], node: dict[str, Any], items: list[Any]) -> dict[str, Any]:
        to_row = user_row if self.entity == "user" else site_row
        rows = [to_row(item) for item in items]
        plural = f"{self.entity}s"
        return {
            "data": {
                "timeFrame": time_frame(node),
                "granularity": node.get("granularity"),
                "summary": {
                    f"{plural}Returned": len(rows),
                    f"{plural}WithMetrics": sum(1 for row in rows if row["metrics"]),
                    "totalInterfaces": sum(len(row["interfaces"]) for row in rows),
                    "note": (
                        "Returns aggregated metrics only. For timeseries data, "
                        f"use {self.timeseries_tool} tool."
                    ),
                },
                self.scope.collection: rows,
            }
        }


@register_policy
class LookupLimitNotice(EnvelopePolicy):
    """Pass the lookup reply through, flagging a first page cut at the limit cap.

    When the caller did not page (from == 0), asked for the capped maximum
    and got fewer items than the total, the envelope errors are replaced
    by a notice the model relays to the user.
    """

    name = "lookup_limit_notice"

    def __init__(self, field: str = "entityLookup", maximum: int = DEFAULT_LOOKUP_LIMIT):
        self.field = field
        self.maximum = maximum

    def transform(self, args: dict[str, Any], envelope: DownstreamEnvelope) -> dict[str, Any]:
        result = envelope.to_dict()
        lookup = (result.get("data") or {}).get(self.field)
        if not isinstance(lookup, dict):
            return result

        total = lookup.get("total")
        items = lookup.get("items") or []
        offset = args.get("from") or 0
        if offset == 0 and args.get("limit") == self.maximum and isinstance(total, int) and len(items) < total:
            logger.info("Entity lookup limited to %s out of %s items", self.maximum, total)
            result["errors"] = [{
                "message": LOOKUP_LIMIT_NOTICE.format(limit=self.maximum, total=total),
                "path": [self.field],
            }]
        return result
