"""Top-N bandwidth ranking of sites or users."""

from __future__ import annotations

from typing import Any

from ..aggregation import DEFAULT_TOP_N, calculate_bytes_total, dig, format_bytes
from ..errors import InvalidArgumentError
from .base import ResponsePolicy, Scope, register_policy, time_frame

MIN_TOP_N = 1
MAX_TOP_N = 50


def resolve_top_n(value: Any) -> int:
    """Coerce a topN argument to an int clamped to [MIN_TOP_N, MAX_TOP_N]."""
    if value is None or value == "":
        return DEFAULT_TOP_N
    expected = f"an integer between {MIN_TOP_N} and {MAX_TOP_N}"
    if isinstance(value, bool):
        raise InvalidArgumentError("topN", value, expected)
    try:
        top_n = int(value)
    except (TypeError, ValueError):
        raise InvalidArgumentError("topN", value, expected) from None
    return min(max(top_n, MIN_TOP_N), MAX_TOP_N)


def rank_consumers(
    consumers: list[dict[str, Any]],
    top_n: int = DEFAULT_TOP_N,
    exclude_zero: bool = False,
    include_duration: bool = False,
    sort_order: str = "desc",
) -> list[dict[str, Any]]:
    """Rank consumers by upstream + downstream bytes and keep the first top_n.

    Missing byte counters count as 0. Equal totals keep their input order.
    """
    ranked = []
    for consumer in consumers:
        upstream = dig(consumer, "metrics.bytesUpstream") or 0
        downstream = dig(consumer, "metrics.bytesDownstream") or 0
        total = calculate_bytes_total(upstream, downstream)
        if exclude_zero and total <= 0:
            continue
        row: dict[str, Any] = {
            "id": consumer.get("id"),
            "name": dig(consumer, "info.name") or consumer.get("name"),
            "totalBytes": total,
            "totalUsage": format_bytes(total),
            "breakdown": {
                "upload": format_bytes(upstream),
                "download": format_bytes(downstream),
            },
        }
        if include_duration:
            row["duration"] = dig(consumer, "metrics.duration") or 0
        ranked.append(row)

    ranked.sort(key=lambda row: row["totalBytes"], reverse=(sort_order != "asc"))
    return ranked[:top_n]


@register_policy
class TopNRanking(ResponsePolicy):
    """Rank the scoped collection by total traffic.

    Options:
        collection_arg: argument naming the collection at call time
        exclude_zero: drop consumers without any traffic
        include_duration: add the metrics.duration of each consumer
        note: text added to the summary, together with the analyzed count
    """

    name = "top_n"

    def __init__(
        self,
        root: str | None = None,
        collection: str | None = None,
        collection_arg: str | None = None,
        exclude_zero: bool = False,
        include_duration: bool = False,
        note: str | None = None,
    ):
        super().__init__(root, collection)
        self.collection_arg = collection_arg
        self.exclude_zero = exclude_zero
        self.include_duration = include_duration
        self.note = note

    def scope_for(self, args: dict[str, Any]) -> Scope:
        if self.collection_arg:
            collection = args.get(self.collection_arg) or self.scope.collection
            return Scope(root=self.scope.root, collection=collection)
        return self.scope

    def reshape(self, args: dict[str, Any], node: dict[str, Any], items: list[Any]) -> dict[str, Any]:
        consumer_type = self.scope_for(args).collection
        ranked = rank_consumers(
            items,
            top_n=resolve_top_n(args.get("topN")),
            exclude_zero=self.exclude_zero,
            include_duration=self.include_duration,
            sort_order=args.get("sortOrder") or "desc",
        )

        summary: dict[str, Any] = {
            "consumerType": consumer_type,
            "showingTop": len(ranked),
        }
        if self.note:
            summary[f"total{consumer_type.capitalize()}Analyzed"] = len(items)
            summary["note"] = self.note

        return {
            "data": {
                "timeFrame": time_frame(node),
                "summary": summary,
                "topConsumers": ranked,
            }
        }
