"""Account snapshot reshaping: tallies, locations and user presence."""

from __future__ import annotations

from typing import Any, Iterator

from ..aggregation import UNKNOWN, dig
from ..models import DownstreamEnvelope
from .base import SNAPSHOT_ROOT, EnvelopePolicy, ResponsePolicy, register_policy

CONNECTED = "connected"

ALL_CONNECTED_NOTE = (
    "Showing all connected users only. To see disconnected users, use entity_lookup tool "
    "first to get user IDs, then call this tool with userIDs parameter."
)
FILTERED_NOTE = (
    "Filtered results for {count} specific user ID(s). This includes users regardless of "
    "connection status."
)
SPLIT_NOTE = " Connected users are split into remote/in-office categories."


def walk(obj: Any, path: str) -> Iterator[Any]:
    """Yield the values at a dotted path; a ``name[]`` segment fans out over a list.

    >>> list(walk({"devices": [{"v": 1}, {"v": 2}]}, "devices[].v"))
    [1, 2]
    """
    head, _, rest = path.partition(".")
    if head.endswith("[]"):
        for element in dig(obj, head[:-2]) or []:
            if rest:
                yield from walk(element, rest)
            else:
                yield element
        return
    value = dig(obj, head)
    if rest:
        if value is not None:
            yield from walk(value, rest)
    else:
        yield value


def tally(items: list[Any], path: str, fallback: str | None = None) -> dict[str, int]:
    """Count items by the value at path.

    Falsy values count under fallback, or are skipped when fallback is None.
    """
    counts: dict[str, int] = {}
    for item in items:
        for value in walk(item, path):
            if not value:
                if fallback is None:
                    continue
                value = fallback
            counts[value] = counts.get(value, 0) + 1
    return counts


def location_string(site: dict[str, Any]) -> str:
    """``country[.state][.city]`` of a site, Unknown without a country."""
    country = dig(site, "info.countryName")
    if not country:
        return UNKNOWN
    parts = [country]
    for key in ("info.countryStateName", "info.cityName"):
        value = dig(site, key)
        if value:
            parts.append(value)
    return ".".join(parts)


def filter_note(user_ids: list[Any] | None, split: bool = False) -> str:
    if user_ids:
        return FILTERED_NOTE.format(count=len(user_ids)) + (SPLIT_NOTE if split else "")
    return ALL_CONNECTED_NOTE


class SnapshotPolicy(ResponsePolicy):
    default_root = SNAPSHOT_ROOT


@register_policy
class Tally(SnapshotPolicy):
    """Return the snapshot collection with a count of its items per attribute value.

    Options:
        path: dotted attribute path, ``[]`` expands lists (``devices[].socketInfo.version``)
        count_key: output key of the counts
        total_key: output key of the collection size
        fallback: key for missing values; missing values are skipped when unset
    """

    name = "tally"

    def __init__(
        self,
        path: str,
        count_key: str,
        total_key: str | None = None,
        fallback: str | None = None,
        root: str | None = None,
        collection: str | None = None,
    ):
        super().__init__(root, collection)
        self.path = path
        self.count_key = count_key
        self.total_key = total_key or f"{self.scope.collection}Count"
        self.fallback = fallback

    def reshape(self, args: dict[str, Any], node: dict[str, Any], items: list[Any]) -> dict[str, Any]:
        return {
            "data": {
                "accountSnapshotTimestamp": node.get("timestamp"),
                self.scope.collection: items,
                self.total_key: len(items),
                self.count_key: tally(items, self.path, self.fallback),
            }
        }


@register_policy
class SiteLocations(SnapshotPolicy):
    """Count sites per connected PoP and per geographical location."""

    name = "site_locations"

    def reshape(self, args: dict[str, Any], node: dict[str, Any], items: list[Any]) -> dict[str, Any]:
        by_pop: dict[str, int] = {}
        by_location: dict[str, int] = {}
        for site in items:
            pop = site.get("popName") or UNKNOWN
            by_pop[pop] = by_pop.get(pop, 0) + 1
            location = location_string(site)
            by_location[location] = by_location.get(location, 0) + 1

        return {
            "data": {
                "accountSnapshotTimestamp": node.get("timestamp"),
                "totalSitesCount": len(items),
                "sitesCountByPopName": by_pop,
                "sitesCountByLocation": by_location,
            }
        }


@register_policy
class UserPresence(SnapshotPolicy):
    """Split connected users into remote and in-office lists with per-PoP counts."""

    name = "user_presence"
    default_collection = "users"

    def reshape(self, args: dict[str, Any], node: dict[str, Any], items: list[Any]) -> dict[str, Any]:
        connected = [user for user in items if user.get("connectivityStatus") == CONNECTED]
        remote = [user for user in connected if not user.get("connectedInOffice")]
        in_office = [user for user in connected if user.get("connectedInOffice")]
        user_ids = args.get("userIDs")

        return {
            "data": {
                "accountSnapshotTimestamp": node.get("timestamp"),
                "totalUsersCount": len(connected),
                "totalRequestedUsers": len(items),
                "remoteUsers": remote,
                "remoteUsersCount": len(remote),
                "inOfficeUsers": in_office,
                "inOfficeUsersCount": len(in_office),
                "usersCountPerPopName": tally(connected, "popName", UNKNOWN),
                "note": filter_note(user_ids, split=True),
                "userIDs_filter_applied": user_ids or None,
            }
        }


@register_policy
class UserFilterNote(EnvelopePolicy):
    """Pass the snapshot through, noting which user filters were applied."""

    name = "user_filter_note"

    def __init__(self, name_arg: str = "user_name_or_id", ids_arg: str = "userIDs"):
        self.name_arg = name_arg
        self.ids_arg = ids_arg

    def transform(self, args: dict[str, Any], envelope: DownstreamEnvelope) -> dict[str, Any]:
        result = envelope.to_dict()
        data = dict(result.get("data") or {})
        if args.get(self.name_arg):
            data["user_name_filter"] = args[self.name_arg]
        user_ids = args.get(self.ids_arg)
        if user_ids:
            data["userIDs_filter_applied"] = user_ids
        data["note"] = filter_note(user_ids)
        result["data"] = data
        return result
