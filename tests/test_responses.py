"""Tests for the response policies."""

import pytest

from cato_mcp.errors import InvalidArgumentError
from cato_mcp.models import DownstreamEnvelope, PolicySpec
from cato_mcp.responses import (
    RESPONSE_POLICIES,
    AnnotationEventCounter,
    EntityMetrics,
    GroupSummary,
    LookupLimitNotice,
    NetworkHealthScan,
    SiteLocations,
    Tally,
    TimeseriesSummary,
    TopNRanking,
    UserFilterNote,
    UserPresence,
    build_response_policy,
)
from cato_mcp.responses.events import event_timestamp
from cato_mcp.responses.ranking import MAX_TOP_N, resolve_top_n
from cato_mcp.responses.snapshot import ALL_CONNECTED_NOTE, tally, walk
from cato_mcp.responses.timeseries import USER_FILTER_NOTE

TIME_FRAME = {"from": "2024-05-11T00:00:00Z", "to": "2024-05-12T00:00:00Z"}


def metrics_envelope(**node):
    return DownstreamEnvelope(data={"accountMetrics": {**TIME_FRAME, **node}})


def snapshot_envelope(**node):
    return DownstreamEnvelope(data={"accountSnapshot": {"timestamp": "2024-05-11T10:00:00Z", **node}})


def series(label, points, units="bytes", total=None):
    return {"label": label, "units": units, "sum": total, "data": points}


class TestBuildResponsePolicy:
    def test_none_spec(self):
        assert build_response_policy(None) is None

    def test_builds_with_options(self):
        policy = build_response_policy(PolicySpec(name="top_n", options={"collection": "users"}))
        assert isinstance(policy, TopNRanking)
        assert policy.scope.collection == "users"

    def test_unknown_name(self):
        with pytest.raises(KeyError):
            build_response_policy(PolicySpec(name="no_such_policy"))

    def test_unknown_option(self):
        with pytest.raises(TypeError):
            build_response_policy(PolicySpec(name="top_n", options={"colour": "red"}))

    def test_every_policy_registered(self):
        assert set(RESPONSE_POLICIES) == {
            "top_n",
            "timeseries",
            "group_summary",
            "event_counter",
            "network_health",
            "entity_metrics",
            "lookup_limit_notice",
            "tally",
            "site_locations",
            "user_presence",
            "user_filter_note",
        }


class TestSoftMiss:
    """A reply without the expected collection yields the root's empty result."""

    def test_metrics_root(self):
        result = TopNRanking().transform({}, metrics_envelope())
        assert result == {"data": {"timeFrame": TIME_FRAME, "sites": []}}

    def test_metrics_root_users(self):
        result = EntityMetrics(collection="users").transform({}, metrics_envelope(users=None))
        assert result == {"data": {"timeFrame": TIME_FRAME, "users": []}}

    def test_snapshot_root(self):
        result = SiteLocations().transform({}, snapshot_envelope())
        assert result == {"data": {"accountSnapshotTimestamp": "2024-05-11T10:00:00Z", "sites": []}}

    def test_missing_root(self):
        envelope = DownstreamEnvelope(data={"other": {"x": 1}})
        result = GroupSummary().transform({}, envelope)
        assert result == {"data": {"timeFrame": {"from": None, "to": None}, "sites": []}}

    def test_empty_collection_is_not_a_miss(self):
        result = SiteLocations().transform({}, snapshot_envelope(sites=[]))
        assert result["data"]["totalSitesCount"] == 0


class TestTopNRanking:
    @pytest.fixture
    def sites(self):
        return [
            {"id": "1", "info": {"name": "A"}, "metrics": {"bytesUpstream": 100, "bytesDownstream": 924}},
            {"id": "2", "info": {"name": "B"}, "metrics": {"bytesUpstream": 2048, "bytesDownstream": 0}},
            {"id": "3", "info": {"name": "C"}, "metrics": {}},
        ]

    def test_ranks_by_total_bytes(self, sites):
        result = TopNRanking().transform({"topN": 2}, metrics_envelope(sites=sites))
        data = result["data"]
        assert data["timeFrame"] == TIME_FRAME
        assert data["summary"] == {"consumerType": "sites", "showingTop": 2}
        assert data["topConsumers"] == [
            {
                "id": "2",
                "name": "B",
                "totalBytes": 2048,
                "totalUsage": "2 KiB",
                "breakdown": {"upload": "2 KiB", "download": "0 Bytes"},
            },
            {
                "id": "1",
                "name": "A",
                "totalBytes": 1024,
                "totalUsage": "1 KiB",
                "breakdown": {"upload": "100 Bytes", "download": "924 Bytes"},
            },
        ]

    def test_default_top_n(self):
        sites = [{"id": str(i), "metrics": {"bytesUpstream": i}} for i in range(8)]
        result = TopNRanking().transform({}, metrics_envelope(sites=sites))
        assert [row["id"] for row in result["data"]["topConsumers"]] == ["7", "6", "5", "4", "3"]

    def test_ascending(self, sites):
        result = TopNRanking().transform({"topN": 3, "sortOrder": "asc"}, metrics_envelope(sites=sites))
        assert [row["id"] for row in result["data"]["topConsumers"]] == ["3", "1", "2"]

    def test_ties_keep_input_order(self):
        sites = [{"id": "x", "metrics": {"bytesUpstream": 5}}, {"id": "y", "metrics": {"bytesDownstream": 5}}]
        result = TopNRanking().transform({}, metrics_envelope(sites=sites))
        assert [row["id"] for row in result["data"]["topConsumers"]] == ["x", "y"]

    def test_collection_from_argument(self):
        users = [{"id": "u1", "name": "Ann", "metrics": {"bytesUpstream": 10}}]
        policy = TopNRanking(collection_arg="consumerType")
        result = policy.transform({"consumerType": "users"}, metrics_envelope(users=users))
        assert result["data"]["summary"]["consumerType"] == "users"
        assert result["data"]["topConsumers"][0]["name"] == "Ann"

    def test_users_excluding_zero_traffic(self):
        users = [
            {"id": "u1", "name": "Ann", "metrics": {"bytesUpstream": 10, "duration": 60}},
            {"id": "u2", "name": "Bob", "metrics": {"bytesUpstream": 0, "bytesDownstream": 0}},
        ]
        policy = TopNRanking(collection="users", exclude_zero=True, include_duration=True, note="VPN only")
        result = policy.transform({}, metrics_envelope(users=users))
        data = result["data"]
        assert data["summary"] == {
            "consumerType": "users",
            "showingTop": 1,
            "totalUsersAnalyzed": 2,
            "note": "VPN only",
        }
        assert data["topConsumers"][0]["duration"] == 60

    def test_top_n_below_range_clamps_to_one(self):
        sites = [{"id": str(i), "metrics": {"bytesUpstream": i}} for i in range(8)]
        result = TopNRanking().transform({"topN": -1}, metrics_envelope(sites=sites))
        assert [row["id"] for row in result["data"]["topConsumers"]] == ["7"]
        assert result["data"]["summary"]["showingTop"] == 1

    def test_top_n_above_range_clamps_to_max(self):
        sites = [{"id": str(i), "metrics": {"bytesUpstream": i}} for i in range(60)]
        result = TopNRanking().transform({"topN": 1000}, metrics_envelope(sites=sites))
        assert len(result["data"]["topConsumers"]) == MAX_TOP_N == 50

    def test_top_n_numeric_string(self, sites):
        result = TopNRanking().transform({"topN": "2"}, metrics_envelope(sites=sites))
        assert [row["id"] for row in result["data"]["topConsumers"]] == ["2", "1"]

    @pytest.mark.parametrize("value", ["many", [3], True])
    def test_top_n_not_an_integer(self, sites, value):
        with pytest.raises(InvalidArgumentError, match="topN"):
            TopNRanking().transform({"topN": value}, metrics_envelope(sites=sites))

    @pytest.mark.parametrize("value, expected", [(None, 5), ("", 5), (0, 1), (7.9, 7), ("50", 50), (51, 50)])
    def test_resolve_top_n(self, value, expected):
        assert resolve_top_n(value) == expected


class TestTimeseriesSummary:
    @pytest.fixture
    def node(self):
        return {
            "granularity": 3600,
            "timeseries": [series("bytesTotal", [[0, 10], [1, 20]], total=30)],
            "sites": [
                {
                    "id": "1",
                    "name": "HQ",
                    "info": {"type": "BRANCH", "connType": "SOCKET_X1700", "region": "EU"},
                    "hostCount": series("hostCount", [[0, 5]], units=""),
                    "hostLimit": series("hostLimit", [[0, 10]], units=""),
                    "interfaces": [
                        {"name": "WAN1", "timeseries": [series("bytesTotal", [[0, 2], [1, 3]], total=5)]},
                        {"name": "WAN2", "timeseries": [series("bytesTotal", [[0, 4], [1, 3]], total=7)]},
                    ],
                }
            ],
        }

    def test_site_series(self, node):
        result = TimeseriesSummary().transform({}, metrics_envelope(**node))
        data = result["data"]
        assert data["granularity"] == 3600
        assert data["bucketCount"] == 24
        assert data["summary"]["accountTimeseriesReturned"] == 1
        assert data["summary"]["sitesReturned"] == 1
        assert data["summary"]["metricsRequested"] == ["bytesTotal"]
        assert data["accountTimeseries"][0]["summary"]["max"] == 20

        site = data["sites"][0]
        assert site["siteId"] == "1"
        assert site["siteName"] == "HQ"
        assert site["region"] == "EU"
        assert site["siteMetrics"]["hostUtilizationPct"]["data"] == [[0, 50]]
        assert site["interfaces"][0]["metrics"]["bytesTotal"]["buckets"] == 2

    def test_interfaces_aggregated(self, node):
        result = TimeseriesSummary().transform({}, metrics_envelope(**node))
        aggregated = result["data"]["sites"][0]["aggregatedMetrics"]["bytesTotal"]
        assert aggregated["sum"] == 12
        assert aggregated["data"] == [[0, 6], [1, 6]]
        assert aggregated["summary"]["max"] == 6

    def test_no_aggregation_without_group_interfaces(self, node):
        result = TimeseriesSummary().transform({"groupInterfaces": False}, metrics_envelope(**node))
        assert "aggregatedMetrics" not in result["data"]["sites"][0]

    def test_user_refs(self, node):
        node["users"] = [{"id": "u1", "name": "Ann"}]
        policy = TimeseriesSummary(include_user_refs=True)
        result = policy.transform({"labels": ["rtt"]}, metrics_envelope(**node))
        data = result["data"]
        assert data["summary"]["usersReturned"] == 1
        assert data["summary"]["metricsRequested"] == ["rtt"]
        assert data["summary"]["note"].endswith(USER_FILTER_NOTE)
        assert data["users"][0]["userId"] == "u1"

    def test_users(self):
        users = [
            {
                "id": "u1",
                "name": "Ann",
                "flowCount": series("flowCount", [[0, 3]], units=""),
                "interfaces": [
                    {
                        "name": "vpn",
                        "remoteIP": "1.2.3.4",
                        "timeseries": [
                            {**series("rtt", [[0, 40]], units="ms"), "info": ["a"]},
                            series("jitterUpstream", [[0, 1]], units="ms"),
                        ],
                    }
                ],
            }
        ]
        policy = TimeseriesSummary(collection="users", labels_arg="timeseries")
        result = policy.transform({"timeseries": ["rtt"], "buckets": 12}, metrics_envelope(users=users))
        data = result["data"]
        assert data["bucketCount"] == 12
        assert data["summary"]["usersReturned"] == 1
        assert data["summary"]["totalInterfaces"] == 1
        assert data["summary"]["totalTimeseriesMetrics"] == 3
        assert data["summary"]["timeseriesMetricsRequested"] == ["rtt"]
        user = data["users"][0]
        assert "flowCount" in user["userTimeseries"]
        assert "hostUtilizationPct" not in user["userTimeseries"]
        assert user["interfaces"][0]["timeseries"]["rtt"]["info"] == ["a"]


class TestGroupSummary:
    @pytest.fixture
    def sites(self):
        return [
            {
                "id": "1",
                "info": {"name": "A", "type": "BRANCH"},
                "metrics": {"bytesUpstream": 100, "bytesDownstream": 300, "rtt": 50, "hostCount": 5, "hostLimit": 10},
                "interfaces": [{"name": "WAN1", "interfaceInfo": {"wanRole": "wan_1"}, "metrics": {"rtt": 10}}],
            },
            {
                "id": "2",
                "info": {"name": "B", "type": "BRANCH"},
                "metrics": {"bytesUpstream": 500, "bytesDownstream": 500, "rtt": 200},
                "interfaces": [{"name": "WAN1", "metrics": {"rtt": 30}}],
            },
            {
                "id": "3",
                "info": {"name": "C", "type": "DATACENTER"},
                "metrics": {"bytesUpstream": 10, "rtt": 10},
            },
        ]

    def test_group_by_site_type(self, sites):
        args = {
            "groupBy": "siteType",
            "metrics": ["bytesTotal", "rtt"],
            "aggregationFunction": "sum",
            "thresholds": {"rtt": 100},
        }
        result = GroupSummary().transform(args, metrics_envelope(sites=sites))
        data = result["data"]
        assert data["summary"] == {
            "groupBy": "siteType",
            "aggregationFunction": "sum",
            "groupsReturned": 2,
            "metricsAnalyzed": ["bytesTotal", "rtt"],
            "thresholdsApplied": ["rtt"],
        }
        branch, datacenter = data["results"]
        assert branch["group"] == "BRANCH"
        assert branch["count"] == 2
        assert branch["sitesInGroup"] == ["A", "B"]
        assert branch["bytesTotal"] == 1400
        assert branch["bytesTotalFormatted"] == "1.37 KiB"
        assert branch["healthFlags"] == ["High RTT (250.0ms > 100ms)"]
        assert datacenter["healthFlags"] == []

    def test_group_by_site_has_context(self, sites):
        result = GroupSummary().transform({}, metrics_envelope(sites=sites))
        rows = result["data"]["results"]
        assert [row["group"] for row in rows] == ["B", "A", "C"]
        assert rows[0]["siteId"] == "2"
        assert rows[0]["siteType"] == "BRANCH"
        assert "sitesInGroup" not in rows[0]

    def test_group_by_interface_dimension(self, sites):
        args = {"groupBy": "interfaceName", "metrics": ["rtt"]}
        result = GroupSummary().transform(args, metrics_envelope(sites=sites))
        (row,) = result["data"]["results"]
        assert row["group"] == "WAN1"
        assert row["count"] == 2
        assert row["rtt"] == 20
        assert row["sitesInGroup"] == ["A", "B"]

    def test_capacity_and_ratio(self, sites):
        args = {
            "metrics": ["bytesUpstream", "bytesDownstream", "hostCount", "hostLimit"],
            "includeCapacityAnalysis": True,
        }
        result = GroupSummary().transform(args, metrics_envelope(sites=sites[:1]))
        (row,) = result["data"]["results"]
        assert row["hostUtilizationPct"] == 50
        assert row["upstreamDownstreamRatio"] == pytest.approx(1 / 3)

    def test_sort_by_text_column_with_missing_value(self, sites):
        sites.append({"id": "4", "info": {"type": "BRANCH"}, "metrics": {"bytesUpstream": 1}})
        args = {"sortBy": "siteName", "metrics": ["bytesTotal"]}
        result = GroupSummary().transform(args, metrics_envelope(sites=sites))
        assert [row["siteId"] for row in result["data"]["results"]] == ["3", "2", "1", "4"]
        args["sortOrder"] = "asc"
        result = GroupSummary().transform(args, metrics_envelope(sites=sites))
        assert [row["siteId"] for row in result["data"]["results"]] == ["4", "1", "2", "3"]


class TestEventTimestamp:
    def test_millis(self):
        assert event_timestamp(1700000000000) == "2023-11-14T22:13:20.000Z"

    def test_iso_string(self):
        assert event_timestamp("2023-11-14T22:13:21Z") == "2023-11-14T22:13:21.000Z"

    def test_unparseable(self):
        assert event_timestamp("yesterday") is None
        assert event_timestamp(None) is None


class TestAnnotationEventCounter:
    @pytest.fixture
    def sites(self):
        return [
            {
                "id": "1",
                "info": {"name": "A", "type": "BRANCH"},
                "interfaces": [
                    {
                        "name": "WAN1",
                        "annotations": [
                            {"type": "popChange", "time": 1700000000000, "label": "PoP changed"},
                            {"type": "roleChange", "time": "2023-11-14T22:13:21Z"},
                            {"type": "other", "time": 1700000000000},
                        ],
                    },
                    {"name": "WAN2", "annotations": [{"type": "popChange", "time": 1700000002000}]},
                ],
            },
            {
                "id": "2",
                "info": {"name": "B"},
                "interfaces": [{"name": "LTE", "annotations": [{"type": "remoteIPChange", "time": 1700000003000}]}],
            },
        ]

    def test_group_by_site(self, sites):
        result = AnnotationEventCounter().transform({}, metrics_envelope(sites=sites))
        data = result["data"]
        assert data["summary"] == {
            "totalEvents": 4,
            "groupBy": "site",
            "annotationTypesAnalyzed": ["popChange", "remoteIPChange", "roleChange"],
            "uniqueSitesAffected": 2,
            "uniqueInterfacesAffected": 3,
            "eventTypeDistribution": {"popChange": 2, "roleChange": 1, "remoteIPChange": 1},
            "resultsReturned": 2,
        }
        first, second = data["results"]
        assert first["group"] == "A"
        assert first["siteType"] == "BRANCH"
        assert first["totalEvents"] == 3
        assert first["eventsByType"] == {"popChange": 2, "roleChange": 1}
        assert "events" not in first
        assert second["group"] == "B"

    def test_group_by_interface(self, sites):
        result = AnnotationEventCounter().transform({"groupBy": "interface"}, metrics_envelope(sites=sites))
        groups = {row["group"]: row for row in result["data"]["results"]}
        assert set(groups) == {"A:WAN1", "A:WAN2", "B:LTE"}
        assert groups["A:WAN1"]["interfaceName"] == "WAN1"
        assert groups["A:WAN1"]["totalEvents"] == 2

    def test_group_by_annotation_type(self, sites):
        result = AnnotationEventCounter().transform({"groupBy": "annotationType"}, metrics_envelope(sites=sites))
        pop = result["data"]["results"][0]
        assert pop["group"] == "popChange"
        assert pop["annotationType"] == "popChange"
        assert pop["affectedSitesCount"] == 1
        assert pop["affectedInterfacesCount"] == 2
        assert pop["affectedSites"] == ["A"]

    def test_timestamps_newest_first(self, sites):
        args = {"includeTimestamps": True}
        result = AnnotationEventCounter().transform(args, metrics_envelope(sites=sites))
        events = result["data"]["results"][0]["events"]
        assert [e["timestamp"] for e in events] == [
            "2023-11-14T22:13:22.000Z",
            "2023-11-14T22:13:21.000Z",
            "2023-11-14T22:13:20.000Z",
        ]
        assert events[2]["label"] == "PoP changed"

    def test_min_event_count(self, sites):
        result = AnnotationEventCounter().transform({"minEventCount": 2}, metrics_envelope(sites=sites))
        assert [row["group"] for row in result["data"]["results"]] == ["A"]
        assert result["data"]["summary"]["totalEvents"] == 4

    def test_annotation_type_filter(self, sites):
        args = {"annotationTypes": ["roleChange"]}
        result = AnnotationEventCounter().transform(args, metrics_envelope(sites=sites))
        assert result["data"]["summary"]["totalEvents"] == 1
        assert result["data"]["summary"]["annotationTypesAnalyzed"] == ["roleChange"]


class TestNetworkHealthScan:
    @pytest.fixture
    def sites(self):
        return [
            {
                "id": "1",
                "info": {"name": "A"},
                "interfaces": [
                    {"name": "WAN1", "metrics": {"rtt": 200, "jitterUpstream": 1}},
                    {"name": "WAN2", "metrics": {"rtt": 20}},
                ],
            },
            {"id": "2", "info": {"name": "B"}, "interfaces": [{"name": "WAN1", "metrics": {"rtt": 10}}]},
        ]

    def test_default_thresholds(self, sites):
        result = NetworkHealthScan().transform({}, metrics_envelope(sites=sites))
        data = result["data"]
        assert data["timeFrame"] == TIME_FRAME
        assert data["summary"] == {
            "sitesScanned": 2,
            "unhealthySiteCount": 1,
            "thresholds": {"rtt": "150ms", "packetLoss": "2%", "jitter": "30ms"},
        }
        (site,) = data["unhealthySites"]
        assert site["siteId"] == "1"
        assert site["siteName"] == "A"
        assert site["unhealthyInterfaces"] == [
            {
                "interfaceName": "WAN1",
                "metrics": {
                    "rtt": 200,
                    "jitterUpstream": 1,
                    "jitterDownstream": None,
                    "lostUpstreamPcnt": None,
                    "lostDownstreamPcnt": None,
                },
            }
        ]

    def test_custom_thresholds(self, sites):
        args = {"rttThreshold": 250, "jitterThreshold": 0.5}
        result = NetworkHealthScan().transform(args, metrics_envelope(sites=sites))
        data = result["data"]
        assert data["summary"]["thresholds"]["rtt"] == "250ms"
        assert data["summary"]["thresholds"]["jitter"] == "0.5ms"
        # WAN1 still crosses the jitter threshold
        assert data["unhealthySites"][0]["unhealthyInterfaces"][0]["interfaceName"] == "WAN1"

    def test_packet_loss(self):
        sites = [{"id": "1", "interfaces": [{"name": "WAN1", "metrics": {"lostDownstreamPcnt": 2.5}}]}]
        result = NetworkHealthScan().transform({}, metrics_envelope(sites=sites))
        assert result["data"]["summary"]["unhealthySiteCount"] == 1


class TestEntityMetrics:
    def test_sites(self):
        sites = [
            {
                "id": "1",
                "name": "HQ",
                "info": {"type": "BRANCH"},
                "metrics": {"hostCount": 5, "hostLimit": 20, "rtt": 12},
                "interfaces": [{"name": "WAN1", "remoteIP": "1.2.3.4", "metrics": {"rtt": 12}}],
            },
            {"id": "2", "info": {"name": "Branch"}, "metrics": None},
        ]
        result = EntityMetrics().transform({}, metrics_envelope(granularity=86400, sites=sites))
        data = result["data"]
        assert data["granularity"] == 86400
        assert data["summary"] == {
            "sitesReturned": 2,
            "sitesWithMetrics": 1,
            "totalInterfaces": 1,
            "note": "Returns aggregated metrics only. For timeseries data, use site_metrics_timeseries tool.",
        }
        first, second = data["sites"]
        assert first["metrics"]["hostUtilizationPct"] == 25
        assert first["interfaces"][0]["remoteIP"] == "1.2.3.4"
        assert second["siteName"] == "Branch"
        assert second["metrics"] == {}

    def test_null_host_counter_still_yields_utilization(self):
        sites = [{"id": "1", "metrics": {"hostCount": None, "hostLimit": 10}}]
        result = EntityMetrics().transform({}, metrics_envelope(sites=sites))
        assert result["data"]["sites"][0]["metrics"]["hostUtilizationPct"] == 0

    def test_users(self):
        users = [{"id": "u1", "name": "Ann", "metrics": {"bytesTotal": 1}, "interfaces": []}]
        result = EntityMetrics(collection="users").transform({}, metrics_envelope(users=users))
        data = result["data"]
        assert data["summary"]["usersReturned"] == 1
        assert data["summary"]["usersWithMetrics"] == 1
        assert data["summary"]["note"].endswith("use user_metrics_timeseries tool.")
        assert data["users"][0]["userName"] == "Ann"


class TestLookupLimitNotice:
    def lookup(self, count, total):
        items = [{"entity": {"id": str(i), "type": "site"}} for i in range(count)]
        return DownstreamEnvelope(data={"entityLookup": {"items": items, "total": total}})

    def test_notice_on_capped_first_page(self):
        policy = LookupLimitNotice(maximum=2)
        result = policy.transform({"from": 0, "limit": 2}, self.lookup(2, 5))
        assert result["errors"] == [
            {
                "message": (
                    "Clearly and politely notify the user that in order to comply with the models "
                    "context window, the amount of entities was limited to 2 out of 5 items"
                ),
                "path": ["entityLookup"],
            }
        ]
        assert len(result["data"]["entityLookup"]["items"]) == 2

    def test_no_notice_when_paging(self):
        result = LookupLimitNotice(maximum=2).transform({"from": 2, "limit": 2}, self.lookup(2, 5))
        assert "errors" not in result

    def test_no_notice_when_complete(self):
        result = LookupLimitNotice(maximum=2).transform({"limit": 2}, self.lookup(2, 2))
        assert "errors" not in result

    def test_no_notice_below_cap(self):
        result = LookupLimitNotice(maximum=1000).transform({"from": 0, "limit": 2}, self.lookup(2, 5))
        assert "errors" not in result


class TestWalkAndTally:
    def test_walk_plain_path(self):
        assert list(walk({"info": {"type": "BRANCH"}}, "info.type")) == ["BRANCH"]

    def test_walk_fans_out(self):
        site = {"devices": [{"socketInfo": {"version": "18"}}, {"socketInfo": None}, {}]}
        assert list(walk(site, "devices[].socketInfo.version")) == ["18"]

    def test_walk_missing_list(self):
        assert list(walk({}, "devices[].socketInfo.version")) == []

    def test_tally_with_fallback(self):
        items = [{"t": "A"}, {"t": "A"}, {"t": None}]
        assert tally(items, "t", "Unknown") == {"A": 2, "Unknown": 1}

    def test_tally_skips_missing_without_fallback(self):
        assert tally([{"t": "A"}, {}], "t") == {"A": 1}


class TestSnapshotPolicies:
    def test_site_types(self):
        sites = [{"info": {"type": "BRANCH"}}, {"info": {"type": "BRANCH"}}, {"info": {}}]
        policy = Tally(path="info.type", count_key="sitesCountPerType", fallback="Unknown")
        result = policy.transform({}, snapshot_envelope(sites=sites))
        assert result == {
            "data": {
                "accountSnapshotTimestamp": "2024-05-11T10:00:00Z",
                "sites": sites,
                "sitesCount": 3,
                "sitesCountPerType": {"BRANCH": 2, "Unknown": 1},
            }
        }

    def test_socket_versions(self):
        sites = [
            {"devices": [{"socketInfo": {"version": "18.0"}}, {"socketInfo": {"version": "19.0"}}]},
            {"devices": [{"socketInfo": {"version": "18.0"}}]},
            {"devices": []},
        ]
        policy = Tally(path="devices[].socketInfo.version", count_key="socketCountByVersion")
        result = policy.transform({}, snapshot_envelope(sites=sites))
        assert result["data"]["socketCountByVersion"] == {"18.0": 2, "19.0": 1}

    def test_user_versions(self):
        users = [{"version": "5.10"}, {"version": "5.10"}, {"version": None}]
        policy = Tally(collection="users", path="version", count_key="userCountByVersion")
        result = policy.transform({}, snapshot_envelope(users=users))
        assert result["data"]["usersCount"] == 3
        assert result["data"]["userCountByVersion"] == {"5.10": 2}

    def test_site_locations(self):
        sites = [
            {"popName": "Paris", "info": {"countryName": "France", "cityName": "Paris"}},
            {"popName": "Paris", "info": {"countryName": "France", "cityName": "Paris"}},
            {"info": {"countryName": "United States", "countryStateName": "Texas", "cityName": "Austin"}},
            {"info": {}},
        ]
        result = SiteLocations().transform({}, snapshot_envelope(sites=sites))
        assert result["data"] == {
            "accountSnapshotTimestamp": "2024-05-11T10:00:00Z",
            "totalSitesCount": 4,
            "sitesCountByPopName": {"Paris": 2, "Unknown": 2},
            "sitesCountByLocation": {"France.Paris": 2, "United States.Texas.Austin": 1, "Unknown": 1},
        }

    def test_user_presence(self):
        users = [
            {"id": "1", "connectivityStatus": "connected", "connectedInOffice": False, "popName": "Paris"},
            {"id": "2", "connectivityStatus": "connected", "connectedInOffice": True, "popName": "Paris"},
            {"id": "3", "connectivityStatus": "connected", "connectedInOffice": False},
            {"id": "4", "connectivityStatus": "disconnected", "popName": "London"},
        ]
        result = UserPresence().transform({}, snapshot_envelope(users=users))
        data = result["data"]
        assert data["totalUsersCount"] == 3
        assert data["totalRequestedUsers"] == 4
        assert [u["id"] for u in data["remoteUsers"]] == ["1", "3"]
        assert data["inOfficeUsersCount"] == 1
        assert data["usersCountPerPopName"] == {"Paris": 2, "Unknown": 1}
        assert data["note"] == ALL_CONNECTED_NOTE
        assert data["userIDs_filter_applied"] is None

    def test_user_presence_with_filter(self):
        users = [{"id": "1", "connectivityStatus": "disconnected"}]
        result = UserPresence().transform({"userIDs": ["1", "2"]}, snapshot_envelope(users=users))
        data = result["data"]
        assert data["note"].startswith("Filtered results for 2 specific user ID(s).")
        assert data["note"].endswith("remote/in-office categories.")
        assert data["userIDs_filter_applied"] == ["1", "2"]

    def test_user_filter_note(self):
        envelope = snapshot_envelope(users=[{"id": "1"}])
        result = UserFilterNote().transform({"user_name_or_id": "ann", "userIDs": ["1"]}, envelope)
        data = result["data"]
        assert data["accountSnapshot"]["users"] == [{"id": "1"}]
        assert data["user_name_filter"] == "ann"
        assert data["userIDs_filter_applied"] == ["1"]
        assert data["note"].startswith("Filtered results for 1 specific user ID(s).")

    def test_user_filter_note_without_filters(self):
        result = UserFilterNote().transform({}, snapshot_envelope(users=[]))
        assert "user_name_filter" not in result["data"]
        assert result["data"]["note"] == ALL_CONNECTED_NOTE
