"""Response policies turning GraphQL replies into tool results."""

from .base import (
    METRICS_ROOT,
    RESPONSE_POLICIES,
    SNAPSHOT_ROOT,
    EnvelopePolicy,
    ResponsePolicy,
    Scope,
    build_response_policy,
)

# Importing the modules registers their policies
from .entity import EntityMetrics, LookupLimitNotice
from .events import AnnotationEventCounter
from .grouping import GroupSummary
from .health import NetworkHealthScan
from .ranking import TopNRanking
from .snapshot import SiteLocations, Tally, UserFilterNote, UserPresence
from .timeseries import TimeseriesSummary

__all__ = [
    "METRICS_ROOT",
    "SNAPSHOT_ROOT",
    "RESPONSE_POLICIES",
    "Scope",
    "ResponsePolicy",
    "EnvelopePolicy",
    "build_response_policy",
    "AnnotationEventCounter",
    "EntityMetrics",
    "GroupSummary",
    "LookupLimitNotice",
    "NetworkHealthScan",
    "SiteLocations",
    "Tally",
    "TimeseriesSummary",
    "TopNRanking",
    "UserFilterNote",
    "UserPresence",
]
