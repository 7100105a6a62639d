"""
Prometheus metrics collection for Trust Hierarchies.

Counts what the engine does: events written, mutations accepted or rejected,
and validation outcomes split by evaluation path (authoritative replay vs.
cached snapshot).
"""

from prometheus_client import Counter, Histogram

# ============================================================================
# Event Store Metrics
# ============================================================================

events_appended_total = Counter(
    "hierarchies_events_appended_total",
    "Total number of events appended to the event store",
    ["stream_type", "event_type"],
)

events_loaded_total = Counter(
    "hierarchies_events_loaded_total",
    "Total number of events loaded from the event store",
    ["stream_type"],
)

stream_version_conflicts_total = Counter(
    "hierarchies_stream_version_conflicts_total",
    "Total number of optimistic locking version conflicts",
    ["stream_type"],
)

# ============================================================================
# Mutation Metrics
# ============================================================================

mutations_total = Counter(
    "hierarchies_mutations_total",
    "Total number of federation mutations processed",
    ["operation", "status"],  # status: success, rejected, failure
)

mutation_duration_seconds = Histogram(
    "hierarchies_mutation_duration_seconds",
    "Duration of federation mutations in seconds",
    ["operation"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

# ============================================================================
# Validation Metrics
# ============================================================================

validations_total = Counter(
    "hierarchies_validations_total",
    "Total number of property validations",
    ["source", "result"],  # source: live, authoritative, cached; result: valid, invalid
)

federation_replay_duration_seconds = Histogram(
    "hierarchies_federation_replay_duration_seconds",
    "Duration of rebuilding a federation from its event stream",
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0),
)
