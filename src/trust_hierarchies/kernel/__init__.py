"""
Kernel - Core event sourcing infrastructure

The kernel provides the machinery the federation domain builds upon: an
append-only event store, snapshot storage, a swappable clock, identifiers,
the error taxonomy and the logging/metrics plumbing.

Fun fact: Event sourcing was inspired by accountants - they never erase ledger
entries, they add correcting entries. A revoked accreditation here works the
same way: the grant stays in the log, a later event takes it back.
"""

from trust_hierarchies.kernel.errors import (
    AlreadyInStateError,
    AuthorizationError,
    CommandIdempotencyViolation,
    EventStoreError,
    HierarchiesError,
    InvariantViolation,
    NotFoundError,
    StreamVersionConflict,
)
from trust_hierarchies.kernel.event_store import SQLiteEventStore
from trust_hierarchies.kernel.events import Event, create_event
from trust_hierarchies.kernel.ids import IdFactory, generate_id
from trust_hierarchies.kernel.policy import FederationPolicy, Settings
from trust_hierarchies.kernel.projection_store import SQLiteProjectionStore
from trust_hierarchies.kernel.time import RealTimeProvider, TestTimeProvider, TimeProvider

__all__ = [
    # IDs
    "IdFactory",
    "generate_id",
    # Time
    "TimeProvider",
    "RealTimeProvider",
    "TestTimeProvider",
    # Events & storage
    "Event",
    "create_event",
    "SQLiteEventStore",
    "SQLiteProjectionStore",
    # Configuration
    "FederationPolicy",
    "Settings",
    # Errors
    "HierarchiesError",
    "AuthorizationError",
    "NotFoundError",
    "InvariantViolation",
    "AlreadyInStateError",
    "EventStoreError",
    "CommandIdempotencyViolation",
    "StreamVersionConflict",
]
