"""
Federation Readers - Two ways to fetch state, one way to judge it

AuthoritativeFederation replays the event store on every call, so it always
sees the latest committed state. CachedFederation answers from a snapshot it
holds (optionally persisted in the projection store) and only refreshes on
sync(). Both hand a single frozen snapshot to the pure validation functions,
which is what keeps their answers identical for identical state.
"""

import time
from collections.abc import Callable, Mapping
from typing import Any

from trust_hierarchies.federation.models import (
    Accreditation,
    Federation,
    PropertyName,
    as_property_name,
)
from trust_hierarchies.federation.projections import fold_federation
from trust_hierarchies.federation.validation import validate_properties, validate_property
from trust_hierarchies.kernel.errors import FederationNotFound
from trust_hierarchies.kernel.event_store import SQLiteEventStore
from trust_hierarchies.kernel.logging import get_logger
from trust_hierarchies.kernel.metrics import (
    federation_replay_duration_seconds,
    validations_total,
)
from trust_hierarchies.kernel.projection_store import SQLiteProjectionStore
from trust_hierarchies.kernel.time import RealTimeProvider, TimeProvider

logger = get_logger(__name__)


def load_federation(
    event_store: SQLiteEventStore,
    federation_id: str,
    up_to_version: int | None = None,
) -> Federation:
    """
    Rebuild a federation from its event stream

    Args:
        event_store: Where the stream lives
        federation_id: Stream to replay
        up_to_version: Replay only up to this version (historical state)

    Raises:
        FederationNotFound: If the stream is empty
    """
    start = time.perf_counter()
    federation = fold_federation(event_store.load_stream(federation_id, up_to_version))
    federation_replay_duration_seconds.observe(time.perf_counter() - start)
    if federation is None:
        raise FederationNotFound(federation_id)
    return federation


def snapshot_name(federation_id: str) -> str:
    return f"federation:{federation_id}"


class FederationReader:
    """
    Read API over one federation

    Subclasses only decide where the snapshot comes from. Every public
    method takes exactly one snapshot, so a concurrent mutation can never
    be observed halfway through an evaluation.
    """

    source = "reader"

    def __init__(self, federation_id: str, time_provider: TimeProvider | None = None) -> None:
        self.federation_id = federation_id
        self.time_provider = time_provider or RealTimeProvider()

    def snapshot(self) -> Federation:
        raise NotImplementedError

    def is_root_authority(self, entity_id: str) -> bool:
        return self.snapshot().is_root_authority(entity_id)

    def get_properties(self) -> list[PropertyName]:
        """Names of every property ever defined, live or revoked"""
        return [definition.name for definition in self.snapshot().governance.properties.values()]

    def is_property_in_federation(self, name: "str | PropertyName") -> bool:
        return as_property_name(name).dotted in self.snapshot().governance.properties

    def get_accreditations_to_attest(self, entity_id: str) -> list[Accreditation]:
        return list(self.snapshot().governance.accreditations_to_attest.get(entity_id, []))

    def is_attester(self, entity_id: str) -> bool:
        return bool(self.get_accreditations_to_attest(entity_id))

    def get_accreditations_to_accredit(self, entity_id: str) -> list[Accreditation]:
        return list(self.snapshot().governance.accreditations_to_accredit.get(entity_id, []))

    def is_accreditor(self, entity_id: str) -> bool:
        return bool(self.get_accreditations_to_accredit(entity_id))

    def validate_property(
        self,
        entity_id: str,
        name: "str | PropertyName",
        value: Any,
        now_ms: int | None = None,
    ) -> bool:
        federation = self.snapshot()
        at_ms = self.time_provider.now_ms() if now_ms is None else now_ms
        result = validate_property(federation, entity_id, name, value, at_ms)
        self._record(result, claims=1)
        return result

    def validate_properties(
        self,
        entity_id: str,
        claims: Mapping["str | PropertyName", Any],
        now_ms: int | None = None,
    ) -> bool:
        federation = self.snapshot()
        at_ms = self.time_provider.now_ms() if now_ms is None else now_ms
        result = validate_properties(federation, entity_id, claims, at_ms)
        self._record(result, claims=len(claims))
        return result

    def _record(self, result: bool, claims: int) -> None:
        validations_total.labels(
            source=self.source, result="valid" if result else "invalid"
        ).inc()
        logger.debug(
            "Claims evaluated",
            source=self.source,
            federation_id=self.federation_id,
            claims=claims,
            valid=result,
        )


class AuthoritativeFederation(FederationReader):
    """Always-fresh reader: replays the federation's stream on every call"""

    source = "authoritative"

    def __init__(
        self,
        event_store: SQLiteEventStore,
        federation_id: str,
        time_provider: TimeProvider | None = None,
    ) -> None:
        super().__init__(federation_id, time_provider)
        self.event_store = event_store

    def snapshot(self) -> Federation:
        """
        Raises:
            FederationNotFound: If the federation has no events
        """
        return load_federation(self.event_store, self.federation_id)


class CachedFederation(FederationReader):
    """
    Snapshot reader: zero-cost reads, refreshed explicitly

    Example:
        >>> cached = CachedFederation.from_event_store(store, federation_id)
        >>> cached.validate_property("alice", "degree.bachelor", "completed")
        >>> cached.sync()  # pick up mutations committed since
    """

    source = "cached"

    def __init__(
        self,
        federation: Federation,
        time_provider: TimeProvider | None = None,
        loader: Callable[[], Federation] | None = None,
    ) -> None:
        super().__init__(federation.federation_id, time_provider)
        self._federation = federation
        self._loader = loader

    @classmethod
    def from_event_store(
        cls,
        event_store: SQLiteEventStore,
        federation_id: str,
        time_provider: TimeProvider | None = None,
    ) -> "CachedFederation":
        """Build from a replay and keep the event store as sync() source"""

        def loader() -> Federation:
            return load_federation(event_store, federation_id)

        return cls(loader(), time_provider, loader)

    @classmethod
    def from_snapshot_store(
        cls,
        projection_store: SQLiteProjectionStore,
        federation_id: str,
        time_provider: TimeProvider | None = None,
        loader: Callable[[], Federation] | None = None,
    ) -> "CachedFederation":
        """
        Restore a previously saved snapshot (works offline)

        Raises:
            FederationNotFound: If no snapshot was saved for this federation
        """
        stored = projection_store.load(snapshot_name(federation_id))
        if stored is None:
            raise FederationNotFound(federation_id)
        return cls(Federation.model_validate(stored.state), time_provider, loader)

    @property
    def version(self) -> int:
        return self._federation.version

    def snapshot(self) -> Federation:
        return self._federation

    def sync(self) -> None:
        """
        Replace the snapshot with fresh state from the loader

        Raises:
            RuntimeError: If this reader was built without a loader
        """
        if self._loader is None:
            raise RuntimeError("CachedFederation has no source to sync from")
        previous = self._federation.version
        self._federation = self._loader()
        logger.debug(
            "Cached federation synced",
            federation_id=self.federation_id,
            from_version=previous,
            to_version=self._federation.version,
        )

    def save_snapshot(self, projection_store: SQLiteProjectionStore) -> None:
        projection_store.save(
            snapshot_name(self.federation_id),
            self._federation.model_dump(mode="json"),
            position_version=self._federation.version,
        )
