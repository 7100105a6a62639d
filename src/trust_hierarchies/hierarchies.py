"""
Hierarchies - Main façade class

This is the primary interface for the Trust Hierarchies engine. It hides
the event sourcing machinery: every mutation is validated by a handler,
appended to the federation's stream, then applied to the in-memory
projections.

Example:
    >>> from trust_hierarchies import Hierarchies
    >>> from trust_hierarchies.federation import PropertyDef, PropertyName
    >>> h = Hierarchies("hierarchies.db")
    >>> fed = h.create_federation("root-alice")
    >>> h.add_property(fed.federation_id, PropertyDef(
    ...     name=PropertyName.parse("degree.bachelor"),
    ...     allowed_values=frozenset({"completed", "pending"}),
    ... ), caller="root-alice")
    >>> acc = h.create_accreditation_to_attest(
    ...     fed.federation_id, "uni-bob", [...], caller="root-alice")
    >>> h.validate_property(fed.federation_id, "uni-bob", "degree.bachelor", "completed")
    True
"""

import threading
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from trust_hierarchies.federation.commands import (
    AddProperty,
    AddRootAuthority,
    CreateAccreditationToAccredit,
    CreateAccreditationToAttest,
    CreateFederation,
    ReinstateRootAuthority,
    RevokeAccreditationToAccredit,
    RevokeAccreditationToAttest,
    RevokeProperty,
    RevokeRootAuthority,
)
from trust_hierarchies.federation.events import STREAM_TYPE
from trust_hierarchies.federation.handlers import FederationCommandHandlers
from trust_hierarchies.federation.models import (
    Accreditation,
    Capability,
    CapabilityKind,
    Federation,
    PropertyDef,
    PropertyName,
    as_property_name,
)
from trust_hierarchies.federation.projections import CapabilityRegistry, FederationRegistry
from trust_hierarchies.federation.providers import (
    AuthoritativeFederation,
    CachedFederation,
    load_federation,
    snapshot_name,
)
from trust_hierarchies.federation.validation import validate_properties, validate_property
from trust_hierarchies.kernel.errors import FederationNotFound, HierarchiesError
from trust_hierarchies.kernel.event_store import SQLiteEventStore
from trust_hierarchies.kernel.events import Event
from trust_hierarchies.kernel.ids import IdFactory, default_id_factory, generate_id
from trust_hierarchies.kernel.logging import LogOperation, configure_logging, get_logger
from trust_hierarchies.kernel.metrics import (
    mutation_duration_seconds,
    mutations_total,
    validations_total,
)
from trust_hierarchies.kernel.policy import FederationPolicy, Settings
from trust_hierarchies.kernel.projection_store import SQLiteProjectionStore
from trust_hierarchies.kernel.time import RealTimeProvider, TimeProvider

logger = get_logger(__name__)


class Hierarchies:
    """
    Trust Hierarchies main façade

    Provides a unified API for:
    - Federation genesis and root authority lifecycle
    - Property definitions and their revocation
    - Accreditations to accredit and to attest
    - Claim validation (live, authoritative and cached)

    Mutations against the same federation are serialized by a per-federation
    lock; the event store's stream versioning catches writers in other
    processes.
    """

    def __init__(
        self,
        sqlite_path: str | Path,
        policy: FederationPolicy | None = None,
        time_provider: TimeProvider | None = None,
        id_factory: IdFactory | None = None,
    ) -> None:
        """
        Initialize the engine

        Args:
            sqlite_path: Path to SQLite database (events and snapshots)
            policy: Delegation rules (uses defaults if None)
            time_provider: Clock (uses real time if None)
            id_factory: Identifier source (UUIDv7 if None)
        """
        self.sqlite_path = Path(sqlite_path)
        self.policy = policy or FederationPolicy()
        self.time_provider = time_provider or RealTimeProvider()

        # Initialize infrastructure
        self.event_store = SQLiteEventStore(self.sqlite_path)
        self.projection_store = SQLiteProjectionStore(self.sqlite_path)
        self.handlers = FederationCommandHandlers(
            self.time_provider, self.policy, id_factory or default_id_factory
        )

        # Initialize projections
        self.federation_registry = FederationRegistry()
        self.capability_registry = CapabilityRegistry()

        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

        # Rebuild projections from event store
        self._rebuild_projections()

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        time_provider: TimeProvider | None = None,
    ) -> "Hierarchies":
        """Configure logging and open the engine described by settings (or the environment)"""
        settings = settings or Settings.from_env()
        configure_logging(json_output=settings.json_logs, log_level=settings.log_level)
        return cls(settings.db_path, settings.policy, time_provider)

    def _rebuild_projections(self) -> None:
        """Rebuild all projections from event store, stream by stream"""
        streams = self.event_store.list_streams(STREAM_TYPE)
        for stream_id in streams:
            for event in self.event_store.load_stream(stream_id):
                self._apply(event)
        logger.info("Projections rebuilt", federations=len(streams))

    def _apply(self, event: Event) -> None:
        self.federation_registry.apply_event(event)
        self.capability_registry.apply_event(event)

    def _lock_for(self, federation_id: str, create: bool = False) -> threading.Lock:
        """
        Lock serializing access to one federation

        Locks exist only for known federations (or one being created).

        Raises:
            FederationNotFound: If the federation is unknown and create is False
        """
        with self._locks_guard:
            lock = self._locks.get(federation_id)
            if lock is None:
                if not create and self.federation_registry.get(federation_id) is None:
                    raise FederationNotFound(federation_id)
                lock = self._locks[federation_id] = threading.Lock()
            return lock

    def _live(self, federation_id: str) -> Federation:
        federation = self.federation_registry.get(federation_id)
        if federation is None:
            raise FederationNotFound(federation_id)
        return federation

    def _commit(self, stream_id: str, expected_version: int, events: list[Event]) -> None:
        stored = self.event_store.append(stream_id, expected_version, events)
        for event in stored:
            self._apply(event)

    def _execute(
        self,
        operation: str,
        federation_id: str,
        caller: str,
        handle: Callable[[Federation], list[Event]],
        **context: Any,
    ) -> list[Event]:
        """Run one handler against a federation and commit its events atomically"""
        try:
            with LogOperation(
                logger, operation, federation_id=federation_id, caller=caller, **context
            ) as op, self._lock_for(federation_id):
                federation = self._live(federation_id)
                events = handle(federation)
                self._commit(federation_id, federation.version, events)
        except HierarchiesError:
            mutations_total.labels(operation=operation, status="rejected").inc()
            raise
        except Exception:
            mutations_total.labels(operation=operation, status="failure").inc()
            raise

        mutations_total.labels(operation=operation, status="success").inc()
        mutation_duration_seconds.labels(operation=operation).observe(op.duration_ms / 1000)
        return events

    # Federation operations

    def create_federation(self, creator: str) -> Federation:
        """
        Create a federation with `creator` as its first root authority

        Returns:
            Snapshot of the new federation
        """
        command = CreateFederation(creator=creator)
        with LogOperation(logger, "create_federation", creator=creator):
            events = self.handlers.handle_create_federation(command, generate_id())
            federation_id = events[0].stream_id
            with self._lock_for(federation_id, create=True):
                self._commit(federation_id, 0, events)
        mutations_total.labels(operation="create_federation", status="success").inc()
        return self.get_federation(federation_id)

    def get_federation(self, federation_id: str) -> Federation:
        """
        Snapshot of a federation's current state

        The copy is detached: later mutations don't show up in it.

        Raises:
            FederationNotFound: If no such federation exists
        """
        with self._lock_for(federation_id):
            return self._live(federation_id).model_copy(deep=True)

    def get_federation_at(self, federation_id: str, version: int) -> Federation:
        """Historical state, replayed from the event store up to `version`"""
        return load_federation(self.event_store, federation_id, up_to_version=version)

    def list_federations(self) -> list[str]:
        return self.federation_registry.list_ids()

    def find_capability(
        self, holder: str, federation_id: str, kind: CapabilityKind
    ) -> Capability | None:
        return self.capability_registry.find_capability(holder, federation_id, kind)

    # Root authority operations

    def add_root_authority(self, federation_id: str, entity_id: str, caller: str) -> Federation:
        command = AddRootAuthority(federation_id=federation_id, entity_id=entity_id)
        self._execute(
            "add_root_authority",
            federation_id,
            caller,
            lambda federation: self.handlers.handle_add_root_authority(
                command, generate_id(), caller, federation, self.capability_registry
            ),
            entity_id=entity_id,
        )
        return self.get_federation(federation_id)

    def revoke_root_authority(self, federation_id: str, entity_id: str, caller: str) -> Federation:
        command = RevokeRootAuthority(federation_id=federation_id, entity_id=entity_id)
        self._execute(
            "revoke_root_authority",
            federation_id,
            caller,
            lambda federation: self.handlers.handle_revoke_root_authority(
                command, generate_id(), caller, federation, self.capability_registry
            ),
            entity_id=entity_id,
        )
        return self.get_federation(federation_id)

    def reinstate_root_authority(
        self, federation_id: str, entity_id: str, caller: str
    ) -> Federation:
        command = ReinstateRootAuthority(federation_id=federation_id, entity_id=entity_id)
        self._execute(
            "reinstate_root_authority",
            federation_id,
            caller,
            lambda federation: self.handlers.handle_reinstate_root_authority(
                command, generate_id(), caller, federation, self.capability_registry
            ),
            entity_id=entity_id,
        )
        return self.get_federation(federation_id)

    # Property operations

    def add_property(self, federation_id: str, definition: PropertyDef, caller: str) -> PropertyDef:
        command = AddProperty(federation_id=federation_id, definition=definition)
        self._execute(
            "add_property",
            federation_id,
            caller,
            lambda federation: self.handlers.handle_add_property(
                command, generate_id(), caller, federation, self.capability_registry
            ),
            property_name=definition.key,
        )
        return self.get_federation(federation_id).governance.properties[definition.key]

    def revoke_property(
        self,
        federation_id: str,
        name: "str | PropertyName",
        caller: str,
        at_ms: int | None = None,
    ) -> PropertyDef:
        """
        Close a property's validity window at `at_ms` (default: now)

        Returns:
            The stored definition with its new timespan
        """
        property_name = as_property_name(name)
        command = RevokeProperty(federation_id=federation_id, name=property_name, at_ms=at_ms)
        self._execute(
            "revoke_property",
            federation_id,
            caller,
            lambda federation: self.handlers.handle_revoke_property(
                command, generate_id(), caller, federation, self.capability_registry
            ),
            property_name=property_name.dotted,
        )
        return self.get_federation(federation_id).governance.properties[property_name.dotted]

    # Accreditation operations

    def create_accreditation_to_accredit(
        self,
        federation_id: str,
        receiver: str,
        wanted: list[PropertyDef],
        caller: str,
    ) -> Accreditation:
        command = CreateAccreditationToAccredit(
            federation_id=federation_id, receiver=receiver, wanted=wanted
        )
        events = self._execute(
            "create_accreditation_to_accredit",
            federation_id,
            caller,
            lambda federation: self.handlers.handle_create_accreditation_to_accredit(
                command, generate_id(), caller, federation, self.capability_registry
            ),
            receiver=receiver,
            properties=len(wanted),
        )
        return Accreditation.model_validate(events[0].payload["accreditation"])

    def create_accreditation_to_attest(
        self,
        federation_id: str,
        receiver: str,
        wanted: list[PropertyDef],
        caller: str,
    ) -> Accreditation:
        command = CreateAccreditationToAttest(
            federation_id=federation_id, receiver=receiver, wanted=wanted
        )
        events = self._execute(
            "create_accreditation_to_attest",
            federation_id,
            caller,
            lambda federation: self.handlers.handle_create_accreditation_to_attest(
                command, generate_id(), caller, federation, self.capability_registry
            ),
            receiver=receiver,
            properties=len(wanted),
        )
        return Accreditation.model_validate(events[0].payload["accreditation"])

    def revoke_accreditation_to_accredit(
        self,
        federation_id: str,
        entity_id: str,
        accreditation_id: str,
        caller: str,
    ) -> None:
        command = RevokeAccreditationToAccredit(
            federation_id=federation_id,
            entity_id=entity_id,
            accreditation_id=accreditation_id,
        )
        self._execute(
            "revoke_accreditation_to_accredit",
            federation_id,
            caller,
            lambda federation: self.handlers.handle_revoke_accreditation_to_accredit(
                command, generate_id(), caller, federation, self.capability_registry
            ),
            entity_id=entity_id,
            accreditation_id=accreditation_id,
        )

    def revoke_accreditation_to_attest(
        self,
        federation_id: str,
        entity_id: str,
        accreditation_id: str,
        caller: str,
    ) -> None:
        command = RevokeAccreditationToAttest(
            federation_id=federation_id,
            entity_id=entity_id,
            accreditation_id=accreditation_id,
        )
        self._execute(
            "revoke_accreditation_to_attest",
            federation_id,
            caller,
            lambda federation: self.handlers.handle_revoke_accreditation_to_attest(
                command, generate_id(), caller, federation, self.capability_registry
            ),
            entity_id=entity_id,
            accreditation_id=accreditation_id,
        )

    # Validation

    def validate_property(
        self,
        federation_id: str,
        entity_id: str,
        name: "str | PropertyName",
        value: Any,
        now_ms: int | None = None,
    ) -> bool:
        """
        May entity_id attest `name = value`? Evaluated on a detached snapshot.

        Raises:
            FederationNotFound: If no such federation exists
        """
        federation = self.get_federation(federation_id)
        at_ms = self.time_provider.now_ms() if now_ms is None else now_ms
        result = validate_property(federation, entity_id, name, value, at_ms)
        validations_total.labels(source="live", result="valid" if result else "invalid").inc()
        return result

    def validate_properties(
        self,
        federation_id: str,
        entity_id: str,
        claims: Mapping["str | PropertyName", Any],
        now_ms: int | None = None,
    ) -> bool:
        """All claims must validate; an empty claim set is False"""
        federation = self.get_federation(federation_id)
        at_ms = self.time_provider.now_ms() if now_ms is None else now_ms
        result = validate_properties(federation, entity_id, claims, at_ms)
        validations_total.labels(source="live", result="valid" if result else "invalid").inc()
        return result

    # Readers

    def authoritative(self, federation_id: str) -> AuthoritativeFederation:
        """Reader that replays the event store on every call"""
        self._live(federation_id)
        return AuthoritativeFederation(self.event_store, federation_id, self.time_provider)

    def cached(self, federation_id: str, from_snapshot: bool = False) -> CachedFederation:
        """
        Reader over a held snapshot

        Args:
            federation_id: Federation to read
            from_snapshot: Start from the last saved snapshot instead of a replay
        """
        if from_snapshot:
            return CachedFederation.from_snapshot_store(
                self.projection_store,
                federation_id,
                self.time_provider,
                loader=lambda: load_federation(self.event_store, federation_id),
            )
        return CachedFederation.from_event_store(
            self.event_store, federation_id, self.time_provider
        )

    def save_snapshot(self, federation_id: str) -> int:
        """
        Persist the current federation state for offline readers

        Returns:
            The stream version captured
        """
        federation = self.get_federation(federation_id)
        self.projection_store.save(
            snapshot_name(federation_id),
            federation.model_dump(mode="json"),
            position_version=federation.version,
        )
        logger.info(
            "Federation snapshot saved",
            federation_id=federation_id,
            version=federation.version,
        )
        return federation.version
