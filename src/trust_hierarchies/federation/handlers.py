"""
Federation Handlers - Command→Event transformation

Handlers are the decision-making layer. They:
1. Receive the current federation snapshot and capability lookup
2. Validate invariants
3. Generate events if valid (all of them, or none)
4. Return events for append to the federation's stream

Fun fact: Handlers should be "almost boring" - all the interesting
logic is in invariants (testable) and projections (rebuildable).
Handlers just orchestrate!
"""

from pydantic import BaseModel

from trust_hierarchies.federation.commands import (
    AddProperty,
    AddRootAuthority,
    CreateAccreditation,
    CreateAccreditationToAccredit,
    CreateAccreditationToAttest,
    CreateFederation,
    ReinstateRootAuthority,
    RevokeAccreditation,
    RevokeAccreditationToAccredit,
    RevokeAccreditationToAttest,
    RevokeProperty,
    RevokeRootAuthority,
)
from trust_hierarchies.federation.events import (
    STREAM_TYPE,
    AccreditationToAccreditCreated,
    AccreditationToAccreditRevoked,
    AccreditationToAttestCreated,
    AccreditationToAttestRevoked,
    CapabilityIssued,
    FederationCreated,
    PropertyAdded,
    PropertyRevoked,
    RootAuthorityAdded,
    RootAuthorityReinstated,
    RootAuthorityRevoked,
)
from trust_hierarchies.federation.invariants import (
    CapabilityLookup,
    require_active_root_authority,
    require_capability,
    validate_accreditation_exists,
    validate_delegation_scope,
    validate_new_property,
    validate_new_root_authority,
    validate_property_revocation,
    validate_reinstatement,
    validate_revocation_rights,
    validate_root_authority_revocation,
    validate_wanted_properties,
)
from trust_hierarchies.federation.models import Accreditation, CapabilityKind, Federation
from trust_hierarchies.kernel.events import Event, create_event
from trust_hierarchies.kernel.ids import IdFactory, default_id_factory
from trust_hierarchies.kernel.policy import FederationPolicy
from trust_hierarchies.kernel.time import TimeProvider, ms_to_datetime

ALL_CAPABILITY_KINDS = (
    CapabilityKind.ROOT_AUTHORITY,
    CapabilityKind.ACCREDIT,
    CapabilityKind.ATTEST,
)


class _StreamBatch:
    """Collects the events of one command with consecutive stream versions"""

    def __init__(
        self,
        stream_id: str,
        base_version: int,
        command_id: str,
        actor_id: str,
        now_ms: int,
        id_factory: IdFactory,
    ) -> None:
        self.stream_id = stream_id
        self.version = base_version
        self.command_id = command_id
        self.actor_id = actor_id
        self.occurred_at = ms_to_datetime(now_ms)
        self.id_factory = id_factory
        self.events: list[Event] = []

    def add(self, payload: BaseModel) -> None:
        self.version += 1
        self.events.append(
            create_event(
                event_id=self.id_factory.generate(),
                stream_id=self.stream_id,
                stream_type=STREAM_TYPE,
                occurred_at=self.occurred_at,
                command_id=self.command_id,
                actor_id=self.actor_id,
                payload=payload,
                version=self.version,
            )
        )


class FederationCommandHandlers:
    """
    Command handlers for the federation module

    Every handler gets the federation as it is now and returns the events
    that move it forward. Nothing is persisted here.
    """

    def __init__(
        self,
        time_provider: TimeProvider,
        policy: FederationPolicy,
        id_factory: IdFactory = default_id_factory,
    ) -> None:
        """
        Initialize handlers with dependencies

        Args:
            time_provider: For timestamps and liveness checks (injectable for testing)
            policy: Delegation rules
            id_factory: Source of federation, accreditation and event ids
        """
        self.time_provider = time_provider
        self.policy = policy
        self.id_factory = id_factory

    def _batch(self, federation: Federation, command_id: str, caller: str) -> _StreamBatch:
        return _StreamBatch(
            stream_id=federation.federation_id,
            base_version=federation.version,
            command_id=command_id,
            actor_id=caller,
            now_ms=self.time_provider.now_ms(),
            id_factory=self.id_factory,
        )

    def _issue_capabilities(
        self,
        batch: _StreamBatch,
        federation_id: str,
        holder: str,
        kinds: tuple[CapabilityKind, ...],
        capabilities: CapabilityLookup | None,
    ) -> None:
        """Add a CapabilityIssued event for every kind the holder lacks"""
        for kind in kinds:
            if capabilities is not None and capabilities.find_capability(
                holder, federation_id, kind
            ):
                continue
            batch.add(
                CapabilityIssued(
                    capability_id=self.id_factory.generate(),
                    kind=kind,
                    federation_id=federation_id,
                    holder=holder,
                )
            )

    # Federation

    def handle_create_federation(
        self,
        command: CreateFederation,
        command_id: str,
    ) -> list[Event]:
        """
        Handle CreateFederation command

        Emits FederationCreated followed by the creator's three capabilities.
        """
        now_ms = self.time_provider.now_ms()
        federation_id = self.id_factory.generate()
        batch = _StreamBatch(
            stream_id=federation_id,
            base_version=0,
            command_id=command_id,
            actor_id=command.creator,
            now_ms=now_ms,
            id_factory=self.id_factory,
        )

        batch.add(
            FederationCreated(
                federation_id=federation_id,
                created_by=command.creator,
                created_at=ms_to_datetime(now_ms),
            )
        )
        self._issue_capabilities(
            batch, federation_id, command.creator, ALL_CAPABILITY_KINDS, None
        )
        return batch.events

    # Root authorities

    def handle_add_root_authority(
        self,
        command: AddRootAuthority,
        command_id: str,
        caller: str,
        federation: Federation,
        capabilities: CapabilityLookup,
    ) -> list[Event]:
        """
        Handle AddRootAuthority command

        Raises:
            InsufficientCapability: If caller lacks ROOT_AUTHORITY
            NotRootAuthority: If caller's authority is revoked
            AuthorityAlreadyActive: If entity is already active
            AuthorityAlreadyRevoked: If entity must be reinstated instead
        """
        require_active_root_authority(federation, caller, capabilities)
        validate_new_root_authority(federation, command.entity_id)

        batch = self._batch(federation, command_id, caller)
        batch.add(
            RootAuthorityAdded(
                federation_id=federation.federation_id,
                entity_id=command.entity_id,
                added_by=caller,
            )
        )
        self._issue_capabilities(
            batch,
            federation.federation_id,
            command.entity_id,
            ALL_CAPABILITY_KINDS,
            capabilities,
        )
        return batch.events

    def handle_revoke_root_authority(
        self,
        command: RevokeRootAuthority,
        command_id: str,
        caller: str,
        federation: Federation,
        capabilities: CapabilityLookup,
    ) -> list[Event]:
        """
        Handle RevokeRootAuthority command

        Raises:
            LastAuthorityLockout: If target is the only active root authority
        """
        require_active_root_authority(federation, caller, capabilities)
        validate_root_authority_revocation(federation, command.entity_id)

        batch = self._batch(federation, command_id, caller)
        batch.add(
            RootAuthorityRevoked(
                federation_id=federation.federation_id,
                entity_id=command.entity_id,
                revoked_by=caller,
            )
        )
        return batch.events

    def handle_reinstate_root_authority(
        self,
        command: ReinstateRootAuthority,
        command_id: str,
        caller: str,
        federation: Federation,
        capabilities: CapabilityLookup,
    ) -> list[Event]:
        require_active_root_authority(federation, caller, capabilities)
        validate_reinstatement(federation, command.entity_id)

        batch = self._batch(federation, command_id, caller)
        batch.add(
            RootAuthorityReinstated(
                federation_id=federation.federation_id,
                entity_id=command.entity_id,
                reinstated_by=caller,
            )
        )
        return batch.events

    # Properties

    def handle_add_property(
        self,
        command: AddProperty,
        command_id: str,
        caller: str,
        federation: Federation,
        capabilities: CapabilityLookup,
    ) -> list[Event]:
        """
        Handle AddProperty command

        Raises:
            DuplicateProperty: If the name is taken
            InvalidDefinition: If the definition admits no value
        """
        require_active_root_authority(federation, caller, capabilities)
        validate_new_property(federation, command.definition)

        batch = self._batch(federation, command_id, caller)
        batch.add(
            PropertyAdded(
                federation_id=federation.federation_id,
                definition=command.definition,
            )
        )
        return batch.events

    def handle_revoke_property(
        self,
        command: RevokeProperty,
        command_id: str,
        caller: str,
        federation: Federation,
        capabilities: CapabilityLookup,
    ) -> list[Event]:
        """
        Handle RevokeProperty command

        The property stays defined; its window closes at command.at_ms,
        or now when no time is given.

        Raises:
            PropertyNotFound: If the name was never defined
            PropertyAlreadyRevoked: If the window already closed
        """
        require_active_root_authority(federation, caller, capabilities)
        now_ms = self.time_provider.now_ms()
        validate_property_revocation(federation, command.name, now_ms)

        valid_until_ms = command.at_ms if command.at_ms is not None else now_ms

        batch = self._batch(federation, command_id, caller)
        batch.add(
            PropertyRevoked(
                federation_id=federation.federation_id,
                name=command.name,
                valid_until_ms=valid_until_ms,
                revoked_by=caller,
            )
        )
        return batch.events

    # Accreditations

    def _create_accreditation(
        self,
        command: CreateAccreditation,
        command_id: str,
        caller: str,
        federation: Federation,
        capabilities: CapabilityLookup,
        required: CapabilityKind,
    ) -> tuple[_StreamBatch, Accreditation]:
        require_capability(capabilities, caller, federation.federation_id, required)
        now_ms = self.time_provider.now_ms()
        validate_wanted_properties(federation, command.wanted, now_ms)
        validate_delegation_scope(federation, caller, command.wanted, now_ms, self.policy)

        accreditation = Accreditation(
            accreditation_id=self.id_factory.generate(),
            created_by=caller,
            granted_properties={definition.key: definition for definition in command.wanted},
        )
        return self._batch(federation, command_id, caller), accreditation

    def handle_create_accreditation_to_accredit(
        self,
        command: CreateAccreditationToAccredit,
        command_id: str,
        caller: str,
        federation: Federation,
        capabilities: CapabilityLookup,
    ) -> list[Event]:
        """
        Handle CreateAccreditationToAccredit command

        The receiver also gets the ACCREDIT capability (and ATTEST, per
        policy) so it can pass the grant on.

        Raises:
            InsufficientCapability: If caller lacks ACCREDIT
            StatementNotInFederation: If a wanted name is undefined or not live
            InvalidDefinition: If a wanted constraint admits no value
            DelegationExceedsAuthority: If caller grants more than it holds
        """
        batch, accreditation = self._create_accreditation(
            command, command_id, caller, federation, capabilities, CapabilityKind.ACCREDIT
        )
        batch.add(
            AccreditationToAccreditCreated(
                federation_id=federation.federation_id,
                receiver=command.receiver,
                accreditation=accreditation,
            )
        )

        kinds: tuple[CapabilityKind, ...] = (CapabilityKind.ACCREDIT,)
        if self.policy.issue_attest_with_accredit:
            kinds += (CapabilityKind.ATTEST,)
        self._issue_capabilities(
            batch, federation.federation_id, command.receiver, kinds, capabilities
        )
        return batch.events

    def handle_create_accreditation_to_attest(
        self,
        command: CreateAccreditationToAttest,
        command_id: str,
        caller: str,
        federation: Federation,
        capabilities: CapabilityLookup,
    ) -> list[Event]:
        """
        Handle CreateAccreditationToAttest command

        Raises:
            InsufficientCapability: If caller lacks ATTEST
            StatementNotInFederation: If a wanted name is undefined or not live
            DelegationExceedsAuthority: If caller grants more than it holds
        """
        batch, accreditation = self._create_accreditation(
            command, command_id, caller, federation, capabilities, CapabilityKind.ATTEST
        )
        batch.add(
            AccreditationToAttestCreated(
                federation_id=federation.federation_id,
                receiver=command.receiver,
                accreditation=accreditation,
            )
        )
        return batch.events

    def _revoke_accreditation(
        self,
        command: RevokeAccreditation,
        caller: str,
        federation: Federation,
        capabilities: CapabilityLookup,
        required: CapabilityKind,
        accreditations: dict,
    ) -> None:
        require_capability(capabilities, caller, federation.federation_id, required)
        accreditation = validate_accreditation_exists(
            accreditations, command.entity_id, command.accreditation_id
        )
        validate_revocation_rights(
            federation, caller, command.entity_id, accreditation, self.policy
        )

    def handle_revoke_accreditation_to_accredit(
        self,
        command: RevokeAccreditationToAccredit,
        command_id: str,
        caller: str,
        federation: Federation,
        capabilities: CapabilityLookup,
    ) -> list[Event]:
        """
        Handle RevokeAccreditationToAccredit command

        Raises:
            InsufficientCapability: If caller lacks ACCREDIT
            AccreditationNotFound: If entity has no such accreditation
            NotAccreditationIssuer: If caller neither issued it nor is a root authority
        """
        self._revoke_accreditation(
            command,
            caller,
            federation,
            capabilities,
            CapabilityKind.ACCREDIT,
            federation.governance.accreditations_to_accredit,
        )
        batch = self._batch(federation, command_id, caller)
        batch.add(
            AccreditationToAccreditRevoked(
                federation_id=federation.federation_id,
                entity_id=command.entity_id,
                accreditation_id=command.accreditation_id,
                revoked_by=caller,
            )
        )
        return batch.events

    def handle_revoke_accreditation_to_attest(
        self,
        command: RevokeAccreditationToAttest,
        command_id: str,
        caller: str,
        federation: Federation,
        capabilities: CapabilityLookup,
    ) -> list[Event]:
        """
        Handle RevokeAccreditationToAttest command

        Raises:
            InsufficientCapability: If caller lacks ATTEST
            AccreditationNotFound: If entity has no such accreditation
            NotAccreditationIssuer: If caller neither issued it nor is a root authority
        """
        self._revoke_accreditation(
            command,
            caller,
            federation,
            capabilities,
            CapabilityKind.ATTEST,
            federation.governance.accreditations_to_attest,
        )
        batch = self._batch(federation, command_id, caller)
        batch.add(
            AccreditationToAttestRevoked(
                federation_id=federation.federation_id,
                entity_id=command.entity_id,
                accreditation_id=command.accreditation_id,
                revoked_by=caller,
            )
        )
        return batch.events
