"""
Federation Projections - Read models built from events

Projections are rebuilt from the event log, making them disposable. The
federation registry folds each stream into a Federation value; the
capability registry answers "who holds which role where".

Fun fact: Projections are like "materialized views" in traditional databases,
but better - they're versioned, rebuildable, and can be customized per use case!
"""

from trust_hierarchies.federation.events import (
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
from trust_hierarchies.federation.models import Capability, CapabilityKind, Federation
from trust_hierarchies.kernel.events import Event


class FederationRegistry:
    """
    Projection: Current state of every federation

    Events must be applied per stream in version order.
    """

    def __init__(self) -> None:
        self.federations: dict[str, Federation] = {}

    def apply_event(self, event: Event) -> None:
        """Apply an event to update projection state"""
        if event.is_a(FederationCreated):
            created = event.payload_as(FederationCreated)
            self.federations[created.federation_id] = Federation(
                federation_id=created.federation_id,
                created_by=created.created_by,
                root_authorities={created.created_by},
                version=event.version,
            )
            return

        federation = self.federations.get(event.stream_id)
        if federation is None:
            return
        governance = federation.governance

        if event.is_a(RootAuthorityAdded):
            added = event.payload_as(RootAuthorityAdded)
            federation.root_authorities.add(added.entity_id)

        elif event.is_a(RootAuthorityRevoked):
            revoked = event.payload_as(RootAuthorityRevoked)
            federation.root_authorities.discard(revoked.entity_id)
            federation.revoked_root_authorities.add(revoked.entity_id)

        elif event.is_a(RootAuthorityReinstated):
            reinstated = event.payload_as(RootAuthorityReinstated)
            federation.revoked_root_authorities.discard(reinstated.entity_id)
            federation.root_authorities.add(reinstated.entity_id)

        elif event.is_a(PropertyAdded):
            definition = event.payload_as(PropertyAdded).definition
            governance.properties[definition.key] = definition

        elif event.is_a(PropertyRevoked):
            revoked_property = event.payload_as(PropertyRevoked)
            key = revoked_property.name.dotted
            if key in governance.properties:
                governance.properties[key] = governance.properties[key].with_valid_until(
                    revoked_property.valid_until_ms
                )

        elif event.is_a(AccreditationToAccreditCreated):
            created_accreditation = event.payload_as(AccreditationToAccreditCreated)
            governance.accreditations_to_accredit.setdefault(
                created_accreditation.receiver, []
            ).append(created_accreditation.accreditation)

        elif event.is_a(AccreditationToAttestCreated):
            created_attestation = event.payload_as(AccreditationToAttestCreated)
            governance.accreditations_to_attest.setdefault(
                created_attestation.receiver, []
            ).append(created_attestation.accreditation)

        elif event.is_a(AccreditationToAccreditRevoked):
            removed = event.payload_as(AccreditationToAccreditRevoked)
            _remove_accreditation(
                governance.accreditations_to_accredit, removed.entity_id, removed.accreditation_id
            )

        elif event.is_a(AccreditationToAttestRevoked):
            removed_attest = event.payload_as(AccreditationToAttestRevoked)
            _remove_accreditation(
                governance.accreditations_to_attest,
                removed_attest.entity_id,
                removed_attest.accreditation_id,
            )

        federation.version = event.version

    def get(self, federation_id: str) -> Federation | None:
        """Get federation by ID (live object - copy before handing out)"""
        return self.federations.get(federation_id)

    def list_ids(self) -> list[str]:
        return list(self.federations)


def _remove_accreditation(
    accreditations: dict[str, list], entity_id: str, accreditation_id: str
) -> None:
    # The entry itself stays, possibly as an empty list
    if entity_id in accreditations:
        accreditations[entity_id] = [
            accreditation
            for accreditation in accreditations[entity_id]
            if accreditation.accreditation_id != accreditation_id
        ]


class CapabilityRegistry:
    """
    Projection: Capabilities keyed by (holder, federation, kind)

    Implements the capability lookup the handlers depend on.
    """

    def __init__(self) -> None:
        self.capabilities: dict[tuple[str, str, CapabilityKind], Capability] = {}

    def apply_event(self, event: Event) -> None:
        """Apply an event to update projection state"""
        if not event.is_a(CapabilityIssued):
            return
        issued = event.payload_as(CapabilityIssued)
        key = (issued.holder, issued.federation_id, issued.kind)
        # First issue wins; a capability is never replaced
        self.capabilities.setdefault(
            key,
            Capability(
                capability_id=issued.capability_id,
                kind=issued.kind,
                federation_id=issued.federation_id,
                holder=issued.holder,
            ),
        )

    def find_capability(
        self, holder: str, federation_id: str, kind: CapabilityKind
    ) -> Capability | None:
        return self.capabilities.get((holder, federation_id, kind))

    def list_for_holder(self, holder: str) -> list[Capability]:
        return [cap for (cap_holder, _, _), cap in self.capabilities.items() if cap_holder == holder]


def fold_federation(events: list[Event]) -> Federation | None:
    """Rebuild a single federation from its stream (None for an empty stream)"""
    registry = FederationRegistry()
    for event in events:
        registry.apply_event(event)
    if not events:
        return None
    return registry.get(events[0].stream_id)
