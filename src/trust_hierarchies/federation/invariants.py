"""
Federation Invariants - Rules every mutation must respect

Pure functions (no side effects) that either return quietly or raise a
typed error. Handlers call them before emitting a single event, so a
rejected mutation never leaves partial state behind.

Fun fact: The lockout rule is the same one every sysadmin learns the hard
way - never remove the last key to the server room.
"""

from typing import Protocol

from trust_hierarchies.federation.models import (
    Accreditation,
    Capability,
    CapabilityKind,
    Federation,
    PropertyDef,
    PropertyName,
)
from trust_hierarchies.kernel.errors import (
    AccreditationNotFound,
    AuthorityAlreadyActive,
    AuthorityAlreadyRevoked,
    AuthorityNotRevoked,
    DelegationExceedsAuthority,
    DuplicateProperty,
    InsufficientCapability,
    InvalidDefinition,
    LastAuthorityLockout,
    NotAccreditationIssuer,
    NotRootAuthority,
    PropertyAlreadyRevoked,
    PropertyNotFound,
    StatementNotInFederation,
)
from trust_hierarchies.kernel.policy import FederationPolicy


class CapabilityLookup(Protocol):
    """Anything that can answer "does holder own a capability of this kind?" """

    def find_capability(
        self, holder: str, federation_id: str, kind: CapabilityKind
    ) -> Capability | None:
        ...


# Capability Invariants


def require_capability(
    capabilities: CapabilityLookup,
    holder: str,
    federation_id: str,
    kind: CapabilityKind,
) -> Capability:
    """
    Ensure the holder owns a capability of the given kind

    Raises:
        InsufficientCapability: If no such capability exists
    """
    capability = capabilities.find_capability(holder, federation_id, kind)
    if capability is None:
        raise InsufficientCapability(holder, federation_id, kind.value)
    return capability


def require_active_root_authority(
    federation: Federation,
    caller: str,
    capabilities: CapabilityLookup,
) -> None:
    """
    Ensure the caller may act as a root authority right now

    A revoked authority keeps its capability object but loses the right to
    use it until reinstated.

    Raises:
        InsufficientCapability: If the caller never held ROOT_AUTHORITY
        NotRootAuthority: If the caller's authority is currently revoked
    """
    require_capability(
        capabilities, caller, federation.federation_id, CapabilityKind.ROOT_AUTHORITY
    )
    if caller not in federation.root_authorities:
        raise NotRootAuthority(caller, federation.federation_id)


# Root Authority Invariants


def validate_new_root_authority(federation: Federation, entity_id: str) -> None:
    """
    Adding is only for entities that were never root authorities

    Raises:
        AuthorityAlreadyActive: If entity is already active
        AuthorityAlreadyRevoked: If entity was revoked (reinstate instead)
    """
    if entity_id in federation.root_authorities:
        raise AuthorityAlreadyActive(entity_id, federation.federation_id)
    if entity_id in federation.revoked_root_authorities:
        raise AuthorityAlreadyRevoked(entity_id, federation.federation_id)


def validate_root_authority_revocation(federation: Federation, entity_id: str) -> None:
    """
    Ensure a revocation keeps at least one active root authority

    Raises:
        AuthorityAlreadyRevoked: If target is already revoked
        NotRootAuthority: If target is not an active root authority
        LastAuthorityLockout: If target is the only active root authority
    """
    if entity_id in federation.revoked_root_authorities:
        raise AuthorityAlreadyRevoked(entity_id, federation.federation_id)
    if entity_id not in federation.root_authorities:
        raise NotRootAuthority(entity_id, federation.federation_id)
    if len(federation.root_authorities) == 1:
        raise LastAuthorityLockout(entity_id, federation.federation_id)


def validate_reinstatement(federation: Federation, entity_id: str) -> None:
    """
    Raises:
        AuthorityAlreadyActive: If target is already active
        AuthorityNotRevoked: If target was never revoked
    """
    if entity_id in federation.root_authorities:
        raise AuthorityAlreadyActive(entity_id, federation.federation_id)
    if entity_id not in federation.revoked_root_authorities:
        raise AuthorityNotRevoked(entity_id, federation.federation_id)


# Property Invariants


def validate_definition(definition: PropertyDef) -> None:
    """
    A definition must admit at least one value at some point in time

    Raises:
        InvalidDefinition: If allow_any is false, allowed_values is empty
            and no shape is set, or if its validity window is empty
    """
    if not definition.is_well_formed():
        raise InvalidDefinition(definition.key)
    if definition.timespan.is_empty():
        raise InvalidDefinition(definition.key, "valid_from_ms is not before valid_until_ms")


def validate_new_property(federation: Federation, definition: PropertyDef) -> None:
    """
    Raises:
        DuplicateProperty: If the name is already defined (live or revoked)
        InvalidDefinition: If the definition admits no value
    """
    if definition.key in federation.governance.properties:
        raise DuplicateProperty(definition.key, federation.federation_id)
    validate_definition(definition)


def validate_property_revocation(
    federation: Federation,
    name: PropertyName,
    now_ms: int,
) -> PropertyDef:
    """
    Find the definition to revoke

    A definition whose validity window has already closed cannot be
    revoked again. A scheduled (future) revocation can be moved.

    Returns:
        The stored definition

    Raises:
        PropertyNotFound: If the name was never defined
        PropertyAlreadyRevoked: If the window already closed
    """
    stored = federation.governance.properties.get(name.dotted)
    if stored is None:
        raise PropertyNotFound(name.dotted, federation.federation_id)

    valid_until_ms = stored.timespan.valid_until_ms
    if valid_until_ms is not None and valid_until_ms <= now_ms:
        raise PropertyAlreadyRevoked(name.dotted, valid_until_ms)
    return stored


# Accreditation Invariants


def validate_wanted_properties(
    federation: Federation,
    wanted: list[PropertyDef],
    now_ms: int,
) -> None:
    """
    Every wanted constraint must name a live federation property

    The whole list is checked before anything is granted.

    Raises:
        InvalidDefinition: If a constraint admits no value or a name repeats
        StatementNotInFederation: If a name is undefined or not live
    """
    seen: set[str] = set()
    for definition in wanted:
        if definition.key in seen:
            raise InvalidDefinition(definition.key, "listed more than once")
        seen.add(definition.key)

        validate_definition(definition)

        stored = federation.governance.properties.get(definition.key)
        if stored is None:
            raise StatementNotInFederation(definition.key, federation.federation_id)
        if not stored.is_live(now_ms):
            raise StatementNotInFederation(
                definition.key, federation.federation_id, revoked=True
            )


def validate_delegation_scope(
    federation: Federation,
    caller: str,
    wanted: list[PropertyDef],
    now_ms: int,
    policy: FederationPolicy,
) -> None:
    """
    Delegation can only narrow authority, never widen it

    Each wanted constraint must be covered by one of the caller's live
    accreditation-to-accredit grants (see PropertyDef.covers). Active root
    authorities are the source of all grants and are exempt when the policy
    says so.

    Raises:
        DelegationExceedsAuthority: For the first constraint not covered
    """
    if not policy.enforce_delegation_scope:
        return
    if policy.root_authorities_bypass_scope and federation.is_root_authority(caller):
        return

    grants = [
        grant
        for accreditation in federation.governance.accreditations_to_accredit.get(caller, [])
        for grant in accreditation.granted_properties.values()
        if grant.is_live(now_ms)
    ]
    for definition in wanted:
        if not any(grant.covers(definition) for grant in grants):
            raise DelegationExceedsAuthority(caller, definition.key)


def validate_accreditation_exists(
    accreditations: dict[str, list[Accreditation]],
    entity_id: str,
    accreditation_id: str,
) -> Accreditation:
    """
    Raises:
        AccreditationNotFound: If entity has no accreditation with that id
    """
    for accreditation in accreditations.get(entity_id, []):
        if accreditation.accreditation_id == accreditation_id:
            return accreditation
    raise AccreditationNotFound(entity_id, accreditation_id)


def validate_revocation_rights(
    federation: Federation,
    caller: str,
    entity_id: str,
    accreditation: Accreditation,
    policy: FederationPolicy,
) -> None:
    """
    Only the issuer of an accreditation, or an active root authority, may
    take it back

    Raises:
        NotAccreditationIssuer: If caller is neither
    """
    if not policy.revocation_by_issuer_only:
        return
    if caller == accreditation.created_by or federation.is_root_authority(caller):
        return
    raise NotAccreditationIssuer(entity_id, accreditation.accreditation_id, caller)
