"""
Tests for Federation Invariants

Invariants are pure functions over a Federation value, so these tests build
federations directly instead of going through the event log.
"""

import pytest

from trust_hierarchies.federation.invariants import (
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
from trust_hierarchies.federation.models import Capability, CapabilityKind, PropertyName
from trust_hierarchies.federation.projections import CapabilityRegistry
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

from tests.helpers import make_accreditation, make_federation, make_property


def _registry_with(*caps: tuple[str, CapabilityKind]) -> CapabilityRegistry:
    registry = CapabilityRegistry()
    for index, (holder, kind) in enumerate(caps):
        registry.capabilities[(holder, "fed-test", kind)] = Capability(
            capability_id=f"cap-{index}", kind=kind, federation_id="fed-test", holder=holder
        )
    return registry


# Capability checks


def test_require_capability_returns_capability() -> None:
    registry = _registry_with(("alice", CapabilityKind.ATTEST))

    capability = require_capability(registry, "alice", "fed-test", CapabilityKind.ATTEST)
    assert capability.holder == "alice"


def test_require_capability_raises_for_missing_kind() -> None:
    registry = _registry_with(("alice", CapabilityKind.ATTEST))

    with pytest.raises(InsufficientCapability) as exc_info:
        require_capability(registry, "alice", "fed-test", CapabilityKind.ACCREDIT)
    assert exc_info.value.kind == "ACCREDIT"


def test_revoked_root_authority_keeps_capability_but_cannot_act() -> None:
    federation = make_federation(roots=["root-alice"], revoked=["root-bob"])
    registry = _registry_with(
        ("root-alice", CapabilityKind.ROOT_AUTHORITY),
        ("root-bob", CapabilityKind.ROOT_AUTHORITY),
    )

    require_active_root_authority(federation, "root-alice", registry)
    with pytest.raises(NotRootAuthority):
        require_active_root_authority(federation, "root-bob", registry)
    with pytest.raises(InsufficientCapability):
        require_active_root_authority(federation, "mallory", registry)


# Root authority lifecycle


def test_new_root_authority_must_be_new() -> None:
    federation = make_federation(roots=["root-alice"], revoked=["root-bob"])

    validate_new_root_authority(federation, "carol")
    with pytest.raises(AuthorityAlreadyActive):
        validate_new_root_authority(federation, "root-alice")
    with pytest.raises(AuthorityAlreadyRevoked):
        validate_new_root_authority(federation, "root-bob")


def test_last_root_authority_cannot_be_revoked() -> None:
    federation = make_federation(roots=["root-alice"])

    with pytest.raises(LastAuthorityLockout):
        validate_root_authority_revocation(federation, "root-alice")


def test_revocation_target_must_be_active() -> None:
    federation = make_federation(roots=["root-alice", "root-carol"], revoked=["root-bob"])

    validate_root_authority_revocation(federation, "root-carol")
    with pytest.raises(AuthorityAlreadyRevoked):
        validate_root_authority_revocation(federation, "root-bob")
    with pytest.raises(NotRootAuthority):
        validate_root_authority_revocation(federation, "stranger")


def test_reinstatement_requires_revoked_target() -> None:
    federation = make_federation(roots=["root-alice"], revoked=["root-bob"])

    validate_reinstatement(federation, "root-bob")
    with pytest.raises(AuthorityAlreadyActive):
        validate_reinstatement(federation, "root-alice")
    with pytest.raises(AuthorityNotRevoked):
        validate_reinstatement(federation, "stranger")


# Properties


def test_duplicate_property_rejected() -> None:
    federation = make_federation(properties=[make_property("degree.bachelor", {"completed"})])

    with pytest.raises(DuplicateProperty):
        validate_new_property(federation, make_property("degree.bachelor", {"other"}))


def test_property_must_admit_some_value() -> None:
    federation = make_federation()

    with pytest.raises(InvalidDefinition):
        validate_new_property(federation, make_property("degree.bachelor"))


def test_property_window_must_not_be_empty() -> None:
    federation = make_federation()

    with pytest.raises(InvalidDefinition) as exc_info:
        validate_new_property(
            federation,
            make_property("degree.bachelor", {"completed"}, valid_from_ms=1_000, valid_until_ms=1_000),
        )
    assert "valid_from_ms" in exc_info.value.reason


def test_property_revocation_checks() -> None:
    federation = make_federation(
        properties=[
            make_property("live", {"x"}),
            make_property("closed", {"x"}, valid_until_ms=1_000),
            make_property("scheduled", {"x"}, valid_until_ms=5_000),
        ]
    )

    assert validate_property_revocation(federation, PropertyName.parse("live"), 2_000).key == "live"
    validate_property_revocation(federation, PropertyName.parse("scheduled"), 2_000)

    with pytest.raises(PropertyAlreadyRevoked) as exc_info:
        validate_property_revocation(federation, PropertyName.parse("closed"), 2_000)
    assert exc_info.value.valid_until_ms == 1_000

    with pytest.raises(PropertyNotFound):
        validate_property_revocation(federation, PropertyName.parse("missing"), 2_000)


# Accreditations


def test_wanted_properties_must_exist_and_be_live() -> None:
    federation = make_federation(
        properties=[
            make_property("degree.bachelor", {"completed"}),
            make_property("degree.old", {"completed"}, valid_until_ms=1_000),
        ]
    )

    validate_wanted_properties(federation, [make_property("degree.bachelor", {"completed"})], 2_000)

    with pytest.raises(StatementNotInFederation) as missing:
        validate_wanted_properties(federation, [make_property("degree.master", {"x"})], 2_000)
    assert missing.value.revoked is False

    with pytest.raises(StatementNotInFederation) as revoked:
        validate_wanted_properties(federation, [make_property("degree.old", {"completed"})], 2_000)
    assert revoked.value.revoked is True


def test_wanted_properties_must_be_unique_and_well_formed() -> None:
    federation = make_federation(properties=[make_property("degree.bachelor", {"completed"})])

    with pytest.raises(InvalidDefinition):
        validate_wanted_properties(
            federation,
            [
                make_property("degree.bachelor", {"completed"}),
                make_property("degree.bachelor", {"completed"}),
            ],
            0,
        )
    with pytest.raises(InvalidDefinition):
        validate_wanted_properties(federation, [make_property("degree.bachelor")], 0)


def test_delegation_scope_limits_non_root_delegators() -> None:
    federation = make_federation(
        properties=[make_property("degree.bachelor", {"completed", "pending"})],
        accredit={"uni": [make_accreditation(make_property("degree.bachelor", {"completed"}))]},
    )
    policy = FederationPolicy()

    validate_delegation_scope(
        federation, "uni", [make_property("degree.bachelor", {"completed"})], 0, policy
    )
    with pytest.raises(DelegationExceedsAuthority) as exc_info:
        validate_delegation_scope(
            federation, "uni", [make_property("degree.bachelor", {"pending"})], 0, policy
        )
    assert exc_info.value.property_name == "degree.bachelor"


def test_delegation_scope_ignores_expired_grants() -> None:
    federation = make_federation(
        properties=[make_property("degree.bachelor", {"completed"})],
        accredit={
            "uni": [
                make_accreditation(
                    make_property("degree.bachelor", {"completed"}, valid_until_ms=100)
                )
            ]
        },
    )

    with pytest.raises(DelegationExceedsAuthority):
        validate_delegation_scope(
            federation,
            "uni",
            [make_property("degree.bachelor", {"completed"})],
            100,
            FederationPolicy(),
        )


def test_delegation_cannot_outlive_the_delegator() -> None:
    federation = make_federation(
        properties=[make_property("degree.bachelor", {"completed"})],
        accredit={
            "uni": [
                make_accreditation(
                    make_property(
                        "degree.bachelor", {"completed"}, valid_from_ms=500, valid_until_ms=1_000
                    )
                )
            ]
        },
    )
    policy = FederationPolicy()

    validate_delegation_scope(
        federation,
        "uni",
        [make_property("degree.bachelor", {"completed"}, valid_from_ms=600, valid_until_ms=900)],
        600,
        policy,
    )
    for wanted in (
        make_property("degree.bachelor", {"completed"}),
        make_property("degree.bachelor", {"completed"}, valid_from_ms=600),
        make_property("degree.bachelor", {"completed"}, valid_from_ms=600, valid_until_ms=5_000),
        make_property("degree.bachelor", {"completed"}, valid_from_ms=100, valid_until_ms=900),
    ):
        with pytest.raises(DelegationExceedsAuthority):
            validate_delegation_scope(federation, "uni", [wanted], 600, policy)


def test_root_authorities_and_disabled_policy_skip_scope() -> None:
    federation = make_federation(
        roots=["root-alice"], properties=[make_property("degree.bachelor", {"completed"})]
    )
    wanted = [make_property("degree.bachelor", allow_any=True)]

    validate_delegation_scope(federation, "root-alice", wanted, 0, FederationPolicy())
    validate_delegation_scope(
        federation, "anyone", wanted, 0, FederationPolicy(enforce_delegation_scope=False)
    )
    with pytest.raises(DelegationExceedsAuthority):
        validate_delegation_scope(
            federation,
            "root-alice",
            wanted,
            0,
            FederationPolicy(root_authorities_bypass_scope=False),
        )


def test_accreditation_must_exist_under_entity() -> None:
    accreditation = make_accreditation(make_property("a", {"x"}), accreditation_id="acc-1")
    accreditations = {"bob": [accreditation], "carol": []}

    assert validate_accreditation_exists(accreditations, "bob", "acc-1") is accreditation
    with pytest.raises(AccreditationNotFound):
        validate_accreditation_exists(accreditations, "carol", "acc-1")
    with pytest.raises(AccreditationNotFound):
        validate_accreditation_exists(accreditations, "bob", "acc-2")


def test_only_issuer_or_root_may_revoke() -> None:
    federation = make_federation(roots=["root-alice"])
    issued_by_uni = make_accreditation(make_property("a", {"x"}), created_by="uni")
    issued_by_root = make_accreditation(make_property("b", {"x"}), created_by="root-alice")
    policy = FederationPolicy()

    validate_revocation_rights(federation, "uni", "registrar", issued_by_uni, policy)
    validate_revocation_rights(federation, "root-alice", "registrar", issued_by_uni, policy)
    with pytest.raises(NotAccreditationIssuer) as exc_info:
        validate_revocation_rights(federation, "uni", "registrar", issued_by_root, policy)
    assert exc_info.value.caller == "uni"

    validate_revocation_rights(
        federation,
        "uni",
        "registrar",
        issued_by_root,
        FederationPolicy(revocation_by_issuer_only=False),
    )


def test_revoked_root_loses_revocation_rights() -> None:
    federation = make_federation(roots=["root-alice"], revoked=["root-bob"])
    accreditation = make_accreditation(make_property("a", {"x"}), created_by="root-alice")

    with pytest.raises(NotAccreditationIssuer):
        validate_revocation_rights(
            federation, "root-bob", "registrar", accreditation, FederationPolicy()
        )
