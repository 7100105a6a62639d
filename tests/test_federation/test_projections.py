"""
Tests for Federation Projections

Projections must rebuild the exact same federation from the same events.
"""

import pytest

from trust_hierarchies.federation.commands import (
    AddProperty,
    AddRootAuthority,
    CreateAccreditationToAttest,
    CreateFederation,
    RevokeAccreditationToAttest,
    RevokeProperty,
)
from trust_hierarchies.federation.events import PropertyAdded, PropertyRevoked
from trust_hierarchies.federation.handlers import FederationCommandHandlers
from trust_hierarchies.federation.models import CapabilityKind, PropertyName
from trust_hierarchies.federation.projections import FederationRegistry, fold_federation
from trust_hierarchies.kernel.ids import generate_id

from tests.helpers import ProjectionHarness, make_property


def _build_history(handlers: FederationCommandHandlers) -> tuple[str, ProjectionHarness, list]:
    """Run a small lifecycle and keep every event"""
    harness = ProjectionHarness()
    log = harness.apply(
        handlers.handle_create_federation(CreateFederation(creator="root-alice"), generate_id())
    )
    fed_id = log[0].stream_id

    def run(method, command, caller="root-alice"):
        events = harness.apply(
            method(command, generate_id(), caller, harness.federation(fed_id), harness.capabilities)
        )
        log.extend(events)
        return events

    run(
        handlers.handle_add_property,
        AddProperty(
            federation_id=fed_id, definition=make_property("degree.bachelor", {"completed"})
        ),
    )
    run(
        handlers.handle_add_root_authority,
        AddRootAuthority(federation_id=fed_id, entity_id="root-bob"),
    )
    created = run(
        handlers.handle_create_accreditation_to_attest,
        CreateAccreditationToAttest(
            federation_id=fed_id,
            receiver="registrar",
            wanted=[make_property("degree.bachelor", {"completed"})],
        ),
    )
    run(
        handlers.handle_revoke_accreditation_to_attest,
        RevokeAccreditationToAttest(
            federation_id=fed_id,
            entity_id="registrar",
            accreditation_id=created[0].payload["accreditation"]["accreditation_id"],
        ),
    )
    run(
        handlers.handle_revoke_property,
        RevokeProperty(federation_id=fed_id, name=PropertyName.parse("degree.bachelor")),
    )
    return fed_id, harness, log


def test_registry_tracks_federation_state(handlers: FederationCommandHandlers) -> None:
    fed_id, harness, log = _build_history(handlers)
    federation = harness.federation(fed_id)

    assert federation.created_by == "root-alice"
    assert federation.root_authorities == {"root-alice", "root-bob"}
    assert federation.version == log[-1].version
    # Revoked accreditation leaves an empty list, not a missing key
    assert federation.governance.accreditations_to_attest == {"registrar": []}
    # Revoked property is kept with a closed window
    stored = federation.governance.properties["degree.bachelor"]
    assert stored.timespan.valid_until_ms is not None


def test_replay_is_deterministic(handlers: FederationCommandHandlers) -> None:
    fed_id, harness, log = _build_history(handlers)

    replayed = fold_federation(log)

    assert replayed is not None
    assert replayed.model_dump(mode="json") == harness.federation(fed_id).model_dump(mode="json")


def test_fold_of_empty_stream_is_none() -> None:
    assert fold_federation([]) is None


def test_capability_registry(handlers: FederationCommandHandlers) -> None:
    fed_id, harness, _ = _build_history(handlers)
    registry = harness.capabilities

    assert registry.find_capability("root-bob", fed_id, CapabilityKind.ROOT_AUTHORITY) is not None
    assert registry.find_capability("registrar", fed_id, CapabilityKind.ATTEST) is None
    assert {cap.kind for cap in registry.list_for_holder("root-alice")} == set(CapabilityKind)


def test_payload_parses_back_into_its_model(handlers: FederationCommandHandlers) -> None:
    _, _, log = _build_history(handlers)
    added = next(event for event in log if event.is_a(PropertyAdded))

    assert added.payload_as(PropertyAdded).definition.key == "degree.bachelor"
    with pytest.raises(ValueError):
        added.payload_as(PropertyRevoked)


def test_events_for_unknown_federation_are_ignored(handlers: FederationCommandHandlers) -> None:
    _, _, log = _build_history(handlers)
    registry = FederationRegistry()

    # Skip FederationCreated: nothing to apply the rest to
    for event in log[1:]:
        registry.apply_event(event)

    assert registry.list_ids() == []
