"""
Test Helper Functions - Builders for federations, properties and events

Fun fact: The Builder pattern was formalized by the Gang of Four in 1994,
but test data builders were popularized by the growing programmer test
movement in the 2000s - we use them to keep tests readable and maintainable!
"""

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from trust_hierarchies.federation.models import (
    Accreditation,
    Condition,
    Federation,
    Governance,
    PropertyDef,
    PropertyName,
    Timespan,
)
from trust_hierarchies.federation.projections import CapabilityRegistry, FederationRegistry
from trust_hierarchies.kernel.events import Event
from trust_hierarchies.kernel.ids import generate_id

# 2025-01-15 12:00:00 UTC in Unix milliseconds
TEST_EPOCH_MS = 1_736_942_400_000


def make_property(
    name: str,
    values: Iterable[Any] = (),
    shape: Condition | None = None,
    allow_any: bool = False,
    valid_from_ms: int | None = None,
    valid_until_ms: int | None = None,
) -> PropertyDef:
    """
    Builder for property definitions (and grant constraints)

    Example:
        >>> make_property("degree.bachelor", {"completed", "pending"})
    """
    return PropertyDef(
        name=PropertyName.parse(name),
        allowed_values=frozenset(values),
        shape=shape,
        allow_any=allow_any,
        timespan=Timespan(valid_from_ms=valid_from_ms, valid_until_ms=valid_until_ms),
    )


def make_accreditation(
    *grants: PropertyDef,
    created_by: str = "root-alice",
    accreditation_id: str | None = None,
) -> Accreditation:
    return Accreditation(
        accreditation_id=accreditation_id or generate_id(),
        created_by=created_by,
        granted_properties={grant.key: grant for grant in grants},
    )


def make_federation(
    roots: Iterable[str] = ("root-alice",),
    properties: Iterable[PropertyDef] = (),
    attest: dict[str, list[Accreditation]] | None = None,
    accredit: dict[str, list[Accreditation]] | None = None,
    revoked: Iterable[str] = (),
) -> Federation:
    """
    Builder for Federation values used by the pure functions

    Skips the event log entirely - handy for validation and invariant tests.
    """
    roots = set(roots)
    return Federation(
        federation_id="fed-test",
        created_by=sorted(roots)[0] if roots else "root-alice",
        root_authorities=roots,
        revoked_root_authorities=set(revoked),
        governance=Governance(
            properties={definition.key: definition for definition in properties},
            accreditations_to_attest=attest or {},
            accreditations_to_accredit=accredit or {},
        ),
    )


def make_event(
    stream_id: str,
    version: int,
    event_type: str = "TestEvent",
    payload: dict[str, Any] | None = None,
    command_id: str | None = None,
    stream_type: str = "test",
) -> Event:
    return Event(
        event_id=generate_id(),
        stream_id=stream_id,
        stream_type=stream_type,
        event_type=event_type,
        occurred_at=datetime.now(timezone.utc),
        actor_id="test-actor",
        command_id=command_id or generate_id(),
        payload=payload or {},
        version=version,
    )


class ProjectionHarness:
    """
    Applies handler output to fresh projections

    Stands in for the façade's commit step so handler tests can chain
    commands without a database.
    """

    def __init__(self) -> None:
        self.federations = FederationRegistry()
        self.capabilities = CapabilityRegistry()

    def apply(self, events: list[Event]) -> list[Event]:
        for event in events:
            self.federations.apply_event(event)
            self.capabilities.apply_event(event)
        return events

    def federation(self, federation_id: str) -> Federation:
        federation = self.federations.get(federation_id)
        assert federation is not None, f"federation {federation_id} was never created"
        return federation
