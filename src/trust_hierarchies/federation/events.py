"""
Federation Events - Domain events for trust governance

Events are immutable facts about what happened. Each federation has one
stream, and folding that stream in version order rebuilds the federation.

Fun fact: In event sourcing, events are named in past tense because
they represent facts that already happened, not intentions!
"""

from datetime import datetime

from pydantic import BaseModel

from trust_hierarchies.federation.models import (
    Accreditation,
    CapabilityKind,
    PropertyDef,
    PropertyName,
)

STREAM_TYPE = "federation"


# Federation Events


class FederationCreated(BaseModel):
    """A new federation was created with its first root authority"""

    federation_id: str
    created_by: str
    created_at: datetime


class CapabilityIssued(BaseModel):
    """
    A holder received proof of a role in a federation

    At most one per (holder, federation, kind).
    """

    capability_id: str
    kind: CapabilityKind
    federation_id: str
    holder: str


# Root Authority Events


class RootAuthorityAdded(BaseModel):
    federation_id: str
    entity_id: str
    added_by: str


class RootAuthorityRevoked(BaseModel):
    federation_id: str
    entity_id: str
    revoked_by: str


class RootAuthorityReinstated(BaseModel):
    federation_id: str
    entity_id: str
    reinstated_by: str


# Property Events


class PropertyAdded(BaseModel):
    """A root authority defined a new property"""

    federation_id: str
    definition: PropertyDef


class PropertyRevoked(BaseModel):
    """
    A property's validity window was closed

    Soft delete: the definition stays, only valid_until_ms moves.
    """

    federation_id: str
    name: PropertyName
    valid_until_ms: int
    revoked_by: str


# Accreditation Events


class AccreditationToAccreditCreated(BaseModel):
    federation_id: str
    receiver: str
    accreditation: Accreditation


class AccreditationToAttestCreated(BaseModel):
    federation_id: str
    receiver: str
    accreditation: Accreditation


class AccreditationToAccreditRevoked(BaseModel):
    federation_id: str
    entity_id: str
    accreditation_id: str
    revoked_by: str


class AccreditationToAttestRevoked(BaseModel):
    federation_id: str
    entity_id: str
    accreditation_id: str
    revoked_by: str
