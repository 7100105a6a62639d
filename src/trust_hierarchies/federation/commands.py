"""
Federation Commands - Intentions to change a federation

Commands carry what the caller wants; the caller itself is passed to the
handler separately so the same command can be replayed for audit.

Fun fact: Commands can fail (a missing capability, a lockout), but events
never fail - they're facts that already happened!
"""

from pydantic import BaseModel, Field

from trust_hierarchies.federation.models import PropertyDef, PropertyName


# Federation Commands


class CreateFederation(BaseModel):
    """
    Create a new federation (genesis)

    The creator becomes its first root authority and receives the
    ROOT_AUTHORITY, ACCREDIT and ATTEST capabilities.
    """

    creator: str = Field(..., min_length=1)


# Root Authority Commands


class AddRootAuthority(BaseModel):
    """Promote an entity to active root authority"""

    federation_id: str
    entity_id: str = Field(..., min_length=1)


class RevokeRootAuthority(BaseModel):
    """
    Move an active root authority to the revoked set

    Refused when it would leave the federation without root authorities.
    """

    federation_id: str
    entity_id: str = Field(..., min_length=1)


class ReinstateRootAuthority(BaseModel):
    """Move a revoked root authority back to the active set"""

    federation_id: str
    entity_id: str = Field(..., min_length=1)


# Property Commands


class AddProperty(BaseModel):
    """Define a new property (claim type) in the federation"""

    federation_id: str
    definition: PropertyDef


class RevokeProperty(BaseModel):
    """
    Close a property's validity window

    at_ms schedules the revocation; None revokes at the current time.
    The definition itself is kept for audit.
    """

    federation_id: str
    name: PropertyName
    at_ms: int | None = Field(default=None, ge=0)


# Accreditation Commands


class CreateAccreditation(BaseModel):
    """Grant a bundle of property constraints to a receiver"""

    federation_id: str
    receiver: str = Field(..., min_length=1)
    wanted: list[PropertyDef] = Field(..., min_length=1)


class CreateAccreditationToAccredit(CreateAccreditation):
    """Grant the right to accredit (and attest) the wanted properties"""


class CreateAccreditationToAttest(CreateAccreditation):
    """Grant the right to attest the wanted properties"""


class RevokeAccreditation(BaseModel):
    """Remove one accreditation, by id, from an entity's list"""

    federation_id: str
    entity_id: str = Field(..., min_length=1)
    accreditation_id: str


class RevokeAccreditationToAccredit(RevokeAccreditation):
    pass


class RevokeAccreditationToAttest(RevokeAccreditation):
    pass
