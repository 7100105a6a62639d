"""
Federation Module - Root authorities, properties and accreditations

This module implements the trust-accreditation mechanics:
- Root authority lifecycle with lockout protection
- Property definitions with soft revocation through validity windows
- Two-tier delegation (accredit vs. attest), never wider than the delegator
- A pure validation engine shared by the authoritative and cached readers

Fun fact: The accredit/attest split mirrors how universities work - the
ministry accredits the university, the university attests your degree.
"""

from trust_hierarchies.federation.models import (
    Accreditation,
    Capability,
    CapabilityKind,
    Condition,
    ConditionKind,
    Federation,
    Governance,
    PropertyDef,
    PropertyName,
    Timespan,
)
from trust_hierarchies.federation.providers import (
    AuthoritativeFederation,
    CachedFederation,
    FederationReader,
    load_federation,
)
from trust_hierarchies.federation.validation import validate_properties, validate_property

__all__ = [
    "PropertyName",
    "Condition",
    "ConditionKind",
    "Timespan",
    "PropertyDef",
    "Accreditation",
    "Governance",
    "Federation",
    "Capability",
    "CapabilityKind",
    "FederationReader",
    "AuthoritativeFederation",
    "CachedFederation",
    "load_federation",
    "validate_property",
    "validate_properties",
]
