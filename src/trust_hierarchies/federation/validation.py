"""
Validation Engine - May this entity attest this claim?

Pure, total functions over a Federation value. Both evaluation paths
(authoritative replay and cached snapshot) call these, so they can never
disagree on the same state.

Algorithm for one claim:
1. No accreditation-to-attest list (or an empty one) -> False
2. For every granted constraint whose name is a component prefix of the
   claimed name, skipping grants that are not live and grants whose
   federation property is no longer live:
   allow_any -> shape -> allowed_values, first satisfied check wins
3. Any match -> True
"""

from collections.abc import Mapping
from typing import Any

from trust_hierarchies.federation.models import Federation, PropertyName, as_property_name


def validate_property(
    federation: Federation,
    entity_id: str,
    name: "str | PropertyName",
    value: Any,
    now_ms: int,
) -> bool:
    """
    Check a single claim

    Never raises: unparsable names and values of the wrong kind are
    simply not permitted.
    """
    try:
        claimed = as_property_name(name)
    except (ValueError, AttributeError):
        return False

    accreditations = federation.governance.accreditations_to_attest.get(entity_id)
    if not accreditations:
        return False

    properties = federation.governance.properties
    for accreditation in accreditations:
        for grant in accreditation.grants_for(claimed):
            if not grant.is_live(now_ms):
                continue
            defined = properties.get(grant.key)
            if defined is None or not defined.is_live(now_ms):
                continue
            if grant.matches_value(value):
                return True
    return False


def validate_properties(
    federation: Federation,
    entity_id: str,
    claims: Mapping["str | PropertyName", Any],
    now_ms: int,
) -> bool:
    """
    Check a full claim set - every claim must pass

    All or nothing: partial validity is not expressible. An empty claim
    set proves nothing and is rejected.
    """
    if not claims:
        return False
    return all(
        validate_property(federation, entity_id, name, value, now_ms)
        for name, value in claims.items()
    )
