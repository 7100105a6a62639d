"""
Federation Domain Models - Properties, accreditations and capabilities

A federation is a trust domain: root authorities decide which properties
(claim types) exist, accreditations hand out the right to attest or to
accredit further, and capabilities prove who holds which role.

Maps inside the governance are keyed by the dotted property name so the
whole federation serializes to plain JSON for snapshots and event payloads.

Fun fact: Property names behave like DNS labels - "university.a" owns
everything below it, but knows nothing about its neighbour "university.ab".
"""

from enum import Enum
from typing import Annotated, Any, Union

from pydantic import (
    BaseModel,
    Field,
    StrictInt,
    StrictStr,
    field_serializer,
    field_validator,
    model_validator,
)

U64_MAX = 2**64 - 1

# A claim value is either text or a non-negative integer. Booleans are
# rejected even though Python treats them as ints.
PropertyValue = Union[StrictStr, Annotated[StrictInt, Field(ge=0, le=U64_MAX)]]


def is_property_value(value: Any) -> bool:
    """True if value is usable as a claim value (str or u64, never bool)"""
    if isinstance(value, bool):
        return False
    if isinstance(value, str):
        return True
    return isinstance(value, int) and 0 <= value <= U64_MAX


def _sorted_values(values: frozenset) -> list:
    # Numbers before text, then natural order, so payloads are reproducible
    return sorted(values, key=lambda v: (isinstance(v, str), v))


class PropertyName(BaseModel):
    """
    Hierarchical claim identifier, e.g. ("university", "a", "score")

    Compared component by component: a name covers every name that starts
    with all of its components.
    """

    names: tuple[str, ...] = Field(..., min_length=1)

    model_config = {"frozen": True}

    @field_validator("names")
    @classmethod
    def _check_components(cls, names: tuple[str, ...]) -> tuple[str, ...]:
        for component in names:
            if not component:
                raise ValueError("property name components must be non-empty")
            if "." in component:
                raise ValueError(f"property name component {component!r} contains '.'")
        return names

    @classmethod
    def parse(cls, dotted: str) -> "PropertyName":
        """Build a name from its dotted form ("degree.bachelor")"""
        return cls(names=tuple(dotted.split(".")))

    @property
    def dotted(self) -> str:
        return ".".join(self.names)

    def is_prefix_of(self, other: "PropertyName") -> bool:
        """Component-wise prefix test (equal names count as a prefix)"""
        return len(self.names) <= len(other.names) and other.names[: len(self.names)] == self.names

    def __str__(self) -> str:
        return self.dotted


def as_property_name(name: "str | PropertyName") -> PropertyName:
    """Accept either a PropertyName or its dotted string"""
    if isinstance(name, PropertyName):
        return name
    return PropertyName.parse(name)


class ConditionKind(str, Enum):
    """Predicates a property shape can apply to a claim value"""

    STARTS_WITH = "STARTS_WITH"  # text
    ENDS_WITH = "ENDS_WITH"  # text
    CONTAINS = "CONTAINS"  # text
    GREATER_THAN = "GREATER_THAN"  # number, strict
    LOWER_THAN = "LOWER_THAN"  # number, strict


TEXT_CONDITIONS = frozenset(
    {ConditionKind.STARTS_WITH, ConditionKind.ENDS_WITH, ConditionKind.CONTAINS}
)


class Condition(BaseModel):
    """
    Property shape - a predicate over a claim value

    Text conditions only ever match text and numeric conditions only ever
    match numbers. A value of the wrong kind is simply not a match.
    """

    kind: ConditionKind
    operand: PropertyValue

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _operand_matches_kind(self) -> "Condition":
        wants_text = self.kind in TEXT_CONDITIONS
        if wants_text != isinstance(self.operand, str):
            expected = "text" if wants_text else "integer"
            raise ValueError(f"{self.kind.value} needs a {expected} operand")
        return self

    @classmethod
    def starts_with(cls, prefix: str) -> "Condition":
        return cls(kind=ConditionKind.STARTS_WITH, operand=prefix)

    @classmethod
    def ends_with(cls, suffix: str) -> "Condition":
        return cls(kind=ConditionKind.ENDS_WITH, operand=suffix)

    @classmethod
    def contains(cls, fragment: str) -> "Condition":
        return cls(kind=ConditionKind.CONTAINS, operand=fragment)

    @classmethod
    def greater_than(cls, bound: int) -> "Condition":
        return cls(kind=ConditionKind.GREATER_THAN, operand=bound)

    @classmethod
    def lower_than(cls, bound: int) -> "Condition":
        return cls(kind=ConditionKind.LOWER_THAN, operand=bound)

    def matches(self, value: Any) -> bool:
        """Evaluate against a claim value, never raising"""
        if not is_property_value(value):
            return False

        if self.kind in TEXT_CONDITIONS:
            if not isinstance(value, str):
                return False
            if self.kind == ConditionKind.STARTS_WITH:
                return value.startswith(self.operand)
            if self.kind == ConditionKind.ENDS_WITH:
                return value.endswith(self.operand)
            return self.operand in value

        if isinstance(value, str):
            return False
        if self.kind == ConditionKind.GREATER_THAN:
            return value > self.operand
        return value < self.operand


class Timespan(BaseModel):
    """
    Half-open validity window [valid_from_ms, valid_until_ms)

    Either bound may be open. Times are Unix milliseconds.
    """

    valid_from_ms: int | None = Field(default=None, ge=0)
    valid_until_ms: int | None = Field(default=None, ge=0)

    model_config = {"frozen": True}

    def is_live(self, now_ms: int) -> bool:
        if self.valid_from_ms is not None and now_ms < self.valid_from_ms:
            return False
        if self.valid_until_ms is not None and now_ms >= self.valid_until_ms:
            return False
        return True

    def is_empty(self) -> bool:
        return (
            self.valid_from_ms is not None
            and self.valid_until_ms is not None
            and self.valid_from_ms >= self.valid_until_ms
        )

    def contains(self, other: "Timespan") -> bool:
        """Whether other's window lies inside this one (an open bound only fits an open bound)"""
        if self.valid_from_ms is not None and (
            other.valid_from_ms is None or other.valid_from_ms < self.valid_from_ms
        ):
            return False
        if self.valid_until_ms is not None and (
            other.valid_until_ms is None or other.valid_until_ms > self.valid_until_ms
        ):
            return False
        return True


class PropertyDef(BaseModel):
    """
    A named claim type and the values it accepts

    Values are checked in a fixed order: allow_any, then the shape, then
    membership in allowed_values. The same model describes a federation
    property and the constraint snapshot inside an accreditation.

    Attributes:
        name: Hierarchical property name
        allowed_values: Explicit set of accepted values
        shape: Optional predicate accepting values by form
        allow_any: Accept every value
        timespan: When this definition (or grant) is live
    """

    name: PropertyName
    allowed_values: frozenset[PropertyValue] = Field(default_factory=frozenset)
    shape: Condition | None = None
    allow_any: bool = False
    timespan: Timespan = Field(default_factory=Timespan)

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {
                    "name": {"names": ["degree", "bachelor"]},
                    "allowed_values": ["completed", "pending"],
                    "shape": None,
                    "allow_any": False,
                    "timespan": {"valid_from_ms": None, "valid_until_ms": None},
                }
            ]
        },
    }

    @field_serializer("allowed_values")
    def _serialize_values(self, values: frozenset) -> list:
        return _sorted_values(values)

    @property
    def key(self) -> str:
        """Dotted name used as the governance map key"""
        return self.name.dotted

    def is_well_formed(self) -> bool:
        return self.allow_any or bool(self.allowed_values) or self.shape is not None

    def is_live(self, now_ms: int) -> bool:
        return self.timespan.is_live(now_ms)

    def matches_value(self, value: Any) -> bool:
        """allow_any -> shape -> allowed_values, first satisfied check wins"""
        if not is_property_value(value):
            return False
        if self.allow_any:
            return True
        if self.shape is not None and self.shape.matches(value):
            return True
        return value in self.allowed_values

    def covers(self, wanted: "PropertyDef") -> bool:
        """
        Whether holding this grant permits handing out `wanted`

        The grant's name must be a component prefix of the wanted name and
        the wanted window must lie inside the grant's. An allow_any grant
        then covers anything below it; otherwise the wanted definition may
        not use allow_any, must reuse the grant's shape if it has one, and
        may only list values the grant lists too.
        """
        if not self.name.is_prefix_of(wanted.name):
            return False
        if not self.timespan.contains(wanted.timespan):
            return False
        if self.allow_any:
            return True
        if wanted.allow_any:
            return False
        if wanted.shape is not None and wanted.shape != self.shape:
            return False
        return wanted.allowed_values <= self.allowed_values

    def with_valid_until(self, valid_until_ms: int) -> "PropertyDef":
        """Copy with the end of the validity window moved (soft revocation)"""
        timespan = Timespan(
            valid_from_ms=self.timespan.valid_from_ms,
            valid_until_ms=valid_until_ms,
        )
        return self.model_copy(update={"timespan": timespan})


class Accreditation(BaseModel):
    """
    A bundle of property constraints granted to one entity

    Attributes:
        accreditation_id: Unique identifier, used for revocation
        created_by: Entity that issued the grant
        granted_properties: Constraint snapshot keyed by dotted name
    """

    accreditation_id: str
    created_by: str
    granted_properties: dict[str, PropertyDef] = Field(default_factory=dict)

    def grants_for(self, name: PropertyName) -> list[PropertyDef]:
        """Granted constraints whose name is a component prefix of `name`"""
        return [
            grant for grant in self.granted_properties.values()
            if grant.name.is_prefix_of(name)
        ]


class Governance(BaseModel):
    """
    Per-federation registry of properties and accreditations

    An entity whose last accreditation was revoked keeps an empty list, so
    "never accredited" and "no longer accredited" stay distinguishable.
    """

    properties: dict[str, PropertyDef] = Field(default_factory=dict)
    accreditations_to_attest: dict[str, list[Accreditation]] = Field(default_factory=dict)
    accreditations_to_accredit: dict[str, list[Accreditation]] = Field(default_factory=dict)


class Federation(BaseModel):
    """
    Top-level trust domain

    Invariants (enforced by the handlers):
    - root_authorities is never empty
    - root_authorities and revoked_root_authorities are disjoint

    Attributes:
        federation_id: Unique identifier (also the event stream id)
        created_by: Genesis root authority
        root_authorities: Active root authorities
        revoked_root_authorities: Former root authorities that may be reinstated
        governance: Properties and accreditations
        version: Stream version this state reflects
    """

    federation_id: str
    created_by: str
    root_authorities: set[str] = Field(default_factory=set)
    revoked_root_authorities: set[str] = Field(default_factory=set)
    governance: Governance = Field(default_factory=Governance)
    version: int = 0

    @field_serializer("root_authorities", "revoked_root_authorities")
    def _serialize_authorities(self, entities: set[str]) -> list[str]:
        return sorted(entities)

    def is_root_authority(self, entity_id: str) -> bool:
        return entity_id in self.root_authorities


class CapabilityKind(str, Enum):
    """Role a capability proves inside one federation"""

    ROOT_AUTHORITY = "ROOT_AUTHORITY"
    ACCREDIT = "ACCREDIT"
    ATTEST = "ATTEST"


class Capability(BaseModel):
    """
    Proof of role - one per (holder, federation, kind), never mutated

    Issued by events and looked up by the command layer before any
    mutation is attempted.
    """

    capability_id: str
    kind: CapabilityKind
    federation_id: str
    holder: str

    model_config = {"frozen": True}
