"""
Custom exceptions for Trust Hierarchies

A closed taxonomy of local, recoverable failures. Every mutation raises one
of these before anything is appended to the event store, so callers can
retry, surface the message, or give up without cleaning up partial state.

The validation engine never raises - an unmatched claim is just False.
"""


class HierarchiesError(Exception):
    """Base exception for all Trust Hierarchies errors"""

    pass


class EventStoreError(HierarchiesError):
    """Base class for event store errors"""

    pass


class CommandIdempotencyViolation(EventStoreError):
    """
    Raised when attempting to execute a command with duplicate command_id

    The command was already processed, so the original events are returned
    instead of being written again.
    """

    def __init__(self, command_id: str, message: str = "") -> None:
        self.command_id = command_id
        super().__init__(
            message or f"Command {command_id} already processed (idempotency preserved)"
        )


class StreamVersionConflict(EventStoreError):
    """
    Raised when stream version doesn't match expected (optimistic locking)

    Another writer changed the federation first - reload and retry.
    """

    def __init__(
        self, stream_id: str, expected_version: int, actual_version: int
    ) -> None:
        self.stream_id = stream_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Stream {stream_id} version mismatch: "
            f"expected {expected_version}, got {actual_version}"
        )


# Authorization errors


class AuthorizationError(HierarchiesError):
    """Base class for caller-not-permitted failures"""

    pass


class InsufficientCapability(AuthorizationError):
    """Raised when the caller holds no capability of the required kind"""

    def __init__(self, holder: str, federation_id: str, kind: str) -> None:
        self.holder = holder
        self.federation_id = federation_id
        self.kind = kind
        super().__init__(
            f"{holder} holds no {kind} capability for federation {federation_id}"
        )


class NotRootAuthority(AuthorizationError):
    """Raised when an entity is not an active root authority of the federation"""

    def __init__(self, entity_id: str, federation_id: str) -> None:
        self.entity_id = entity_id
        self.federation_id = federation_id
        super().__init__(
            f"{entity_id} is not an active root authority of federation {federation_id}"
        )


class DelegationExceedsAuthority(AuthorizationError):
    """
    Raised when a delegator tries to grant more than it was itself granted

    Delegation can only narrow authority, never widen it.
    """

    def __init__(self, delegator: str, property_name: str) -> None:
        self.delegator = delegator
        self.property_name = property_name
        super().__init__(
            f"{delegator} is not accredited to grant property {property_name} "
            "with the requested constraints"
        )


class NotAccreditationIssuer(AuthorizationError):
    """Raised when revoking an accreditation the caller did not issue"""

    def __init__(self, entity_id: str, accreditation_id: str, caller: str) -> None:
        self.entity_id = entity_id
        self.accreditation_id = accreditation_id
        self.caller = caller
        super().__init__(
            f"{caller} did not issue accreditation {accreditation_id} of {entity_id} "
            "and is not an active root authority"
        )


# Not-found errors


class NotFoundError(HierarchiesError):
    """Base class for lookups that came back empty"""

    pass


class FederationNotFound(NotFoundError):
    """Raised when federation does not exist"""

    def __init__(self, federation_id: str) -> None:
        self.federation_id = federation_id
        super().__init__(f"Federation {federation_id} not found")


class StatementNotInFederation(NotFoundError):
    """Raised when a grant names a property the federation does not (or no longer) define"""

    def __init__(
        self, property_name: str, federation_id: str, revoked: bool = False
    ) -> None:
        self.property_name = property_name
        self.federation_id = federation_id
        self.revoked = revoked
        detail = "is not live in" if revoked else "is not defined in"
        super().__init__(f"Property {property_name} {detail} federation {federation_id}")


class PropertyNotFound(NotFoundError):
    """Raised when revoking a property that was never added"""

    def __init__(self, property_name: str, federation_id: str) -> None:
        self.property_name = property_name
        self.federation_id = federation_id
        super().__init__(f"Property {property_name} not found in federation {federation_id}")


class AccreditationNotFound(NotFoundError):
    """Raised when an entity has no accreditation with the given id"""

    def __init__(self, entity_id: str, accreditation_id: str) -> None:
        self.entity_id = entity_id
        self.accreditation_id = accreditation_id
        super().__init__(f"Accreditation {accreditation_id} not found for {entity_id}")


# State-invariant errors


class InvariantViolation(HierarchiesError):
    """
    Raised when domain invariant would be violated

    Examples: a federation left without root authorities, two definitions
    sharing one property name.
    """

    pass


class LastAuthorityLockout(InvariantViolation):
    """Raised when revoking the only remaining root authority"""

    def __init__(self, entity_id: str, federation_id: str) -> None:
        self.entity_id = entity_id
        self.federation_id = federation_id
        super().__init__(
            f"Cannot revoke {entity_id}: it is the last root authority of "
            f"federation {federation_id}"
        )


class DuplicateProperty(InvariantViolation):
    """Raised when adding a property whose name is already defined"""

    def __init__(self, property_name: str, federation_id: str) -> None:
        self.property_name = property_name
        self.federation_id = federation_id
        super().__init__(
            f"Property {property_name} already exists in federation {federation_id}"
        )


class InvalidDefinition(InvariantViolation):
    """Raised when a property definition admits no value at all"""

    def __init__(self, property_name: str, reason: str = "") -> None:
        self.property_name = property_name
        self.reason = reason or (
            "allowed_values is empty, no shape is set and allow_any is false"
        )
        super().__init__(f"Invalid definition for {property_name}: {self.reason}")


# Already-in-state errors


class AlreadyInStateError(HierarchiesError):
    """Base class for transitions whose target state already holds"""

    pass


class AuthorityAlreadyActive(AlreadyInStateError):
    """Raised when adding or reinstating an entity that is already a root authority"""

    def __init__(self, entity_id: str, federation_id: str) -> None:
        self.entity_id = entity_id
        self.federation_id = federation_id
        super().__init__(
            f"{entity_id} is already an active root authority of federation {federation_id}"
        )


class AuthorityAlreadyRevoked(AlreadyInStateError):
    """Raised when revoking (or re-adding) an entity whose authority was revoked"""

    def __init__(self, entity_id: str, federation_id: str) -> None:
        self.entity_id = entity_id
        self.federation_id = federation_id
        super().__init__(
            f"{entity_id} is a revoked root authority of federation {federation_id} - "
            "reinstate it instead"
        )


class AuthorityNotRevoked(AlreadyInStateError):
    """Raised when reinstating an entity that was never revoked"""

    def __init__(self, entity_id: str, federation_id: str) -> None:
        self.entity_id = entity_id
        self.federation_id = federation_id
        super().__init__(
            f"{entity_id} is not a revoked root authority of federation {federation_id}"
        )


class PropertyAlreadyRevoked(AlreadyInStateError):
    """Raised when revoking a property that is no longer live"""

    def __init__(self, property_name: str, valid_until_ms: int) -> None:
        self.property_name = property_name
        self.valid_until_ms = valid_until_ms
        super().__init__(
            f"Property {property_name} was already revoked at {valid_until_ms}"
        )
