"""
Event envelope for the federation streams

A federation is nothing but the fold of its event stream. Handlers wrap a
typed payload model in an Event, the event store persists the envelope as
JSON, and projections unwrap the payload again with payload_as().

Fun fact: the event_type of every stored event is simply the class name of
its payload model, so the log doubles as a readable audit trail.
"""

from datetime import datetime
from typing import TypeVar

from pydantic import BaseModel, Field

P = TypeVar("P", bound=BaseModel)


class Event(BaseModel):
    """
    One recorded change to a federation

    (stream_id, version) is unique, which is what gives optimistic locking;
    command_id ties every event of one command together for idempotent
    retries.
    """

    event_id: str
    stream_id: str = Field(..., description="Federation id")
    stream_type: str
    event_type: str = Field(..., description="Name of the payload model")
    occurred_at: datetime
    actor_id: str | None = Field(default=None, description="Caller of the mutation")
    command_id: str
    payload: dict = Field(default_factory=dict)
    version: int = Field(..., ge=1, description="Stream version after this event")

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {
                    "event_id": "01908e9a-3b87-7000-8000-123456789abc",
                    "stream_id": "01908e9a-3b80-7000-8000-0000000000aa",
                    "stream_type": "federation",
                    "event_type": "RootAuthorityAdded",
                    "occurred_at": "2025-01-15T10:30:00Z",
                    "actor_id": "root-alice",
                    "command_id": "cmd-123",
                    "payload": {"federation_id": "01908e9a-...", "entity_id": "root-bob"},
                    "version": 2,
                }
            ]
        },
    }

    def is_a(self, payload_type: type[BaseModel]) -> bool:
        return self.event_type == payload_type.__name__

    def payload_as(self, payload_type: type[P]) -> P:
        """
        Parse the payload back into its model

        Raises:
            ValueError: If the event carries a different payload type
        """
        if not self.is_a(payload_type):
            raise ValueError(
                f"Event {self.event_id} is {self.event_type}, not {payload_type.__name__}"
            )
        return payload_type.model_validate(self.payload)


def create_event(
    *,
    event_id: str,
    stream_id: str,
    stream_type: str,
    occurred_at: datetime,
    command_id: str,
    version: int,
    payload: BaseModel,
    actor_id: str | None = None,
) -> Event:
    """Wrap a payload model; its class name becomes the event_type"""
    return Event(
        event_id=event_id,
        stream_id=stream_id,
        stream_type=stream_type,
        event_type=type(payload).__name__,
        occurred_at=occurred_at,
        actor_id=actor_id,
        command_id=command_id,
        payload=payload.model_dump(mode="json"),
        version=version,
    )
