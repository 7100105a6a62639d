"""
ID generation using UUIDv7 (time-ordered UUIDs)

Federations, accreditations, capabilities and events all get sortable
identifiers with an embedded millisecond timestamp, so the audit log of a
federation reads in creation order.
"""

import secrets
import time
from typing import Protocol


class IdFactory(Protocol):
    """Protocol for ID generation strategies"""

    def generate(self) -> str:
        """Generate a new unique ID"""
        ...


def generate_id() -> str:
    """
    Generate a UUIDv7-like identifier (time-ordered UUID)

    Layout: 48 bits of Unix milliseconds, version nibble 7, 12 random bits,
    variant bits 10, 62 random bits.

    Returns:
        Sortable UUID string (e.g., "01908e9a-3b87-7000-8000-123456789abc")
    """
    timestamp_48 = int(time.time() * 1000) & 0xFFFFFFFFFFFF
    rand_a = secrets.randbits(12)
    rand_b = secrets.randbits(62)

    time_high = (timestamp_48 >> 16) & 0xFFFFFFFF
    time_low = timestamp_48 & 0xFFFF
    version_and_rand_a = 0x7000 | rand_a
    variant_and_rand_b = 0x8000 | ((rand_b >> 48) & 0x3FFF)
    node = rand_b & 0xFFFFFFFFFFFF

    return (
        f"{time_high:08x}-{time_low:04x}-{version_and_rand_a:04x}-"
        f"{variant_and_rand_b:04x}-{node:012x}"
    )


class DefaultIdFactory:
    """Default ID factory using UUIDv7-like generation"""

    def generate(self) -> str:
        return generate_id()


default_id_factory = DefaultIdFactory()
