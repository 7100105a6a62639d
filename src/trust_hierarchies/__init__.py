"""
Trust Hierarchies - Event-sourced trust accreditation engine

Root authorities define which properties exist, delegate the right to
accredit and to attest them, and any reader can check whether an entity
may assert a claim - from the authoritative event log or a cached snapshot,
with identical answers.

Fun fact: Every grant in a hierarchy can be traced back to a root authority,
the same way every TLS certificate chains back to a root CA.
"""

from trust_hierarchies.hierarchies import Hierarchies

__version__ = "0.1.0"
__all__ = ["Hierarchies", "__version__"]
