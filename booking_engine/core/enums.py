# booking_engine/core/enums.py
"""
Core enums for the booking engine.

Role names are supplied by the external auth layer together with the
actor id; the engine only uses them to authorize lifecycle transitions.
"""

from enum import Enum


class RoleName(str, Enum):
    """Roles an actor can hold when calling the engine."""

    ADMIN = "admin"
    PROVIDER = "provider"
    CLIENT = "client"
    SYSTEM = "system"


class ParticipantRole(str, Enum):
    """Side of a booking a history query is made from."""

    PROVIDER = "provider"
    CLIENT = "client"
