from __future__ import annotations

from enum import Enum


class EnrollmentStatus(str, Enum):
    """Lifecycle of a student's enrollment request."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"


class PermissionState(str, Enum):
    """Location permission as reported by the device."""

    GRANTED = "granted"
    PROMPT = "prompt"
    DENIED = "denied"


class GeoErrorCode(int, Enum):
    """Error categories of the device location API."""

    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3
