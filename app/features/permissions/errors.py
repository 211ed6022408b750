"""
Authorization error taxonomy.
"""
import enum
from typing import Any


class DenyKind(str, enum.Enum):
    FEATURE_DENIED = "FEATURE_DENIED"
    SCOPE_DENIED = "SCOPE_DENIED"
    UNKNOWN_SCOPE = "UNKNOWN_SCOPE"
    UNAUTHENTICATED_CALLER = "UNAUTHENTICATED_CALLER"


class UnknownFeature(LookupError):
    """A policy or request names a feature that is not in the catalog."""

    def __init__(self, name: Any):
        super().__init__(f"Unknown feature: {name!r}")
        self.name = name


class AuthorizationError(Exception):
    """
    Raised when a protected operation is called without the required grants.

    The protected operation has not run when this is raised.
    """

    def __init__(self, kind: DenyKind, subject: Any = None):
        self.kind = kind
        self.subject = subject
        super().__init__(f"{kind.value}: {subject}" if subject is not None else kind.value)
