from typing import Optional


class DeskflowError(Exception):
    """Base class for engine errors."""


class ValidationError(DeskflowError):
    """User-correctable input. The step is re-prompted and the session survives."""

    def __init__(self, message: str, slot: Optional[str] = None):
        self.message = message
        self.slot = slot
        super().__init__(message)


class PermissionDenied(DeskflowError, PermissionError):
    """Role check failed before a session was created."""

    def __init__(self, domain: str, role: Optional[str]):
        self.domain = domain
        self.role = role
        super().__init__(f"Role {role or 'none'} may not start {domain}")


class ConflictError(DeskflowError):
    """Store-reported business-rule clash (overlap, uniqueness, blocked)."""

    def __init__(self, message: str, record: Optional[dict] = None, reason: str = "conflict"):
        self.message = message
        self.record = record
        self.reason = reason
        super().__init__(message)


class ProviderError(DeskflowError):
    """Transient dependency failure: AI, network or spreadsheet."""


class ProviderUnavailable(ProviderError):
    """Every configured generative provider failed."""
