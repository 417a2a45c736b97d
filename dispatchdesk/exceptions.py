"""
Error taxonomy for the dispatch order engine.

- DispatchValidationError: user-facing rule violations, always the full list.
- InvariantViolation: internal consistency failure; the triggering write is aborted.
- ExternalFailure: store/transport error, original cause chained.
"""
from typing import Iterable, List, Optional


class DispatchDeskError(Exception):
    """Base class for all engine errors."""


class DispatchValidationError(DispatchDeskError):
    """One or more named rule violations, surfaced together."""

    def __init__(self, errors: Iterable[str], message: str = "Validation failed"):
        self.errors: List[str] = list(errors)
        self.message = message
        super().__init__(f"{message}: {'; '.join(self.errors)}")


class InvariantViolation(DispatchDeskError):
    """Consistency failure that must block the write instead of being clamped."""

    def __init__(self, message: str, details: Optional[List[str]] = None):
        self.message = message
        self.details: List[str] = list(details or [])
        super().__init__(message if not self.details else f"{message}: {'; '.join(self.details)}")


class InvalidTransition(DispatchDeskError):
    """Requested action is not legal from the order's current status."""

    def __init__(self, current_status: str, action: str):
        self.current_status = current_status
        self.action = action
        super().__init__(f"Cannot {action.replace('_', ' ')} a dispatch order in status '{current_status}'")


class PermissionDenied(DispatchDeskError):
    """Caller's role may not perform the action."""


class OrderNotFound(DispatchDeskError):
    """Dispatch order does not exist."""


class PartyNotFound(DispatchDeskError):
    """Supplier or logistics company does not exist."""


class ExternalFailure(DispatchDeskError):
    """Order/ledger store failure. The original exception is kept as __cause__."""


class PartialPaymentFailure(ExternalFailure):
    """A later payment sub-submission failed after earlier ones were committed."""

    def __init__(self, message: str, committed: list, failed_method: str):
        self.committed = committed
        self.failed_method = failed_method
        super().__init__(message)
