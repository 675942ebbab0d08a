"""
Error taxonomy shared by every service layer.
"""


class SocialEatsError(Exception):
    """Base class for recoverable domain errors."""

    def __init__(self, message: str, reason: str = None):
        super().__init__(message)
        self.message = message
        self.reason = reason


class ValidationError(SocialEatsError):
    """Input outside the operation's contract (bad rating, unknown event...)."""


class IneligibleOperationError(SocialEatsError):
    """A precondition failed (event full, organizer leaving, not the owner...)."""


class StoreUnavailableError(SocialEatsError):
    """The relational or document store could not serve the request."""


class NotFoundError(ValidationError):
    """The referenced entity does not exist in the store."""

    def __init__(self, message: str, reason: str = 'NOT_FOUND'):
        super().__init__(message, reason)
