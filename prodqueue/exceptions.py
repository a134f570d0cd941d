"""Error types raised by the scheduling core and the order queue service."""


class ConfigurationError(ValueError):
    """Production settings that the calendar walker cannot run against."""


class ValidationError(ValueError):
    """Request data rejected before any calculation or write happens."""


class OrderNotFoundError(LookupError):
    """Order id unknown for the owner, or not in the active queue when it must be."""


class InvalidTransitionError(ValueError):
    """Requested status change is not allowed from the order's current status."""


class OrderOperationInProgress(RuntimeError):
    """Another mutation on the same order id has not finished yet."""


class StoreError(RuntimeError):
    """The database round trip failed; the session has been rolled back."""
