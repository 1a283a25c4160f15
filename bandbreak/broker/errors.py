"""Platform error types."""


class PlatformError(Exception):
    """Base class for failures reported by the trading platform."""


class SessionTimeUnavailable(PlatformError):
    """The platform could not report time until session close.

    Happens near week boundaries when no session is scheduled.
    """


class PositionNotFound(PlatformError):
    """A close was requested for a position the platform does not hold."""
