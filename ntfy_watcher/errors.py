"""
Exception hierarchy for ntfy-watcher.

Startup configuration errors and persistence errors are fatal; every other
error is logged by the poll loop and retried on the next cycle.
"""


class WatcherError(Exception):
    """Base class for all ntfy-watcher errors."""


class ConfigError(WatcherError):
    """Base class for configuration problems detected at startup."""


class ConfigReadError(ConfigError):
    """Raised when the configuration file is missing or unreadable."""


class ConfigParseError(ConfigError):
    """Raised when the configuration file does not match the expected schema."""


class DurationParseError(ConfigError):
    """Raised when a duration string such as ``"1h30m"`` is malformed."""


class PersistenceError(WatcherError):
    """Raised when the last-seen id cannot be written back to the config file."""


class FetchError(WatcherError):
    """Raised when the feed could not be retrieved or decoded."""


class NetworkError(FetchError):
    """Raised on transport failures and non-2xx responses while fetching."""


class DecodeError(FetchError):
    """Raised when the feed body is not a well-formed feed document."""


class EmptyFeedError(WatcherError):
    """Raised when the feed contains no items."""


class NotificationDeliveryError(WatcherError):
    """
    Raised when a notification could not be delivered to one destination.

    Attributes
    ----------
    endpoint : str
        Destination endpoint the delivery was attempted against.
    status : int | None
        HTTP status returned by the endpoint, if a response was received.
    """

    def __init__(self, endpoint: str, message: str, status: int | None = None):
        super().__init__(message)
        self.endpoint = endpoint
        self.status = status
