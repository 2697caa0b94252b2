"""
Protocol definition for notification backends.

Defines the common interface that all notifiers must implement.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class Notifier(Protocol):
    """
    Protocol defining the interface for notification backends.

    The update checker only depends on this interface, so tests and
    alternative backends can be substituted for the ntfy client.
    """

    async def send(self, message: str, endpoint: str, token: str | None = None) -> None:
        """
        Deliver a message to a single destination.

        Parameters
        ----------
        message : str
            Plain text message body.
        endpoint : str
            Destination URL.
        token : str | None
            Optional bearer token for the destination.

        Raises
        ------
        NotificationDeliveryError
            If the message could not be delivered.
        """
        ...

    async def close(self) -> None:
        """
        Close the notifier and release any resources.

        This method should be called when shutting down the application
        to cleanly close connections and free resources.
        """
        ...
