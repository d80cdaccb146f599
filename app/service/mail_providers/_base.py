"""Base class for mail service providers.

A provider delivers one already-rendered message. It raises on failure so the
caller can report the delivery as failed.
"""

import abc
from typing import Any


class MailDeliveryError(Exception):
    """Raised by a provider when a message could not be handed off."""


class MailServiceProvider(abc.ABC):
    """Abstract base class for mail service providers."""

    def __init__(self, **kwargs: Any) -> None:
        pass

    async def init(self) -> None:
        """Optional async initialization hook."""
        pass

    @abc.abstractmethod
    async def send_email(
        self,
        to_email: str,
        subject: str,
        content: str,
        html_content: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, str]:
        """Send an email.

        Args:
            to_email: Recipient email address.
            subject: Email subject.
            content: Plain text email content.
            html_content: HTML email content (optional).
            metadata: Additional metadata (optional).

        Returns:
            Dictionary containing at least an 'id' key with the message ID.

        Raises:
            MailDeliveryError: If the message could not be sent.
        """
        raise NotImplementedError
