"""Mail dispatcher protocol.

The auth service only knows how to ask for a verification or reset mail;
link building, templates and transport are the dispatcher's concern.
Implementations:

- SmtpMailDispatcher: sends through an SMTP relay
- ConsoleMailDispatcher: prints the link for local development
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class MailDispatcher(Protocol):
    """Protocol for transactional auth mail."""

    async def send_verification_email(self, email: str, token: str) -> None:
        """Send the email verification link.

        Args:
            email: Recipient address.
            token: Plaintext verification secret.

        Raises:
            MailDispatchError: If the mail could not be sent.
        """
        ...

    async def send_password_reset_email(self, email: str, token: str) -> None:
        """Send the password reset link.

        Args:
            email: Recipient address.
            token: Plaintext reset secret.

        Raises:
            MailDispatchError: If the mail could not be sent.
        """
        ...
