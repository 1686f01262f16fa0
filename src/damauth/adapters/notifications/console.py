"""Console mail dispatcher for demo/dev mode.

Prints verification and reset links to stdout so developers can click them
directly, without an SMTP relay.
"""

from urllib.parse import urlencode

import structlog

logger = structlog.get_logger()


class ConsoleMailDispatcher:
    """Prints auth links instead of delivering them."""

    def __init__(self, frontend_url: str, api_base_url: str) -> None:
        """Initialize the dispatcher.

        Args:
            frontend_url: Base URL of the web app, hosting the verify page.
            api_base_url: Base URL of the auth API, hosting password reset.
        """
        self._frontend_url = frontend_url.rstrip("/")
        self._api_base_url = api_base_url.rstrip("/")

    async def send_verification_email(self, email: str, token: str) -> None:
        """Print the email verification link."""
        url = f"{self._frontend_url}/verify-email?{urlencode({'token': token})}"
        self._print_link("EMAIL VERIFICATION", email, url)

    async def send_password_reset_email(self, email: str, token: str) -> None:
        """Print the password reset link."""
        url = f"{self._api_base_url}/reset-password?{urlencode({'token': token})}"
        self._print_link("PASSWORD RESET", email, url)

    def _print_link(self, label: str, email: str, url: str) -> None:
        print("\n" + "=" * 70, flush=True)
        print(f"[{label}] Link generated for demo/dev mode", flush=True)
        print(f"  Email: {email}", flush=True)
        print(f"  Link:  {url}", flush=True)
        print("=" * 70 + "\n", flush=True)
        logger.info("console_mail_printed", kind=label.lower().replace(" ", "_"), to=email)
