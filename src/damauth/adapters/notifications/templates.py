"""Subject and body templates for auth mail."""

from dataclasses import dataclass


@dataclass(frozen=True)
class RenderedEmail:
    """A rendered message ready for a transport."""

    subject: str
    body_html: str
    body_text: str


def _button_page(title: str, intro: str, url: str, label: str, expiry: str) -> str:
    return f"""
        <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
            <div style="max-width: 600px; margin: auto; padding: 40px;">
                <h2 style="color: #1a1a2e;">{title}</h2>
                <p>{intro}</p>
                <p style="margin: 30px 0;">
                    <a href="{url}" style="padding: 12px 24px; background: #1a1a2e;
                    color: white; text-decoration: none; border-radius: 6px;">
                        {label}
                    </a>
                </p>
                <p style="font-size: 14px; color: #888;">{expiry}</p>
            </div>
        </body>
        </html>
        """


def verification_email(verification_url: str) -> RenderedEmail:
    """Render the email verification message."""
    expiry = "Link expires in 24 hours."
    return RenderedEmail(
        subject="Verify Your Email Address",
        body_html=_button_page(
            "Verify Your Email",
            "Click below to verify your account:",
            verification_url,
            "Verify Email",
            expiry,
        ),
        body_text=f"""
Verify Your Email

Open this link to verify your account:
{verification_url}

{expiry}
        """,
    )


def password_reset_email(reset_url: str) -> RenderedEmail:
    """Render the password reset message."""
    expiry = "Link expires in 30 minutes."
    return RenderedEmail(
        subject="Reset Your Password",
        body_html=_button_page(
            "Reset Your Password",
            "Click below to reset your password:",
            reset_url,
            "Reset Password",
            expiry,
        ),
        body_text=f"""
Reset Your Password

Open this link to reset your password:
{reset_url}

{expiry}

If you did not request a password reset, you can ignore this email.
        """,
    )
