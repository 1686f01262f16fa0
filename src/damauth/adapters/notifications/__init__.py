"""Mail dispatchers for verification and password reset mail."""

from damauth.adapters.notifications.console import ConsoleMailDispatcher
from damauth.adapters.notifications.email import EmailConfig, SmtpMailDispatcher

__all__ = ["ConsoleMailDispatcher", "EmailConfig", "SmtpMailDispatcher"]
