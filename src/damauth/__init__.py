"""damauth - authentication, session and RBAC core for the DAM platform."""

__version__ = "0.1.0"
