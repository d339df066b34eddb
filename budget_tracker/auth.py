"""
Shared Password Gate

DESIGN DECISION: There are no user accounts. A single shared password
(APP_PASSWORD) protects every write. Reads are open.

- Production without a password is a configuration error
- Development without a password lets everything through
"""

import hmac
from typing import Optional

from budget_tracker.config import AppSettings, ConfigurationError, get_settings


class AuthenticationError(Exception):
    """Supplied password is missing or wrong."""
    pass


class PasswordGate:
    """Compares a supplied password with the configured one."""

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    @property
    def is_enabled(self) -> bool:
        return bool(self._settings.app_password)

    def verify(self, password: Optional[str]) -> bool:
        """
        Check a password.

        Raises:
            ConfigurationError: No password configured in production
        """
        expected = self._settings.app_password
        if not expected:
            if self._settings.is_production:
                raise ConfigurationError(
                    "Password protection is not configured. "
                    "Please set APP_PASSWORD environment variable."
                )
            return True

        if not password:
            return False
        return hmac.compare_digest(password.encode("utf-8"), expected.encode("utf-8"))

    def require(self, password: Optional[str]) -> None:
        """Raise AuthenticationError unless the password checks out."""
        if not self.verify(password):
            raise AuthenticationError("Unauthorized")
