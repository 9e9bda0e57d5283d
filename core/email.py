"""
core/email.py -- Outbound email collaborator.

Warden does not ship a mail transport. EmailService renders the reset and
verification messages and hands them to deliver(), which writes them to the
"warden.email" logger. Deployments that need real delivery subclass
EmailService and override deliver(); routes only ever call the two send_*
methods.

Sends are fire-and-forget from the caller's point of view: the auth routes do
not catch delivery errors, so a failing transport surfaces as a 500.
"""

from __future__ import annotations

import logging
from urllib.parse import urlencode

from core.config import Settings, get_settings

logger = logging.getLogger("warden.email")

_RESET_PASSWORD_TEMPLATE = """Dear user,

To reset your password, open this link:
{link}

If you did not request a password reset, ignore this email.
"""

_VERIFY_EMAIL_TEMPLATE = """Dear user,

To verify your email address, open this link:
{link}

If you did not create an account, ignore this email.
"""


class EmailService:
    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()

    def _link(self, path: str, token: str) -> str:
        return f"{self.settings.frontend_url.rstrip('/')}{path}?{urlencode({'token': token})}"

    def send_reset_password_email(self, to: str, token: str) -> None:
        link = self._link("/reset-password", token)
        self.deliver(to, "Reset password", _RESET_PASSWORD_TEMPLATE.format(link=link))

    def send_verification_email(self, to: str, token: str) -> None:
        link = self._link("/verify-email", token)
        self.deliver(to, "Email verification", _VERIFY_EMAIL_TEMPLATE.format(link=link))

    def deliver(self, to: str, subject: str, text: str) -> None:
        """Log the message instead of sending it. Override for a real transport."""
        logger.info("Email to %s: %s", to, subject)
        logger.debug("Email body:\n%s", text)
