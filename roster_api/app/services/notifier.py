"""
Outbound e-mail and SMS delivery.

``Notifier.send_email`` talks SMTP and ``Notifier.send_sms`` posts to a
Twilio-compatible REST endpoint with ``requests``.  Both are
best-effort: they return ``True`` on success and ``False`` on any
failure, which is logged.  Neither ever raises to the caller; the
state change that triggered the message has already been committed
when they run.  Both calls block, so the event bus runs them in a
worker thread.
"""

import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Optional

import requests

from roster_api.app.core.config import Settings, settings as default_settings
from roster_api.app.core.errors import ExternalDeliveryError

logger = logging.getLogger(__name__)


class Notifier:
    """E-mail (SMTP) and SMS (HTTP) sender."""

    def __init__(self, config: Optional[Settings] = None, session: Optional[requests.Session] = None):
        self.config = config or default_settings
        self.session = session or requests.Session()

    def send_email(self, to: str, subject: str, body: str) -> bool:
        """Send a plain-text e-mail.  Returns whether it was handed to the server."""
        try:
            self._deliver_email(to, subject, body)
        except ExternalDeliveryError as e:
            logger.warning("E-mail to %s not sent (%s): %s", to, subject, e.message)
            return False
        logger.info("E-mail sent to %s: %s", to, subject)
        return True

    def send_sms(self, to: str, message: str) -> bool:
        """Send a text message.  Returns whether the gateway accepted it."""
        try:
            self._deliver_sms(to, message)
        except ExternalDeliveryError as e:
            logger.warning("SMS to %s not sent: %s", to, e.message)
            return False
        logger.info("SMS sent to %s", to)
        return True

    def _deliver_email(self, to: str, subject: str, body: str) -> None:
        cfg = self.config
        if not cfg.smtp_host:
            raise ExternalDeliveryError("SMTP is not configured")
        msg = EmailMessage()
        msg["From"] = cfg.email_from
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(body)
        try:
            with smtplib.SMTP(cfg.smtp_host, cfg.smtp_port, timeout=10) as smtp:
                if cfg.smtp_use_tls:
                    smtp.starttls(context=ssl.create_default_context())
                if cfg.smtp_user:
                    smtp.login(cfg.smtp_user, cfg.smtp_password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise ExternalDeliveryError(f"SMTP error: {e}") from e

    def _deliver_sms(self, to: str, message: str) -> None:
        cfg = self.config
        if not (cfg.sms_account_sid and cfg.sms_auth_token and cfg.sms_from_number):
            raise ExternalDeliveryError("SMS gateway is not configured")
        url = f"{cfg.sms_api_base.rstrip('/')}/Accounts/{cfg.sms_account_sid}/Messages.json"
        try:
            response = self.session.post(
                url,
                data={"To": to, "From": cfg.sms_from_number, "Body": message},
                auth=(cfg.sms_account_sid, cfg.sms_auth_token),
                timeout=cfg.sms_timeout_seconds,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise ExternalDeliveryError(f"SMS gateway error: {e}") from e
