"""Outbound email over SMTP"""

import smtplib
import logging
from email.message import EmailMessage

logger = logging.getLogger(__name__)


class Mailer:
    def __init__(self, config):
        self.host = config.get('SMTP_HOST')
        self.port = int(config.get('SMTP_PORT') or 587)
        self.username = config.get('SMTP_USERNAME')
        self.password = config.get('SMTP_PASSWORD')
        self.use_tls = bool(config.get('SMTP_USE_TLS'))
        self.use_ssl = bool(config.get('SMTP_USE_SSL'))
        self.sender = config.get('MAIL_FROM') or self.username
        self.notify_email = config.get('NOTIFY_EMAIL')

    @property
    def enabled(self):
        return bool(self.host and self.sender)

    def send(self, recipient, subject, body, reply_to=None):
        """Send a plain-text email; returns False instead of raising"""
        if not self.enabled:
            logger.info(f"[EMAIL] SMTP not configured, skipping '{subject}' to {recipient}")
            return False
        if not recipient:
            logger.warning(f"[EMAIL] No recipient for '{subject}'")
            return False

        message = EmailMessage()
        message['Subject'] = subject
        message['From'] = self.sender
        message['To'] = recipient
        if reply_to:
            message['Reply-To'] = reply_to
        message.set_content(body)

        try:
            if self.use_ssl:
                with smtplib.SMTP_SSL(self.host, self.port, timeout=20) as smtp:
                    if self.username:
                        smtp.login(self.username, self.password)
                    smtp.send_message(message)
            else:
                with smtplib.SMTP(self.host, self.port, timeout=20) as smtp:
                    if self.use_tls:
                        smtp.starttls()
                    if self.username:
                        smtp.login(self.username, self.password)
                    smtp.send_message(message)
            logger.info(f"[EMAIL] Message sent to {recipient}")
            return True
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"[EMAIL] SMTP authentication failed: {e}")
        except smtplib.SMTPException as e:
            logger.error(f"[EMAIL] SMTP error: {e}")
        except OSError as e:
            logger.error(f"[EMAIL] Connection error: {e}")
        return False

    def notify_new_message(self, message):
        """Forward a contact form submission to the site owner"""
        lines = [
            f"Name: {message.get('name')}",
            f"Email: {message.get('email')}",
        ]
        if message.get('company'):
            lines.append(f"Company: {message['company']}")
        if message.get('projectType'):
            lines.append(f"Project type: {message['projectType']}")
        lines.extend(['', message.get('message', '')])

        return self.send(
            self.notify_email,
            f"New portfolio message from {message.get('name')}",
            '\n'.join(lines),
            reply_to=message.get('email'),
        )

    def send_password_reset(self, recipient, link, ttl_minutes):
        body = (
            f"Use this link to reset your portfolio admin password:\n\n{link}\n\n"
            f"The link expires in {ttl_minutes} minutes. If you did not ask for it, ignore this email."
        )
        return self.send(recipient, 'Password reset', body)
