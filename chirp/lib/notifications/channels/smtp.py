from __future__ import annotations

import smtplib
from email.message import EmailMessage as MimeMessage
from email.utils import make_msgid

from ..models import EmailMessage, Recipient
from .base import NotificationSink, SendError


class SmtpSink(NotificationSink):
    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._timeout = timeout

    def send(self, recipient: Recipient, message: EmailMessage) -> str:
        mime = MimeMessage()
        mime["From"] = message.sender
        mime["To"] = recipient.email
        mime["Subject"] = message.subject
        mime["Message-ID"] = make_msgid(domain=self._host)
        mime.set_content(message.text)

        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
                if self._use_tls:
                    server.starttls()
                if self._username:
                    server.login(self._username, self._password)
                server.send_message(mime)
        except (smtplib.SMTPException, OSError) as exc:
            raise SendError(f"SMTP delivery to {recipient.email} failed: {exc}") from exc
        return mime["Message-ID"]
