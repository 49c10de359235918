from __future__ import annotations

import smtplib

import pytest

from chirp.lib.notifications import EmailMessage, Recipient, SendError
from chirp.lib.notifications.channels.smtp import SmtpSink


MESSAGE = EmailMessage(sender="ChirpChirp <daily@example.org>", subject="Hello", text="Body")


class FakeSMTP:
    instances: list["FakeSMTP"] = []
    fail_on_send = False

    def __init__(self, host, port, timeout=None) -> None:
        self.host = host
        self.port = port
        self.calls: list[tuple] = []
        self.sent = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.calls.append(("quit",))
        return False

    def starttls(self):
        self.calls.append(("starttls",))

    def login(self, username, password):
        self.calls.append(("login", username, password))

    def send_message(self, message):
        if FakeSMTP.fail_on_send:
            raise smtplib.SMTPRecipientsRefused({"ada@example.org": (550, b"no such user")})
        self.calls.append(("send_message",))
        self.sent.append(message)


@pytest.fixture(autouse=True)
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    FakeSMTP.fail_on_send = False
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    return FakeSMTP


def test_send_uses_starttls_and_login():
    sink = SmtpSink("mail.example.org", 2525, username="chirp", password="secret")

    message_id = sink.send(Recipient(email="ada@example.org"), MESSAGE)

    server = FakeSMTP.instances[0]
    assert (server.host, server.port) == ("mail.example.org", 2525)
    assert server.calls == [("starttls",), ("login", "chirp", "secret"), ("send_message",), ("quit",)]
    mime = server.sent[0]
    assert mime["To"] == "ada@example.org"
    assert mime["Subject"] == "Hello"
    assert mime.get_content().strip() == "Body"
    assert message_id == mime["Message-ID"]


def test_send_without_tls_or_credentials_skips_handshake():
    SmtpSink("mail.example.org", use_tls=False).send(Recipient(email="ada@example.org"), MESSAGE)
    assert FakeSMTP.instances[0].calls == [("send_message",), ("quit",)]


def test_smtp_errors_become_send_errors():
    FakeSMTP.fail_on_send = True
    with pytest.raises(SendError) as excinfo:
        SmtpSink("mail.example.org").send(Recipient(email="ada@example.org"), MESSAGE)
    assert "ada@example.org" in str(excinfo.value)
    assert excinfo.value.retryable is False
