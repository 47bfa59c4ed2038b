import smtplib

import pytest

from esahayak.core.config import settings
from esahayak.services import mailer


class FakeSMTP:
    sent = []
    refuse = {}
    fail_with = None

    def __init__(self, host, port, timeout=None):
        self.host, self.port = host, port

    def __enter__(self):
        if FakeSMTP.fail_with:
            raise FakeSMTP.fail_with
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        pass

    def sendmail(self, from_addr, to_addrs, msg):
        FakeSMTP.sent.append((from_addr, to_addrs, msg))
        return dict(FakeSMTP.refuse)


@pytest.fixture
def smtp(monkeypatch):
    FakeSMTP.sent, FakeSMTP.refuse, FakeSMTP.fail_with = [], {}, None
    monkeypatch.setattr(settings, "smtp_server", "smtp.test.local")
    monkeypatch.setattr(settings, "mail_from", "noreply@esahayak.in")
    monkeypatch.setattr(mailer.smtplib, "SMTP", FakeSMTP)
    return FakeSMTP


def test_unconfigured_smtp_reports_failure(monkeypatch):
    monkeypatch.setattr(settings, "smtp_server", "")
    result = mailer.send_email("a@example.com", "Hi", "<p>Hi</p>")
    assert not result.ok
    assert result.rejected == ["a@example.com"]


def test_send_success(smtp):
    result = mailer.send_email("a@example.com", "Sign in", "<p>link</p>", text="link")
    assert result.ok
    assert result.rejected == []
    from_addr, to_addrs, msg = smtp.sent[0]
    assert from_addr == "noreply@esahayak.in"
    assert to_addrs == ["a@example.com"]
    assert "Subject: Sign in" in msg


def test_partially_refused_recipient(smtp):
    smtp.refuse = {"a@example.com": (550, b"no such user")}
    result = mailer.send_email("a@example.com", "Sign in", "<p>link</p>")
    assert not result.ok
    assert result.rejected == ["a@example.com"]


def test_connection_error_never_raises(smtp):
    smtp.fail_with = smtplib.SMTPConnectError(421, "down")
    result = mailer.send_email("a@example.com", "Sign in", "<p>link</p>")
    assert not result.ok
    assert "down" in result.error


def test_recipients_refused(smtp):
    smtp.fail_with = smtplib.SMTPRecipientsRefused({"a@example.com": (550, b"nope")})
    result = mailer.send_email("a@example.com", "Sign in", "<p>link</p>")
    assert result.rejected == ["a@example.com"]
