import smtplib
from dataclasses import replace
from unittest.mock import Mock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from apps.notifications.mail.channel import BLACKLISTED, EMAIL_NOT_CONFIGURED, EmailChannel
from apps.notifications.mail.suppression import is_permanent_failure
from apps.notifications.mail.transports import (
    SMTP_AUTH_FAILED,
    SMTP_BOUNCE,
    SMTP_ERROR,
    SESTransport,
    SMTPTransport,
    build_email_transport,
)
from apps.notifications.models import EmailBlacklist
from apps.tenants.services import EmailConfig

SES_CONFIG = EmailConfig(
    from_email="contato@igreja.org",
    ses_region="us-east-1",
    ses_access_key_id="AKIA",
    ses_secret_access_key="secret",
)
SMTP_CONFIG = EmailConfig(
    from_email="contato@igreja.org",
    smtp_host="smtp.igreja.org",
    smtp_user="contato",
    smtp_pass="secret",
)


def _transport(result):
    transport = Mock()
    transport.name = "fake"
    transport.send.return_value = result
    return transport


def _failure(code, error="falhou"):
    return {"success": False, "error": error, "error_code": code}


class TestTransportSelection:
    def test_ses_has_priority(self):
        config = replace(SES_CONFIG, smtp_host="smtp.igreja.org", smtp_user="contato", smtp_pass="secret")
        assert isinstance(build_email_transport(config), SESTransport)

    def test_smtp_when_no_ses(self):
        assert isinstance(build_email_transport(SMTP_CONFIG), SMTPTransport)

    def test_none_without_credentials(self):
        assert build_email_transport(EmailConfig()) is None


class TestSESTransport:
    def test_success(self):
        client = Mock()
        client.send_email.return_value = {"MessageId": "0100-abc"}

        result = SESTransport(SES_CONFIG, client=client).send("ana@example.com", "Assunto", "<p>Oi</p>", "Oi")

        assert result["success"] is True
        assert result["message_id"] == "0100-abc"
        kwargs = client.send_email.call_args.kwargs
        assert kwargs["Source"] == "contato@igreja.org"
        assert kwargs["Destination"] == {"ToAddresses": ["ana@example.com"]}
        assert kwargs["Message"]["Body"]["Text"]["Data"] == "Oi"

    def test_client_error_returns_provider_code(self):
        client = Mock()
        client.send_email.side_effect = ClientError(
            {"Error": {"Code": "MessageRejected", "Message": "Email address is not verified."}},
            "SendEmail",
        )

        result = SESTransport(SES_CONFIG, client=client).send("ana@example.com", "Assunto", "<p>Oi</p>")

        assert result == {
            "success": False,
            "error": "Email address is not verified.",
            "error_code": "MessageRejected",
        }

    def test_connection_error(self):
        client = Mock()
        client.send_email.side_effect = EndpointConnectionError(endpoint_url="https://email.us-east-1.amazonaws.com")

        result = SESTransport(SES_CONFIG, client=client).send("ana@example.com", "Assunto", "<p>Oi</p>")

        assert result["success"] is False
        assert result["error_code"] == "SES_ERROR"


class TestSMTPTransport:
    def _send_with(self, side_effect=None):
        connection = Mock()
        connection.send_messages.side_effect = side_effect
        connection.send_messages.return_value = 1
        with patch("apps.notifications.mail.transports.get_connection", return_value=connection):
            result = SMTPTransport(SMTP_CONFIG).send("ana@example.com", "Assunto", "<p>Oi</p>")
        return result, connection

    def test_success(self):
        result, connection = self._send_with()

        assert result["success"] is True
        message = connection.send_messages.call_args.args[0][0]
        assert message.to == ["ana@example.com"]
        assert message.body == "Oi"
        assert message.alternatives[0][1] == "text/html"

    def test_auth_failure(self):
        result, _ = self._send_with(smtplib.SMTPAuthenticationError(535, b"5.7.8 auth failed"))
        assert result["error_code"] == SMTP_AUTH_FAILED

    def test_permanent_recipient_refusal_is_bounce(self):
        error = smtplib.SMTPRecipientsRefused({"ana@example.com": (550, b"5.1.1 user unknown")})
        result, _ = self._send_with(error)
        assert result["error_code"] == SMTP_BOUNCE

    def test_temporary_recipient_refusal(self):
        error = smtplib.SMTPRecipientsRefused({"ana@example.com": (450, b"mailbox busy")})
        result, _ = self._send_with(error)
        assert result["error_code"] == SMTP_ERROR

    def test_network_error(self):
        result, _ = self._send_with(ConnectionRefusedError("refused"))
        assert result["error_code"] == SMTP_ERROR


class TestPermanentFailureCodes:
    @pytest.mark.parametrize(
        "code",
        ["MessageRejected", "MailFromDomainNotVerifiedException", "InvalidParameterValue",
         "AccountSendingPausedException", "SmtpBounce", "PermanentBounce", "Complaint"],
    )
    def test_permanent(self, code):
        assert is_permanent_failure(code)

    @pytest.mark.parametrize("code", ["", "SMTP_ERROR", "SMTP_AUTH_FAILED", "Throttling"])
    def test_not_permanent(self, code):
        assert not is_permanent_failure(code)


@pytest.mark.django_db
class TestEmailChannel:
    def test_success_does_not_touch_blacklist(self, company):
        transport = _transport({"success": True, "error": "", "error_code": ""})

        result = EmailChannel(company.id, transport).send("ana@example.com", "Assunto", "<p>Oi</p>")

        assert result["success"] is True
        assert not EmailBlacklist.objects.exists()

    def test_blacklisted_recipient_fails_fast(self, company):
        EmailBlacklist.objects.create(company=company, email="Ana@Example.com", reason=EmailBlacklist.Reason.BOUNCE)
        transport = _transport({"success": True})

        result = EmailChannel(company.id, transport).send("ANA@example.com", "Assunto", "<p>Oi</p>")

        assert result["success"] is False
        assert result["error_code"] == BLACKLISTED
        transport.send.assert_not_called()

    def test_blacklist_is_per_company(self, company, company2):
        EmailBlacklist.objects.create(company=company2, email="ana@example.com", reason=EmailBlacklist.Reason.BOUNCE)
        transport = _transport({"success": True})

        result = EmailChannel(company.id, transport).send("ana@example.com", "Assunto", "<p>Oi</p>")

        assert result["success"] is True

    def test_inactive_entry_does_not_block(self, company):
        EmailBlacklist.objects.create(
            company=company, email="ana@example.com", reason=EmailBlacklist.Reason.BOUNCE, is_active=False
        )
        transport = _transport({"success": True})

        assert EmailChannel(company.id, transport).send("ana@example.com", "Assunto", "<p>Oi</p>")["success"]

    def test_not_configured(self, company):
        result = EmailChannel(company.id, None).send("ana@example.com", "Assunto", "<p>Oi</p>")
        assert result["error_code"] == EMAIL_NOT_CONFIGURED

    def test_permanent_failure_suppresses_recipient(self, company):
        transport = _transport(_failure("MessageRejected", "Email address is not verified."))

        result = EmailChannel(company.id, transport).send("Ana@Example.com", "Assunto", "<p>Oi</p>")

        assert result["error_code"] == "MessageRejected"
        entry = EmailBlacklist.objects.get(company=company, email="ana@example.com")
        assert entry.reason == EmailBlacklist.Reason.ERROR
        assert entry.error_message == "Email address is not verified."
        assert entry.attempt_count == 1
        assert entry.is_active

    def test_repeated_failure_updates_existing_entry(self, company):
        EmailBlacklist.objects.create(
            company=company,
            email="ana@example.com",
            reason=EmailBlacklist.Reason.ERROR,
            error_code="MessageRejected",
            is_active=False,
        )
        transport = _transport(_failure("SmtpBounce", "5.1.1 user unknown"))

        EmailChannel(company.id, transport).send("ana@example.com", "Assunto", "<p>Oi</p>")

        entry = EmailBlacklist.objects.get(company=company, email="ana@example.com")
        assert entry.attempt_count == 2
        assert entry.error_code == "SmtpBounce"
        assert entry.reason == EmailBlacklist.Reason.BOUNCE
        assert entry.is_active
        assert EmailBlacklist.objects.count() == 1

    def test_complaint_reason(self, company):
        transport = _transport(_failure("Complaint"))
        EmailChannel(company.id, transport).send("ana@example.com", "Assunto", "<p>Oi</p>")
        assert EmailBlacklist.objects.get().reason == EmailBlacklist.Reason.COMPLAINT

    def test_auth_failure_never_suppresses(self, company):
        transport = _transport(_failure(SMTP_AUTH_FAILED))

        result = EmailChannel(company.id, transport).send("ana@example.com", "Assunto", "<p>Oi</p>")

        assert result["error_code"] == SMTP_AUTH_FAILED
        assert not EmailBlacklist.objects.exists()

    def test_transient_failure_does_not_suppress(self, company):
        transport = _transport(_failure(SMTP_ERROR))
        EmailChannel(company.id, transport).send("ana@example.com", "Assunto", "<p>Oi</p>")
        assert not EmailBlacklist.objects.exists()

    def test_for_company_builds_transport_from_settings(self, company):
        assert not EmailChannel.for_company(company.id).is_configured

        company.settings.smtp_host = "smtp.igreja.org"
        company.settings.smtp_user = "contato"
        company.settings.smtp_pass = "secret"
        company.settings.save()

        channel = EmailChannel.for_company(company.id)
        assert isinstance(channel.transport, SMTPTransport)
