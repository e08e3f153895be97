import json
from unittest.mock import patch

import pytest
import requests
from django.urls import reverse
from sns_message_validator import SignatureVerificationFailureException

from apps.notifications.models import EmailBlacklist, NotificationLog

VALIDATE = "apps.notifications.webhooks.SNSMessageValidator.validate_message"


def _notification(message: dict) -> dict:
    return {
        "Type": "Notification",
        "MessageId": "msg-1",
        "TopicArn": "arn:aws:sns:us-east-1:123456789012:ses-events",
        "Message": json.dumps(message),
        "Timestamp": "2026-10-19T12:00:00.000Z",
        "SignatureVersion": "1",
        "Signature": "assinatura",
        "SigningCertURL": "https://sns.us-east-1.amazonaws.com/cert.pem",
    }


def _bounce(bounce_type="Permanent", sub_type="General", email="Joao.Silva@example.com"):
    return _notification(
        {
            "notificationType": "Bounce",
            "bounce": {
                "bounceType": bounce_type,
                "bounceSubType": sub_type,
                "bouncedRecipients": [
                    {"emailAddress": email, "diagnosticCode": "smtp; 550 5.1.1 user unknown"}
                ],
                "timestamp": "2026-10-19T12:00:00.000Z",
            },
            "mail": {"messageId": "ses-1", "destination": [email]},
        }
    )


def _complaint(email="maria@example.com", feedback_type="abuse"):
    return _notification(
        {
            "notificationType": "Complaint",
            "complaint": {
                "complainedRecipients": [{"emailAddress": email}],
                "complaintFeedbackType": feedback_type,
                "timestamp": "2026-10-19T12:00:00.000Z",
            },
            "mail": {"messageId": "ses-2", "destination": [email]},
        }
    )


@pytest.fixture
def post(client, company):
    url = reverse("notifications:sns_webhook", args=[company.slug])

    def _post(payload, target=url):
        return client.post(target, data=json.dumps(payload), content_type="application/json")

    return _post


@pytest.mark.django_db
@patch(VALIDATE, return_value=None)
class TestSNSWebhook:
    def test_permanent_bounce_blacklists_recipient(self, validate, post, company):
        response = post(_bounce())

        assert response.status_code == 200
        assert response.json() == {"message": "Processed"}
        entry = EmailBlacklist.objects.get(company=company, email="joao.silva@example.com")
        assert entry.reason == EmailBlacklist.Reason.BOUNCE
        assert entry.error_code == "General"
        assert entry.attempt_count == 1
        assert entry.is_active is True

        log = NotificationLog.objects.get(company=company)
        assert log.notification_type == "sns_bounce"
        assert log.status == NotificationLog.Status.FAILED
        assert log.subject == "Bounce: Permanent"
        assert log.recipient == "joao.silva@example.com"
        assert log.user_id is None

    def test_repeated_bounce_increments_and_reactivates(self, validate, post, company):
        EmailBlacklist.objects.create(
            company=company,
            email="joao.silva@example.com",
            reason=EmailBlacklist.Reason.BOUNCE,
            is_active=False,
        )

        post(_bounce())

        entry = EmailBlacklist.objects.get(company=company, email="joao.silva@example.com")
        assert entry.attempt_count == 2
        assert entry.is_active is True

    def test_transient_bounce_is_only_logged(self, validate, post, company):
        response = post(_bounce(bounce_type="Transient", sub_type="MailboxFull"))

        assert response.status_code == 200
        assert not EmailBlacklist.objects.exists()
        log = NotificationLog.objects.get(company=company)
        assert log.notification_type == "sns_bounce"
        assert log.subject == "Bounce: Transient"
        assert log.error_code == "MailboxFull"

    def test_complaint_blacklists_recipient(self, validate, post, company):
        response = post(_complaint())

        assert response.status_code == 200
        entry = EmailBlacklist.objects.get(company=company, email="maria@example.com")
        assert entry.reason == EmailBlacklist.Reason.COMPLAINT
        assert entry.error_code == "abuse"
        assert NotificationLog.objects.get(company=company).notification_type == "sns_complaint"

    def test_complaint_overrides_previous_bounce_reason(self, validate, post, company):
        EmailBlacklist.objects.create(company=company, email="maria@example.com", reason=EmailBlacklist.Reason.BOUNCE)

        post(_complaint())

        entry = EmailBlacklist.objects.get(company=company, email="maria@example.com")
        assert entry.reason == EmailBlacklist.Reason.COMPLAINT
        assert entry.attempt_count == 2

    def test_blacklist_is_scoped_to_company(self, validate, post, company, company2):
        post(_bounce())

        assert not EmailBlacklist.objects.filter(company=company2).exists()

    def test_delivery_notification_is_ignored(self, validate, post):
        response = post(_notification({"notificationType": "Delivery", "mail": {"messageId": "ses-3"}}))

        assert response.status_code == 200
        assert not NotificationLog.objects.exists()

    @patch("apps.notifications.webhooks.requests.get")
    def test_subscription_confirmation(self, mock_get, validate, post):
        response = post({"Type": "SubscriptionConfirmation", "SubscribeURL": "https://sns.example.com/confirm"})

        assert response.status_code == 200
        mock_get.assert_called_once_with("https://sns.example.com/confirm", timeout=5)

    @patch("apps.notifications.webhooks.requests.get", side_effect=requests.Timeout)
    def test_subscription_confirmation_timeout(self, mock_get, validate, post):
        response = post({"Type": "SubscriptionConfirmation", "SubscribeURL": "https://sns.example.com/confirm"})

        assert response.status_code == 504

    def test_subscription_without_url(self, validate, post):
        assert post({"Type": "SubscriptionConfirmation"}).status_code == 400

    def test_unknown_message_type(self, validate, post):
        assert post({"Type": "Outro"}).status_code == 400

    def test_unknown_company(self, validate, post):
        url = reverse("notifications:sns_webhook", args=["outra-igreja"])

        assert post(_bounce(), target=url).status_code == 404
        assert not EmailBlacklist.objects.exists()

    def test_invalid_json(self, validate, client, company):
        url = reverse("notifications:sns_webhook", args=[company.slug])

        response = client.post(url, data="não é json", content_type="application/json")

        assert response.status_code == 400
        validate.assert_not_called()

    def test_only_post(self, validate, client, company):
        url = reverse("notifications:sns_webhook", args=[company.slug])

        assert client.get(url).status_code == 405


@pytest.mark.django_db
def test_invalid_signature_is_rejected(post, company):
    with patch(VALIDATE, side_effect=SignatureVerificationFailureException("assinatura inválida")):
        response = post(_bounce())

    assert response.status_code == 403
    assert not EmailBlacklist.objects.exists()
    assert not NotificationLog.objects.exists()
