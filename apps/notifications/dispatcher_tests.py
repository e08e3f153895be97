from unittest.mock import MagicMock, Mock, patch

import pytest

from apps.notifications import queue
from apps.notifications.dispatcher import process_notification_event
from apps.notifications.events import (
    PaymentDueReminder,
    PaymentReceived,
    UnknownEventError,
    UserRegistered,
    parse_event,
)
from apps.notifications.models import EventTrigger, NotificationLog, NotificationRule
from apps.notifications.queue import NotificationProducer, enqueue_notification
from apps.notifications.tasks import process_notification_event_task
from apps.tenants.models import CompanySettings

OK = {"success": True, "error": "", "error_code": ""}

PAYMENT_DATA = {
    "user_id": None,
    "transaction_id": "5b8f0c52-7d5e-4a1c-9f3e-2f1b6f0b9a11",
    "amount": "150,00",
    "paid_at": "07/10/2026 14:30",
}


@pytest.fixture
def channels():
    whatsapp = Mock()
    whatsapp.send.return_value = OK
    email = Mock()
    email.send.return_value = OK
    with patch("apps.notifications.services.WhatsAppChannel.for_company", return_value=whatsapp), patch(
        "apps.notifications.services.EmailChannel.for_company", return_value=email
    ):
        yield whatsapp, email


@pytest.fixture
def payment_data(user):
    return {**PAYMENT_DATA, "user_id": str(user.id)}


def _rule(company, **kwargs):
    defaults = {
        "name": "Obrigado pela contribuição",
        "event_trigger": EventTrigger.PAYMENT_RECEIVED,
        "message_template": "Recebemos R$ {{amount}} de {{user_name}}.\n\nObrigado!",
        "send_via_email": True,
        "send_via_whatsapp": True,
    }
    defaults.update(kwargs)
    return NotificationRule.objects.create(company=company, **defaults)


class TestParseEvent:
    def test_builds_typed_event(self):
        event = parse_event("payment_due_reminder", {"user_id": "u1", "amount": "150,00", "due_date": "10/10/2026"})

        assert isinstance(event, PaymentDueReminder)
        assert event.payment_link == ""
        assert event.variables() == {"amount": "150,00", "due_date": "10/10/2026"}

    def test_unknown_event(self):
        with pytest.raises(UnknownEventError):
            parse_event("order_shipped", {"user_id": "u1"})

    def test_missing_required_field(self):
        with pytest.raises(ValueError, match="amount"):
            parse_event("payment_received", {"user_id": "u1", "transaction_id": "t1"})

    def test_extra_fields_are_ignored_and_values_stringified(self):
        event = parse_event("user_registered", {"user_id": 42, "name": "João", "campo": "x"})

        assert event == UserRegistered(user_id="42", name="João")

    def test_payload_round_trip(self):
        event = PaymentReceived(user_id="u1", transaction_id="t1", amount="10,00")
        assert parse_event(event.event_type, event.to_payload()) == event


@pytest.mark.django_db
class TestDispatcher:
    def test_invalid_event(self):
        assert process_notification_event("order_shipped", {"user_id": "u1"}) == {
            "processed": False,
            "reason": "invalid_event",
        }

    def test_missing_fields(self, user):
        result = process_notification_event("payment_received", {"user_id": str(user.id)})
        assert result["reason"] == "invalid_event"

    def test_user_not_found(self, db):
        data = {**PAYMENT_DATA, "user_id": "0b1e2b9c-0000-4000-8000-000000000000"}
        assert process_notification_event("payment_received", data)["reason"] == "user_not_found"

    def test_malformed_user_id(self, db):
        data = {**PAYMENT_DATA, "user_id": "não-é-uuid"}
        assert process_notification_event("payment_received", data)["reason"] == "user_not_found"

    def test_company_without_settings(self, company, payment_data):
        CompanySettings.objects.filter(company=company).delete()

        assert process_notification_event("payment_received", payment_data)["reason"] == "settings_not_found"

    def test_no_active_rules(self, company, payment_data, channels):
        _rule(company, is_active=False)
        _rule(company, event_trigger=EventTrigger.PAYMENT_OVERDUE)

        result = process_notification_event("payment_received", payment_data)

        assert result == {"processed": True, "rules": 0, "results": []}
        channels[0].send.assert_not_called()

    def test_rule_sends_on_both_channels(self, company, user, payment_data, channels):
        whatsapp, email = channels
        rule = _rule(company)

        result = process_notification_event("payment_received", payment_data)

        assert result == {
            "processed": True,
            "rules": 1,
            "results": [{"rule_id": str(rule.id), "whatsapp": True, "email": True}],
        }
        whatsapp.send.assert_called_once_with(
            "11999998888", "Recebemos R$ 150,00 de joao.silva.\n\nObrigado!"
        )
        to, subject, html, text = email.send.call_args.args
        assert to == "joao.silva@example.com"
        assert subject == "Obrigado pela contribuição"
        assert html == "<p>Recebemos R$ 150,00 de joao.silva.</p>\n\n<p>Obrigado!</p>"
        assert text == "Recebemos R$ 150,00 de joao.silva.\n\nObrigado!"
        assert NotificationLog.objects.filter(user=user, notification_type="payment_received").count() == 2

    def test_rule_html_is_escaped(self, company, user, channels):
        _rule(company, event_trigger=EventTrigger.USER_REGISTERED, message_template="Bem-vindo, {{name}}!")

        process_notification_event("user_registered", {"user_id": str(user.id), "name": "<b>João</b>"})

        html = channels[1].send.call_args.args[2]
        assert "&lt;b&gt;João&lt;/b&gt;" in html

    def test_channel_flags_and_missing_phone(self, company, user, payment_data, channels):
        whatsapp, email = channels
        user.phone = ""
        user.save()
        _rule(company, send_via_email=False)

        result = process_notification_event("payment_received", payment_data)

        assert result["results"][0]["whatsapp"] is None
        assert result["results"][0]["email"] is None
        whatsapp.send.assert_not_called()
        email.send.assert_not_called()

    def test_each_rule_is_processed(self, company, payment_data, channels):
        _rule(company, send_via_email=False)
        _rule(company, name="Recibo", send_via_whatsapp=False)

        result = process_notification_event("payment_received", payment_data)

        assert result["rules"] == 2
        assert channels[0].send.call_count == 1
        assert channels[1].send.call_count == 1

    def test_failures_are_reported_per_rule(self, company, payment_data, channels):
        whatsapp, _ = channels
        whatsapp.send.return_value = {"success": False, "error": "erro", "error_code": "400"}
        _rule(company)

        result = process_notification_event("payment_received", payment_data)

        assert result["results"][0]["whatsapp"] is False
        assert result["results"][0]["email"] is True


class TestNotificationQueue:
    def test_disabled_without_broker(self, settings):
        settings.CELERY_BROKER_URL = ""

        assert enqueue_notification("user_registered", {"user_id": "u1"}) is False
        assert queue.get_notification_producer() is None

    def test_unreachable_broker_disables_queue(self, settings):
        settings.CELERY_BROKER_URL = "redis://localhost:6390/0"
        app = MagicMock()
        app.connection_for_write.side_effect = ConnectionRefusedError("recusado")

        with patch("celery.current_app", app):
            assert queue.get_notification_producer() is None

    def test_connects_once(self, settings):
        settings.CELERY_BROKER_URL = "redis://localhost:6379/0"
        app = MagicMock()

        with patch("celery.current_app", app):
            producer = queue.get_notification_producer()
            assert queue.get_notification_producer() is producer

        assert isinstance(producer, NotificationProducer)
        assert producer.task is process_notification_event_task
        app.connection_for_write.assert_called_once()

    def test_enqueue_publishes_typed_payload(self):
        producer = Mock()
        data = {**PAYMENT_DATA, "user_id": "u1", "extra": "ignorado"}

        with patch("apps.notifications.queue.get_notification_producer", return_value=producer):
            assert enqueue_notification("payment_received", data) is True

        producer.enqueue.assert_called_once_with(
            "payment_received",
            {
                "user_id": "u1",
                "transaction_id": PAYMENT_DATA["transaction_id"],
                "amount": "150,00",
                "paid_at": "07/10/2026 14:30",
            },
        )

    def test_invalid_event_is_not_published(self):
        producer = Mock()

        with patch("apps.notifications.queue.get_notification_producer", return_value=producer):
            assert enqueue_notification("payment_received", {"user_id": "u1"}) is False

        producer.enqueue.assert_not_called()

    def test_publish_failure_returns_false(self):
        producer = Mock()
        producer.enqueue.side_effect = ConnectionError("broker caiu")

        with patch("apps.notifications.queue.get_notification_producer", return_value=producer):
            assert enqueue_notification("user_registered", {"user_id": "u1"}) is False

    def test_producer_targets_notifications_queue(self):
        task = Mock()

        NotificationProducer(task).enqueue("user_registered", {"user_id": "u1"})

        task.apply_async.assert_called_once_with(
            kwargs={"event_type": "user_registered", "data": {"user_id": "u1"}},
            queue="notifications",
            ignore_result=True,
        )


class TestNotificationWorker:
    @patch("apps.notifications.tasks.process_notification_event")
    def test_runs_dispatcher(self, mock_process):
        mock_process.return_value = {"processed": True, "rules": 0, "results": []}

        result = process_notification_event_task("user_registered", {"user_id": "u1"})

        assert result == {"processed": True, "rules": 0, "results": []}
        mock_process.assert_called_once_with("user_registered", {"user_id": "u1"})

    @patch("apps.notifications.tasks.process_notification_event")
    def test_reraises_for_retry(self, mock_process):
        mock_process.side_effect = RuntimeError("banco indisponível")

        with pytest.raises(RuntimeError):
            process_notification_event_task("user_registered", {"user_id": "u1"})
