from datetime import date, datetime, timedelta
from decimal import Decimal
from unittest.mock import Mock, patch

import pytest
from django.db import DatabaseError
from django.utils import timezone

from apps.accounts.models import User
from apps.notifications import reminders
from apps.notifications.dedup import should_send_notification
from apps.notifications.defaults import DEFAULT_RULES, DEFAULT_TEMPLATES, bootstrap_notification_defaults
from apps.notifications.models import (
    Channel,
    EventTrigger,
    MessageTemplate,
    NotificationLog,
    NotificationRule,
    NotificationType,
)
from apps.notifications.services import NotificationService
from apps.payments.models import Transaction

OK = {"success": True, "error": "", "error_code": ""}


def _channels(whatsapp_result=OK, email_result=OK):
    whatsapp = Mock()
    whatsapp.send.return_value = whatsapp_result
    email = Mock()
    email.send.return_value = email_result
    return whatsapp, email


def _log(user, notification_type, status=NotificationLog.Status.SENT, hours_ago=0):
    log = NotificationLog.objects.create(
        company=user.company,
        user=user,
        notification_type=notification_type,
        channel=Channel.EMAIL,
        status=status,
        recipient=user.email,
    )
    if hours_ago:
        NotificationLog.objects.filter(pk=log.pk).update(created_at=timezone.now() - timedelta(hours=hours_ago))
    return log


@pytest.mark.django_db
class TestNotificationService:
    def test_reminder_uses_default_template(self, company, user):
        whatsapp, email = _channels()
        service = NotificationService(company, whatsapp=whatsapp, email=email)

        result = service.send_payment_reminder(
            user.id, "João", "150,00", "10/10/2026", phone="11999998888", email="joao@example.com"
        )

        assert result == {"whatsapp": True, "email": True}
        phone, message = whatsapp.send.call_args.args
        assert phone == "11999998888"
        assert "Olá João" in message
        assert "R$ 150,00 vence em 10/10/2026" in message
        assert "Pague pelo link" not in message

        to, subject, html, text = email.send.call_args.args
        assert to == "joao@example.com"
        assert subject == "Lembrete de Dízimo - vence em 10/10/2026"
        assert "Pagar Agora" not in html
        assert text is None

        logs = NotificationLog.objects.filter(user=user, notification_type=NotificationType.PAYMENT_REMINDER)
        assert logs.count() == 2
        assert set(logs.values_list("channel", flat=True)) == {Channel.WHATSAPP, Channel.EMAIL}
        assert all(log.status == NotificationLog.Status.SENT for log in logs)
        assert logs.get(channel=Channel.EMAIL).subject == subject

    def test_payment_link_block_is_rendered(self, company, user):
        whatsapp, email = _channels()
        service = NotificationService(company, whatsapp=whatsapp, email=email)

        service.send_payment_overdue(
            user.id, "João", "150,00", "10/10/2026", phone="11999998888",
            payment_link="https://pague.example.com/abc",
        )

        message = whatsapp.send.call_args.args[1]
        assert "em atraso desde 10/10/2026" in message
        assert "https://pague.example.com/abc" in message
        email.send.assert_not_called()

    def test_welcome_without_template_is_skipped(self, company, user):
        whatsapp, email = _channels()
        service = NotificationService(company, whatsapp=whatsapp, email=email)

        result = service.send_welcome(user.id, "João", "Igreja Central", phone="11999998888", email=user.email)

        assert result == {"whatsapp": False, "email": False}
        whatsapp.send.assert_not_called()
        email.send.assert_not_called()
        assert not NotificationLog.objects.exists()

    def test_custom_template_overrides_default(self, company, user):
        MessageTemplate.objects.create(
            company=company,
            template_type=NotificationType.WELCOME,
            name="Boas-vindas",
            whatsapp_template="Bem-vindo à {{church_name}}, {{name}}!",
        )
        whatsapp, email = _channels()
        service = NotificationService(company, whatsapp=whatsapp, email=email)

        result = service.send_welcome(user.id, "João", "Igreja Central", phone="11999998888", email=user.email)

        assert whatsapp.send.call_args.args[1] == "Bem-vindo à Igreja Central, João!"
        # Sem assunto e corpo, o template não cobre e-mail
        email.send.assert_not_called()
        assert result == {"whatsapp": True, "email": False}

    def test_inactive_custom_template_is_ignored(self, company, user):
        MessageTemplate.objects.create(
            company=company,
            template_type=NotificationType.PAYMENT_REMINDER,
            name="Antigo",
            whatsapp_template="Texto antigo",
            is_active=False,
        )
        whatsapp, email = _channels()

        NotificationService(company, whatsapp=whatsapp, email=email).send_payment_reminder(
            user.id, "João", "150,00", "10/10/2026", phone="11999998888"
        )

        assert "Texto antigo" not in whatsapp.send.call_args.args[1]

    def test_other_company_template_is_ignored(self, company, company2, user):
        MessageTemplate.objects.create(
            company=company2,
            template_type=NotificationType.WELCOME,
            name="Boas-vindas",
            whatsapp_template="Olá!",
        )
        whatsapp, email = _channels()

        NotificationService(company, whatsapp=whatsapp, email=email).send_welcome(
            user.id, "João", "Igreja Central", phone="11999998888"
        )

        whatsapp.send.assert_not_called()

    def test_whatsapp_exception_does_not_block_email(self, company, user):
        whatsapp, email = _channels()
        whatsapp.send.side_effect = RuntimeError("falha inesperada")
        service = NotificationService(company, whatsapp=whatsapp, email=email)

        result = service.send_payment_reminder(
            user.id, "João", "150,00", "10/10/2026", phone="11999998888", email=user.email
        )

        assert result == {"whatsapp": False, "email": True}
        failed = NotificationLog.objects.get(channel=Channel.WHATSAPP)
        assert failed.status == NotificationLog.Status.FAILED
        assert failed.error_message == "falha inesperada"
        assert failed.sent_at is None

    def test_failed_email_is_logged_with_code(self, company, user):
        whatsapp, email = _channels(
            email_result={"success": False, "error": "rejeitado", "error_code": "MessageRejected"}
        )
        service = NotificationService(company, whatsapp=whatsapp, email=email)

        result = service.send_payment_reminder(user.id, "João", "150,00", "10/10/2026", email=user.email)

        assert result == {"whatsapp": False, "email": False}
        log = NotificationLog.objects.get()
        assert log.error_code == "MessageRejected"
        assert log.recipient == user.email

    def test_no_destinations_sends_nothing(self, company, user):
        whatsapp, email = _channels()
        service = NotificationService(company, whatsapp=whatsapp, email=email)

        result = service.send_payment_reminder(user.id, "João", "150,00", "10/10/2026")

        assert result == {"whatsapp": False, "email": False}
        assert not NotificationLog.objects.exists()

    def test_log_failure_does_not_raise(self, company, user):
        whatsapp, email = _channels()
        service = NotificationService(company, whatsapp=whatsapp, email=email)

        with patch.object(NotificationLog.objects, "create", side_effect=DatabaseError("banco fora")):
            result = service.send_payment_reminder(
                user.id, "João", "150,00", "10/10/2026", phone="11999998888"
            )

        assert result["whatsapp"] is True

    def test_get_template_falls_back_to_defaults(self, company):
        service = NotificationService(company, whatsapp=Mock(), email=Mock())

        assert service.get_template(NotificationType.PAYMENT_OVERDUE) == DEFAULT_TEMPLATES[
            NotificationType.PAYMENT_OVERDUE
        ]
        assert service.get_template(NotificationType.PAYMENT_RECEIVED) is None


@pytest.mark.django_db
class TestDeduplication:
    def test_allows_first_send(self, user):
        assert should_send_notification(user.id, NotificationType.PAYMENT_REMINDER)

    def test_blocks_within_window(self, user):
        _log(user, NotificationType.PAYMENT_REMINDER, hours_ago=23)
        assert not should_send_notification(user.id, NotificationType.PAYMENT_REMINDER)

    def test_allows_after_window(self, user):
        _log(user, NotificationType.PAYMENT_REMINDER, hours_ago=25)
        assert should_send_notification(user.id, NotificationType.PAYMENT_REMINDER)

    def test_payment_received_window_is_one_hour(self, user):
        _log(user, NotificationType.PAYMENT_RECEIVED, hours_ago=2)
        assert should_send_notification(user.id, NotificationType.PAYMENT_RECEIVED)

    def test_welcome_window_is_one_week(self, user):
        _log(user, NotificationType.WELCOME, hours_ago=100)
        assert not should_send_notification(user.id, NotificationType.WELCOME)

    def test_failed_sends_do_not_count(self, user):
        _log(user, NotificationType.PAYMENT_REMINDER, status=NotificationLog.Status.FAILED)
        assert should_send_notification(user.id, NotificationType.PAYMENT_REMINDER)

    def test_other_types_do_not_count(self, user):
        _log(user, NotificationType.PAYMENT_OVERDUE)
        assert should_send_notification(user.id, NotificationType.PAYMENT_REMINDER)

    def test_explicit_window(self, user):
        _log(user, NotificationType.PAYMENT_REMINDER, hours_ago=3)
        assert should_send_notification(user.id, NotificationType.PAYMENT_REMINDER, window_hours=2)

    def test_database_error_allows_send(self, user):
        with patch("apps.notifications.dedup.NotificationLog.objects.filter", side_effect=DatabaseError("fora")):
            assert should_send_notification(user.id, NotificationType.PAYMENT_REMINDER)


@pytest.mark.django_db
class TestBootstrapDefaults:
    def test_creates_templates_and_rules(self, company):
        created = bootstrap_notification_defaults(company)

        assert created == {"templates": len(DEFAULT_TEMPLATES), "rules": len(DEFAULT_RULES)}
        assert MessageTemplate.objects.filter(company=company).count() == 2
        rules = NotificationRule.objects.filter(company=company)
        assert sorted(rules.values_list("days_offset", flat=True)) == [0, 1, 5]
        assert all(rule.send_via_whatsapp and rule.send_via_email for rule in rules)

    def test_is_idempotent(self, company):
        bootstrap_notification_defaults(company)
        created = bootstrap_notification_defaults(company)

        assert created == {"templates": 0, "rules": 0}
        assert MessageTemplate.objects.filter(company=company).count() == 2
        assert NotificationRule.objects.filter(company=company).count() == 3

    def test_keeps_existing_custom_template(self, company):
        MessageTemplate.objects.create(
            company=company,
            template_type=NotificationType.PAYMENT_REMINDER,
            name="Meu lembrete",
            whatsapp_template="Olá {{name}}",
        )

        created = bootstrap_notification_defaults(company)

        assert created["templates"] == 1
        reminder = MessageTemplate.objects.get(company=company, template_type=NotificationType.PAYMENT_REMINDER)
        assert reminder.name == "Meu lembrete"

    def test_is_scoped_by_company(self, company, company2):
        bootstrap_notification_defaults(company)
        assert bootstrap_notification_defaults(company2)["rules"] == 3


@pytest.mark.django_db
class TestWelcomeJob:
    @patch("apps.notifications.reminders.NotificationService")
    def test_sends_and_marks_user(self, mock_service, user):
        processed = reminders.process_welcome_notifications()

        assert processed == 1
        mock_service.return_value.send_welcome.assert_called_once_with(
            user.id, "João Silva", "Igreja Central", phone="11999998888", email="joao.silva@example.com"
        )
        user.refresh_from_db()
        assert user.welcome_sent is True

    @patch("apps.notifications.reminders.NotificationService")
    def test_skips_already_welcomed(self, mock_service, user):
        User.objects.filter(pk=user.pk).update(welcome_sent=True)

        assert reminders.process_welcome_notifications() == 0
        mock_service.assert_not_called()

    @patch("apps.notifications.reminders.NotificationService")
    def test_skips_old_registrations(self, mock_service, user):
        User.objects.filter(pk=user.pk).update(created_at=timezone.now() - timedelta(days=2))

        assert reminders.process_welcome_notifications() == 0

    @patch("apps.notifications.reminders.NotificationService")
    def test_recent_welcome_only_marks_user(self, mock_service, user):
        _log(user, NotificationType.WELCOME)

        assert reminders.process_welcome_notifications() == 0
        mock_service.return_value.send_welcome.assert_not_called()
        user.refresh_from_db()
        assert user.welcome_sent is True


@pytest.mark.django_db
class TestPaymentReminderJob:
    today = date(2026, 10, 7)

    def _approved(self, user, amount, days_ago=0):
        transaction = Transaction.objects.create(
            company=user.company,
            contributor=user,
            amount=Decimal(amount),
            status=Transaction.Status.APPROVED,
        )
        if days_ago:
            Transaction.objects.filter(pk=transaction.pk).update(
                created_at=timezone.now() - timedelta(days=days_ago)
            )
        return transaction

    @patch("apps.notifications.reminders.NotificationService")
    def test_sends_with_last_approved_amount(self, mock_service, user):
        self._approved(user, "100.00", days_ago=40)
        self._approved(user, "150.00", days_ago=10)

        sent = reminders.process_payment_reminders(today=self.today)

        assert sent == 1
        mock_service.return_value.send_payment_reminder.assert_called_once_with(
            user.id,
            "João Silva",
            "150,00",
            "10/10/2026",
            phone="11999998888",
            email="joao.silva@example.com",
        )

    @patch("apps.notifications.reminders.NotificationService")
    def test_skips_without_approved_contribution(self, mock_service, user):
        Transaction.objects.create(company=user.company, contributor=user, amount=Decimal("80.00"))

        assert reminders.process_payment_reminders(today=self.today) == 0
        mock_service.assert_not_called()

    @patch("apps.notifications.reminders.NotificationService")
    def test_other_tithe_days_are_ignored(self, mock_service, user):
        self._approved(user, "150.00")

        assert reminders.process_payment_reminders(today=date(2026, 10, 8)) == 0

    @patch("apps.notifications.reminders.NotificationService")
    def test_due_date_crosses_month(self, mock_service, company):
        member = User.objects.create_user(
            email="maria@example.com", password="password123", company=company, tithe_day=2
        )
        self._approved(member, "50.00")

        assert reminders.process_payment_reminders(today=date(2026, 10, 30)) == 1
        args = mock_service.return_value.send_payment_reminder.call_args.args
        assert args[1] == "maria"
        assert args[3] == "02/11/2026"

    @patch("apps.notifications.reminders.NotificationService")
    def test_recent_reminder_is_not_repeated(self, mock_service, user):
        self._approved(user, "150.00")
        _log(user, NotificationType.PAYMENT_REMINDER, hours_ago=2)

        assert reminders.process_payment_reminders(today=self.today) == 0


def _approved_on(user, amount, when):
    transaction = Transaction.objects.create(
        company=user.company,
        contributor=user,
        amount=Decimal(amount),
        status=Transaction.Status.APPROVED,
    )
    Transaction.objects.filter(pk=transaction.pk).update(
        created_at=timezone.make_aware(datetime(when.year, when.month, when.day, 12, 0))
    )
    return transaction


@pytest.fixture
def channels():
    whatsapp, email = _channels()
    with patch("apps.notifications.services.WhatsAppChannel.for_company", return_value=whatsapp), patch(
        "apps.notifications.services.EmailChannel.for_company", return_value=email
    ):
        yield whatsapp, email


@pytest.mark.django_db
class TestScheduledRules:
    def test_reminder_rule_uses_days_offset(self, company, user, channels):
        whatsapp, email = channels
        bootstrap_notification_defaults(company)
        _approved_on(user, "150.00", date(2026, 2, 10))

        # "Lembrete 5 dias antes": dia 10 visto do dia 5
        sent = reminders.process_payment_reminders(today=date(2026, 3, 5))

        assert sent == 1
        phone, message = whatsapp.send.call_args.args
        assert phone == "11999998888"
        assert "Olá João Silva!" in message
        assert "R$ 150,00 vence em 10/03/2026" in message
        assert email.send.call_args.args[1] == "Lembrete 5 dias antes"
        assert NotificationLog.objects.filter(user=user, notification_type=EventTrigger.PAYMENT_DUE_REMINDER).count() == 2

    def test_reminder_rule_on_due_day(self, company, user, channels):
        bootstrap_notification_defaults(company)
        _approved_on(user, "150.00", date(2026, 2, 10))

        assert reminders.process_payment_reminders(today=date(2026, 3, 7)) == 0
        assert reminders.process_payment_reminders(today=date(2026, 3, 10)) == 1

    def test_reminder_rule_is_not_repeated_same_day(self, company, user, channels):
        bootstrap_notification_defaults(company)
        _approved_on(user, "150.00", date(2026, 2, 10))

        reminders.process_payment_reminders(today=date(2026, 3, 5))
        assert reminders.process_payment_reminders(today=date(2026, 3, 5)) == 0

    def test_rules_replace_default_template_reminder(self, company, user, channels):
        whatsapp, _ = channels
        _approved_on(user, "150.00", date(2026, 2, 10))
        NotificationRule.objects.create(
            company=company,
            name="Lembrete 3 dias antes",
            event_trigger=EventTrigger.PAYMENT_DUE_REMINDER,
            days_offset=3,
            message_template="{{name}}, seu dízimo vence em {{due_date}}.",
            send_via_whatsapp=True,
            send_via_email=False,
        )

        assert reminders.process_payment_reminders(today=date(2026, 3, 7)) == 1
        whatsapp.send.assert_called_once_with("11999998888", "João Silva, seu dízimo vence em 10/03/2026.")

    def test_inactive_rule_is_ignored(self, company, user, channels):
        bootstrap_notification_defaults(company)
        NotificationRule.objects.filter(company=company).update(is_active=False)
        _approved_on(user, "150.00", date(2026, 2, 10))

        assert reminders.process_payment_reminders(today=date(2026, 3, 5)) == 0

    def test_overdue_rule_subtracts_days_offset(self, company, user, channels):
        whatsapp, _ = channels
        bootstrap_notification_defaults(company)
        _approved_on(user, "150.00", date(2026, 2, 10))

        sent = reminders.process_overdue_notifications(today=date(2026, 3, 11))

        assert sent == 1
        assert "em atraso desde 10/03/2026" in whatsapp.send.call_args.args[1]
        assert NotificationLog.objects.filter(notification_type=EventTrigger.PAYMENT_OVERDUE).exists()

    def test_overdue_skipped_when_paid_after_due_date(self, company, user, channels):
        bootstrap_notification_defaults(company)
        _approved_on(user, "150.00", date(2026, 3, 10))

        assert reminders.process_overdue_notifications(today=date(2026, 3, 11)) == 0

    def test_welcome_uses_user_registered_rules(self, company, user, channels):
        whatsapp, email = channels
        NotificationRule.objects.create(
            company=company,
            name="Bem-vindo",
            event_trigger=EventTrigger.USER_REGISTERED,
            message_template="Bem-vindo à {{church_name}}, {{name}}!",
            send_via_whatsapp=True,
            send_via_email=False,
        )

        assert reminders.process_welcome_notifications() == 1

        whatsapp.send.assert_called_once_with("11999998888", "Bem-vindo à Igreja Central, João Silva!")
        email.send.assert_not_called()
        user.refresh_from_db()
        assert user.welcome_sent is True
        log = NotificationLog.objects.get(user=user)
        assert log.notification_type == EventTrigger.USER_REGISTERED


@pytest.mark.django_db
class TestBatchIsolation:
    @patch("apps.notifications.reminders.NotificationService")
    def test_welcome_failure_does_not_stop_batch(self, mock_service, company, user):
        other = User.objects.create_user(email="maria@example.com", password="password123", company=company)
        mock_service.side_effect = [RuntimeError("configuração inválida"), Mock()]

        assert reminders.process_welcome_notifications() == 1

        user.refresh_from_db()
        other.refresh_from_db()
        assert user.welcome_sent is False
        assert other.welcome_sent is True

    @patch("apps.notifications.reminders.NotificationService")
    def test_reminder_failure_does_not_stop_batch(self, mock_service, company, user):
        other = User.objects.create_user(
            email="maria@example.com", password="password123", company=company, tithe_day=10
        )
        _approved_on(user, "150.00", date(2026, 9, 10))
        _approved_on(other, "80.00", date(2026, 9, 10))
        service = Mock()
        mock_service.side_effect = [RuntimeError("configuração inválida"), service]

        assert reminders.process_payment_reminders(today=date(2026, 10, 7)) == 1
        assert service.send_payment_reminder.call_args.args[2] == "80,00"

    def test_rule_failure_does_not_stop_batch(self, company, user, channels):
        bootstrap_notification_defaults(company)
        other = User.objects.create_user(
            email="maria@example.com", password="password123", company=company, tithe_day=10
        )
        _approved_on(user, "150.00", date(2026, 2, 10))
        _approved_on(other, "80.00", date(2026, 2, 10))

        with patch(
            "apps.notifications.reminders.apply_rule",
            side_effect=[RuntimeError("falha"), {"rule_id": "x", "whatsapp": True, "email": None}],
        ):
            assert reminders.process_payment_reminders(today=date(2026, 3, 5)) == 1
