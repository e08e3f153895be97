from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest.mock import Mock, patch

import pytest
from django.core.management import call_command
from django.urls import reverse
from django.utils import timezone

from apps.payments.models import Transaction
from apps.payments.providers import DatabaseStatusProvider, HttpStatusProvider
from apps.payments.services import (
    TransactionLockedError,
    expire_stale_pix_transactions,
    update_transaction_status,
)
from apps.payments.sync import (
    ManualCheckResult,
    PaymentCheckError,
    PaymentSync,
    SyncStatus,
    calculate_backoff_delay,
    calculate_error_delay,
)
from apps.payments.timer import PaymentTimer


def _provider(*statuses):
    provider = Mock()
    if statuses:
        provider.get_status.side_effect = [{"status": s} for s in statuses]
    else:
        provider.get_status.return_value = {"status": "pending"}
    return provider


@pytest.fixture
def transaction(db, company, user):
    return Transaction.objects.create(
        company=company,
        contributor=user,
        amount=Decimal("150.00"),
        payment_method=Transaction.PaymentMethod.PIX,
    )


class TestBackoff:
    def test_backoff_delay_grows_and_caps(self):
        assert calculate_backoff_delay(0) == 8000
        assert calculate_backoff_delay(1) == 10000
        assert calculate_backoff_delay(3) == 14000
        assert calculate_backoff_delay(4) == 15000
        assert calculate_backoff_delay(20) == 15000

    def test_error_delay_grows_and_caps(self):
        assert calculate_error_delay(0) == 12000
        assert calculate_error_delay(2) == 18000
        assert calculate_error_delay(3) == 20000
        assert calculate_error_delay(10) == 20000


class TestPaymentSync:
    def test_first_check_waits_initial_delay(self, scheduler):
        provider = _provider()
        sync = PaymentSync(provider, scheduler)
        sync.start("tx-1")

        assert sync.status == SyncStatus.PENDING
        scheduler.advance(9.9)
        assert provider.get_status.call_count == 0

        scheduler.advance(0.1)
        provider.get_status.assert_called_once_with("tx-1")
        assert sync.attempt_count == 1

    def test_delays_follow_backoff(self, scheduler):
        sync = PaymentSync(_provider(), scheduler)
        sync.start("tx-1")

        scheduler.advance(10)
        assert scheduler.next_delay == pytest.approx(10.0)
        scheduler.advance(10)
        assert scheduler.next_delay == pytest.approx(12.0)
        scheduler.advance(12)
        assert scheduler.next_delay == pytest.approx(14.0)
        scheduler.advance(14)
        assert scheduler.next_delay == pytest.approx(15.0)

    def test_confirmation_fires_success_once(self, scheduler):
        provider = _provider("pending", "approved")
        on_success = Mock()
        sync = PaymentSync(provider, scheduler, on_success=on_success)
        sync.start("tx-1")

        scheduler.advance(20)

        assert sync.status == SyncStatus.CONFIRMED
        on_success.assert_called_once()
        assert scheduler.pending == []

        scheduler.advance(600)
        assert provider.get_status.call_count == 2

    def test_provider_error_waits_error_delay_then_normal_backoff(self, scheduler):
        provider = Mock()
        provider.get_status.side_effect = [RuntimeError("timeout"), {"status": "pending"}, {"status": "pending"}]
        sync = PaymentSync(provider, scheduler)
        sync.start("tx-1")

        scheduler.advance(10)
        assert sync.status == SyncStatus.PENDING
        assert sync.attempt_count == 1
        assert scheduler.next_delay == pytest.approx(12.0)

        scheduler.advance(12)
        assert provider.get_status.call_count == 1
        assert scheduler.next_delay == pytest.approx(10.0)

        scheduler.advance(10)
        assert sync.attempt_count == 2
        assert scheduler.next_delay == pytest.approx(12.0)

    def test_stop_during_error_pause_cancels_retry(self, scheduler):
        provider = Mock()
        provider.get_status.side_effect = RuntimeError("timeout")
        sync = PaymentSync(provider, scheduler)
        sync.start("tx-1")
        scheduler.advance(10)

        sync.stop()
        scheduler.advance(600)

        assert provider.get_status.call_count == 1
        assert scheduler.pending == []

    def test_approval_on_third_check(self, scheduler):
        provider = _provider("pending", "pending", "approved")
        on_success = Mock()
        sync = PaymentSync(provider, scheduler, on_success=on_success)
        sync.start("tx-1")

        # 10s + 10s + 12s
        scheduler.advance(31)
        on_success.assert_not_called()

        scheduler.advance(1)
        assert sync.status == SyncStatus.CONFIRMED
        assert sync.attempt_count == 3
        on_success.assert_called_once()

        scheduler.advance(600)
        assert provider.get_status.call_count == 3
        assert scheduler.pending == []

    def test_timer_expiry_does_not_stop_polling(self, scheduler):
        provider = _provider()
        sync = PaymentSync(provider, scheduler)
        on_expired = Mock()
        timer = PaymentTimer(scheduler, on_expired=on_expired, initial_seconds=30)
        sync.start("tx-1")
        timer.start()

        scheduler.advance(30)
        assert timer.is_expired
        on_expired.assert_called_once()
        assert sync.status == SyncStatus.PENDING
        calls_at_expiry = provider.get_status.call_count

        scheduler.advance(60)
        assert provider.get_status.call_count > calls_at_expiry
        on_expired.assert_called_once()

        sync.stop()
        calls_at_stop = provider.get_status.call_count
        scheduler.advance(600)
        assert provider.get_status.call_count == calls_at_stop
        assert scheduler.pending == []

    def test_stops_silently_after_max_attempts(self, scheduler):
        provider = _provider()
        on_success = Mock()
        sync = PaymentSync(provider, scheduler, on_success=on_success)
        sync.start("tx-1")

        scheduler.advance(3600)

        assert provider.get_status.call_count == 25
        assert sync.attempt_count == 25
        assert sync.status == SyncStatus.PENDING
        assert not sync.is_polling
        on_success.assert_not_called()

    def test_restart_keeps_single_scheduled_check(self, scheduler):
        sync = PaymentSync(_provider(), scheduler)
        sync.start("tx-1")
        sync.start("tx-2")

        assert len(scheduler.pending) == 1
        assert sync.transaction_id == "tx-2"
        assert sync.attempt_count == 0

    def test_stop_cancels_and_resets(self, scheduler):
        provider = _provider()
        sync = PaymentSync(provider, scheduler)
        sync.start("tx-1")
        scheduler.advance(10)

        sync.stop()
        scheduler.advance(600)

        assert sync.status == SyncStatus.IDLE
        assert sync.transaction_id is None
        assert sync.attempt_count == 0
        assert provider.get_status.call_count == 1

    def test_expire_only_from_pending(self, scheduler):
        provider = _provider()
        sync = PaymentSync(provider, scheduler)
        sync.start("tx-1")

        sync.expire()
        scheduler.advance(600)

        assert sync.status == SyncStatus.EXPIRED
        assert provider.get_status.call_count == 0

        sync.stop()
        sync.expire()
        assert sync.status == SyncStatus.IDLE

    def test_expire_does_not_undo_confirmation(self, scheduler):
        sync = PaymentSync(_provider("approved"), scheduler)
        sync.start("tx-1")
        scheduler.advance(10)

        sync.expire()
        assert sync.status == SyncStatus.CONFIRMED


class TestManualCheck:
    def test_pending_after_three_attempts(self, scheduler):
        provider = _provider()
        sync = PaymentSync(provider, scheduler)
        sync.start("tx-1")

        result = sync.check_manually()

        assert result == ManualCheckResult.PENDING
        assert provider.get_status.call_count == 3
        assert scheduler.sleeps == [2.0, 2.0]
        # Não consome tentativas automáticas
        assert sync.attempt_count == 0
        assert sync.status == SyncStatus.PENDING

    def test_confirms_on_second_attempt(self, scheduler):
        on_success = Mock()
        sync = PaymentSync(_provider("pending", "approved"), scheduler, on_success=on_success)
        sync.start("tx-1")

        assert sync.check_manually() == ManualCheckResult.CONFIRMED
        assert sync.status == SyncStatus.CONFIRMED
        assert scheduler.sleeps == [2.0]
        on_success.assert_called_once()

        # Confirmado: nova verificação não chama o provedor nem o callback
        assert sync.check_manually() == ManualCheckResult.CONFIRMED
        on_success.assert_called_once()

    def test_provider_error_raises(self, scheduler):
        provider = Mock()
        provider.get_status.side_effect = ConnectionError("down")
        on_error = Mock()
        sync = PaymentSync(provider, scheduler, on_error=on_error)
        sync.start("tx-1")

        with pytest.raises(PaymentCheckError):
            sync.check_manually()

        on_error.assert_called_once()
        assert sync.status == SyncStatus.PENDING

    def test_without_transaction_raises(self, scheduler):
        sync = PaymentSync(_provider(), scheduler)
        with pytest.raises(PaymentCheckError):
            sync.check_manually()

    def test_expired_session_raises(self, scheduler):
        sync = PaymentSync(_provider(), scheduler)
        sync.start("tx-1")
        sync.expire()
        with pytest.raises(PaymentCheckError):
            sync.check_manually()


class TestPaymentTimer:
    def test_counts_down_and_expires_once(self, scheduler):
        on_expired = Mock()
        timer = PaymentTimer(scheduler, on_expired=on_expired)
        timer.start()

        assert timer.seconds_remaining == 180
        scheduler.advance(179)
        assert timer.seconds_remaining == 1
        assert not timer.is_expired

        scheduler.advance(1)
        assert timer.is_expired
        assert timer.seconds_remaining == 0
        on_expired.assert_called_once()

        scheduler.advance(60)
        timer.set_active(True)
        scheduler.advance(60)
        on_expired.assert_called_once()

    def test_inactive_timer_does_not_tick(self, scheduler):
        timer = PaymentTimer(scheduler)
        timer.start(10)
        scheduler.advance(3)

        timer.set_active(False)
        scheduler.advance(30)
        assert timer.seconds_remaining == 7

        timer.set_active(True)
        scheduler.advance(2)
        assert timer.seconds_remaining == 5

    def test_reset_rearms_expiry(self, scheduler):
        on_expired = Mock()
        timer = PaymentTimer(scheduler, on_expired=on_expired)
        timer.start(2)
        scheduler.advance(2)

        timer.reset(3)
        assert not timer.is_expired
        assert timer.seconds_remaining == 3

        scheduler.advance(3)
        assert on_expired.call_count == 2

    def test_never_more_than_one_tick_scheduled(self, scheduler):
        timer = PaymentTimer(scheduler)
        timer.start()
        timer.set_active(True)
        timer.reset(60)
        timer.set_active(True)

        assert len(scheduler.pending) == 1

        timer.stop()
        assert scheduler.pending == []

    def test_format_time(self, scheduler):
        timer = PaymentTimer(scheduler, initial_seconds=125)
        assert timer.format_time() == "2:05"


@pytest.mark.django_db
class TestTransactionStatusService:
    def test_approval_sets_paid_at_and_enqueues_notification(
        self, transaction, django_capture_on_commit_callbacks
    ):
        with patch("apps.notifications.queue.enqueue_notification") as enqueue:
            with django_capture_on_commit_callbacks(execute=True):
                tx = update_transaction_status(transaction.id, Transaction.Status.APPROVED)

        assert tx.status == Transaction.Status.APPROVED
        assert tx.paid_at is not None

        enqueue.assert_called_once()
        event_type, data = enqueue.call_args.args
        assert event_type == "payment_received"
        assert data["user_id"] == str(transaction.contributor_id)
        assert data["transaction_id"] == str(transaction.id)
        assert data["amount"] == "150,00"

    def test_terminal_status_is_locked(self, transaction):
        update_transaction_status(transaction.id, Transaction.Status.REFUSED)

        with pytest.raises(TransactionLockedError):
            update_transaction_status(transaction.id, Transaction.Status.APPROVED)

        transaction.refresh_from_db()
        assert transaction.status == Transaction.Status.REFUSED

    def test_same_status_is_idempotent(self, transaction, django_capture_on_commit_callbacks):
        update_transaction_status(transaction.id, Transaction.Status.APPROVED)

        with patch("apps.notifications.queue.enqueue_notification") as enqueue:
            with django_capture_on_commit_callbacks(execute=True):
                tx = update_transaction_status(transaction.id, Transaction.Status.APPROVED)

        assert tx.status == Transaction.Status.APPROVED
        enqueue.assert_not_called()

    def test_invalid_status(self, transaction):
        with pytest.raises(ValueError):
            update_transaction_status(transaction.id, "paid")

    def test_expire_stale_pix(self, company, user, transaction):
        old_pix = Transaction.objects.create(
            company=company, contributor=user, amount=Decimal("10.00")
        )
        old_card = Transaction.objects.create(
            company=company,
            contributor=user,
            amount=Decimal("10.00"),
            payment_method=Transaction.PaymentMethod.CREDIT_CARD,
        )
        Transaction.objects.filter(pk__in=[old_pix.pk, old_card.pk]).update(
            created_at=timezone.now() - timedelta(minutes=20)
        )

        assert expire_stale_pix_transactions() == 1

        old_pix.refresh_from_db()
        old_card.refresh_from_db()
        transaction.refresh_from_db()
        assert old_pix.status == Transaction.Status.REFUSED
        assert old_card.status == Transaction.Status.PENDING
        assert transaction.status == Transaction.Status.PENDING


@pytest.mark.django_db
class TestStatusProviders:
    def test_database_provider(self, transaction):
        provider = DatabaseStatusProvider()
        assert provider.get_status(transaction.id) == {"status": "pending"}

        Transaction.objects.filter(pk=transaction.pk).update(status=Transaction.Status.APPROVED)
        assert provider.get_status(transaction.id) == {"status": "approved"}

    def test_database_provider_unknown_transaction(self):
        provider = DatabaseStatusProvider()
        assert provider.get_status("0b1f4a36-3f7e-4c36-9f0e-2d3c3b7b9a11") == {"status": "unknown"}

    def test_http_provider(self):
        session = Mock()
        session.headers = {}
        session.get.return_value.json.return_value = {
            "transaction": {"id": "abc", "status": "approved", "payment_method": "pix"}
        }

        provider = HttpStatusProvider("https://dizimo.app/", session=session)

        assert provider.get_status("abc") == {"status": "approved"}
        session.get.assert_called_once_with(
            "https://dizimo.app/pagamentos/transacoes/abc/status/", timeout=10
        )

    def test_http_provider_propagates_http_errors(self):
        session = Mock()
        session.headers = {}
        session.get.return_value.raise_for_status.side_effect = RuntimeError("502")

        provider = HttpStatusProvider("https://dizimo.app", session=session)
        with pytest.raises(RuntimeError):
            provider.get_status("abc")


@pytest.mark.django_db
class TestTransactionStatusView:
    def test_returns_status(self, client, transaction):
        url = reverse("payments:transaction_status", args=[transaction.id])
        response = client.get(url)

        assert response.status_code == 200
        assert response.json() == {
            "transaction": {
                "id": str(transaction.id),
                "status": "pending",
                "payment_method": "pix",
            }
        }

    def test_unknown_transaction(self, client):
        url = reverse(
            "payments:transaction_status", args=["0b1f4a36-3f7e-4c36-9f0e-2d3c3b7b9a11"]
        )
        assert client.get(url).status_code == 404

    def test_only_get(self, client, transaction):
        url = reverse("payments:transaction_status", args=[transaction.id])
        assert client.post(url).status_code == 405


@pytest.mark.django_db
class TestAcompanharPixCommand:
    def test_manual_check_confirms_approved_transaction(self, transaction):
        Transaction.objects.filter(pk=transaction.pk).update(status=Transaction.Status.APPROVED)
        out = StringIO()

        call_command("acompanhar_pix", str(transaction.id), "--manual", stdout=out)

        assert "Pagamento confirmado" in out.getvalue()
