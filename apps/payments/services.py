"""
Services do app payments - Transições de status das transações.
"""

import logging
from datetime import timedelta

from django.db import transaction as db_transaction
from django.utils import timezone

from apps.core.utils import format_brl
from apps.payments.constants import PIX_STALE_AFTER_MINUTES
from apps.payments.models import Transaction

logger = logging.getLogger(__name__)


class TransactionLockedError(Exception):
    """A transação já está em um estado final e não pode mudar."""


@db_transaction.atomic
def update_transaction_status(transaction_id, new_status: str) -> Transaction:
    """
    Altera o status com bloqueio pessimista.

    Repetir o status atual é idempotente. Estados finais (aprovado, recusado,
    estornado) nunca mudam. A aprovação agenda a notificação "payment_received"
    após o commit.
    """
    if new_status not in Transaction.Status.values:
        raise ValueError(f"Status inválido: {new_status}")

    tx = Transaction.objects.select_for_update().get(pk=transaction_id)

    if tx.status == new_status:
        return tx

    if tx.is_terminal:
        raise TransactionLockedError(
            f"Transação {tx.pk} já está como {tx.get_status_display()}."
        )

    tx.status = new_status
    update_fields = ["status", "updated_at"]
    if new_status == Transaction.Status.APPROVED:
        tx.paid_at = timezone.now()
        update_fields.append("paid_at")
    tx.save(update_fields=update_fields)

    logger.info("[Pagamentos] Transação %s -> %s", tx.pk, new_status)

    if new_status == Transaction.Status.APPROVED:
        db_transaction.on_commit(lambda: _notify_payment_received(tx))

    return tx


def _notify_payment_received(tx: Transaction) -> None:
    from apps.notifications.queue import enqueue_notification

    paid_at = timezone.localtime(tx.paid_at) if tx.paid_at else timezone.localtime()
    enqueue_notification(
        "payment_received",
        {
            "user_id": str(tx.contributor_id),
            "transaction_id": str(tx.pk),
            "amount": format_brl(tx.amount),
            "paid_at": paid_at.strftime("%d/%m/%Y %H:%M"),
        },
    )


def expire_stale_pix_transactions(older_than_minutes: int = PIX_STALE_AFTER_MINUTES) -> int:
    """Recusa transações PIX pendentes há mais tempo que o limite. Retorna quantas."""
    threshold = timezone.now() - timedelta(minutes=older_than_minutes)
    stale_ids = list(
        Transaction.objects.filter(
            payment_method=Transaction.PaymentMethod.PIX,
            status=Transaction.Status.PENDING,
            created_at__lt=threshold,
        ).values_list("id", flat=True)
    )

    expired = 0
    for tx_id in stale_ids:
        try:
            tx = update_transaction_status(tx_id, Transaction.Status.REFUSED)
        except TransactionLockedError:
            # Aprovada entre a busca e o lock
            logger.info("[Pagamentos] Transação %s finalizada antes de expirar", tx_id)
            continue
        if tx.status == Transaction.Status.REFUSED:
            expired += 1

    if expired:
        logger.info("[Pagamentos] %s transação(ões) PIX expirada(s)", expired)
    return expired
