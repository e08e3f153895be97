"""
Sincronização do status de um pagamento PIX.

Ciclo de vida: idle -> pending -> confirmed | expired, voltando a idle com stop().
As consultas automáticas usam backoff linear; a verificação manual
("Já paguei") é independente e não consome tentativas automáticas.
Após um erro do provedor, espera-se o atraso de erro e, em seguida, o backoff normal.
"""

import logging
from typing import Callable

from django.db import models

from apps.payments.constants import (
    PIX_BACKOFF_STEP,
    PIX_ERROR_BACKOFF_STEP,
    PIX_ERROR_DELAY,
    PIX_ERROR_MAX_DELAY,
    PIX_INITIAL_DELAY,
    PIX_MANUAL_INTERVAL,
    PIX_MANUAL_MAX_ATTEMPTS,
    PIX_MAX_ATTEMPTS,
    PIX_MAX_DELAY,
    PIX_MIN_DELAY,
)

logger = logging.getLogger(__name__)

APPROVED = "approved"


class PaymentCheckError(Exception):
    """Falha na verificação manual do pagamento."""


class SyncStatus(models.TextChoices):
    IDLE = "idle", "Sem pagamento"
    PENDING = "pending", "Aguardando confirmação"
    CONFIRMED = "confirmed", "Confirmado"
    EXPIRED = "expired", "Expirado"


class ManualCheckResult(models.TextChoices):
    CONFIRMED = "confirmed", "Pagamento confirmado"
    PENDING = "pending", "Ainda não identificado"


def calculate_backoff_delay(attempt: int) -> int:
    """Atraso (ms) antes da próxima consulta: 8s, 10s, 12s... até 15s."""
    return min(PIX_MIN_DELAY + attempt * PIX_BACKOFF_STEP, PIX_MAX_DELAY)


def calculate_error_delay(attempt: int) -> int:
    """Atraso (ms) após erro do provedor: 12s, 15s, 18s... até 20s."""
    return min(PIX_ERROR_DELAY + attempt * PIX_ERROR_BACKOFF_STEP, PIX_ERROR_MAX_DELAY)


class PaymentSync:
    """
    Acompanha uma transação PIX até a confirmação.

    provider: objeto com `get_status(transaction_id) -> {"status": ...}`
    scheduler: ver apps.payments.scheduling
    on_success: chamado exatamente uma vez quando o pagamento é confirmado
    on_error: chamado com a mensagem quando a verificação manual falha
    """

    def __init__(
        self,
        provider,
        scheduler,
        on_success: Callable[[], None] | None = None,
        on_error: Callable[[str], None] | None = None,
        max_attempts: int = PIX_MAX_ATTEMPTS,
    ):
        self.provider = provider
        self.scheduler = scheduler
        self.on_success = on_success
        self.on_error = on_error
        self.max_attempts = max_attempts

        self.status = SyncStatus.IDLE
        self.transaction_id = None
        self.attempt_count = 0
        self._handle = None

    @property
    def is_polling(self) -> bool:
        return self._handle is not None

    # ==========================================================
    # CICLO DE VIDA
    # ==========================================================

    def start(self, transaction_id) -> None:
        """Inicia (ou reinicia) o acompanhamento de uma transação."""
        self._cancel_scheduled()
        self.transaction_id = str(transaction_id)
        self.attempt_count = 0
        self.status = SyncStatus.PENDING

        logger.info("[PixSync] Acompanhando transação %s", self.transaction_id)
        self._schedule_next_check()

    def stop(self) -> None:
        """Cancela qualquer consulta agendada e volta ao estado inicial."""
        self._cancel_scheduled()
        self.status = SyncStatus.IDLE
        self.transaction_id = None
        self.attempt_count = 0

    def expire(self) -> None:
        """Chamado quando o PIX expira. Só tem efeito se ainda estiver pendente."""
        if self.status != SyncStatus.PENDING:
            return

        self._cancel_scheduled()
        self.status = SyncStatus.EXPIRED
        logger.info("[PixSync] Transação %s expirada", self.transaction_id)

    # ==========================================================
    # VERIFICAÇÃO MANUAL
    # ==========================================================

    def check_manually(self) -> str:
        """
        Consulta o status até 3 vezes, com 2s entre elas.

        Retorna ManualCheckResult.CONFIRMED ou ManualCheckResult.PENDING.
        Levanta PaymentCheckError se não houver pagamento pendente ou se o
        provedor falhar.
        """
        if not self.transaction_id:
            raise PaymentCheckError("ID da transação não encontrado.")

        if self.status == SyncStatus.CONFIRMED:
            return ManualCheckResult.CONFIRMED

        if self.status != SyncStatus.PENDING:
            raise PaymentCheckError("Não há pagamento PIX pendente para verificar.")

        for attempt in range(1, PIX_MANUAL_MAX_ATTEMPTS + 1):
            # A consulta automática pode ter confirmado durante a espera
            if self.status == SyncStatus.CONFIRMED:
                return ManualCheckResult.CONFIRMED

            try:
                approved = self._is_approved()
            except Exception as exc:
                logger.warning(
                    "[PixSync] Erro na verificação manual de %s: %s",
                    self.transaction_id,
                    exc,
                )
                message = "Problema temporário ao verificar o pagamento. Tente novamente."
                if self.on_error:
                    self.on_error(message)
                raise PaymentCheckError(message) from exc

            if approved:
                self._confirm()
                return ManualCheckResult.CONFIRMED

            if attempt < PIX_MANUAL_MAX_ATTEMPTS:
                self.scheduler.sleep(PIX_MANUAL_INTERVAL / 1000)

        return ManualCheckResult.PENDING

    # ==========================================================
    # CONSULTA AUTOMÁTICA
    # ==========================================================

    def _schedule_next_check(self) -> None:
        if self.status != SyncStatus.PENDING or not self.transaction_id:
            return

        if self.attempt_count >= self.max_attempts:
            # O cronômetro continua valendo; a verificação manual segue disponível
            logger.info(
                "[PixSync] Limite de %s consultas atingido para %s",
                self.max_attempts,
                self.transaction_id,
            )
            return

        if self.attempt_count == 0:
            delay = PIX_INITIAL_DELAY
        else:
            delay = calculate_backoff_delay(self.attempt_count)

        self._arm(delay)

    def _run_scheduled_check(self) -> None:
        self._handle = None
        if self.status != SyncStatus.PENDING:
            return

        attempt = self.attempt_count
        self.attempt_count += 1

        try:
            approved = self._is_approved()
        except Exception as exc:
            logger.warning(
                "[PixSync] Erro ao consultar %s (tentativa %s): %s",
                self.transaction_id,
                self.attempt_count,
                exc,
            )
            if self.attempt_count < self.max_attempts:
                # Pausa de erro e depois o backoff normal da próxima tentativa
                self._arm(calculate_error_delay(attempt), self._resume_after_error)
            return

        if approved:
            self._confirm()
            return

        self._schedule_next_check()

    def _is_approved(self) -> bool:
        result = self.provider.get_status(self.transaction_id) or {}
        return result.get("status") == APPROVED

    def _confirm(self) -> None:
        # Respostas atrasadas depois da confirmação não disparam on_success de novo
        if self.status != SyncStatus.PENDING:
            return

        self._cancel_scheduled()
        self.status = SyncStatus.CONFIRMED
        logger.info(
            "[PixSync] Pagamento %s confirmado após %s consulta(s)",
            self.transaction_id,
            self.attempt_count,
        )
        if self.on_success:
            self.on_success()

    def _resume_after_error(self) -> None:
        self._handle = None
        self._schedule_next_check()

    def _arm(self, delay_ms: int, callback: Callable[[], None] | None = None) -> None:
        self._cancel_scheduled()
        self._handle = self.scheduler.call_later(delay_ms / 1000, callback or self._run_scheduled_check)

    def _cancel_scheduled(self) -> None:
        if self._handle is not None:
            self.scheduler.cancel(self._handle)
            self._handle = None
