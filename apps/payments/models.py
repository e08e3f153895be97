"""
Models do app payments - Contribuições (dízimos e ofertas)
"""

from django.db import models

from apps.core.models import CompanyModel


class Transaction(CompanyModel):
    """Contribuição financeira de um membro."""

    class PaymentMethod(models.TextChoices):
        PIX = "pix", "PIX"
        CREDIT_CARD = "credit_card", "Cartão de Crédito"
        BOLETO = "boleto", "Boleto"

    class Status(models.TextChoices):
        PENDING = "pending", "Aguardando Pagamento"
        APPROVED = "approved", "Aprovado"
        REFUSED = "refused", "Recusado"
        REFUNDED = "refunded", "Estornado"

    # Estados finais: depois de atingidos, a transação não muda mais
    TERMINAL_STATUSES = frozenset({Status.APPROVED, Status.REFUSED, Status.REFUNDED})

    contributor = models.ForeignKey(
        "accounts.User",
        on_delete=models.PROTECT,
        related_name="transactions",
        verbose_name="Contribuinte",
    )

    amount = models.DecimalField("Valor", max_digits=10, decimal_places=2)
    payment_method = models.CharField(
        "Forma de Pagamento",
        max_length=20,
        choices=PaymentMethod.choices,
        default=PaymentMethod.PIX,
    )
    status = models.CharField(
        "Status",
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
    )
    installments = models.PositiveIntegerField(
        "Parcelas", default=1, help_text="Apenas cartão de crédito"
    )
    description = models.CharField("Descrição", max_length=200, blank=True)

    gateway_transaction_id = models.CharField(
        "ID no Gateway",
        max_length=100,
        blank=True,
        help_text="Identificador retornado pelo gateway de pagamento",
    )

    paid_at = models.DateTimeField("Pago em", null=True, blank=True)

    class Meta:
        verbose_name = "Transação"
        verbose_name_plural = "Transações"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["company", "status"], name="payments_company_status_idx"),
            models.Index(fields=["payment_method", "status", "created_at"], name="payments_method_status_idx"),
            models.Index(fields=["gateway_transaction_id"], name="payments_gateway_id_idx"),
        ]

    def __str__(self):
        return f"{self.get_payment_method_display()} - R$ {self.amount} ({self.get_status_display()})"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    @property
    def is_pix(self):
        return self.payment_method == self.PaymentMethod.PIX
