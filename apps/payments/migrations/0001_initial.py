import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("tenants", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Transaction",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=10, verbose_name="Valor")),
                (
                    "payment_method",
                    models.CharField(
                        choices=[("pix", "PIX"), ("credit_card", "Cartão de Crédito"), ("boleto", "Boleto")],
                        default="pix",
                        max_length=20,
                        verbose_name="Forma de Pagamento",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Aguardando Pagamento"),
                            ("approved", "Aprovado"),
                            ("refused", "Recusado"),
                            ("refunded", "Estornado"),
                        ],
                        default="pending",
                        max_length=20,
                        verbose_name="Status",
                    ),
                ),
                (
                    "installments",
                    models.PositiveIntegerField(
                        default=1, help_text="Apenas cartão de crédito", verbose_name="Parcelas"
                    ),
                ),
                ("description", models.CharField(blank=True, max_length=200, verbose_name="Descrição")),
                (
                    "gateway_transaction_id",
                    models.CharField(
                        blank=True,
                        help_text="Identificador retornado pelo gateway de pagamento",
                        max_length=100,
                        verbose_name="ID no Gateway",
                    ),
                ),
                ("paid_at", models.DateTimeField(blank=True, null=True, verbose_name="Pago em")),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="tenants.company",
                        verbose_name="Empresa",
                    ),
                ),
                (
                    "contributor",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Contribuinte",
                    ),
                ),
            ],
            options={
                "verbose_name": "Transação",
                "verbose_name_plural": "Transações",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["company", "status"], name="payments_company_status_idx"),
                    models.Index(fields=["payment_method", "status", "created_at"], name="payments_method_status_idx"),
                    models.Index(fields=["gateway_transaction_id"], name="payments_gateway_id_idx"),
                ],
            },
        ),
    ]
