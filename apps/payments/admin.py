"""
Admin do app payments
"""

from django.contrib import admin, messages
from django.utils.html import format_html

from apps.core.utils import format_brl
from apps.payments.models import Transaction
from apps.payments.services import TransactionLockedError, update_transaction_status


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_select_related = ("company", "contributor")

    list_display = (
        "id",
        "contributor",
        "amount_formatted",
        "payment_method",
        "status_display",
        "company",
        "created_at_formatted",
    )

    list_filter = ("status", "payment_method", "company", "created_at")
    search_fields = ("id", "description", "gateway_transaction_id", "contributor__email")

    # Status só muda pelas ações (com lock e notificação)
    readonly_fields = ("status", "paid_at", "created_at", "updated_at")
    raw_id_fields = ("company", "contributor")
    date_hierarchy = "created_at"
    actions = ("mark_as_approved", "mark_as_refused")

    fieldsets = (
        (
            "Informações Básicas",
            {"fields": ("company", "contributor", "description", "amount", "installments")},
        ),
        ("Pagamento", {"fields": ("payment_method", "status", "gateway_transaction_id")}),
        ("Datas", {"fields": ("created_at", "paid_at", "updated_at")}),
    )

    def amount_formatted(self, obj):
        return f"R$ {format_brl(obj.amount)}"

    amount_formatted.short_description = "Valor"

    def created_at_formatted(self, obj):
        return obj.created_at.strftime("%d/%m/%Y %H:%M")

    created_at_formatted.short_description = "Criado em"

    def status_display(self, obj):
        colors = {
            "approved": "green",
            "pending": "orange",
            "refused": "red",
            "refunded": "purple",
        }
        return format_html(
            '<span style="color: {}; font-weight: bold;">{}</span>',
            colors.get(obj.status, "black"),
            obj.get_status_display(),
        )

    status_display.short_description = "Status"

    def _apply_status(self, request, queryset, new_status):
        updated = 0
        for tx_id in queryset.values_list("id", flat=True):
            try:
                update_transaction_status(tx_id, new_status)
                updated += 1
            except TransactionLockedError as e:
                self.message_user(request, str(e), messages.WARNING)
        if updated:
            self.message_user(request, f"{updated} transação(ões) atualizada(s).")

    @admin.action(description="Marcar como aprovada")
    def mark_as_approved(self, request, queryset):
        self._apply_status(request, queryset, Transaction.Status.APPROVED)

    @admin.action(description="Marcar como recusada")
    def mark_as_refused(self, request, queryset):
        self._apply_status(request, queryset, Transaction.Status.REFUSED)
