"""
Admin do app notifications.
"""

from django import forms
from django.contrib import admin
from django.utils.html import format_html

from apps.notifications.models import EmailBlacklist, MessageTemplate, NotificationLog, NotificationRule
from apps.notifications.templating import validate_template


def _validate_fields(form, field_names):
    """Rejeita templates com tags desbalanceadas ou variáveis fora da lista."""
    for name in field_names:
        result = validate_template(form.cleaned_data.get(name) or "")
        for error in result["errors"]:
            form.add_error(name, error)


class MessageTemplateAdminForm(forms.ModelForm):
    class Meta:
        model = MessageTemplate
        fields = "__all__"

    def clean(self):
        cleaned_data = super().clean()
        _validate_fields(self, ["whatsapp_template", "email_subject_template", "email_html_template"])
        return cleaned_data


class NotificationRuleAdminForm(forms.ModelForm):
    class Meta:
        model = NotificationRule
        fields = "__all__"

    def clean(self):
        cleaned_data = super().clean()
        _validate_fields(self, ["message_template"])
        return cleaned_data


@admin.register(MessageTemplate)
class MessageTemplateAdmin(admin.ModelAdmin):
    form = MessageTemplateAdminForm
    list_select_related = ("company",)
    list_display = ("name", "template_type", "company", "is_active", "updated_at")
    list_filter = ("template_type", "is_active", "company")
    search_fields = ("name",)

    fieldsets = (
        (None, {"fields": ("company", "template_type", "name", "is_active")}),
        ("WhatsApp", {"fields": ("whatsapp_template",)}),
        ("E-mail", {"fields": ("email_subject_template", "email_html_template")}),
    )


@admin.register(NotificationRule)
class NotificationRuleAdmin(admin.ModelAdmin):
    form = NotificationRuleAdminForm
    list_select_related = ("company",)
    list_display = (
        "name",
        "event_trigger",
        "days_offset",
        "send_via_whatsapp",
        "send_via_email",
        "is_active",
        "company",
    )
    list_filter = ("event_trigger", "is_active", "company")
    search_fields = ("name", "message_template")


@admin.register(NotificationLog)
class NotificationLogAdmin(admin.ModelAdmin):
    """Logs são somente leitura."""

    list_select_related = ("company", "user")
    list_display = [
        "created_at_fmt",
        "status_badge",
        "notification_type",
        "channel",
        "recipient",
        "error_code",
    ]
    list_filter = ["status", "channel", "notification_type", "company", "created_at"]
    search_fields = ["recipient", "subject", "error_message", "user__email"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = [
        ("Contexto", {"fields": ["id", "company", "user"]}),
        ("Envio", {"fields": ["notification_type", "channel", "status", "recipient", "subject"]}),
        ("Conteúdo", {"fields": ["message_content"]}),
        ("Diagnóstico", {"fields": ["error_message", "error_code"], "classes": ["collapse"]}),
        ("Auditoria", {"fields": ["created_at", "sent_at"]}),
    ]

    def get_readonly_fields(self, request, obj=None):
        return [field for fieldset in self.fieldsets for field in fieldset[1]["fields"]]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return request.user.is_superuser

    def created_at_fmt(self, obj):
        return obj.created_at.strftime("%d/%m %H:%M:%S")

    created_at_fmt.short_description = "Data"

    def status_badge(self, obj):
        colors = {
            "sent": "#10b981",  # Verde
            "failed": "#ef4444",  # Vermelho
        }
        color = colors.get(obj.status, "#6b7280")
        return format_html(
            '<span style="background-color: {}; color: white; padding: 3px 8px; '
            'border-radius: 4px; font-weight: bold; font-size: 11px;">{}</span>',
            color,
            obj.get_status_display(),
        )

    status_badge.short_description = "Status"


@admin.register(EmailBlacklist)
class EmailBlacklistAdmin(admin.ModelAdmin):
    list_select_related = ("company",)
    list_display = (
        "email",
        "reason",
        "error_code",
        "attempt_count",
        "last_attempt_at",
        "is_active",
        "company",
    )
    list_filter = ("reason", "is_active", "company")
    search_fields = ("email", "error_code", "error_message")
    readonly_fields = ("first_failed_at", "last_attempt_at", "attempt_count", "created_at", "updated_at")
    actions = ("reactivate", "deactivate")

    @admin.action(description="Bloquear novamente")
    def reactivate(self, request, queryset):
        updated = queryset.update(is_active=True)
        self.message_user(request, f"{updated} e-mail(s) bloqueado(s).")

    @admin.action(description="Liberar envio")
    def deactivate(self, request, queryset):
        updated = queryset.update(is_active=False)
        self.message_user(request, f"{updated} e-mail(s) liberado(s).")
