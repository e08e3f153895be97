from django.contrib import admin

from apps.notifications.defaults import bootstrap_notification_defaults
from apps.tenants.models import Company, CompanySettings


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "is_active")
    search_fields = ("name", "slug", "contact_email")
    list_filter = ("is_active",)
    prepopulated_fields = {"slug": ("name",)}
    actions = ("create_notification_defaults",)

    @admin.action(description="Criar templates e regras padrão de notificação")
    def create_notification_defaults(self, request, queryset):
        templates = rules = 0
        for company in queryset:
            created = bootstrap_notification_defaults(company)
            templates += created["templates"]
            rules += created["rules"]
        self.message_user(request, f"{templates} template(s) e {rules} regra(s) criados.")


@admin.register(CompanySettings)
class CompanySettingsAdmin(admin.ModelAdmin):
    list_display = ("company", "smtp_host", "ses_region", "whatsapp_api_instance")
    search_fields = ("company__name",)

    fieldsets = (
        (
            "E-mail (SMTP)",
            {
                "fields": (
                    ("smtp_host", "smtp_port"),
                    "smtp_user",
                    "smtp_pass",
                    "smtp_use_tls",
                    "smtp_from",
                ),
            },
        ),
        (
            "E-mail (AWS SES)",
            {
                "fields": ("ses_region", "ses_access_key_id", "ses_secret_access_key"),
                "classes": ("collapse",),
            },
        ),
        (
            "WhatsApp",
            {
                "fields": ("whatsapp_api_url", "whatsapp_api_key", "whatsapp_api_instance"),
                "classes": ("collapse",),
            },
        ),
    )
