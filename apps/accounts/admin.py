from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    model = User

    list_select_related = ("company",)
    list_display = ("email", "display_name", "company", "role", "tithe_day", "welcome_sent", "is_active")
    list_filter = ("company", "role", "welcome_sent", "is_active")
    search_fields = ("email", "first_name", "last_name", "phone")
    ordering = ("email",)
    actions = ("send_welcome",)

    fieldsets = (
        (None, {"fields": ("email", "password")}),
        ("Membro", {"fields": ("first_name", "last_name", "phone", "company", "role")}),
        ("Dízimo", {"fields": ("tithe_day", "welcome_sent")}),
        ("Acesso", {"fields": ("is_active", "is_staff", "is_superuser", "groups"), "classes": ("collapse",)}),
        ("Auditoria", {"fields": ("last_login", "created_at")}),
    )
    readonly_fields = ("last_login", "created_at")

    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("email", "password1", "password2", "company", "phone", "tithe_day"),
            },
        ),
    )

    @admin.display(description="Nome")
    def display_name(self, obj):
        return obj.display_name

    @admin.action(description="Enviar boas-vindas agora")
    def send_welcome(self, request, queryset):
        from apps.notifications.services import NotificationService

        sent = 0
        for user in queryset.select_related("company").filter(company__isnull=False):
            results = NotificationService(user.company).send_welcome(
                user.id,
                user.display_name,
                user.company.name,
                phone=user.phone or None,
                email=user.email or None,
            )
            if any(results.values()):
                User.objects.filter(pk=user.pk).update(welcome_sent=True)
                sent += 1
        self.message_user(request, f"Boas-vindas enviadas para {sent} membro(s).")
