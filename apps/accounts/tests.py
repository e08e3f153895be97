from unittest.mock import patch

import pytest
from django.contrib.admin.sites import AdminSite
from django.core.exceptions import ValidationError

from apps.accounts.admin import UserAdmin
from apps.accounts.models import User


@pytest.mark.django_db
class TestUser:
    def test_member_requires_company(self):
        with pytest.raises(ValidationError):
            User.objects.create_user(email="sem.igreja@example.com", password="password123")

    def test_superuser_without_company(self):
        admin = User.objects.create_superuser(email="root@example.com", password="password123")
        assert admin.company_id is None
        assert admin.role == User.Role.ADMIN

    def test_display_name(self, company, user):
        assert user.display_name == "João Silva"

        member = User.objects.create_user(
            email="maria@example.com", password="password123", company=company
        )
        assert member.display_name == "maria"

    def test_tithe_day_range(self, company):
        with pytest.raises(ValidationError):
            User.objects.create_user(
                email="dia@example.com", password="password123", company=company, tithe_day=32
            )


@pytest.mark.django_db
class TestUserAdmin:
    @patch("apps.notifications.services.NotificationService")
    def test_send_welcome_marks_delivered_members(self, mock_service, company, user):
        silent = User.objects.create_user(email="maria@example.com", password="password123", company=company)
        mock_service.return_value.send_welcome.side_effect = [
            {"whatsapp": True, "email": False},
            {"whatsapp": False, "email": False},
        ]
        model_admin = UserAdmin(User, AdminSite())

        with patch.object(model_admin, "message_user") as message_user:
            model_admin.send_welcome(None, User.objects.filter(pk__in=[user.pk, silent.pk]).order_by("email"))

        user.refresh_from_db()
        silent.refresh_from_db()
        assert user.welcome_sent is True
        assert silent.welcome_sent is False
        message_user.assert_called_once_with(None, "Boas-vindas enviadas para 1 membro(s).")
