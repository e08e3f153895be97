"""
Models do app accounts.

- Superusers podem existir sem empresa
- Demais perfis (admin, gerente, supervisor, pastor, igreja, membro) DEVEM ter empresa
"""

from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from apps.core.models import BaseModel


class UserManager(BaseUserManager):
    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError("O e-mail é obrigatório.")

        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("role", "admin")

        return self._create_user(email, password, **extra_fields)


class User(AbstractUser, BaseModel):
    """Usuário do sistema (administradores e contribuintes)."""

    class Role(models.TextChoices):
        ADMIN = "admin", "Admin"
        MANAGER = "manager", "Gerente"
        SUPERVISOR = "supervisor", "Supervisor"
        PASTOR = "pastor", "Pastor"
        CHURCH = "church_account", "Igreja"
        MEMBER = "member", "Membro"

    username = None

    email = models.EmailField("E-mail", unique=True)
    phone = models.CharField("Telefone", max_length=20, blank=True)

    role = models.CharField(
        "Perfil",
        max_length=20,
        choices=Role.choices,
        default=Role.MEMBER,
    )

    company = models.ForeignKey(
        "tenants.Company",
        on_delete=models.PROTECT,
        related_name="users",
        verbose_name="Empresa",
        null=True,
        blank=True,
    )

    tithe_day = models.PositiveSmallIntegerField(
        "Dia do dízimo",
        null=True,
        blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(31)],
    )
    welcome_sent = models.BooleanField("Boas-vindas enviadas", default=False)

    is_active = models.BooleanField("Ativo", default=True)

    objects = UserManager()

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    class Meta:
        verbose_name = "Usuário"
        verbose_name_plural = "Usuários"
        ordering = ["email"]
        indexes = [
            models.Index(fields=["company", "email"], name="accounts_company_email_idx"),
        ]

    def __str__(self):
        return self.email

    def clean(self):
        super().clean()

        if self.is_superuser:
            return

        if not self.company_id:
            raise ValidationError(
                {"company": "Usuários não-superuser devem estar associados a uma empresa."}
            )

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    @property
    def display_name(self):
        """Nome para mensagens: nome completo ou a parte local do e-mail."""
        full_name = self.get_full_name()
        if full_name:
            return full_name
        return self.email.split("@")[0] if self.email else "Membro"
