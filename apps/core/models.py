"""
Models base para o sistema Dízimo.
"""

import uuid

from django.core.exceptions import ValidationError
from django.db import models


class BaseModel(models.Model):
    """Model base com campos de auditoria."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class CompanyModel(BaseModel):
    """Model base para entidades que pertencem a uma empresa."""

    company = models.ForeignKey(
        "tenants.Company",
        on_delete=models.CASCADE,
        verbose_name="Empresa",
    )

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        # Só valida a troca de empresa quando pedido explicitamente (evita um SELECT por UPDATE)
        if not self._state.adding and kwargs.pop("check_company", False):
            original_company_id = (
                self.__class__.objects.filter(pk=self.pk)
                .values_list("company_id", flat=True)
                .first()
            )
            if original_company_id and original_company_id != self.company_id:
                raise ValidationError("Não é permitido alterar a empresa.")

        super().save(*args, **kwargs)
