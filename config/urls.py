"""
URLs principais do Dízimo.

Estrutura:
    /healthcheck/           → Verificação de vida da aplicação
    /<ADMIN_PATH>/          → Django Admin (configurável via env)
    /pagamentos/            → Status de transações (consultado pela sincronização PIX)
    /notificacoes/          → Webhook do SNS (bounces e reclamações do SES)
"""

from decouple import config
from django.contrib import admin
from django.http import JsonResponse
from django.urls import include, path


def healthcheck(request):
    """Endpoint simples para verificar se a aplicação está viva."""
    return JsonResponse({"status": "ok"})


ADMIN_PATH = config("DJANGO_ADMIN_PATH", default="admin/")

urlpatterns = [
    path("healthcheck/", healthcheck, name="healthcheck"),
    path(ADMIN_PATH, admin.site.urls),
    path("pagamentos/", include("apps.payments.urls")),
    path("notificacoes/", include("apps.notifications.urls")),
]
