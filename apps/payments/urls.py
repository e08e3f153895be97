"""
URLs do app payments
"""

from django.urls import path

from apps.payments import views

app_name = "payments"

urlpatterns = [
    path(
        "transacoes/<uuid:transaction_id>/status/",
        views.transaction_status,
        name="transaction_status",
    ),
]
