"""
Views do app payments - Consulta de status da transação
"""

from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.cache import never_cache
from django.views.decorators.http import require_GET

from apps.payments.models import Transaction


@require_GET
@never_cache
def transaction_status(request, transaction_id):
    """
    Status de uma transação (polling do PIX).
    Público: o UUID não é adivinhável e a resposta não expõe dados pessoais.
    """
    tx = get_object_or_404(
        Transaction.objects.only("id", "status", "payment_method"),
        pk=transaction_id,
    )
    return JsonResponse(
        {
            "transaction": {
                "id": str(tx.id),
                "status": tx.status,
                "payment_method": tx.payment_method,
            }
        }
    )
