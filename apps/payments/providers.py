"""
Fontes de status usadas pela sincronização PIX.

Ambas expõem `get_status(transaction_id) -> {"status": "..."}`.
"""

import logging

import requests

logger = logging.getLogger(__name__)


class DatabaseStatusProvider:
    """Lê o status direto do banco (processo com acesso ao Django ORM)."""

    def get_status(self, transaction_id) -> dict:
        from apps.payments.models import Transaction

        status = (
            Transaction.objects.filter(pk=transaction_id)
            .values_list("status", flat=True)
            .first()
        )
        return {"status": status or "unknown"}


class HttpStatusProvider:
    """Consulta o endpoint público de status da transação."""

    DEFAULT_TIMEOUT = 10

    def __init__(self, base_url: str, session: requests.Session = None, timeout: int = None):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.session.headers.update({"accept": "application/json"})
        self.timeout = timeout or self.DEFAULT_TIMEOUT

    def get_status(self, transaction_id) -> dict:
        url = f"{self.base_url}/pagamentos/transacoes/{transaction_id}/status/"

        # Erros de rede/HTTP sobem para a sincronização aplicar o backoff de erro
        response = self.session.get(url, timeout=self.timeout)
        response.raise_for_status()

        data = response.json() or {}
        transaction = data.get("transaction") or {}
        return {"status": transaction.get("status", "unknown")}
