"""
Evolution API Client - envio de mensagens de texto.
"""

import logging
import time
import uuid
from urllib.parse import urljoin

import requests
from requests.exceptions import RequestException

logger = logging.getLogger(__name__)


class EvolutionAPIError(Exception):
    def __init__(self, message: str, status_code: int = None, response: dict = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


def normalize_phone(phone: str) -> str:
    """Mantém só dígitos e adiciona o DDI 55 a números nacionais (DDD + número)."""
    phone_clean = "".join(filter(str.isdigit, phone or ""))
    if len(phone_clean) in [10, 11]:
        phone_clean = f"55{phone_clean}"
    elif len(phone_clean) == 9:
        raise EvolutionAPIError("Invalid phone: include area code")
    return phone_clean


class EvolutionClient:
    DEFAULT_TIMEOUT = 15

    def __init__(self, *, base_url: str, api_key: str, instance: str = None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.instance = instance
        self.headers = {"apikey": self.api_key, "Content-Type": "application/json"}

    def _request(self, method: str, endpoint: str, data: dict = None, timeout: int = None) -> dict:
        url = urljoin(self.base_url + "/", endpoint.lstrip("/"))
        timeout = timeout or self.DEFAULT_TIMEOUT
        correlation_id = str(uuid.uuid4())[:12]
        start_time = time.time()

        try:
            response = requests.request(method=method, url=url, json=data, headers=self.headers, timeout=timeout)
        except RequestException as e:
            logger.warning("[WhatsApp] Erro de conexão [%s] %s: %s", correlation_id, endpoint, e)
            raise EvolutionAPIError(f"Connection error: {str(e)}")

        response_time_ms = int((time.time() - start_time) * 1000)
        try:
            result = response.json()
        except ValueError:
            result = {"raw": response.text}

        logger.info(
            "[WhatsApp] %s %s -> %s (%sms) [%s]",
            method,
            endpoint,
            response.status_code,
            response_time_ms,
            correlation_id,
        )

        if response.status_code >= 400:
            message = result.get("message", result) if isinstance(result, dict) else result
            raise EvolutionAPIError(f"API Error: {message}", response.status_code, result)
        return result

    def send_text_message(self, *, phone: str, message: str) -> dict:
        if not self.instance:
            raise EvolutionAPIError("Instance not configured")
        payload = {"number": normalize_phone(phone), "text": message, "delay": 1200}
        return self._request("POST", f"/message/sendText/{self.instance}", data=payload)
