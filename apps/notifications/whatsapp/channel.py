"""
Canal WhatsApp (Evolution API) por empresa.
"""

import logging

from apps.notifications.whatsapp.client import EvolutionAPIError, EvolutionClient
from apps.tenants.services import WhatsAppConfig, get_whatsapp_config

logger = logging.getLogger(__name__)

WHATSAPP_NOT_CONFIGURED = "WHATSAPP_NOT_CONFIGURED"


class WhatsAppChannel:
    """
    send(phone, text) -> {"success": bool, "error": str, "error_code": str}

    Sem configuração completa (URL, chave e instância) o envio é ignorado
    com success=False, sem exceção.
    """

    def __init__(self, config: WhatsAppConfig, client: EvolutionClient = None):
        self.config = config
        self.client = client
        if self.client is None and config.is_configured:
            self.client = EvolutionClient(
                base_url=config.api_url,
                api_key=config.api_key,
                instance=config.instance,
            )

    @classmethod
    def for_company(cls, company_id) -> "WhatsAppChannel":
        return cls(get_whatsapp_config(company_id))

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    def send(self, phone: str, text: str) -> dict:
        if not self.client:
            logger.warning("[WhatsApp] Configuração ausente, envio ignorado")
            return {
                "success": False,
                "error": "WhatsApp não configurado",
                "error_code": WHATSAPP_NOT_CONFIGURED,
            }

        if not phone:
            return {"success": False, "error": "Telefone vazio", "error_code": "PHONE_EMPTY"}

        try:
            result = self.client.send_text_message(phone=phone, message=text)
        except EvolutionAPIError as e:
            logger.error("[WhatsApp] Erro envio para ***%s: %s", phone[-4:], e)
            return {
                "success": False,
                "error": str(e),
                "error_code": str(e.status_code or ""),
            }

        # A Evolution API confirma o envio devolvendo a chave da mensagem
        key = result.get("key") if isinstance(result, dict) else None
        if not (key or {}).get("id"):
            logger.error("[WhatsApp] Resposta sem ID de mensagem: %s", result)
            return {"success": False, "error": "Resposta sem ID de mensagem", "error_code": ""}

        return {"success": True, "error": "", "error_code": "", "message_id": key["id"]}
