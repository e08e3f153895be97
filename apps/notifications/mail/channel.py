"""
Canal de e-mail com lista de supressão.
"""

import logging

from apps.notifications.mail.suppression import (
    is_email_blacklisted,
    is_permanent_failure,
    normalize_email,
    register_permanent_failure,
)
from apps.notifications.mail.transports import SMTP_AUTH_FAILED, build_email_transport
from apps.tenants.services import get_email_config

logger = logging.getLogger(__name__)

BLACKLISTED = "BLACKLISTED"
EMAIL_NOT_CONFIGURED = "EMAIL_NOT_CONFIGURED"


class EmailChannel:
    def __init__(self, company_id, transport):
        self.company_id = company_id
        self.transport = transport

    @classmethod
    def for_company(cls, company_id) -> "EmailChannel":
        return cls(company_id, build_email_transport(get_email_config(company_id)))

    @property
    def is_configured(self) -> bool:
        return self.transport is not None

    def send(self, to: str, subject: str, html: str, text: str = None) -> dict:
        email = normalize_email(to)

        if is_email_blacklisted(self.company_id, email):
            logger.warning("[Email] %s está na lista de supressão, envio ignorado", email)
            return {"success": False, "error": "E-mail na lista de supressão", "error_code": BLACKLISTED}

        if not self.transport:
            logger.warning("[Email] Nenhum transporte configurado para a empresa %s", self.company_id)
            return {"success": False, "error": "E-mail não configurado", "error_code": EMAIL_NOT_CONFIGURED}

        result = self.transport.send(to=email, subject=subject, html=html, text=text)
        if result.get("success"):
            logger.info("[Email] Enviado para %s via %s", email, self.transport.name)
            return result

        error_code = result.get("error_code") or ""
        if error_code == SMTP_AUTH_FAILED:
            # Problema de credencial da empresa, não do destinatário
            return result

        if is_permanent_failure(error_code):
            register_permanent_failure(self.company_id, email, error_code, result.get("error", ""))

        return result
