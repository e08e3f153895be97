"""
Transportes de e-mail: Amazon SES (API) e SMTP.

send(to, subject, html, text=None) -> {"success": bool, "error": str, "error_code": str}
Nenhum transporte levanta exceção de envio.
"""

import logging
import smtplib

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from django.core.mail import EmailMultiAlternatives, get_connection
from django.utils.html import strip_tags

from apps.tenants.services import EmailConfig

logger = logging.getLogger(__name__)

SMTP_AUTH_FAILED = "SMTP_AUTH_FAILED"
SMTP_ERROR = "SMTP_ERROR"
SMTP_BOUNCE = "SmtpBounce"
SES_ERROR = "SES_ERROR"


def _failure(error: str, error_code: str) -> dict:
    return {"success": False, "error": error, "error_code": error_code}


class SESTransport:
    name = "ses"

    def __init__(self, config: EmailConfig, client=None):
        self.from_email = config.from_email
        self.client = client or boto3.client(
            "ses",
            region_name=config.ses_region,
            aws_access_key_id=config.ses_access_key_id,
            aws_secret_access_key=config.ses_secret_access_key,
        )

    def send(self, to: str, subject: str, html: str, text: str = None) -> dict:
        body = {"Html": {"Data": html, "Charset": "UTF-8"}}
        if text:
            body["Text"] = {"Data": text, "Charset": "UTF-8"}

        try:
            response = self.client.send_email(
                Source=self.from_email,
                Destination={"ToAddresses": [to]},
                Message={
                    "Subject": {"Data": subject, "Charset": "UTF-8"},
                    "Body": body,
                },
            )
        except ClientError as e:
            error = e.response.get("Error", {})
            code = error.get("Code", SES_ERROR)
            logger.error("[Email] SES recusou envio (%s): %s", code, error.get("Message", e))
            return _failure(error.get("Message", str(e)), code)
        except BotoCoreError as e:
            logger.error("[Email] Falha de comunicação com o SES: %s", e)
            return _failure(str(e), SES_ERROR)

        return {"success": True, "error": "", "error_code": "", "message_id": response.get("MessageId", "")}


class SMTPTransport:
    name = "smtp"
    TIMEOUT = 20

    def __init__(self, config: EmailConfig):
        self.config = config

    def _connection(self):
        return get_connection(
            "django.core.mail.backends.smtp.EmailBackend",
            host=self.config.smtp_host,
            port=self.config.smtp_port,
            username=self.config.smtp_user,
            password=self.config.smtp_pass,
            use_tls=self.config.smtp_use_tls,
            timeout=self.TIMEOUT,
            fail_silently=False,
        )

    def send(self, to: str, subject: str, html: str, text: str = None) -> dict:
        message = EmailMultiAlternatives(
            subject=subject,
            body=text or strip_tags(html),
            from_email=self.config.from_email or self.config.smtp_user,
            to=[to],
            connection=self._connection(),
        )
        message.attach_alternative(html, "text/html")

        try:
            message.send()
        except smtplib.SMTPAuthenticationError as e:
            logger.error("[Email] Autenticação SMTP falhou em %s: %s", self.config.smtp_host, e)
            return _failure("Falha de autenticação SMTP", SMTP_AUTH_FAILED)
        except smtplib.SMTPRecipientsRefused as e:
            codes = [code for code, _ in e.recipients.values()]
            permanent = any(code >= 500 for code in codes)
            logger.error("[Email] Destinatário recusado (%s): %s", codes, to)
            return _failure(f"Destinatário recusado: {codes}", SMTP_BOUNCE if permanent else SMTP_ERROR)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("[Email] Erro SMTP: %s", e)
            return _failure(str(e), SMTP_ERROR)

        return {"success": True, "error": "", "error_code": ""}


def build_email_transport(config: EmailConfig):
    """SES tem prioridade quando as duas configurações existem."""
    if config.has_ses:
        return SESTransport(config)
    if config.has_smtp:
        return SMTPTransport(config)
    return None
